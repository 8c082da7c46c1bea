"""Per-event-name fan-out of AMI events."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from asterisk_harness.ami.client import AmiEvent, EventListener

logger = logging.getLogger(__name__)


@dataclass
class Subscription:
    """Events collected for one name plus the handle that detaches the collector."""

    name: str
    events: list[AmiEvent] = field(default_factory=list)
    _detach: Callable[[], None] | None = field(default=None, repr=False)

    def unsubscribe(self) -> None:
        if self._detach is not None:
            self._detach()
            self._detach = None

    @property
    def active(self) -> bool:
        return self._detach is not None


class EventBus:
    """Dispatch events to listeners registered under the lowercased event type.

    Listeners for a name form an ordered set; dispatch is synchronous and runs
    in subscription order.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, dict[EventListener, None]] = {}

    def on(self, name: str, listener: EventListener) -> None:
        self._listeners.setdefault(name.lower(), {})[listener] = None

    def off(self, name: str, listener: EventListener) -> None:
        listeners = self._listeners.get(name.lower())
        if listeners is not None:
            listeners.pop(listener, None)

    def subscribe(self, name: str) -> Subscription:
        """Collect every ``name`` event into a list until unsubscribed."""

        subscription = Subscription(name=name.lower())
        collect = subscription.events.append
        self.on(name, collect)
        subscription._detach = lambda: self.off(name, collect)
        return subscription

    def listener_count(self, name: str) -> int:
        return len(self._listeners.get(name.lower(), {}))

    def publish(self, event: AmiEvent) -> None:
        event_type = event.get("event")
        if event_type is None:
            logger.debug("dropping AMI packet without event type", extra={"data": dict(event)})
            return
        for listener in list(self._listeners.get(str(event_type).lower(), {})):
            listener(event)


__all__ = ["EventBus", "Subscription"]
