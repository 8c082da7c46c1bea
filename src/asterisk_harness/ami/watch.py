"""Short-lived event watches used to assert on AMI traffic."""

from __future__ import annotations

import asyncio
import inspect
import re
from collections.abc import Awaitable, Callable, Iterable, Mapping, Sequence
from types import TracebackType
from typing import Any, TypeVar

from asterisk_harness.ami.bus import EventBus
from asterisk_harness.ami.client import AmiEvent

T = TypeVar("T")

DEFAULT_SETTLE_SECONDS = 0.05


class EventWatch:
    """Collect events for several names, case-insensitively, in arrival order."""

    def __init__(self, bus: EventBus, names: str | Iterable[str]) -> None:
        if isinstance(names, str):
            names = [names]
        self._bus = bus
        self._names = tuple(dict.fromkeys(name.lower() for name in names))
        self.events: list[AmiEvent] = []
        self._attached = False

    @property
    def names(self) -> tuple[str, ...]:
        return self._names

    def __enter__(self) -> EventWatch:
        for name in self._names:
            self._bus.on(name, self._collect)
        self._attached = True
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if not self._attached:
            return
        for name in self._names:
            self._bus.off(name, self._collect)
        self._attached = False

    def _collect(self, event: AmiEvent) -> None:
        self.events.append(event)


async def check_ami_events(
    bus: EventBus,
    *,
    watch: str | Iterable[str],
    expect: Sequence[Mapping[str, Any]],
    execute: Callable[[], T | Awaitable[T]],
    settle_seconds: float = DEFAULT_SETTLE_SECONDS,
    message: str | None = None,
) -> T:
    """Run ``execute`` while watching ``watch`` and assert the events seen.

    After ``execute`` finishes the watch stays attached for ``settle_seconds``
    so events still in flight are collected.
    """

    with EventWatch(bus, watch) as watcher:
        result = execute()
        if inspect.isawaitable(result):
            result = await result
        await asyncio.sleep(settle_seconds)
    assert_events_match(watcher.events, expect, message=message)
    return result  # type: ignore[return-value]


def assert_events_match(
    events: Sequence[Mapping[str, Any]],
    expect: Sequence[Mapping[str, Any]],
    *,
    message: str | None = None,
) -> None:
    prefix = f"{message}: " if message else ""
    if len(events) != len(expect):
        raise AssertionError(
            f"{prefix}expected {len(expect)} events, got {len(events)}: "
            f"{[event.get('event') for event in events]}"
        )
    for index, (actual, expected) in enumerate(zip(events, expect, strict=True)):
        mismatch = _mismatch(actual, expected, path=f"[{index}]")
        if mismatch is not None:
            raise AssertionError(f"{prefix}events do not match at {mismatch}")


def event_matches(actual: Mapping[str, Any], expected: Mapping[str, Any]) -> bool:
    return _mismatch(actual, expected, path="") is None


def _mismatch(actual: Any, expected: Any, *, path: str) -> str | None:
    if isinstance(expected, re.Pattern):
        if actual is None or expected.search(str(actual)) is None:
            return f"{path}: {actual!r} does not match /{expected.pattern}/"
        return None
    if isinstance(expected, Mapping):
        if not isinstance(actual, Mapping):
            return f"{path}: expected a mapping, got {actual!r}"
        lowered = {str(key).lower(): value for key, value in actual.items()}
        for key, value in expected.items():
            name = str(key).lower()
            if name not in lowered:
                return f"{path}.{name}: missing"
            nested = _mismatch(lowered[name], value, path=f"{path}.{name}")
            if nested is not None:
                return nested
        return None
    if actual != expected:
        return f"{path}: {actual!r} != {expected!r}"
    return None


__all__ = [
    "DEFAULT_SETTLE_SECONDS",
    "EventWatch",
    "assert_events_match",
    "check_ami_events",
    "event_matches",
]
