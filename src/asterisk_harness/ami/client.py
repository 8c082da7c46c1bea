"""Asterisk Manager Interface session adapter."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from typing import Any, Protocol

from panoramisk import Manager

logger = logging.getLogger(__name__)

AmiEvent = dict[str, Any]
EventListener = Callable[[AmiEvent], None]


class ManagerClient(Protocol):
    """Event-emitting AMI session used by an instance."""

    def add_listener(self, listener: EventListener) -> None:
        """Deliver every normalized event to ``listener``."""

    def remove_listener(self, listener: EventListener) -> None:
        """Stop delivering events to ``listener``."""

    async def connect(self) -> None:
        """Open and authenticate the session."""

    def close(self) -> None:
        """Tear down the session without reconnecting."""


ClientFactory = Callable[[str, int], ManagerClient]


def normalize_event(message: Mapping[str, Any]) -> AmiEvent:
    """Return a plain dict with lowercased header names."""

    return {str(key).lower(): value for key, value in message.items()}


class ClosableManager(Manager):
    """panoramisk ``Manager`` that stays down once :meth:`close` is called.

    The stock manager schedules ``connect`` again whenever the socket drops or
    a connection attempt fails, and ``close`` does not cancel those callbacks.
    """

    _closed = False

    def close(self) -> None:
        self._closed = True
        super().close()

    def connect(self, *args: Any, **kwargs: Any) -> Any:
        if self._closed:
            logger.debug(
                "AMI session closed; not reconnecting",
                extra={"data": {"host": self.config["host"]}},
            )
            return None
        return super().connect(*args, **kwargs)

    def connection_lost(self, exc: BaseException | None) -> None:
        if self._closed:
            return
        super().connection_lost(exc)


class PanoramiskManagerClient(ManagerClient):
    """ManagerClient backed by a panoramisk ``Manager``."""

    def __init__(
        self,
        host: str,
        port: int,
        *,
        username: str,
        secret: str,
        manager_factory: Callable[..., Manager] | None = None,
    ) -> None:
        self._host = host
        self._port = port
        self._listeners: dict[EventListener, None] = {}
        factory = manager_factory or ClosableManager
        self._manager = factory(
            loop=asyncio.get_running_loop(),
            host=host,
            port=port,
            username=username,
            secret=secret,
        )
        self._manager.register_event("*", self._on_event)

    def add_listener(self, listener: EventListener) -> None:
        self._listeners[listener] = None

    def remove_listener(self, listener: EventListener) -> None:
        self._listeners.pop(listener, None)

    async def connect(self) -> None:
        logger.info("connecting AMI session", extra={"data": {"host": self._host, "port": self._port}})
        await self._manager.connect()

    def close(self) -> None:
        self._listeners.clear()
        self._manager.close()

    def _on_event(self, manager: Manager, message: Mapping[str, Any]) -> None:
        del manager
        event = normalize_event(message)
        if "event" not in event:
            return
        for listener in list(self._listeners):
            listener(event)


def panoramisk_client_factory(*, username: str, secret: str) -> ClientFactory:
    def _factory(host: str, port: int) -> ManagerClient:
        return PanoramiskManagerClient(host, port, username=username, secret=secret)

    return _factory


__all__ = [
    "AmiEvent",
    "ClientFactory",
    "ClosableManager",
    "EventListener",
    "ManagerClient",
    "PanoramiskManagerClient",
    "normalize_event",
    "panoramisk_client_factory",
]
