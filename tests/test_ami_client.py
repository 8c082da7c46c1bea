from __future__ import annotations

from typing import Any

import pytest

from asterisk_harness.ami.client import AmiEvent, ClosableManager, PanoramiskManagerClient

pytestmark = pytest.mark.anyio("asyncio")


class FakeManager:
    def __init__(self, **config: Any) -> None:
        self.config = config
        self.callbacks: dict[str, list[Any]] = {}
        self.connected = False
        self.closed = False

    def register_event(self, pattern: str, callback: Any) -> None:
        self.callbacks.setdefault(pattern, []).append(callback)

    async def connect(self) -> None:
        self.connected = True

    def close(self) -> None:
        self.closed = True

    def fire(self, message: dict[str, Any]) -> None:
        for callback in self.callbacks.get("*", []):
            callback(self, message)


def make_client() -> tuple[PanoramiskManagerClient, list[FakeManager]]:
    managers: list[FakeManager] = []

    def factory(**config: Any) -> FakeManager:
        manager = FakeManager(**config)
        managers.append(manager)
        return manager

    client = PanoramiskManagerClient(
        "127.0.0.4",
        5038,
        username="harness",
        secret="harness",
        manager_factory=factory,
    )
    return client, managers


async def test_client_configures_manager_for_instance_address() -> None:
    client, managers = make_client()

    await client.connect()

    manager = managers[0]
    assert manager.config["host"] == "127.0.0.4"
    assert manager.config["port"] == 5038
    assert manager.config["username"] == "harness"
    assert manager.connected is True
    assert len(manager.callbacks["*"]) == 1


async def test_client_delivers_normalized_events_to_listeners() -> None:
    client, managers = make_client()
    received: list[AmiEvent] = []
    client.add_listener(received.append)

    managers[0].fire({"Event": "Dial", "Channel": "PJSIP/alice-1"})
    managers[0].fire({"Response": "Success", "ActionID": "1"})

    assert received == [{"event": "Dial", "channel": "PJSIP/alice-1"}]


async def test_removed_listener_stops_receiving() -> None:
    client, managers = make_client()
    kept: list[AmiEvent] = []
    dropped: list[AmiEvent] = []
    client.add_listener(kept.append)
    client.add_listener(dropped.append)

    client.remove_listener(dropped.append)
    managers[0].fire({"Event": "Hangup"})

    assert kept == [{"event": "Hangup"}]
    assert dropped == []


async def test_close_detaches_everything() -> None:
    client, managers = make_client()
    received: list[AmiEvent] = []
    client.add_listener(received.append)

    client.close()
    managers[0].fire({"Event": "Shutdown"})

    assert managers[0].closed is True
    assert received == []


class RecordingLoop:
    def __init__(self) -> None:
        self.scheduled: list[Any] = []

    def call_soon(self, callback: Any, *args: Any) -> None:
        self.scheduled.append(callback)

    def call_later(self, delay: float, callback: Any, *args: Any) -> None:
        self.scheduled.append(callback)


def test_open_manager_reconnects_after_connection_loss() -> None:
    loop = RecordingLoop()
    manager = ClosableManager(loop=loop, host="127.0.0.4", port=5038)

    manager.connection_lost(None)

    assert manager.connect in loop.scheduled


def test_closed_manager_stays_down() -> None:
    loop = RecordingLoop()
    manager = ClosableManager(loop=loop, host="127.0.0.4", port=5038)

    manager.close()
    manager.connection_lost(ConnectionResetError())

    assert loop.scheduled == []
    assert manager.connect() is None
    assert loop.scheduled == []
