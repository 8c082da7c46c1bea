"""pytest fixtures for tests that drive a real asterisk instance."""

from __future__ import annotations

import shutil
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable, Iterator, Mapping, Sequence
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import pytest

from asterisk_harness.ami.watch import check_ami_events as _check_ami_events
from asterisk_harness.config.harness import HarnessSettings, load_harness_settings
from asterisk_harness.instance import DEFAULT_INSTANCE_ID, AsteriskInstance
from asterisk_harness.network.address import AddressAllocator
from asterisk_harness.observability.logging import configure_logging
from asterisk_harness.observability.tracing import configure_tracing
from asterisk_harness.sandbox.run_directory import FixtureRunDirectory

FIXTURES_DIRNAME = "fixtures"


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "asterisk: test drives a real asterisk instance")
    configure_logging()
    configure_tracing(service_name="asterisk-harness")


@asynccontextmanager
async def running_instance(instance: AsteriskInstance) -> AsyncIterator[AsteriskInstance]:
    """Start a built instance, stop it on exit and leak-check it after a clean exit."""

    try:
        await instance.start()
        yield instance
    finally:
        await instance.stop()
    await instance.check_stopped()


@pytest.fixture(scope="session")
def asterisk_settings() -> HarnessSettings:
    return load_harness_settings()


@pytest.fixture(scope="session")
def address_allocator(asterisk_settings: HarnessSettings) -> Iterator[AddressAllocator]:
    allocator = AddressAllocator(
        base=asterisk_settings.address_base,
        hold_port=asterisk_settings.address_hold_port,
    )
    yield allocator
    allocator.close()


@pytest.fixture
def asterisk_run_directory(request: pytest.FixtureRequest, tmp_path: Path) -> FixtureRunDirectory:
    run_directory = FixtureRunDirectory(
        tmp_path,
        request.node.name,
        fixtures_root=request.path.parent / FIXTURES_DIRNAME,
    )
    run_directory.prepare()
    return run_directory


@pytest.fixture
async def asterisk_instance(
    anyio_backend: str,
    asterisk_settings: HarnessSettings,
    address_allocator: AddressAllocator,
    asterisk_run_directory: FixtureRunDirectory,
) -> AsyncIterator[AsteriskInstance]:
    """A built and started instance, stopped and leak-checked after the test."""

    del anyio_backend
    if shutil.which(asterisk_settings.asterisk_binary or "asterisk") is None:
        pytest.skip("asterisk binary not available")

    instance = AsteriskInstance(
        asterisk_run_directory,
        allocator=address_allocator,
        settings=asterisk_settings,
    )
    await instance.build()
    async with running_instance(instance):
        yield instance


@pytest.fixture
def asterisk_instances(asterisk_instance: AsteriskInstance) -> Mapping[str, AsteriskInstance]:
    return {DEFAULT_INSTANCE_ID: asterisk_instance}


CheckAmiEvents = Callable[..., Awaitable[Any]]


@pytest.fixture
def check_ami_events(asterisk_instances: Mapping[str, AsteriskInstance]) -> CheckAmiEvents:
    """Assert the AMI events an action produces on one of ``asterisk_instances``."""

    async def _check(
        *,
        watch: str | Iterable[str],
        expect: Sequence[Mapping[str, Any]],
        execute: Callable[[], Any],
        instance_id: str | None = None,
        message: str | None = None,
    ) -> Any:
        instance = asterisk_instances[instance_id or DEFAULT_INSTANCE_ID]
        return await _check_ami_events(
            instance.events,
            watch=watch,
            expect=expect,
            execute=execute,
            settle_seconds=instance.settings.event_settle_seconds,
            message=message,
        )

    return _check


__all__ = [
    "address_allocator",
    "asterisk_instance",
    "asterisk_instances",
    "asterisk_run_directory",
    "asterisk_settings",
    "check_ami_events",
    "running_instance",
]
