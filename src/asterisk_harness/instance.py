"""Lifecycle facade tests use to run one sandboxed asterisk instance."""

from __future__ import annotations

import logging
import shutil
from collections.abc import Callable
from pathlib import Path

from asterisk_harness.ami.bus import EventBus, Subscription
from asterisk_harness.ami.client import AmiEvent, ClientFactory, ManagerClient, panoramisk_client_factory
from asterisk_harness.ami.tracer import EventTracer
from asterisk_harness.config.harness import HarnessSettings
from asterisk_harness.errors import BinaryNotFoundError, InvalidStateError
from asterisk_harness.network.address import AddressAllocator
from asterisk_harness.observability.tracing import lifecycle_span
from asterisk_harness.process.controller import ProcessController, ProcessState
from asterisk_harness.process.runner import CommandResult, CommandRunner, ProcessSpawner
from asterisk_harness.sandbox.layout import SandboxLayout
from asterisk_harness.sandbox.provisioner import DirectoryProvisioner, ProvisionRequest
from asterisk_harness.sandbox.run_directory import RunPathProvider

logger = logging.getLogger(__name__)

DEFAULT_INSTANCE_ID = "default"


class AsteriskInstance:
    """One asterisk process in its own sandbox, address and AMI session.

    Call order is ``build()``, ``start()``, ``stop()``, ``check_stopped()``. An
    instance whose start failed is discarded rather than restarted.
    """

    def __init__(
        self,
        run_directory: RunPathProvider,
        *,
        allocator: AddressAllocator,
        instance_id: str = DEFAULT_INSTANCE_ID,
        settings: HarnessSettings | None = None,
        client_factory: ClientFactory | None = None,
        command_runner: CommandRunner | None = None,
        spawner: ProcessSpawner | None = None,
        which: Callable[[str], str | None] = shutil.which,
    ) -> None:
        self.settings = settings or HarnessSettings()
        self.instance_id = instance_id
        self.layout = SandboxLayout(run_directory)
        self.events = EventBus()
        self.server_address: str | None = None
        self.ami: ManagerClient | None = None

        self._run_directory = run_directory
        self._allocator = allocator
        self._client_factory = client_factory or panoramisk_client_factory(
            username=self.settings.ami_username,
            secret=self.settings.ami_secret,
        )
        self._which = which
        self._provisioner = DirectoryProvisioner(
            run_directory,
            assets_dir=self.settings.assets_dir,
            layout=self.layout,
        )
        self._controller = ProcessController(
            refdebug_log=self.layout.refdebug_log,
            boot_attempts=self.settings.boot_attempts,
            boot_poll_interval=self.settings.boot_poll_interval,
            refdebug_grace_seconds=self.settings.refdebug_grace_seconds,
            python_binary=self.settings.python_binary,
            refcounter_script=self.settings.refcounter_script,
            command_runner=command_runner,
            spawner=spawner,
            which=which,
        )
        self._tracer: EventTracer | None = None

    # ------------------------------------------------------------------
    # paths

    def astdir(self, role: str, *segments: str) -> Path:
        return self.layout.astdir(role, *segments)

    def run_path(self, *segments: str) -> Path:
        return self._run_directory.run_path(*segments)

    def fixture_path(self, *segments: str) -> Path:
        return self._run_directory.fixture_path(*segments)

    @property
    def asterisk_conf(self) -> Path:
        return self.layout.root_config

    @property
    def directories(self) -> tuple[str, ...]:
        return self.layout.roles

    @property
    def refdebug_log(self) -> Path:
        return self.layout.refdebug_log

    @property
    def trace_path(self) -> Path:
        return self.layout.trace_file

    # ------------------------------------------------------------------
    # state

    @property
    def state(self) -> ProcessState:
        return self._controller.state

    @property
    def bin(self) -> str | None:
        return self._controller.binary

    @property
    def running(self) -> bool:
        return self._controller.process is not None

    def refdebug_enabled(self) -> bool:
        return self._controller.refdebug_enabled()

    # ------------------------------------------------------------------
    # lifecycle

    def assign_address(self) -> str:
        if self.server_address is None:
            self.server_address = self._allocator.allocate()
        return self.server_address

    async def build(self) -> None:
        if self.state is not ProcessState.UNBUILT:
            raise InvalidStateError(f"cannot build from state {self.state.value}")
        with lifecycle_span("build", self._span_attributes()):
            address = self.assign_address()
            if self.ami is None:
                self.ami = self._client_factory(address, self.settings.ami_port)
                self.ami.add_listener(self._on_event)

            binary = self._resolve_binary()
            config_path = await self._provisioner.provision(
                ProvisionRequest(
                    instance_id=self.instance_id,
                    address=address,
                    binary=binary,
                    sip_port=self.settings.sip_port,
                )
            )
            self._controller.mark_built(binary=binary, config_path=config_path)
            logger.info(
                "asterisk instance built",
                extra={"data": {"instance_id": self.instance_id, "address": address}},
            )

    async def start(self) -> None:
        with lifecycle_span("start", self._span_attributes()):
            if self.ami is None:
                raise InvalidStateError("build() must complete before start()")
            if self.state is not ProcessState.BUILT:
                raise InvalidStateError(f"cannot start from state {self.state.value}")
            try:
                await self._controller.start()
                self._tracer = EventTracer(self.trace_path)
                await self.ami.connect()
            except BaseException:
                self._detach_ami()
                self._tracer = None
                await self._controller.abort()
                raise

    async def stop(self) -> None:
        if not self.running:
            return
        with lifecycle_span("stop", self._span_attributes()):
            # asterisk announces Shutdown on the way down; panoramisk reconnects
            # on it unless the session is already closed.
            self._detach_ami()
            await self._controller.stop()

            if self._tracer is not None:
                self._tracer.finalize()
                self._tracer = None
            logger.info("asterisk instance stopped", extra={"data": {"instance_id": self.instance_id}})

    async def check_stopped(self) -> None:
        with lifecycle_span("check_stopped", self._span_attributes()):
            await self._controller.check_stopped()

    async def cli_command(self, command: str) -> CommandResult:
        return await self._controller.cli_command(command)

    async def fully_booted(self) -> None:
        await self._controller.fully_booted()

    def install_configs(self, instance_id: str) -> list[Path]:
        return self._provisioner.install_configs(instance_id)

    # ------------------------------------------------------------------
    # events

    def collect_events(self, name: str) -> Subscription:
        return self.events.subscribe(name)

    def _on_event(self, event: AmiEvent) -> None:
        if self._tracer is not None:
            self._tracer.record(event)
        self.events.publish(event)

    # ------------------------------------------------------------------
    # helpers

    def _detach_ami(self) -> None:
        if self.ami is None:
            return
        self.ami.remove_listener(self._on_event)
        self.ami.close()
        self.ami = None

    def _resolve_binary(self) -> str:
        configured = self.settings.asterisk_binary
        resolved = self._which(configured or "asterisk")
        if resolved is None:
            raise BinaryNotFoundError(f"asterisk binary not found: {configured or 'asterisk'}")
        return resolved

    def _span_attributes(self) -> dict[str, str | int | None]:
        return {"asterisk.instance_id": self.instance_id, "asterisk.address": self.server_address}


__all__ = ["AsteriskInstance", "DEFAULT_INSTANCE_ID"]
