"""Spawn, boot-verify and stop an asterisk process."""

from __future__ import annotations

import asyncio
import logging
import shutil
from collections.abc import Awaitable, Callable
from enum import Enum
from pathlib import Path

from asterisk_harness.errors import (
    BootTimeoutError,
    CliCommandError,
    GracefulStopError,
    HarnessConfigError,
    InvalidStateError,
    LeakDetectedError,
    NotStartedError,
)
from asterisk_harness.process.runner import (
    CommandResult,
    CommandRunner,
    ProcessHandle,
    ProcessSpawner,
    run_command,
    spawn_process,
)

logger = logging.getLogger(__name__)

READY_COMMAND = "core waitfullybooted"
STOP_COMMAND = "core stop gracefully"
DEFAULT_BOOT_ATTEMPTS = 100
DEFAULT_BOOT_POLL_INTERVAL = 0.1
DEFAULT_REFDEBUG_GRACE_SECONDS = 6.4
REFCOUNTER_SCRIPT_NAME = "refcounter.py"


class ProcessState(str, Enum):
    UNBUILT = "unbuilt"
    BUILT = "built"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    FAILED = "failed"


class ProcessController:
    """Drive one asterisk process through its lifecycle.

    ``start()`` spawns ``asterisk -f -C <conf>`` and polls ``core waitfullybooted``
    until it succeeds or the attempt bound is spent (:class:`BootTimeoutError`). A
    process whose boot fails for any reason is killed before the error propagates. ``stop()`` is a no-op once the
    process reference has been released, so repeated calls shut down only once.
    """

    def __init__(
        self,
        *,
        refdebug_log: Path,
        boot_attempts: int = DEFAULT_BOOT_ATTEMPTS,
        boot_poll_interval: float = DEFAULT_BOOT_POLL_INTERVAL,
        refdebug_grace_seconds: float = DEFAULT_REFDEBUG_GRACE_SECONDS,
        python_binary: str = "python3",
        refcounter_script: Path | None = None,
        command_runner: CommandRunner | None = None,
        spawner: ProcessSpawner | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
        which: Callable[[str], str | None] = shutil.which,
    ) -> None:
        if boot_attempts <= 0:
            raise ValueError("boot_attempts must be positive")
        self._refdebug_log = refdebug_log
        self._boot_attempts = boot_attempts
        self._boot_poll_interval = boot_poll_interval
        self._refdebug_grace_seconds = refdebug_grace_seconds
        self._python_binary = python_binary
        self._refcounter_script = refcounter_script
        self._run = command_runner or run_command
        self._spawn = spawner or spawn_process
        self._sleep = sleep or asyncio.sleep
        self._which = which
        self._binary: str | None = None
        self._config_path: Path | None = None
        self._process: ProcessHandle | None = None
        self._state = ProcessState.UNBUILT

    @property
    def state(self) -> ProcessState:
        return self._state

    @property
    def binary(self) -> str | None:
        return self._binary

    @property
    def process(self) -> ProcessHandle | None:
        return self._process

    def mark_built(self, *, binary: str, config_path: Path) -> None:
        """Record the resolved binary and root config once provisioning is done."""

        if self._state is not ProcessState.UNBUILT:
            raise InvalidStateError(f"cannot build from state {self._state.value}")
        self._binary = binary
        self._config_path = config_path
        self._state = ProcessState.BUILT

    # ------------------------------------------------------------------
    # lifecycle

    async def start(self) -> None:
        if self._state is not ProcessState.BUILT:
            raise InvalidStateError(f"cannot start from state {self._state.value}")
        binary, config_path = self._require_binary()

        args = [binary, "-f", "-C", str(config_path)]
        logger.info("spawning asterisk", extra={"data": {"args": args}})
        self._process = await self._spawn(args)
        self._state = ProcessState.STARTING

        try:
            await self.fully_booted()
        except BaseException:
            await self.abort()
            raise

        self._state = ProcessState.RUNNING
        logger.info("asterisk fully booted", extra={"data": {"pid": self._process.pid}})

    async def fully_booted(self) -> None:
        """Poll the readiness command until it succeeds or attempts run out."""

        attempt = 0
        last_error: Exception | None = None
        while attempt < self._boot_attempts:
            await self._sleep(self._boot_poll_interval)
            try:
                await self.cli_command(READY_COMMAND)
            except (CliCommandError, OSError) as exc:
                attempt += 1
                last_error = exc
                logger.debug(
                    "asterisk not booted yet",
                    extra={"data": {"attempt": attempt, "error": str(exc)}},
                )
                continue
            return

        logger.error(
            "asterisk failed to boot",
            extra={"data": {"attempts": attempt, "last_error": str(last_error)}},
        )
        raise BootTimeoutError(attempt, last_error)

    async def cli_command(self, command: str) -> CommandResult:
        """Run one ``asterisk -rx`` command against the instance config."""

        binary, config_path = self._require_binary()
        args = [binary, "-C", str(config_path), "-rx", command]
        result = await self._run(args)
        if not result.ok:
            raise CliCommandError(
                command,
                args=args,
                returncode=result.returncode,
                stdout=result.stdout,
                stderr=result.stderr,
            )
        return result

    async def stop(self) -> None:
        if self._process is None:
            return

        process = self._process
        self._process = None
        self._state = ProcessState.STOPPING

        if self.refdebug_enabled():
            logger.info(
                "refs log present; delaying shutdown",
                extra={"data": {"grace_seconds": self._refdebug_grace_seconds}},
            )
            await self._sleep(self._refdebug_grace_seconds)

        try:
            await self._graceful_stop()
        except (GracefulStopError, OSError) as exc:
            logger.warning("graceful stop failed (ignored): %s", exc)

        returncode = await process.wait()
        self._state = ProcessState.STOPPED
        logger.info("asterisk exited", extra={"data": {"returncode": returncode}})

    async def abort(self) -> None:
        """Kill the process without a graceful stop and mark the controller failed."""

        process = self._process
        self._process = None
        self._state = ProcessState.FAILED
        if process is None:
            return
        logger.warning("killing asterisk", extra={"data": {"pid": process.pid}})
        await self._kill(process)

    async def check_stopped(self) -> None:
        """Run the refcounter over the refs log and fail on detected leaks."""

        if not self.refdebug_enabled():
            return
        script = self._resolve_refcounter()

        args = [
            self._python_binary,
            str(script),
            "-f",
            str(self._refdebug_log),
            "-n",
        ]
        result = await self._run(args)
        if not result.ok:
            raise LeakDetectedError(
                self._refdebug_log,
                returncode=result.returncode,
                output=(result.stdout + result.stderr).strip(),
            )

    def refdebug_enabled(self) -> bool:
        return self._refdebug_log.exists()

    # ------------------------------------------------------------------
    # helpers

    def _require_binary(self) -> tuple[str, Path]:
        if self._binary is None or self._config_path is None:
            raise NotStartedError("asterisk binary has not been resolved; call build() first")
        return self._binary, self._config_path

    def _resolve_refcounter(self) -> Path:
        if self._refcounter_script is not None:
            return self._refcounter_script
        found = self._which(REFCOUNTER_SCRIPT_NAME)
        if found is None:
            raise HarnessConfigError(
                f"refs log {self._refdebug_log} exists but no refcounter script is configured "
                f"and {REFCOUNTER_SCRIPT_NAME} is not on PATH"
            )
        return Path(found)

    async def _graceful_stop(self) -> None:
        try:
            await self.cli_command(STOP_COMMAND)
        except CliCommandError as exc:
            raise GracefulStopError(
                STOP_COMMAND,
                args=exc.args_list,
                returncode=exc.returncode,
                stdout=exc.stdout,
                stderr=exc.stderr,
            ) from exc

    @staticmethod
    async def _kill(process: ProcessHandle) -> None:
        try:
            process.kill()
        except ProcessLookupError:
            return
        await process.wait()


__all__ = [
    "DEFAULT_BOOT_ATTEMPTS",
    "DEFAULT_BOOT_POLL_INTERVAL",
    "DEFAULT_REFDEBUG_GRACE_SECONDS",
    "REFCOUNTER_SCRIPT_NAME",
    "ProcessController",
    "ProcessState",
    "READY_COMMAND",
    "STOP_COMMAND",
]
