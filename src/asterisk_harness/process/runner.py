"""Async subprocess wrappers used by the process controller."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class CommandResult:
    """Captured outcome of a finished command."""

    args: tuple[str, ...]
    returncode: int | None
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class ProcessHandle(Protocol):
    """Subset of ``asyncio.subprocess.Process`` the controller relies on."""

    @property
    def pid(self) -> int: ...

    @property
    def returncode(self) -> int | None: ...

    async def wait(self) -> int:
        """Wait for the process to exit and return its status."""

    def kill(self) -> None:
        """Send SIGKILL."""


CommandRunner = Callable[[Sequence[str]], Awaitable[CommandResult]]
ProcessSpawner = Callable[[Sequence[str]], Awaitable[ProcessHandle]]


async def run_command(args: Sequence[str]) -> CommandResult:  # pragma: no cover - thin wrapper
    process = await asyncio.create_subprocess_exec(
        *args,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    stdout, stderr = await process.communicate()
    return CommandResult(
        args=tuple(args),
        returncode=process.returncode,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )


async def spawn_process(args: Sequence[str]) -> ProcessHandle:  # pragma: no cover - thin wrapper
    return await asyncio.create_subprocess_exec(
        *args,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.DEVNULL,
        stderr=asyncio.subprocess.DEVNULL,
    )


__all__ = [
    "CommandResult",
    "CommandRunner",
    "ProcessHandle",
    "ProcessSpawner",
    "run_command",
    "spawn_process",
]
