"""Domain-specific exceptions raised by the instance harness."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path


class HarnessError(Exception):
    """Base class for harness-specific failures."""


class HarnessConfigError(HarnessError):
    """Raised when the harness settings cannot satisfy a lifecycle step."""


class AddressSpaceExhaustedError(HarnessError):
    """Raised once the loopback address pool has no addresses left."""


class BinaryNotFoundError(HarnessError):
    """Raised when the asterisk binary cannot be resolved."""


class InvalidStateError(HarnessError):
    """Raised when a lifecycle step is invoked out of order."""


class NotStartedError(HarnessError):
    """Raised when a CLI command is issued before the binary is resolved."""


class CliCommandError(HarnessError):
    """Raised when an asterisk CLI invocation exits with a non-zero status."""

    def __init__(
        self,
        command: str,
        *,
        args: Sequence[str],
        returncode: int | None,
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        detail = stderr.strip() or stdout.strip()
        super().__init__(
            f"asterisk command {command!r} failed (returncode={returncode}): {detail}"
        )
        self.command = command
        self.args_list = tuple(args)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


class GracefulStopError(CliCommandError):
    """Raised when ``core stop gracefully`` is rejected."""


class BootTimeoutError(HarnessError):
    """Raised when asterisk does not report fully booted within the attempt bound."""

    def __init__(self, attempts: int, last_error: BaseException | None = None) -> None:
        super().__init__(f"asterisk failed to start after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


class LeakDetectedError(HarnessError):
    """Raised when the refcounter analysis reports leaked objects."""

    def __init__(self, log_path: Path, *, returncode: int | None, output: str) -> None:
        super().__init__(
            f"refcounter reported leaks in {log_path} (returncode={returncode}):\n{output}"
        )
        self.log_path = log_path
        self.returncode = returncode
        self.output = output


__all__ = [
    "AddressSpaceExhaustedError",
    "BinaryNotFoundError",
    "BootTimeoutError",
    "CliCommandError",
    "GracefulStopError",
    "HarnessConfigError",
    "HarnessError",
    "InvalidStateError",
    "LeakDetectedError",
    "NotStartedError",
]
