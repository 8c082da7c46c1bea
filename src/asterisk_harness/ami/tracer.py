"""Durable JSON trace of every AMI event an instance observes."""

from __future__ import annotations

import json
import logging
from enum import Enum
from pathlib import Path
from typing import IO

from asterisk_harness.ami.client import AmiEvent

logger = logging.getLogger(__name__)

ARRAY_OPEN = "[\n\t"
SEPARATOR = ",\n\t"
ARRAY_CLOSE = "\n]"


class TracerState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    FINALIZED = "finalized"


class EventTracer:
    """Append events to a JSON array file, opened on the first event."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._state = TracerState.CLOSED
        self._handle: IO[str] | None = None
        self._count = 0

    @property
    def path(self) -> Path:
        return self._path

    @property
    def state(self) -> TracerState:
        return self._state

    @property
    def count(self) -> int:
        return self._count

    def record(self, event: AmiEvent) -> None:
        if self._state is TracerState.FINALIZED:
            raise RuntimeError(f"trace {self._path} is already finalized")
        if self._state is TracerState.CLOSED:
            self._handle = self._path.open("w", encoding="utf-8")
            self._handle.write(ARRAY_OPEN)
            self._state = TracerState.OPEN
        else:
            assert self._handle is not None
            self._handle.write(SEPARATOR)
        self._handle.write(json.dumps(event, default=str))
        self._handle.flush()
        self._count += 1

    def finalize(self) -> None:
        """Close the array and the file; a trace with no events leaves no file."""

        if self._state is TracerState.OPEN:
            assert self._handle is not None
            self._handle.write(ARRAY_CLOSE)
            self._handle.close()
            self._handle = None
            logger.debug(
                "AMI trace finalized",
                extra={"data": {"path": str(self._path), "events": self._count}},
            )
        self._state = TracerState.FINALIZED


__all__ = ["EventTracer", "TracerState"]
