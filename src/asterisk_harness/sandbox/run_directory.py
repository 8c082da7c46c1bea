"""Per-test run directories and fixture lookup."""

from __future__ import annotations

import logging
import re
import shutil
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)

_UNSAFE_SEGMENT = re.compile(r"[^A-Za-z0-9_.-]+")


class RunPathProvider(Protocol):
    """Resolve paths inside an instance sandbox and its fixture directory."""

    def run_path(self, *segments: str) -> Path:
        """Return an absolute path below the sandbox root."""

    def fixture_path(self, *segments: str) -> Path:
        """Return an absolute path below the test fixture directory."""


class FixtureRunDirectory(RunPathProvider):
    """Filesystem-backed sandbox rooted at ``build_root/<name>``."""

    def __init__(self, build_root: Path, name: str, *, fixtures_root: Path) -> None:
        self._root = (build_root / _safe_segment(name)).resolve()
        self._fixtures_root = fixtures_root.resolve()

    @property
    def root(self) -> Path:
        return self._root

    def run_path(self, *segments: str) -> Path:
        return self._root.joinpath(*segments)

    def fixture_path(self, *segments: str) -> Path:
        return self._fixtures_root.joinpath(*segments)

    def prepare(self) -> None:
        """Create an empty sandbox root, discarding leftovers of a previous run."""

        if self._root.exists():
            logger.debug("removing stale run directory", extra={"data": {"root": str(self._root)}})
            shutil.rmtree(self._root)
        self._root.mkdir(parents=True)

    def cleanup(self) -> None:
        shutil.rmtree(self._root, ignore_errors=True)


def _safe_segment(name: str) -> str:
    cleaned = _UNSAFE_SEGMENT.sub("-", name).strip("-.")
    if not cleaned:
        raise ValueError(f"run directory name has no usable characters: {name!r}")
    return cleaned


__all__ = ["FixtureRunDirectory", "RunPathProvider"]
