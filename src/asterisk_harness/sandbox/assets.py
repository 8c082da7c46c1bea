"""Glob-driven copying of static asset trees into a sandbox."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

logger = logging.getLogger(__name__)


def copy_files(source_root: Path, pattern: str, destination: Path) -> list[Path]:
    """Copy files under ``source_root`` matching ``pattern`` into ``destination``.

    Paths are kept relative to ``source_root``. A missing source root copies
    nothing.
    """

    if not source_root.is_dir():
        logger.debug(
            "asset source missing; nothing copied",
            extra={"data": {"source": str(source_root), "pattern": pattern}},
        )
        return []

    copied: list[Path] = []
    for source in sorted(source_root.glob(pattern)):
        if not source.is_file():
            continue
        target = destination / source.relative_to(source_root)
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, target)
        copied.append(target)

    logger.debug(
        "copied asset files",
        extra={
            "data": {
                "source": str(source_root),
                "pattern": pattern,
                "destination": str(destination),
                "count": len(copied),
            }
        },
    )
    return copied


__all__ = ["copy_files"]
