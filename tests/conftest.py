from __future__ import annotations

from pathlib import Path

import pytest

from asterisk_harness.config.harness import HarnessSettings
from asterisk_harness.network.address import AddressAllocator
from asterisk_harness.sandbox.run_directory import FixtureRunDirectory


@pytest.fixture
def anyio_backend() -> str:
    # Instance lifecycle runs on asyncio (panoramisk is asyncio-only)
    return "asyncio"


@pytest.fixture
def fixtures_root(tmp_path: Path) -> Path:
    root = tmp_path / "fixtures"
    root.mkdir()
    return root


@pytest.fixture
def assets_root(tmp_path: Path) -> Path:
    root = tmp_path / "assets"
    (root / "configs").mkdir(parents=True)
    (root / "configs" / "manager.conf").write_text("[general]\nenabled = yes\n", encoding="utf-8")
    (root / "documentation").mkdir()
    (root / "documentation" / "core-en_US.xml").write_text("<docs/>\n", encoding="utf-8")
    (root / "sounds" / "silence").mkdir(parents=True)
    (root / "sounds" / "silence" / "1.ulaw").write_bytes(b"\xff" * 8)
    return root


@pytest.fixture
def run_directory(tmp_path: Path, fixtures_root: Path) -> FixtureRunDirectory:
    directory = FixtureRunDirectory(tmp_path / "build", "test-instance", fixtures_root=fixtures_root)
    directory.prepare()
    return directory


@pytest.fixture
def settings(assets_root: Path) -> HarnessSettings:
    return HarnessSettings(
        asterisk_binary="/usr/sbin/asterisk",
        assets_dir=assets_root,
        boot_poll_interval=0.0,
        refdebug_grace_seconds=0.0,
        event_settle_seconds=0.01,
        refcounter_script=Path("/opt/asterisk/refcounter.py"),
    )


@pytest.fixture
def allocator() -> AddressAllocator:
    return AddressAllocator(hold_port=None)
