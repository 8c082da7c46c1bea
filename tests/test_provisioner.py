from __future__ import annotations

import stat
from pathlib import Path

import pytest

from asterisk_harness.sandbox.layout import REQUIRED_SUBDIRECTORIES, ROLE_PATHS
from asterisk_harness.sandbox.provisioner import DirectoryProvisioner, ProvisionRequest
from asterisk_harness.sandbox.run_directory import FixtureRunDirectory

pytestmark = pytest.mark.anyio("asyncio")

REQUEST = ProvisionRequest(
    instance_id="default",
    address="127.0.0.7",
    binary="/usr/sbin/asterisk",
)


async def test_provision_creates_role_and_sub_directories(
    run_directory: FixtureRunDirectory, assets_root: Path
) -> None:
    provisioner = DirectoryProvisioner(run_directory, assets_dir=assets_root)

    await provisioner.provision(REQUEST)

    for relative in ROLE_PATHS.values():
        assert run_directory.run_path(relative).is_dir()
    for role, subdirectories in REQUIRED_SUBDIRECTORIES.items():
        for sub in subdirectories:
            assert provisioner.layout.astdir(role, sub).is_dir()


async def test_make_directories_is_idempotent(
    run_directory: FixtureRunDirectory, assets_root: Path
) -> None:
    provisioner = DirectoryProvisioner(run_directory, assets_dir=assets_root)

    await provisioner.make_directories()
    await provisioner.make_directories()

    assert provisioner.layout.astdir("astetcdir", "pjsip.d").is_dir()


async def test_launcher_script_wraps_binary(
    run_directory: FixtureRunDirectory, assets_root: Path
) -> None:
    provisioner = DirectoryProvisioner(run_directory, assets_dir=assets_root)

    await provisioner.provision(REQUEST)

    launcher = run_directory.run_path("asterisk")
    conf = run_directory.run_path("etc/asterisk/asterisk.conf")
    assert launcher.read_text(encoding="utf-8") == (
        f'#!/usr/bin/env sh\nexec /usr/sbin/asterisk -C "{conf}" "$@"\n'
    )
    assert stat.S_IMODE(launcher.stat().st_mode) == 0o775


async def test_address_configs_are_generated(
    run_directory: FixtureRunDirectory, assets_root: Path
) -> None:
    provisioner = DirectoryProvisioner(run_directory, assets_dir=assets_root)

    await provisioner.provision(REQUEST)

    etc = run_directory.run_path("etc/asterisk")
    assert (etc / "bindaddr.conf").read_text(encoding="utf-8") == "bindaddr=127.0.0.7\n"
    assert (etc / "pjsip-bind.conf").read_text(encoding="utf-8") == "bind=127.0.0.7:5060\n"


async def test_root_config_declares_directories_and_options_include(
    run_directory: FixtureRunDirectory, assets_root: Path
) -> None:
    provisioner = DirectoryProvisioner(run_directory, assets_dir=assets_root)

    root_config = await provisioner.provision(REQUEST)

    lines = root_config.read_text(encoding="utf-8").splitlines()
    assert lines[0] == "[directories]"
    assert lines[1 : 1 + len(ROLE_PATHS)] == [
        f"{role}={run_directory.run_path(relative)}" for role, relative in ROLE_PATHS.items()
    ]
    options = run_directory.run_path("etc/asterisk/asterisk-options.conf")
    assert lines[-1] == f"#include {options}"
    assert not options.exists()


async def test_static_assets_are_copied(
    run_directory: FixtureRunDirectory, assets_root: Path
) -> None:
    provisioner = DirectoryProvisioner(run_directory, assets_dir=assets_root)

    await provisioner.provision(REQUEST)

    varlib = run_directory.run_path("var/lib/asterisk")
    assert (varlib / "documentation" / "core-en_US.xml").is_file()
    assert (varlib / "sounds" / "en" / "silence" / "1.ulaw").read_bytes() == b"\xff" * 8
    assert run_directory.run_path("etc/asterisk/manager.conf").is_file()


async def test_instance_fixture_configs_override_templates(
    run_directory: FixtureRunDirectory, assets_root: Path, fixtures_root: Path
) -> None:
    suite = fixtures_root / "asterisk-default"
    (suite / "pjsip.d").mkdir(parents=True)
    (suite / "manager.conf").write_text("[general]\nenabled = no\n", encoding="utf-8")
    (suite / "pjsip.d" / "alice.conf").write_text("[alice]\ntype = endpoint\n", encoding="utf-8")
    (suite / "README.txt").write_text("not a config\n", encoding="utf-8")
    provisioner = DirectoryProvisioner(run_directory, assets_dir=assets_root)

    await provisioner.provision(REQUEST)

    etc = run_directory.run_path("etc/asterisk")
    assert (etc / "manager.conf").read_text(encoding="utf-8") == "[general]\nenabled = no\n"
    assert (etc / "pjsip.d" / "alice.conf").is_file()
    assert not (etc / "README.txt").exists()


async def test_missing_asset_directories_are_tolerated(
    run_directory: FixtureRunDirectory, tmp_path: Path
) -> None:
    provisioner = DirectoryProvisioner(run_directory, assets_dir=tmp_path / "no-assets")

    root_config = await provisioner.provision(REQUEST)

    assert root_config.is_file()


async def test_filesystem_errors_propagate(tmp_path: Path, assets_root: Path) -> None:
    blocker = tmp_path / "blocked"
    blocker.write_text("", encoding="utf-8")
    run_directory = FixtureRunDirectory(blocker, "instance", fixtures_root=tmp_path)
    provisioner = DirectoryProvisioner(run_directory, assets_dir=assets_root)

    with pytest.raises(OSError):
        await provisioner.provision(REQUEST)
