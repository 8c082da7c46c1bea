"""Build the asterisk directory tree and generated configuration for one sandbox."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

from asterisk_harness.sandbox.assets import copy_files
from asterisk_harness.sandbox.layout import OPTIONS_INCLUDE, SandboxLayout
from asterisk_harness.sandbox.run_directory import RunPathProvider

logger = logging.getLogger(__name__)

LAUNCHER_MODE = 0o775


@dataclass(frozen=True)
class ProvisionRequest:
    """Inputs that vary per instance."""

    instance_id: str
    address: str
    binary: str
    sip_port: int = 5060


class DirectoryProvisioner:
    """Materialize the sandbox an asterisk process runs against.

    Directory creation runs concurrently; the file steps run afterwards in a
    fixed order that ends with ``asterisk.conf``, the path handed to the
    process.
    """

    def __init__(
        self,
        run_directory: RunPathProvider,
        *,
        assets_dir: Path,
        layout: SandboxLayout | None = None,
    ) -> None:
        self._run_directory = run_directory
        self._assets_dir = assets_dir
        self._layout = layout or SandboxLayout(run_directory)

    @property
    def layout(self) -> SandboxLayout:
        return self._layout

    async def provision(self, request: ProvisionRequest) -> Path:
        """Create directories and configuration; return the root config path."""

        await self.make_directories()
        await asyncio.to_thread(self._write_files, request)
        logger.info(
            "provisioned asterisk sandbox",
            extra={
                "data": {
                    "instance_id": request.instance_id,
                    "address": request.address,
                    "root_config": str(self._layout.root_config),
                }
            },
        )
        return self._layout.root_config

    async def make_directories(self) -> None:
        directories = self._layout.required_directories()
        await asyncio.gather(
            *(asyncio.to_thread(directory.mkdir, parents=True, exist_ok=True) for directory in directories)
        )

    def install_configs(self, instance_id: str) -> list[Path]:
        """Copy ``asterisk-<id>/**/*.conf`` fixtures into the etc directory."""

        return copy_files(
            self._run_directory.fixture_path(f"asterisk-{instance_id}"),
            "**/*.conf",
            self._layout.astdir("astetcdir"),
        )

    def _write_files(self, request: ProvisionRequest) -> None:
        self.write_launcher(request.binary)
        self._copy_static_assets()
        self._write_address_configs(request.address, request.sip_port)
        self.install_configs(request.instance_id)
        self.write_root_config()

    def write_launcher(self, binary: str) -> Path:
        launcher = self._layout.launcher
        launcher.write_text(
            "\n".join(
                [
                    "#!/usr/bin/env sh",
                    f'exec {binary} -C "{self._layout.root_config}" "$@"',
                    "",
                ]
            ),
            encoding="utf-8",
        )
        launcher.chmod(LAUNCHER_MODE)
        return launcher

    def _copy_static_assets(self) -> None:
        copy_files(
            self._assets_dir / "documentation",
            "**/*",
            self._layout.astdir("astvarlibdir", "documentation"),
        )
        copy_files(
            self._assets_dir / "sounds",
            "**/*",
            self._layout.astdir("astvarlibdir", "sounds/en"),
        )
        copy_files(
            self._assets_dir / "configs",
            "**/*",
            self._layout.astdir("astetcdir"),
        )

    def _write_address_configs(self, address: str, sip_port: int) -> None:
        self._layout.astdir("astetcdir", "bindaddr.conf").write_text(
            f"bindaddr={address}\n", encoding="utf-8"
        )
        self._layout.astdir("astetcdir", "pjsip-bind.conf").write_text(
            f"bind={address}:{sip_port}\n", encoding="utf-8"
        )

    def write_root_config(self) -> Path:
        lines = [
            "[directories]",
            *(f"{role}={self._layout.astdir(role)}" for role in self._layout.roles),
            "",
            f"#include {self._layout.astdir('astetcdir', OPTIONS_INCLUDE)}",
            "",
        ]
        root_config = self._layout.root_config
        root_config.write_text("\n".join(lines), encoding="utf-8")
        return root_config


__all__ = ["DirectoryProvisioner", "LAUNCHER_MODE", "ProvisionRequest"]
