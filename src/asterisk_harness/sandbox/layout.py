"""Directory roles of an asterisk sandbox and their on-disk locations."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from types import MappingProxyType

from asterisk_harness.sandbox.run_directory import RunPathProvider

# Role keys double as the option names in the [directories] section of asterisk.conf.
ROLE_PATHS: Mapping[str, str] = MappingProxyType(
    {
        "astetcdir": "etc/asterisk",
        "astvarlibdir": "var/lib/asterisk",
        "astdbdir": "var/spool",
        "astkeydir": "var/lib/asterisk",
        "astdatadir": "var/lib/asterisk",
        "astspooldir": "var/spool",
        "astrundir": "run",
        "astlogdir": "var/log",
    }
)

REQUIRED_SUBDIRECTORIES: Mapping[str, tuple[str, ...]] = MappingProxyType(
    {
        "astvarlibdir": (
            "keys",
            "moh",
            "documentation",
            "sounds/en/silence",
        ),
        "astetcdir": (
            "acl.d",
            "cli_permissions.d",
            "confbridge.d",
            "extensions.d",
            "http.d",
            "manager.d",
            "musiconhold.d",
            "pjsip.d",
            "sorcery.d",
        ),
    }
)

ROOT_CONFIG = "asterisk.conf"
OPTIONS_INCLUDE = "asterisk-options.conf"
LAUNCHER_NAME = "asterisk"
REFDEBUG_LOG = "refs"
TRACE_FILE = "ami-events.json"


class SandboxLayout:
    """Map directory roles onto paths inside one run directory."""

    def __init__(self, run_directory: RunPathProvider) -> None:
        self._run_directory = run_directory

    @property
    def roles(self) -> tuple[str, ...]:
        return tuple(ROLE_PATHS)

    def astdir(self, role: str, *segments: str) -> Path:
        try:
            relative = ROLE_PATHS[role]
        except KeyError as exc:
            raise KeyError(f"unknown asterisk directory role: {role!r}") from exc
        return self._run_directory.run_path(relative, *segments)

    @property
    def root_config(self) -> Path:
        return self.astdir("astetcdir", ROOT_CONFIG)

    @property
    def launcher(self) -> Path:
        return self._run_directory.run_path(LAUNCHER_NAME)

    @property
    def refdebug_log(self) -> Path:
        return self.astdir("astlogdir", REFDEBUG_LOG)

    @property
    def trace_file(self) -> Path:
        return self.astdir("astlogdir", TRACE_FILE)

    def required_directories(self) -> list[Path]:
        """Every role directory plus the declared subdirectories, de-duplicated."""

        seen: dict[Path, None] = {}
        for role in ROLE_PATHS:
            seen.setdefault(self.astdir(role), None)
            for sub in REQUIRED_SUBDIRECTORIES.get(role, ()):
                seen.setdefault(self.astdir(role, sub), None)
        return list(seen)


__all__ = [
    "LAUNCHER_NAME",
    "OPTIONS_INCLUDE",
    "REFDEBUG_LOG",
    "REQUIRED_SUBDIRECTORIES",
    "ROLE_PATHS",
    "ROOT_CONFIG",
    "SandboxLayout",
    "TRACE_FILE",
]
