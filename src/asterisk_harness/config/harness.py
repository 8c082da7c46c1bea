"""Harness configuration resolved from the environment."""

from __future__ import annotations

import ipaddress
import logging
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PACKAGE_ASSETS_DIR = Path(__file__).resolve().parent.parent / "assets"


class HarnessSettings(BaseSettings):
    """Binary locations, network conventions and lifecycle bounds."""

    model_config = SettingsConfigDict(
        env_prefix="",
        extra="ignore",
        case_sensitive=False,
        frozen=True,
        populate_by_name=True,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # --- Binaries ---
    asterisk_binary: str | None = Field(default=None, alias="ASTERISK_BINARY")
    python_binary: str = Field(default="python3", alias="ASTERISK_HARNESS_PYTHON")
    refcounter_script: Path | None = Field(default=None, alias="ASTERISK_REFCOUNTER_SCRIPT")
    assets_dir: Path = Field(default=PACKAGE_ASSETS_DIR, alias="ASTERISK_HARNESS_ASSETS")

    # --- Network ---
    address_base: str = Field(default="127.0.0.0", alias="ASTERISK_ADDRESS_BASE")
    address_hold_port: int = Field(default=29999, alias="ASTERISK_ADDRESS_HOLD_PORT")
    ami_port: int = Field(default=5038, alias="ASTERISK_AMI_PORT")
    ami_username: str = Field(default="harness", alias="ASTERISK_AMI_USERNAME")
    ami_secret: str = Field(default="harness", alias="ASTERISK_AMI_SECRET")
    sip_port: int = Field(default=5060, alias="ASTERISK_SIP_PORT")

    # --- Lifecycle bounds ---
    boot_attempts: int = Field(
        default=100,
        alias="ASTERISK_BOOT_ATTEMPTS",
        description="Readiness queries issued before the boot is declared failed.",
    )
    boot_poll_interval: float = Field(default=0.1, alias="ASTERISK_BOOT_POLL_INTERVAL")
    refdebug_grace_seconds: float = Field(
        default=6.4,
        alias="ASTERISK_REFDEBUG_GRACE_SECONDS",
        description="Delay before shutdown when the refs log is present.",
    )
    event_settle_seconds: float = Field(default=0.05, alias="ASTERISK_EVENT_SETTLE_SECONDS")

    @field_validator("address_base")
    @classmethod
    def _validate_address_base(cls, value: str) -> str:
        try:
            ipaddress.IPv4Address(value)
        except ValueError as exc:
            raise ValueError(f"address_base must be an IPv4 address: {value!r}") from exc
        return value

    @field_validator("address_hold_port", "ami_port", "sip_port")
    @classmethod
    def _validate_port(cls, value: int) -> int:
        if not 0 <= value <= 65535:
            raise ValueError(f"port out of range: {value}")
        return value

    @field_validator("boot_attempts")
    @classmethod
    def _validate_attempts(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("boot_attempts must be positive")
        return value

    @field_validator("boot_poll_interval", "refdebug_grace_seconds", "event_settle_seconds")
    @classmethod
    def _validate_delay(cls, value: float) -> float:
        if value < 0:
            raise ValueError("delays must be non-negative")
        return value


def load_harness_settings() -> HarnessSettings:
    settings = HarnessSettings()
    logging.getLogger("asterisk_harness.settings").info("harness settings loaded: %r", settings)
    return settings


__all__ = ["HarnessSettings", "PACKAGE_ASSETS_DIR", "load_harness_settings"]
