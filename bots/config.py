"""Configuration helpers for the bot runtime."""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from verifier_bot.allowlist import DEFAULT_RCON_PORT
from verifier_bot.server_status import DEFAULT_STATUS_PORT

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def env_bool(name: str, *, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    return default


def env_int(name: str, *, default: int | None = None) -> int | None:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def env_float(name: str, *, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class ShadowConfig:
    enabled: bool
    channel_id: int | None


def read_shadow_config(*, default_enabled: bool = False) -> ShadowConfig:
    return ShadowConfig(
        enabled=env_bool("SHADOW_MODE", default=default_enabled),
        channel_id=env_int("SHADOW_CHANNEL_ID"),
    )


REQUIRED_VARS = (
    "DISCORD_TOKEN",
    "SERVER_ADDRESS",
    "RCON_PASSWORD",
    "DISCORD_STATUS_CHANNEL_ID",
    "DISCORD_VERIFY_CHANNEL_ID",
)


@dataclass(frozen=True, slots=True)
class EnvironmentConfig:
    discord_token: str
    server_address: str
    rcon_password: str
    status_channel_id: int
    verify_channel_id: int
    rcon_port: int = DEFAULT_RCON_PORT
    status_port: int = DEFAULT_STATUS_PORT
    status_interval_seconds: float = 360.0
    ready_settle_seconds: float = 3.0
    verified_role_name: str = "Verified"
    identity_timeout_seconds: float = 10.0
    rcon_timeout_seconds: float = 5.0
    status_timeout_seconds: float = 5.0
    serialize_per_user: bool = True
    admin_log_channel_id: int | None = None

    @classmethod
    def load(cls, *, dotenv: bool = True) -> "EnvironmentConfig":
        if dotenv:
            load_dotenv(override=False)

        missing: list[str] = []
        invalid: list[str] = []

        def need(name: str) -> str:
            value = os.getenv(name)
            if not value:
                missing.append(name)
                return ""
            return value

        def need_int(name: str) -> int:
            raw = need(name)
            if not raw:
                return 0
            try:
                return int(raw)
            except ValueError:
                invalid.append(name)
                return 0

        discord_token = need("DISCORD_TOKEN")
        server_address = need("SERVER_ADDRESS")
        rcon_password = need("RCON_PASSWORD")
        status_channel_id = need_int("DISCORD_STATUS_CHANNEL_ID")
        verify_channel_id = need_int("DISCORD_VERIFY_CHANNEL_ID")

        if missing:
            raise RuntimeError("Missing env vars: " + ", ".join(sorted(set(missing))))
        if invalid:
            raise RuntimeError("Invalid integer env vars: " + ", ".join(sorted(invalid)))

        return cls(
            discord_token=discord_token,
            server_address=server_address,
            rcon_password=rcon_password,
            status_channel_id=status_channel_id,
            verify_channel_id=verify_channel_id,
            rcon_port=env_int("RCON_PORT", default=DEFAULT_RCON_PORT),
            status_port=env_int("STATUS_PORT", default=DEFAULT_STATUS_PORT),
            status_interval_seconds=env_float("STATUS_INTERVAL_SECONDS", default=360.0),
            ready_settle_seconds=env_float("READY_SETTLE_SECONDS", default=3.0),
            verified_role_name=os.getenv("VERIFIED_ROLE_NAME") or "Verified",
            identity_timeout_seconds=env_float("IDENTITY_TIMEOUT_SECONDS", default=10.0),
            rcon_timeout_seconds=env_float("RCON_TIMEOUT_SECONDS", default=5.0),
            status_timeout_seconds=env_float("STATUS_TIMEOUT_SECONDS", default=5.0),
            serialize_per_user=env_bool("VERIFY_SERIALIZE_PER_USER", default=True),
            admin_log_channel_id=env_int("ADMIN_LOG_CHANNEL_ID"),
        )
