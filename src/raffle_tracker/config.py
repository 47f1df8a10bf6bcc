from __future__ import annotations

import os
from dataclasses import dataclass
from dotenv import load_dotenv

from .errors import ConfigError


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    rpc_url: str
    rest_url: str
    store_path: str = "pending_contributions.json"
    poll_interval_s: float = 3.0
    max_attempts: int = 20
    deadline_s: float = 120.0
    # Blocks between the contribution tx and the block whose events settle it
    settlement_offset: int = 0
    base64_attributes: bool = False
    timeout_s: float = 30.0

    @staticmethod
    def from_env(
        rpc_url_override: str | None = None,
        rest_url_override: str | None = None,
        store_path_override: str | None = None,
        timeout_s: float | None = None,
    ) -> "Settings":
        load_dotenv()

        # Explicit CLI values win over the environment.
        rpc_url = rpc_url_override or os.getenv("RPC_URL", "").strip()
        if not rpc_url:
            raise ConfigError("Missing RPC_URL. Put it in .env, export it or pass --rpc-url.")

        rest_url = rest_url_override or os.getenv("REST_URL", "").strip()
        if not rest_url:
            raise ConfigError("Missing REST_URL. Put it in .env, export it or pass --rest-url.")

        store_path = (
            store_path_override
            or os.getenv("RAFFLE_STORE_PATH", "").strip()
            or "pending_contributions.json"
        )

        settings = Settings(
            rpc_url=rpc_url.rstrip("/"),
            rest_url=rest_url.rstrip("/"),
            store_path=store_path,
            poll_interval_s=_env_float("RAFFLE_POLL_INTERVAL", 3.0),
            max_attempts=_env_int("RAFFLE_MAX_ATTEMPTS", 20),
            deadline_s=_env_float("RAFFLE_DEADLINE", 120.0),
            settlement_offset=_env_int("RAFFLE_SETTLEMENT_OFFSET", 0),
            base64_attributes=_env_bool("RAFFLE_BASE64_ATTRIBUTES", False),
            timeout_s=timeout_s if timeout_s is not None else 30.0,
        )
        if settings.max_attempts < 1:
            raise ConfigError("RAFFLE_MAX_ATTEMPTS must be at least 1.")
        if settings.settlement_offset < 0:
            raise ConfigError("RAFFLE_SETTLEMENT_OFFSET cannot be negative.")
        return settings
