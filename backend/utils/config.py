"""Environment-driven application settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional


_TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUTHY


@dataclass(frozen=True)
class Settings:
    app_name: str = "Hostel Room Allocation"
    app_version: str = "1.0.0"
    log_level: str = "INFO"
    database_path: Path = Path("data/hostel_allocation.db")
    state_storage_key: str = "hostel_state"
    admin_token: Optional[str] = None
    occupant_slots_per_request: int = 1
    # Legacy behavior: reject overwrites approved/rejected requests.
    allow_reject_after_decision: bool = False
    server_host: str = "127.0.0.1"
    server_port: int = 8000


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings once from the process environment."""
    defaults = Settings()
    return Settings(
        app_name=os.getenv("APP_NAME", defaults.app_name),
        app_version=os.getenv("APP_VERSION", defaults.app_version),
        log_level=os.getenv("LOG_LEVEL", defaults.log_level),
        database_path=Path(os.getenv("DATABASE_PATH", str(defaults.database_path))),
        state_storage_key=os.getenv("STATE_STORAGE_KEY", defaults.state_storage_key),
        admin_token=os.getenv("ADMIN_TOKEN") or None,
        allow_reject_after_decision=_env_flag(
            "ALLOW_REJECT_AFTER_DECISION",
            defaults.allow_reject_after_decision,
        ),
        server_host=os.getenv("HOST", defaults.server_host),
        server_port=int(os.getenv("PORT", str(defaults.server_port))),
    )
