"""Runtime settings read from the environment (and a local .env file)."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv


@dataclass(frozen=True)
class Settings:
    log_level: str = "INFO"
    database_path: Path = Path("data/dayplanner.db")
    # Longest wait for a resource's allocation lock before ConcurrentConflict.
    lock_timeout_seconds: float = 5.0
    # How long a DRAFT booking holds capacity. 0 disables draft holds.
    draft_hold_minutes: int = 15
    cache_max_rule_sets: int = 256


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    return float(raw) if raw not in (None, "") else default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if raw not in (None, "") else default


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings once per process. Tests derive variants with replace()."""
    load_dotenv()
    settings = Settings(
        log_level=os.getenv("DAYPLANNER_LOG_LEVEL", Settings.log_level),
        database_path=Path(
            os.getenv("DAYPLANNER_DATABASE_PATH", str(Settings.database_path))
        ),
        lock_timeout_seconds=_env_float(
            "DAYPLANNER_LOCK_TIMEOUT_SECONDS", Settings.lock_timeout_seconds
        ),
        draft_hold_minutes=_env_int(
            "DAYPLANNER_DRAFT_HOLD_MINUTES", Settings.draft_hold_minutes
        ),
        cache_max_rule_sets=_env_int(
            "DAYPLANNER_CACHE_MAX_RULE_SETS", Settings.cache_max_rule_sets
        ),
    )
    validate_settings(settings)
    return settings


def validate_settings(settings: Settings) -> None:
    if settings.lock_timeout_seconds <= 0:
        raise ValueError("lock_timeout_seconds must be > 0")
    if settings.draft_hold_minutes < 0:
        raise ValueError("draft_hold_minutes must be >= 0")
    if settings.cache_max_rule_sets <= 0:
        raise ValueError("cache_max_rule_sets must be > 0")
