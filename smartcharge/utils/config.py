"""Environment-driven runtime settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


@dataclass(frozen=True)
class Settings:
    app_name: str
    app_version: str
    log_level: str
    database_path: Path
    database_busy_timeout_seconds: float
    seed_catalog_on_startup: bool
    forecast_history_days: int
    forecast_random_seed: int | None
    forecast_trend_strength: float
    default_density: int
    recent_reservations_limit: int


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings once per process; tests derive variants with `replace`."""
    raw_seed = os.getenv("SMARTCHARGE_FORECAST_RANDOM_SEED", "")
    return Settings(
        app_name=os.getenv("SMARTCHARGE_APP_NAME", "SmartCharge API"),
        app_version=os.getenv("SMARTCHARGE_APP_VERSION", "1.0.0"),
        log_level=os.getenv("SMARTCHARGE_LOG_LEVEL", "INFO"),
        database_path=Path(
            os.getenv("SMARTCHARGE_DATABASE_PATH", "data/smartcharge.db")
        ),
        database_busy_timeout_seconds=_env_float(
            "SMARTCHARGE_DATABASE_BUSY_TIMEOUT_SECONDS", 10.0
        ),
        seed_catalog_on_startup=os.getenv(
            "SMARTCHARGE_SEED_CATALOG_ON_STARTUP", "true"
        ).strip().lower()
        in {"1", "true", "yes"},
        forecast_history_days=_env_int("SMARTCHARGE_FORECAST_HISTORY_DAYS", 60),
        forecast_random_seed=int(raw_seed) if raw_seed.strip() else None,
        forecast_trend_strength=_env_float("SMARTCHARGE_FORECAST_TREND_STRENGTH", 0.1),
        default_density=_env_int("SMARTCHARGE_DEFAULT_DENSITY", 50),
        recent_reservations_limit=_env_int("SMARTCHARGE_RECENT_RESERVATIONS_LIMIT", 10),
    )
