"""Synthetic occupancy history and per-slot linear-trend load forecasting."""

from __future__ import annotations

import math
from datetime import datetime
from threading import RLock
from typing import Any, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from smartcharge.domain.constraints import DEFAULT_PROFILES, ProfileConfig, validate_profile_config
from smartcharge.domain.errors import NotFoundError, ValidationError
from smartcharge.domain.models import ForecastEntry
from smartcharge.repository.data_repository import DataRepository
from smartcharge.utils.config import Settings, get_settings
from smartcharge.utils.dates import utc_now
from smartcharge.utils.logger import describe, get_logger


logger = get_logger(__name__)

HOURS_PER_DAY = 24
DAYS_PER_WEEK = 7


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp_load(value: float) -> float:
    return min(100.0, max(0.0, value))


def fit_slot_regression(loads: Sequence[float]) -> Optional[float]:
    """Predict the next occurrence of a slot from its chronologically ordered samples.

    Fits ``y = m*x + b`` by ordinary least squares with ``x`` being each
    sample's position in the sequence and evaluates it at ``x = n``. Fewer
    than two samples, or a degenerate denominator, fall back to the mean.
    Returns ``None`` for an empty sequence. The result is neither clamped nor
    rounded.
    """
    values = np.asarray(loads, dtype=float)
    n = values.size
    if n == 0:
        return None
    mean = float(values.mean())
    if n < 2:
        return mean

    x = np.arange(n, dtype=float)
    sum_x = float(x.sum())
    sum_y = float(values.sum())
    sum_xy = float((x * values).sum())
    sum_xx = float((x * x).sum())

    denominator = n * sum_xx - sum_x * sum_x
    if denominator == 0:
        return mean

    slope = (n * sum_xy - sum_x * sum_y) / denominator
    intercept = (sum_y - slope * sum_x) / n
    return slope * n + intercept


def average_density(entries: Sequence[ForecastEntry], default: int) -> int:
    if not entries:
        return default
    total = sum(entry.predicted_load for entry in entries)
    return round_half_up(total / len(entries))


class ForecastModelBuilder:
    """Builds a 7x24 predicted-load table for a density profile.

    The random source is injected so a fixed seed reproduces the same history
    and therefore the same forecast.
    """

    def __init__(
        self,
        profiles: Mapping[str, ProfileConfig] = DEFAULT_PROFILES,
        *,
        history_days: int = 60,
        trend_strength: float = 0.1,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        if history_days <= 0:
            raise ValueError("history_days must be > 0")
        for name, config in profiles.items():
            validate_profile_config(name, config)
        self._profiles = profiles
        self._history_days = history_days
        self._trend_strength = trend_strength
        self._rng = rng if rng is not None else np.random.default_rng()

    def profile(self, name: str) -> ProfileConfig:
        try:
            return self._profiles[name]
        except KeyError as exc:
            raise ValidationError(f"Unknown density profile: {name}") from exc

    def synthesize_history(self, profile_name: str) -> pd.DataFrame:
        """One row per (day, hour) with integer loads in [0, 100]."""
        config = self.profile(profile_name)
        total_days = self._history_days

        days = np.repeat(np.arange(total_days), HOURS_PER_DAY)
        hours = np.tile(np.arange(HOURS_PER_DAY), total_days)
        day_of_week = days % DAYS_PER_WEEK
        weekend = day_of_week >= 5

        multiplier = np.ones(days.size, dtype=float)
        morning = (hours >= 7) & (hours <= 9)
        lunch = (hours >= 12) & (hours <= 14)
        evening = (hours >= 17) & (hours <= 20)
        night = (hours >= 22) | (hours < 6)
        multiplier[morning] = np.where(weekend[morning], 1.1, config.peak_multiplier)
        multiplier[lunch] = 1.3
        multiplier[evening] = np.where(weekend[evening], 1.2, config.peak_multiplier)
        multiplier[night] = 0.4
        multiplier[weekend] *= 0.85

        # Drift direction is fixed for the whole history of one station.
        direction = 1.0 if self._rng.random() > 0.5 else -1.0

        noise = (self._rng.random(days.size) - 0.5) * config.variance
        load = np.clip(config.base_load * multiplier + noise, 0.0, 100.0)
        trend = 1.0 + (days / total_days) * self._trend_strength * direction
        load = np.floor(np.clip(load * trend, 0.0, 100.0) + 0.5)

        return pd.DataFrame(
            {
                "day": days,
                "day_of_week": day_of_week,
                "hour": hours,
                "load": load.astype(int),
            }
        )

    def fit(self, history: pd.DataFrame, *, station_id: int) -> list[ForecastEntry]:
        """Regress each (day_of_week, hour) bucket; empty buckets emit nothing."""
        entries: list[ForecastEntry] = []
        if history.empty:
            return entries
        ordered = history.sort_values(by=["day", "hour"], kind="stable")
        for (day_of_week, hour), loads in ordered.groupby(["day_of_week", "hour"], sort=True)["load"]:
            predicted = fit_slot_regression(loads.to_numpy())
            if predicted is None:
                continue
            entries.append(
                ForecastEntry(
                    station_id=station_id,
                    day_of_week=int(day_of_week),
                    hour=int(hour),
                    predicted_load=round_half_up(clamp_load(predicted)),
                )
            )
        return entries

    def build(self, profile_name: str, *, station_id: int) -> list[ForecastEntry]:
        return self.fit(self.synthesize_history(profile_name), station_id=station_id)


class ForecastService:
    """Refreshes persisted forecasts and serves the forecast map."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
        profiles: Mapping[str, ProfileConfig] = DEFAULT_PROFILES,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._profiles = profiles
        self._builder = ForecastModelBuilder(
            profiles,
            history_days=self._settings.forecast_history_days,
            trend_strength=self._settings.forecast_trend_strength,
            rng=rng if rng is not None else np.random.default_rng(
                self._settings.forecast_random_seed
            ),
        )
        self._refresh_lock = RLock()

    def refresh_station(self, station_id: int) -> dict[str, int]:
        station = self._repository.get_station(station_id)
        if station is None:
            raise NotFoundError("Station")

        with self._refresh_lock:
            entries = self._builder.build(station.density_profile, station_id=station_id)
            written = self._repository.upsert_forecasts(entries)
            density = average_density(entries, self._settings.default_density)
            self._repository.update_station_density(station_id, density)

        logger.info(
            describe(
                "Forecast refreshed",
                density=density,
                entries=written,
                profile=station.density_profile,
                station_id=station_id,
            )
        )
        return {"station_id": station_id, "entries": written, "density": density}

    def refresh_all(self) -> dict[str, Any]:
        refreshed: list[dict[str, int]] = []
        skipped: list[int] = []
        for station in self._repository.list_stations():
            if station.density_profile not in self._profiles:
                logger.info(
                    describe(
                        "Forecast skipped",
                        profile=station.density_profile,
                        station_id=station.station_id,
                    )
                )
                skipped.append(station.station_id)
                continue
            refreshed.append(self.refresh_station(station.station_id))

        total_entries = sum(item["entries"] for item in refreshed)
        logger.info(
            describe(
                "Forecast refresh completed",
                entries=total_entries,
                skipped=len(skipped),
                stations=len(refreshed),
            )
        )
        return {
            "refreshed_stations": len(refreshed),
            "forecast_entries": total_entries,
            "skipped_station_ids": skipped,
        }

    def forecasts_at(
        self,
        day_of_week: Optional[int] = None,
        hour: Optional[int] = None,
        *,
        now: Optional[datetime] = None,
    ) -> dict[str, Any]:
        """Every station's predicted load for one slot, defaulting to the current one."""
        current = now or utc_now()
        resolved_day = current.weekday() if day_of_week is None else day_of_week
        resolved_hour = current.hour if hour is None else hour
        if not 0 <= resolved_day < DAYS_PER_WEEK:
            raise ValidationError("day_of_week must be between 0 and 6")
        if not 0 <= resolved_hour < HOURS_PER_DAY:
            raise ValidationError("hour must be between 0 and 23")

        rows = self._repository.list_forecasts_at(resolved_day, resolved_hour)
        return {
            "current_time": {"day_of_week": resolved_day, "hour": resolved_hour},
            "forecasts": [
                {
                    "station_id": station.station_id,
                    "station_name": station.name,
                    "lat": station.lat,
                    "lng": station.lng,
                    "price": station.price,
                    "address": station.address,
                    "density_profile": station.density_profile,
                    "predicted_load": predicted_load,
                    "day_of_week": resolved_day,
                    "hour": resolved_hour,
                }
                for station, predicted_load in rows
            ],
        }
