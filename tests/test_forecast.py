from __future__ import annotations

from dataclasses import replace

import numpy as np
import pandas as pd
import pytest

from smartcharge.domain.catalog import DEFAULT_CATALOG
from smartcharge.domain.constraints import FLAT_PROFILE
from smartcharge.domain.errors import NotFoundError, ValidationError
from smartcharge.domain.models import ForecastEntry
from smartcharge.repository.data_repository import DataRepository
from smartcharge.services.forecast_service import (
    ForecastModelBuilder,
    ForecastService,
    average_density,
    fit_slot_regression,
    round_half_up,
)
from smartcharge.utils.config import get_settings


def _build_test_settings(tmp_path, filename: str):
    get_settings.cache_clear()
    base = get_settings()
    return replace(
        base,
        database_path=tmp_path / filename,
        forecast_random_seed=42,
        seed_catalog_on_startup=False,
    )


def _build_service(tmp_path, filename: str = "forecast.db") -> tuple[ForecastService, DataRepository]:
    settings = _build_test_settings(tmp_path, filename)
    repository = DataRepository(settings)
    repository.initialize_database()
    repository.seed_catalog(DEFAULT_CATALOG)
    return ForecastService(repository=repository, settings=settings), repository


# --- regression ---

def test_linear_trend_is_extrapolated_one_step() -> None:
    assert fit_slot_regression([10, 20, 30]) == pytest.approx(40.0)


def test_single_sample_returns_itself() -> None:
    assert fit_slot_regression([37]) == pytest.approx(37.0)


def test_empty_series_has_no_prediction() -> None:
    assert fit_slot_regression([]) is None


def test_constant_series_predicts_the_constant() -> None:
    assert fit_slot_regression([55, 55, 55, 55]) == pytest.approx(55.0)


def test_prediction_is_not_clamped_by_regression() -> None:
    assert fit_slot_regression([80, 90, 100]) == pytest.approx(110.0)


def test_round_half_up() -> None:
    assert round_half_up(44.5) == 45
    assert round_half_up(44.49) == 44
    assert round_half_up(0.5) == 1


def test_average_density_defaults_when_empty() -> None:
    assert average_density([], default=50) == 50
    entries = [
        ForecastEntry(station_id=1, day_of_week=0, hour=0, predicted_load=10),
        ForecastEntry(station_id=1, day_of_week=0, hour=1, predicted_load=21),
    ]
    assert average_density(entries, default=50) == 16


# --- model builder ---

def test_synthetic_history_shape_and_bounds() -> None:
    builder = ForecastModelBuilder(history_days=14, rng=np.random.default_rng(1))
    history = builder.synthesize_history("central")

    assert len(history) == 14 * 24
    assert set(history.columns) == {"day", "day_of_week", "hour", "load"}
    assert history["load"].between(0, 100).all()
    assert set(history["day_of_week"].unique()) == set(range(7))


def test_full_week_of_entries_within_bounds() -> None:
    builder = ForecastModelBuilder(history_days=60, rng=np.random.default_rng(3))
    entries = builder.build("suburban", station_id=9)

    assert len(entries) == 7 * 24
    assert {(entry.day_of_week, entry.hour) for entry in entries} == {
        (day, hour) for day in range(7) for hour in range(24)
    }
    assert all(0 <= entry.predicted_load <= 100 for entry in entries)
    assert all(entry.station_id == 9 for entry in entries)


def test_same_seed_gives_same_forecast() -> None:
    first = ForecastModelBuilder(rng=np.random.default_rng(7)).build("central", station_id=1)
    second = ForecastModelBuilder(rng=np.random.default_rng(7)).build("central", station_id=1)
    assert first == second


def test_short_history_only_emits_observed_buckets() -> None:
    builder = ForecastModelBuilder(history_days=3, rng=np.random.default_rng(5))
    entries = builder.build("outskirt", station_id=2)

    assert len(entries) == 3 * 24
    assert {entry.day_of_week for entry in entries} == {0, 1, 2}


def test_fit_uses_chronological_order_per_bucket() -> None:
    history = pd.DataFrame(
        {
            "day": [14, 0, 7],
            "day_of_week": [0, 0, 0],
            "hour": [8, 8, 8],
            "load": [30, 10, 20],
        }
    )
    entries = ForecastModelBuilder().fit(history, station_id=4)
    assert entries == [ForecastEntry(station_id=4, day_of_week=0, hour=8, predicted_load=40)]


def test_fit_clamps_predictions() -> None:
    history = pd.DataFrame(
        {
            "day": [0, 7, 14],
            "day_of_week": [1, 1, 1],
            "hour": [18, 18, 18],
            "load": [80, 90, 100],
        }
    )
    entries = ForecastModelBuilder().fit(history, station_id=4)
    assert entries[0].predicted_load == 100


def test_unknown_profile_is_a_validation_error() -> None:
    with pytest.raises(ValidationError):
        ForecastModelBuilder().build("lunar", station_id=1)


# --- service ---

def test_refresh_station_persists_week_and_updates_density(tmp_path) -> None:
    service, repository = _build_service(tmp_path)

    result = service.refresh_station(1)

    assert result["entries"] == 7 * 24
    assert repository.count_forecasts(1) == 7 * 24
    stored = [
        load
        for day in range(7)
        for load in repository.get_forecast_day(1, day).values()
    ]
    assert repository.get_station(1).density == result["density"]
    assert result["density"] == round_half_up(sum(stored) / len(stored))


def test_refresh_is_an_upsert(tmp_path) -> None:
    service, repository = _build_service(tmp_path)
    service.refresh_station(1)
    service.refresh_station(1)
    assert repository.count_forecasts(1) == 7 * 24


def test_refresh_missing_station_raises(tmp_path) -> None:
    service, _ = _build_service(tmp_path)
    with pytest.raises(NotFoundError):
        service.refresh_station(999)


def test_refresh_all_skips_stations_without_profile(tmp_path) -> None:
    service, repository = _build_service(tmp_path)
    flat = repository.create_station(
        name="Operator Station",
        lat=38.6,
        lng=27.4,
        price=5.0,
        density_profile=FLAT_PROFILE,
        owner_id=1,
    )

    summary = service.refresh_all()

    assert summary["refreshed_stations"] == len(DEFAULT_CATALOG.stations)
    assert summary["forecast_entries"] == len(DEFAULT_CATALOG.stations) * 7 * 24
    assert summary["skipped_station_ids"] == [flat.station_id]
    assert repository.count_forecasts(flat.station_id) == 0


def test_forecasts_at_lists_every_forecast_station(tmp_path) -> None:
    service, _ = _build_service(tmp_path)
    service.refresh_all()

    payload = service.forecasts_at(day_of_week=2, hour=10)

    assert payload["current_time"] == {"day_of_week": 2, "hour": 10}
    assert len(payload["forecasts"]) == len(DEFAULT_CATALOG.stations)
    for item in payload["forecasts"]:
        assert 0 <= item["predicted_load"] <= 100
        assert (item["day_of_week"], item["hour"]) == (2, 10)


def test_forecasts_at_rejects_out_of_range_slot(tmp_path) -> None:
    service, _ = _build_service(tmp_path)
    with pytest.raises(ValidationError):
        service.forecasts_at(day_of_week=7, hour=0)
    with pytest.raises(ValidationError):
        service.forecasts_at(day_of_week=0, hour=24)
