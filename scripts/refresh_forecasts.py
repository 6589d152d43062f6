#!/usr/bin/env python3
"""Rebuild persisted station density forecasts outside the API process."""

from __future__ import annotations

import argparse
import sys
from dataclasses import replace
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from smartcharge.domain.catalog import DEFAULT_CATALOG
from smartcharge.domain.errors import SmartChargeError
from smartcharge.repository.data_repository import DataRepository
from smartcharge.services.forecast_service import ForecastService
from smartcharge.utils.config import get_settings

SEPARATOR_LINE = "=" * 44


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--database",
        type=Path,
        default=None,
        help="SQLite file to refresh (defaults to SMARTCHARGE_DATABASE_PATH)",
    )
    parser.add_argument("--seed", type=int, default=None, help="random seed for the synthetic history")
    parser.add_argument("--station-id", type=int, default=None, help="refresh a single station")
    parser.add_argument(
        "--seed-catalog",
        action="store_true",
        help="insert the demo catalog first when the database is empty",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    settings = get_settings()
    overrides = {}
    if args.database is not None:
        overrides["database_path"] = args.database
    if args.seed is not None:
        overrides["forecast_random_seed"] = args.seed
    if overrides:
        settings = replace(settings, **overrides)

    repository = DataRepository(settings)
    repository.initialize_database()
    if args.seed_catalog:
        repository.seed_catalog(DEFAULT_CATALOG)

    forecast_service = ForecastService(repository=repository, settings=settings)

    print(SEPARATOR_LINE)
    print(" SmartCharge Forecast Refresh")
    print(SEPARATOR_LINE)
    try:
        if args.station_id is not None:
            result = forecast_service.refresh_station(args.station_id)
            print(
                f" [PASS] Station {result['station_id']}: "
                f"{result['entries']} entries, density={result['density']}"
            )
        else:
            summary = forecast_service.refresh_all()
            print(f" [PASS] Stations refreshed: {summary['refreshed_stations']}")
            print(f" [PASS] Forecast entries: {summary['forecast_entries']}")
            if summary["skipped_station_ids"]:
                skipped = ", ".join(str(item) for item in summary["skipped_station_ids"])
                print(f" [SKIP] Stations without a known profile: {skipped}")
    except SmartChargeError as exc:
        print(f" [FAIL] {exc.code}: {exc.message}")
        print(SEPARATOR_LINE)
        return 1

    print(SEPARATOR_LINE)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
