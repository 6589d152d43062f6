"""
app.py: FastAPI application factory and startup lifecycle.

This is the ASGI application object imported by uvicorn.
It wires all services, registers routers, and runs startup initialization.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from smartcharge.controllers.campaign_controller import router as campaign_router
from smartcharge.controllers.operator_controller import router as operator_router
from smartcharge.controllers.reservation_controller import router as reservation_router
from smartcharge.controllers.station_controller import router as station_router
from smartcharge.domain.catalog import DEFAULT_CATALOG
from smartcharge.repository.data_repository import DataRepository
from smartcharge.services.campaign_service import CampaignService
from smartcharge.services.forecast_service import ForecastService
from smartcharge.services.operator_service import OperatorService
from smartcharge.services.pricing_service import StationPricingService
from smartcharge.services.profile_service import ProfileService
from smartcharge.services.reservation_service import ReservationService
from smartcharge.utils.config import Settings, get_settings
from smartcharge.utils.logger import configure_logging, describe, get_logger


logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build and wire the FastAPI application.

    Every service receives its collaborators explicitly and is exposed via
    app.state, so each dependency is traceable from this function.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    # --- Repository (single SQLite connection factory) ---
    repository = DataRepository(settings)

    # --- Services (business logic, no direct DB access) ---
    campaign_service = CampaignService(repository=repository, settings=settings)
    pricing_service = StationPricingService(
        repository=repository,
        campaign_service=campaign_service,
        settings=settings,
    )
    forecast_service = ForecastService(repository=repository, settings=settings)
    reservation_service = ReservationService(
        repository=repository,
        campaign_service=campaign_service,
        settings=settings,
    )
    operator_service = OperatorService(repository=repository, settings=settings)
    profile_service = ProfileService(repository=repository, settings=settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Run startup initialization before accepting requests."""
        _startup(app, settings)
        yield

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )

    # --- Routers ---
    app.include_router(station_router)
    app.include_router(reservation_router)
    app.include_router(campaign_router)
    app.include_router(operator_router)

    # --- Inject services into app.state for dependency resolution ---
    app.state.settings = settings
    app.state.repository = repository
    app.state.campaign_service = campaign_service
    app.state.pricing_service = pricing_service
    app.state.forecast_service = forecast_service
    app.state.reservation_service = reservation_service
    app.state.operator_service = operator_service
    app.state.profile_service = profile_service

    return app


def _startup(app: FastAPI, settings: Settings) -> None:
    """
    Idempotent startup sequence. Safe to re-run on server restarts.

    Order matters:
      1. Schema must exist before seeding.
      2. Catalog rows (users, stations, campaigns) are seeded only into an empty database.
      3. Forecasts are built last and only when the catalog was just seeded
         or no forecast rows exist yet.
    """
    repository: DataRepository = app.state.repository
    forecast_service: ForecastService = app.state.forecast_service

    logger.info("Startup: initializing database schema")
    repository.initialize_database()

    seeded = False
    if settings.seed_catalog_on_startup:
        logger.info("Startup: seeding catalog (skipped if Users table not empty)")
        seeded = repository.seed_catalog(DEFAULT_CATALOG)

    if seeded or repository.count_forecasts() == 0:
        logger.info("Startup: building station density forecasts")
        summary = forecast_service.refresh_all()
        logger.info(
            describe(
                "Startup: forecasts ready",
                entries=summary["forecast_entries"],
                stations=summary["refreshed_stations"],
            )
        )

    logger.info("Startup complete, system ready")


# Module-level app object for uvicorn
app = create_app()
