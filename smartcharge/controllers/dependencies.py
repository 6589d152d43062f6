"""Shared FastAPI dependency providers and domain-error translation."""

from __future__ import annotations

from typing import Any

from fastapi import HTTPException, Request, status

from smartcharge.domain.errors import (
    AlreadyCompletedError,
    ConflictError,
    InternalError,
    NotFoundError,
    SmartChargeError,
    ValidationError,
)
from smartcharge.services.campaign_service import CampaignService
from smartcharge.services.forecast_service import ForecastService
from smartcharge.services.operator_service import OperatorService
from smartcharge.services.pricing_service import StationPricingService
from smartcharge.services.profile_service import ProfileService
from smartcharge.services.reservation_service import ReservationService


_STATUS_BY_ERROR: tuple[tuple[type[SmartChargeError], int], ...] = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (AlreadyCompletedError, status.HTTP_400_BAD_REQUEST),
    (InternalError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def to_http_exception(exc: SmartChargeError) -> HTTPException:
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_type, mapped_status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            status_code = mapped_status
            break
    message = exc.message
    if isinstance(exc, InternalError):
        message = "An unexpected error occurred"
    return HTTPException(
        status_code=status_code,
        detail={"code": exc.code, "message": message},
    )


def _state_service(request: Request, name: str) -> Any:
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{name} is not initialized",
        )
    return service


def get_pricing_service(request: Request) -> StationPricingService:
    return _state_service(request, "pricing_service")


def get_forecast_service(request: Request) -> ForecastService:
    return _state_service(request, "forecast_service")


def get_campaign_service(request: Request) -> CampaignService:
    return _state_service(request, "campaign_service")


def get_reservation_service(request: Request) -> ReservationService:
    return _state_service(request, "reservation_service")


def get_operator_service(request: Request) -> OperatorService:
    return _state_service(request, "operator_service")


def get_profile_service(request: Request) -> ProfileService:
    return _state_service(request, "profile_service")
