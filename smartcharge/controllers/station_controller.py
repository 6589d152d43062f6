"""Controller layer for station listing, detail slots and forecasts."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from smartcharge.controllers.dependencies import (
    get_forecast_service,
    get_pricing_service,
    to_http_exception,
)
from smartcharge.domain.errors import SmartChargeError
from smartcharge.services.forecast_service import ForecastService
from smartcharge.services.pricing_service import StationPricingService


router = APIRouter(tags=["stations"])


class StationListItem(BaseModel):
    id: int
    name: str
    lat: float
    lng: float
    price: float = Field(ge=0.0)
    owner_id: Optional[int] = None
    owner_name: Optional[str] = None
    load: int = Field(ge=0, le=100)
    load_status: str
    next_green_hour: str


class CampaignApplied(BaseModel):
    title: str
    discount: str


class TimeSlot(BaseModel):
    hour: int = Field(ge=0, le=23)
    label: str
    start_time: str
    is_green: bool
    coins: int = Field(ge=0)
    price: float = Field(ge=0.0)
    status: str
    load: int = Field(ge=0, le=100)
    campaign_applied: Optional[CampaignApplied] = None


class ActiveCampaign(BaseModel):
    id: int
    title: str
    description: str
    discount: str
    coin_reward: int = Field(ge=0)
    station_id: Optional[int] = None


class StationDetailResponse(BaseModel):
    id: int
    name: str
    lat: float
    lng: float
    address: Optional[str] = None
    price: float
    density: int
    density_profile: str
    owner_id: Optional[int] = None
    slots: list[TimeSlot]
    active_campaign: Optional[ActiveCampaign] = None


class ForecastTime(BaseModel):
    day_of_week: int = Field(ge=0, le=6)
    hour: int = Field(ge=0, le=23)


class ForecastItem(BaseModel):
    station_id: int
    station_name: str
    lat: float
    lng: float
    price: float
    address: Optional[str] = None
    density_profile: str
    predicted_load: int = Field(ge=0, le=100)
    day_of_week: int
    hour: int


class ForecastResponse(BaseModel):
    current_time: ForecastTime
    forecasts: list[ForecastItem]


class ForecastRefreshResponse(BaseModel):
    refreshed_stations: int = Field(ge=0)
    forecast_entries: int = Field(ge=0)
    skipped_station_ids: list[int]


@router.get("/stations", response_model=list[StationListItem], status_code=status.HTTP_200_OK)
async def list_stations(
    pricing_service: StationPricingService = Depends(get_pricing_service),
) -> list[StationListItem]:
    try:
        return [StationListItem(**row) for row in pricing_service.list_stations()]
    except SmartChargeError as exc:
        raise to_http_exception(exc) from exc


@router.get("/stations/forecast", response_model=ForecastResponse, status_code=status.HTTP_200_OK)
async def station_forecasts(
    day_of_week: Optional[int] = Query(default=None, ge=0, le=6),
    hour: Optional[int] = Query(default=None, ge=0, le=23),
    forecast_service: ForecastService = Depends(get_forecast_service),
) -> ForecastResponse:
    try:
        return ForecastResponse(**forecast_service.forecasts_at(day_of_week, hour))
    except SmartChargeError as exc:
        raise to_http_exception(exc) from exc


@router.get(
    "/stations/{station_id}",
    response_model=StationDetailResponse,
    status_code=status.HTTP_200_OK,
)
async def station_detail(
    station_id: int,
    pricing_service: StationPricingService = Depends(get_pricing_service),
) -> StationDetailResponse:
    try:
        return StationDetailResponse(**pricing_service.get_station_detail(station_id))
    except SmartChargeError as exc:
        raise to_http_exception(exc) from exc


@router.post(
    "/forecasts/refresh",
    response_model=ForecastRefreshResponse,
    status_code=status.HTTP_200_OK,
)
async def refresh_forecasts(
    forecast_service: ForecastService = Depends(get_forecast_service),
) -> ForecastRefreshResponse:
    try:
        return ForecastRefreshResponse(**forecast_service.refresh_all())
    except SmartChargeError as exc:
        raise to_http_exception(exc) from exc
