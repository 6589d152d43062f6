"""Controller layer for operator station management, profiles and badges."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, Field

from smartcharge.controllers.dependencies import (
    get_operator_service,
    get_profile_service,
    to_http_exception,
)
from smartcharge.domain.errors import SmartChargeError
from smartcharge.services.operator_service import OperatorService
from smartcharge.services.profile_service import ProfileService


router = APIRouter(tags=["operator"])


class CreateStationRequest(BaseModel):
    name: str = Field(min_length=1)
    lat: float = Field(ge=-90.0, le=90.0)
    lng: float = Field(ge=-180.0, le=180.0)
    price: float = Field(gt=0.0)
    address: Optional[str] = None


class UpdateStationRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    lat: Optional[float] = Field(default=None, ge=-90.0, le=90.0)
    lng: Optional[float] = Field(default=None, ge=-180.0, le=180.0)
    price: Optional[float] = Field(default=None, gt=0.0)
    address: Optional[str] = None


@router.get("/operator/{owner_id}/stations", status_code=status.HTTP_200_OK)
async def list_my_stations(
    owner_id: int,
    operator_service: OperatorService = Depends(get_operator_service),
) -> dict[str, Any]:
    try:
        return operator_service.list_my_stations(owner_id)
    except SmartChargeError as exc:
        raise to_http_exception(exc) from exc


@router.post("/operator/{owner_id}/stations", status_code=status.HTTP_201_CREATED)
async def create_station(
    owner_id: int,
    payload: CreateStationRequest,
    operator_service: OperatorService = Depends(get_operator_service),
) -> dict[str, Any]:
    try:
        return operator_service.create_station(owner_id, **payload.model_dump())
    except SmartChargeError as exc:
        raise to_http_exception(exc) from exc


@router.put("/operator/stations/{station_id}", status_code=status.HTTP_200_OK)
async def update_station(
    station_id: int,
    payload: UpdateStationRequest,
    operator_service: OperatorService = Depends(get_operator_service),
) -> dict[str, Any]:
    try:
        return operator_service.update_station(station_id, **payload.model_dump())
    except SmartChargeError as exc:
        raise to_http_exception(exc) from exc


@router.delete("/operator/stations/{station_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_station(
    station_id: int,
    operator_service: OperatorService = Depends(get_operator_service),
) -> Response:
    try:
        operator_service.delete_station(station_id)
    except SmartChargeError as exc:
        raise to_http_exception(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/users/leaderboard", status_code=status.HTTP_200_OK)
async def leaderboard(
    limit: Optional[int] = None,
    profile_service: ProfileService = Depends(get_profile_service),
) -> list[dict[str, Any]]:
    try:
        return profile_service.leaderboard(limit)
    except SmartChargeError as exc:
        raise to_http_exception(exc) from exc


@router.get("/users/{user_id}", status_code=status.HTTP_200_OK)
async def get_user_profile(
    user_id: int,
    profile_service: ProfileService = Depends(get_profile_service),
) -> dict[str, Any]:
    try:
        return profile_service.get_profile(user_id)
    except SmartChargeError as exc:
        raise to_http_exception(exc) from exc


@router.get("/badges", status_code=status.HTTP_200_OK)
async def list_badges(
    profile_service: ProfileService = Depends(get_profile_service),
) -> list[dict[str, Any]]:
    try:
        return profile_service.list_badges()
    except SmartChargeError as exc:
        raise to_http_exception(exc) from exc
