"""Controller layer for reservation booking, status changes and settlement."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from smartcharge.controllers.dependencies import get_reservation_service, to_http_exception
from smartcharge.domain.errors import SmartChargeError
from smartcharge.services.reservation_service import ReservationService


router = APIRouter(tags=["reservations"])


class CreateReservationRequest(BaseModel):
    """Booking input; rewards are computed server-side and cannot be supplied."""

    user_id: int = Field(gt=0)
    station_id: int = Field(gt=0)
    date: str = Field(min_length=1)
    hour: str = Field(min_length=1)
    is_green: bool = False


class UpdateStatusRequest(BaseModel):
    status: str = Field(min_length=1)


class ReservationResponse(BaseModel):
    id: int
    user_id: int
    station_id: int
    date: str
    hour: str
    is_green: bool
    earned_coins: int = Field(ge=0)
    saved_co2: float = Field(ge=0.0)
    status: str
    station_name: Optional[str] = None


class UserStatsResponse(BaseModel):
    id: int
    coins: int
    co2_saved: float
    xp: int


class CompleteResponse(BaseModel):
    reservation: ReservationResponse
    user: UserStatsResponse


@router.post(
    "/reservations",
    response_model=ReservationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_reservation(
    payload: CreateReservationRequest,
    reservation_service: ReservationService = Depends(get_reservation_service),
) -> ReservationResponse:
    try:
        result = reservation_service.create(
            user_id=payload.user_id,
            station_id=payload.station_id,
            date=payload.date,
            hour=payload.hour,
            is_green=payload.is_green,
        )
        return ReservationResponse(**result)
    except SmartChargeError as exc:
        raise to_http_exception(exc) from exc


@router.get(
    "/reservations",
    response_model=list[ReservationResponse],
    status_code=status.HTTP_200_OK,
)
async def list_reservations(
    user_id: int = Query(gt=0),
    reservation_service: ReservationService = Depends(get_reservation_service),
) -> list[ReservationResponse]:
    try:
        return [
            ReservationResponse(**row)
            for row in reservation_service.list_for_user(user_id)
        ]
    except SmartChargeError as exc:
        raise to_http_exception(exc) from exc


@router.patch(
    "/reservations/{reservation_id}",
    response_model=ReservationResponse,
    status_code=status.HTTP_200_OK,
)
async def update_reservation_status(
    reservation_id: int,
    payload: UpdateStatusRequest,
    reservation_service: ReservationService = Depends(get_reservation_service),
) -> ReservationResponse:
    try:
        return ReservationResponse(
            **reservation_service.update_status(reservation_id, payload.status)
        )
    except SmartChargeError as exc:
        raise to_http_exception(exc) from exc


@router.post(
    "/reservations/{reservation_id}/complete",
    response_model=CompleteResponse,
    status_code=status.HTTP_200_OK,
)
async def complete_reservation(
    reservation_id: int,
    reservation_service: ReservationService = Depends(get_reservation_service),
) -> CompleteResponse:
    try:
        return CompleteResponse(**reservation_service.complete(reservation_id))
    except SmartChargeError as exc:
        raise to_http_exception(exc) from exc
