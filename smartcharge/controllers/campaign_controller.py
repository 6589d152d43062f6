"""Controller layer for campaign management and the driver campaign feed."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, Field, field_validator

from smartcharge.controllers.dependencies import get_campaign_service, to_http_exception
from smartcharge.domain.errors import SmartChargeError
from smartcharge.services.campaign_service import CampaignService


router = APIRouter(tags=["campaigns"])


class CampaignFields(BaseModel):
    title: str = Field(min_length=1)
    description: str = ""
    target: str = ""
    discount: str = Field(min_length=1)
    status: Optional[str] = None
    coin_reward: Optional[int] = Field(default=None, ge=0)
    end_date: Optional[str] = None
    station_id: Optional[int] = Field(default=None, gt=0)
    target_badge_ids: list[int] = Field(default_factory=list)

    @field_validator("target_badge_ids")
    @classmethod
    def validate_badge_ids(cls, value: list[int]) -> list[int]:
        for badge_id in value:
            if badge_id <= 0:
                raise ValueError("target_badge_ids values must be positive integers")
        return value


class CreateCampaignRequest(CampaignFields):
    owner_id: int = Field(gt=0)


class UpdateCampaignRequest(CampaignFields):
    """Full replacement; an omitted status keeps the current one."""


class CampaignStatusRequest(BaseModel):
    status: str = Field(min_length=1)


@router.get("/campaigns", status_code=status.HTTP_200_OK)
async def list_campaigns(
    owner_id: int = Query(gt=0),
    campaign_service: CampaignService = Depends(get_campaign_service),
) -> list[dict[str, Any]]:
    try:
        return campaign_service.list_by_owner(owner_id)
    except SmartChargeError as exc:
        raise to_http_exception(exc) from exc


@router.get("/campaigns/for-user", status_code=status.HTTP_200_OK)
async def list_campaigns_for_user(
    campaign_service: CampaignService = Depends(get_campaign_service),
) -> list[dict[str, Any]]:
    try:
        return campaign_service.list_for_user()
    except SmartChargeError as exc:
        raise to_http_exception(exc) from exc


@router.post("/campaigns", status_code=status.HTTP_201_CREATED)
async def create_campaign(
    payload: CreateCampaignRequest,
    campaign_service: CampaignService = Depends(get_campaign_service),
) -> dict[str, Any]:
    try:
        return campaign_service.create_campaign(**payload.model_dump())
    except SmartChargeError as exc:
        raise to_http_exception(exc) from exc


@router.put("/campaigns/{campaign_id}", status_code=status.HTTP_200_OK)
async def update_campaign(
    campaign_id: int,
    payload: UpdateCampaignRequest,
    campaign_service: CampaignService = Depends(get_campaign_service),
) -> dict[str, Any]:
    try:
        return campaign_service.update_campaign(campaign_id, **payload.model_dump())
    except SmartChargeError as exc:
        raise to_http_exception(exc) from exc


@router.patch("/campaigns/{campaign_id}", status_code=status.HTTP_200_OK)
async def update_campaign_status(
    campaign_id: int,
    payload: CampaignStatusRequest,
    campaign_service: CampaignService = Depends(get_campaign_service),
) -> dict[str, Any]:
    try:
        return campaign_service.update_status(campaign_id, payload.status)
    except SmartChargeError as exc:
        raise to_http_exception(exc) from exc


@router.delete("/campaigns/{campaign_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_campaign(
    campaign_id: int,
    owner_id: int = Query(gt=0),
    campaign_service: CampaignService = Depends(get_campaign_service),
) -> Response:
    try:
        campaign_service.delete_campaign(campaign_id, owner_id)
    except SmartChargeError as exc:
        raise to_http_exception(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)
