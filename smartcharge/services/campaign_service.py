"""Campaign selection policy and operator campaign management."""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any, Iterable, Optional

from smartcharge.domain.errors import NotFoundError, SmartChargeError, ValidationError
from smartcharge.domain.models import Campaign, CampaignStatus
from smartcharge.repository.data_repository import DataRepository
from smartcharge.utils.config import Settings, get_settings
from smartcharge.utils.dates import ensure_utc, parse_client_datetime, utc_now
from smartcharge.utils.logger import describe, get_logger


logger = get_logger(__name__)


def parse_discount_rate(discount: str) -> float:
    """Turn a percentage label like ``"%20"`` into 0.20; other labels give 0."""
    cleaned = (discount or "").replace("%", "").strip()
    try:
        value = float(cleaned)
    except ValueError:
        return 0.0
    if not math.isfinite(value):
        return 0.0
    return min(1.0, max(0.0, value / 100.0))


def campaign_precedence_key(campaign: Campaign) -> tuple[int, float, int]:
    """Sort key: station-specific first, then newest, then highest id."""
    return (
        1 if campaign.is_global else 0,
        -campaign.created_at.timestamp(),
        -campaign.campaign_id,
    )


def select_active_campaign(
    campaigns: Iterable[Campaign],
    station_id: int,
    now: datetime,
) -> Optional[Campaign]:
    eligible = [
        campaign
        for campaign in campaigns
        if campaign.is_live(now)
        and (campaign.is_global or campaign.station_id == station_id)
    ]
    if not eligible:
        return None
    return min(eligible, key=campaign_precedence_key)


class CampaignService:
    """Resolves the active campaign for a station and manages campaign rows."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)

    def resolve_active_campaign(
        self,
        station_id: int,
        now: Optional[datetime] = None,
    ) -> Optional[Campaign]:
        """Pick the campaign that applies to a station; lookup failures mean none."""
        current = ensure_utc(now) if now else utc_now()
        try:
            candidates = self._repository.list_campaign_candidates(station_id, current)
        except SmartChargeError as exc:
            logger.warning(
                describe(
                    "Campaign lookup failed; continuing without campaign",
                    error=exc.code,
                    station_id=station_id,
                )
            )
            return None
        return select_active_campaign(candidates, station_id, current)

    def _validate_fields(
        self,
        *,
        title: str,
        discount: str,
        status: str,
        coin_reward: Optional[int],
        end_date: Optional[str],
        station_id: Optional[int],
    ) -> tuple[int, Optional[datetime]]:
        if not title.strip():
            raise ValidationError("title is required")
        if not discount.strip():
            raise ValidationError("discount is required")
        if status not in CampaignStatus.ALL:
            raise ValidationError(f"Invalid campaign status: {status}")
        resolved_coins = 0 if coin_reward is None else int(coin_reward)
        if resolved_coins < 0:
            raise ValidationError("coin_reward must be >= 0")
        parsed_end = parse_client_datetime(end_date, "end_date") if end_date else None
        if station_id is not None and self._repository.get_station(station_id) is None:
            raise NotFoundError("Station")
        return resolved_coins, parsed_end

    def create_campaign(
        self,
        *,
        owner_id: int,
        title: str,
        description: str,
        discount: str,
        target: str = "",
        status: Optional[str] = None,
        coin_reward: Optional[int] = None,
        end_date: Optional[str] = None,
        station_id: Optional[int] = None,
        target_badge_ids: Iterable[int] = (),
    ) -> dict[str, Any]:
        resolved_status = status or CampaignStatus.ACTIVE
        resolved_coins, parsed_end = self._validate_fields(
            title=title,
            discount=discount,
            status=resolved_status,
            coin_reward=coin_reward,
            end_date=end_date,
            station_id=station_id,
        )
        if self._repository.get_user(owner_id) is None:
            raise NotFoundError("User")

        campaign = self._repository.create_campaign(
            title=title.strip(),
            description=description,
            status=resolved_status,
            target=target,
            discount=discount.strip(),
            coin_reward=resolved_coins,
            end_date=parsed_end,
            owner_id=owner_id,
            station_id=station_id,
            target_badge_ids=target_badge_ids,
        )
        logger.info(
            describe(
                "Campaign created",
                campaign_id=campaign.campaign_id,
                coin_reward=campaign.coin_reward,
                station_id=campaign.station_id,
            )
        )
        return campaign.to_dict()

    def list_by_owner(self, owner_id: int) -> list[dict[str, Any]]:
        return [campaign.to_dict() for campaign in self._repository.list_campaigns_by_owner(owner_id)]

    def list_for_user(self, now: Optional[datetime] = None) -> list[dict[str, Any]]:
        """All live campaigns; badge matching is not implemented, so matches are empty."""
        current = ensure_utc(now) if now else utc_now()
        rows = []
        for campaign in self._repository.list_active_campaigns(current):
            payload = campaign.to_dict()
            payload["matched_badges"] = []
            rows.append(payload)
        return rows

    def update_campaign(
        self,
        campaign_id: int,
        *,
        title: str,
        discount: str,
        description: str = "",
        target: str = "",
        status: Optional[str] = None,
        coin_reward: Optional[int] = None,
        end_date: Optional[str] = None,
        station_id: Optional[int] = None,
        target_badge_ids: Iterable[int] = (),
    ) -> dict[str, Any]:
        """
        Replace a campaign's editable fields.

        Omitted optional fields are cleared (coin_reward falls back to 0), except
        status, which keeps its current value. Target badges are relinked.
        """
        existing = self._repository.get_campaign(campaign_id)
        if existing is None:
            raise NotFoundError("Campaign")
        resolved_status = status or existing.status
        resolved_coins, parsed_end = self._validate_fields(
            title=title,
            discount=discount,
            status=resolved_status,
            coin_reward=coin_reward,
            end_date=end_date,
            station_id=station_id,
        )

        campaign = self._repository.replace_campaign(
            campaign_id,
            title=title.strip(),
            description=description,
            status=resolved_status,
            target=target,
            discount=discount.strip(),
            coin_reward=resolved_coins,
            end_date=parsed_end,
            station_id=station_id,
            target_badge_ids=target_badge_ids,
        )
        if campaign is None:
            raise NotFoundError("Campaign")
        logger.info(
            describe(
                "Campaign updated",
                campaign_id=campaign_id,
                coin_reward=campaign.coin_reward,
                discount=campaign.discount,
            )
        )
        return campaign.to_dict()

    def update_status(self, campaign_id: int, status: str) -> dict[str, Any]:
        if status not in CampaignStatus.ALL:
            raise ValidationError(f"Invalid campaign status: {status}")
        campaign = self._repository.update_campaign_status(campaign_id, status)
        if campaign is None:
            raise NotFoundError("Campaign")
        return campaign.to_dict()

    def delete_campaign(self, campaign_id: int, owner_id: int) -> None:
        campaign = self._repository.get_campaign(campaign_id)
        if campaign is None or campaign.owner_id != owner_id:
            raise NotFoundError("Campaign")
        self._repository.delete_campaign(campaign_id)
        logger.info(describe("Campaign deleted", campaign_id=campaign_id))
