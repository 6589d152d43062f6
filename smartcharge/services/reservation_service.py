"""Reservation lifecycle and reward settlement."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from smartcharge.domain.constraints import RewardPolicy, validate_reward_policy
from smartcharge.domain.errors import NotFoundError, ValidationError
from smartcharge.domain.models import ReservationStatus
from smartcharge.repository.data_repository import DataRepository
from smartcharge.services.campaign_service import CampaignService
from smartcharge.utils.config import Settings, get_settings
from smartcharge.utils.dates import parse_client_datetime, utc_now
from smartcharge.utils.logger import describe, get_logger


logger = get_logger(__name__)


class ReservationService:
    """Creates reservations, changes their status and settles rewards.

    PENDING/CONFIRMED reservations may move to any status through
    ``update_status`` except COMPLETED, which is reachable only through
    ``complete``. CANCELLED and COMPLETED reservations never change again.
    """

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        campaign_service: Optional[CampaignService] = None,
        settings: Optional[Settings] = None,
        rewards: RewardPolicy = RewardPolicy(),
    ) -> None:
        validate_reward_policy(rewards)
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._campaign_service = campaign_service or CampaignService(
            repository=self._repository,
            settings=self._settings,
        )
        self._rewards = rewards

    def earned_coins_for(self, is_green: bool, campaign_coin_reward: int = 0) -> int:
        coins = self._rewards.green_coins if is_green else self._rewards.base_coins
        if campaign_coin_reward > 0:
            coins += campaign_coin_reward
        return coins

    def create(
        self,
        *,
        user_id: int,
        station_id: int,
        date: str,
        hour: str,
        is_green: bool,
        now: Optional[datetime] = None,
    ) -> dict[str, Any]:
        reservation_date = parse_client_datetime(date, "date")
        if not hour or not hour.strip():
            raise ValidationError("hour is required")
        if self._repository.get_station(station_id) is None:
            raise NotFoundError("Station")
        if self._repository.get_user(user_id) is None:
            raise NotFoundError("User")

        campaign = self._campaign_service.resolve_active_campaign(station_id, now or utc_now())
        earned_coins = self.earned_coins_for(
            is_green,
            campaign.coin_reward if campaign is not None else 0,
        )

        reservation = self._repository.create_reservation(
            user_id=user_id,
            station_id=station_id,
            date=reservation_date,
            hour=hour.strip(),
            is_green=is_green,
            earned_coins=earned_coins,
        )
        logger.info(
            describe(
                "Reservation created",
                campaign_id=campaign.campaign_id if campaign is not None else None,
                earned_coins=earned_coins,
                is_green=is_green,
                reservation_id=reservation.reservation_id,
                station_id=station_id,
                user_id=user_id,
            )
        )
        return reservation.to_dict()

    def update_status(self, reservation_id: int, status: str) -> dict[str, Any]:
        requested = (status or "").strip().upper()
        if requested not in ReservationStatus.ALL:
            raise ValidationError(f"Invalid reservation status: {status}")
        if requested == ReservationStatus.COMPLETED:
            raise ValidationError("Use the complete operation to finish a reservation")

        reservation = self._repository.set_reservation_status(reservation_id, requested)
        logger.info(
            describe(
                "Reservation status updated",
                reservation_id=reservation_id,
                status=requested,
            )
        )
        return reservation.to_dict()

    def complete(self, reservation_id: int) -> dict[str, Any]:
        """Settle a reservation with its stored coins; callers cannot supply a reward."""
        reservation, user = self._repository.settle_reservation(
            reservation_id,
            xp_delta=self._rewards.xp_per_completion,
            green_co2=self._rewards.green_co2_saved,
            standard_co2=self._rewards.standard_co2_saved,
        )
        logger.info(
            describe(
                "Reservation settled",
                co2_saved=reservation.saved_co2,
                coins=reservation.earned_coins,
                reservation_id=reservation_id,
                user_id=user.user_id,
                xp=self._rewards.xp_per_completion,
            )
        )
        return {"reservation": reservation.to_dict(), "user": user.stats_dict()}

    def get(self, reservation_id: int) -> dict[str, Any]:
        reservation = self._repository.get_reservation(reservation_id)
        if reservation is None:
            raise NotFoundError("Reservation")
        return reservation.to_dict()

    def list_for_user(self, user_id: int) -> list[dict[str, Any]]:
        if self._repository.get_user(user_id) is None:
            raise NotFoundError("User")
        return [
            reservation.to_dict()
            for reservation in self._repository.list_reservations_for_user(user_id)
        ]
