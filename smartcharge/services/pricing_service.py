"""Hourly slot pricing, coin incentives and congestion labels."""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Mapping, Optional

from smartcharge.domain.constraints import PricingPolicy, validate_pricing_policy
from smartcharge.domain.errors import NotFoundError
from smartcharge.domain.models import Campaign, LoadStatus, SlotDescriptor, Station
from smartcharge.repository.data_repository import DataRepository
from smartcharge.services.campaign_service import CampaignService, parse_discount_rate
from smartcharge.utils.config import Settings, get_settings
from smartcharge.utils.dates import ensure_utc, utc_now


HOURS_PER_DAY = 24


def round_price(value: float) -> float:
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def classify_load(load: int, policy: PricingPolicy = PricingPolicy()) -> str:
    """Three-tier label used by the station list and operator dashboard."""
    if load > policy.red_load_threshold:
        return LoadStatus.RED
    if load > policy.yellow_load_threshold:
        return LoadStatus.YELLOW
    return LoadStatus.GREEN


def slot_status(is_green: bool) -> str:
    """Per-slot label: green hours are GREEN, every other hour is RED."""
    return LoadStatus.GREEN if is_green else LoadStatus.RED


def is_green_hour(hour: int, policy: PricingPolicy = PricingPolicy()) -> bool:
    # Inclusive on both ends: 23,0,1,...,6 is eight hours.
    return hour >= policy.green_start_hour or hour <= policy.green_end_hour


def compute_slot_price(
    base_price: float,
    is_green: bool,
    discount_rate: float,
    policy: PricingPolicy = PricingPolicy(),
) -> float:
    """Unrounded price; the green and campaign discounts compose multiplicatively."""
    price = base_price
    if is_green:
        price *= policy.green_price_multiplier
    if discount_rate > 0:
        price *= 1 - discount_rate
    return price


def compute_slot_coins(
    is_green: bool,
    campaign: Optional[Campaign],
    policy: PricingPolicy = PricingPolicy(),
) -> int:
    coins = policy.green_coins if is_green else policy.base_coins
    if campaign is not None and campaign.coin_reward > 0:
        coins += campaign.coin_reward
    return coins


def compute_day_slots(
    station: Station,
    campaign: Optional[Campaign],
    loads: Mapping[int, int],
    day_start: datetime,
    policy: PricingPolicy = PricingPolicy(),
) -> list[SlotDescriptor]:
    """Build the 24 hourly slots of one day for a station.

    ``loads`` maps hour to forecast load; hours without a forecast use the
    station's cached density.
    """
    discount_rate = parse_discount_rate(campaign.discount) if campaign is not None else 0.0
    slots: list[SlotDescriptor] = []
    for hour in range(HOURS_PER_DAY):
        green = is_green_hour(hour, policy)
        slot_start = ensure_utc(day_start + timedelta(hours=hour))
        slots.append(
            SlotDescriptor(
                hour=hour,
                label=f"{hour:02d}:00",
                start_time=slot_start.isoformat(),
                is_green=green,
                coins=compute_slot_coins(green, campaign, policy),
                price=round_price(
                    compute_slot_price(station.price, green, discount_rate, policy)
                ),
                status=slot_status(green),
                load=int(loads.get(hour, station.density)),
                campaign_title=campaign.title if campaign is not None else None,
                campaign_discount=campaign.discount if campaign is not None else None,
            )
        )
    return slots


class StationPricingService:
    """Read-only station views backed by forecasts and the active campaign."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        campaign_service: Optional[CampaignService] = None,
        settings: Optional[Settings] = None,
        policy: PricingPolicy = PricingPolicy(),
    ) -> None:
        validate_pricing_policy(policy)
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._campaign_service = campaign_service or CampaignService(
            repository=self._repository,
            settings=self._settings,
        )
        self._policy = policy

    def list_stations(self) -> list[dict[str, Any]]:
        return [
            {
                "id": station.station_id,
                "name": station.name,
                "lat": station.lat,
                "lng": station.lng,
                "price": round_price(station.price),
                "owner_id": station.owner_id,
                "owner_name": station.owner_name,
                "load": station.density,
                "load_status": classify_load(station.density, self._policy),
                "next_green_hour": self._policy.next_green_hour_label,
            }
            for station in self._repository.list_stations()
        ]

    def get_station_detail(
        self,
        station_id: int,
        now: Optional[datetime] = None,
    ) -> dict[str, Any]:
        station = self._repository.get_station(station_id)
        if station is None:
            raise NotFoundError("Station")

        current = ensure_utc(now) if now else utc_now()
        campaign = self._campaign_service.resolve_active_campaign(station_id, current)
        loads = self._repository.get_forecast_day(station_id, current.weekday())
        day_start = current.replace(hour=0, minute=0, second=0, microsecond=0)
        slots = compute_day_slots(station, campaign, loads, day_start, self._policy)

        active_campaign = None
        if campaign is not None:
            active_campaign = {
                "id": campaign.campaign_id,
                "title": campaign.title,
                "description": campaign.description,
                "discount": campaign.discount,
                "coin_reward": campaign.coin_reward,
                "station_id": campaign.station_id,
            }

        payload = station.to_dict()
        payload["slots"] = [slot.to_dict() for slot in slots]
        payload["active_campaign"] = active_campaign
        return payload
