"""Domain records for stations, forecasts, campaigns and reservations."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional


class ReservationStatus:
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"

    ALL = frozenset({PENDING, CONFIRMED, CANCELLED, COMPLETED})
    TERMINAL = frozenset({CANCELLED, COMPLETED})


class CampaignStatus:
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"

    ALL = frozenset({ACTIVE, INACTIVE})


class LoadStatus:
    GREEN = "GREEN"
    YELLOW = "YELLOW"
    RED = "RED"


class UserRole:
    DRIVER = "DRIVER"
    OPERATOR = "OPERATOR"


@dataclass(frozen=True)
class Station:
    station_id: int
    name: str
    lat: float
    lng: float
    price: float
    density_profile: str
    density: int
    address: Optional[str] = None
    owner_id: Optional[int] = None
    owner_name: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.station_id,
            "name": self.name,
            "lat": self.lat,
            "lng": self.lng,
            "address": self.address,
            "price": self.price,
            "density": self.density,
            "density_profile": self.density_profile,
            "owner_id": self.owner_id,
        }


@dataclass(frozen=True)
class ForecastEntry:
    station_id: int
    day_of_week: int
    hour: int
    predicted_load: int


@dataclass(frozen=True)
class Badge:
    badge_id: int
    name: str
    description: str
    icon: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.badge_id,
            "name": self.name,
            "description": self.description,
            "icon": self.icon,
        }


@dataclass(frozen=True)
class Campaign:
    campaign_id: int
    title: str
    description: str
    status: str
    discount: str
    coin_reward: int
    owner_id: int
    created_at: datetime
    target: str = ""
    station_id: Optional[int] = None
    end_date: Optional[datetime] = None
    station_name: Optional[str] = None
    target_badges: tuple[Badge, ...] = field(default_factory=tuple)

    @property
    def is_global(self) -> bool:
        return self.station_id is None

    def is_live(self, now: datetime) -> bool:
        if self.status != CampaignStatus.ACTIVE:
            return False
        return self.end_date is None or self.end_date > now

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.campaign_id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "target": self.target,
            "discount": self.discount,
            "coin_reward": self.coin_reward,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "station_id": self.station_id,
            "station_name": self.station_name,
            "owner_id": self.owner_id,
            "created_at": self.created_at.isoformat(),
            "target_badges": [badge.to_dict() for badge in self.target_badges],
        }


@dataclass(frozen=True)
class Reservation:
    reservation_id: int
    user_id: int
    station_id: int
    date: datetime
    hour: str
    is_green: bool
    earned_coins: int
    saved_co2: float
    status: str
    station_name: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in ReservationStatus.TERMINAL

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.reservation_id,
            "user_id": self.user_id,
            "station_id": self.station_id,
            "date": self.date.isoformat(),
            "hour": self.hour,
            "is_green": self.is_green,
            "earned_coins": self.earned_coins,
            "saved_co2": self.saved_co2,
            "status": self.status,
        }
        if self.station_name is not None:
            payload["station_name"] = self.station_name
        return payload


@dataclass(frozen=True)
class User:
    user_id: int
    name: str
    email: str
    role: str
    coins: int
    co2_saved: float
    xp: int

    def stats_dict(self) -> dict[str, Any]:
        return {
            "id": self.user_id,
            "coins": self.coins,
            "co2_saved": self.co2_saved,
            "xp": self.xp,
        }


@dataclass(frozen=True)
class SlotDescriptor:
    """One bookable hour of a station's day."""

    hour: int
    label: str
    start_time: str
    is_green: bool
    coins: int
    price: float
    status: str
    load: int
    campaign_title: Optional[str] = None
    campaign_discount: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        campaign_applied = None
        if self.campaign_title is not None:
            campaign_applied = {
                "title": self.campaign_title,
                "discount": self.campaign_discount,
            }
        return {
            "hour": self.hour,
            "label": self.label,
            "start_time": self.start_time,
            "is_green": self.is_green,
            "coins": self.coins,
            "price": self.price,
            "status": self.status,
            "load": self.load,
            "campaign_applied": campaign_applied,
        }


@dataclass(frozen=True)
class StationReservationStats:
    total_reservations: int
    green_reservations: int
    revenue: float
