"""Operator dashboard: owned stations, reservation stats and station CRUD."""

from __future__ import annotations

from typing import Any, Optional

from smartcharge.domain.constraints import FLAT_PROFILE, PricingPolicy, validate_pricing_policy
from smartcharge.domain.errors import NotFoundError, ValidationError
from smartcharge.repository.data_repository import DataRepository
from smartcharge.services.forecast_service import round_half_up
from smartcharge.services.pricing_service import classify_load, round_price
from smartcharge.utils.config import Settings, get_settings
from smartcharge.utils.logger import describe, get_logger


logger = get_logger(__name__)


def _validate_coordinates(lat: float, lng: float) -> None:
    if not -90.0 <= lat <= 90.0:
        raise ValidationError("lat must be between -90 and 90")
    if not -180.0 <= lng <= 180.0:
        raise ValidationError("lng must be between -180 and 180")


class OperatorService:
    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
        policy: PricingPolicy = PricingPolicy(),
    ) -> None:
        validate_pricing_policy(policy)
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._policy = policy

    def list_my_stations(self, owner_id: int) -> dict[str, Any]:
        stations: list[dict[str, Any]] = []
        total_revenue = 0.0
        total_reservations = 0
        total_green = 0
        total_load = 0

        for station in self._repository.list_stations_by_owner(owner_id):
            stats = self._repository.get_station_reservation_stats(station.station_id)
            stations.append(
                {
                    "id": station.station_id,
                    "name": station.name,
                    "lat": station.lat,
                    "lng": station.lng,
                    "address": station.address,
                    "price": round_price(station.price),
                    "load": station.density,
                    "status": classify_load(station.density, self._policy),
                    "reservation_count": stats.total_reservations,
                    "green_reservation_count": stats.green_reservations,
                    "revenue": round_price(stats.revenue),
                }
            )
            total_revenue += stats.revenue
            total_reservations += stats.total_reservations
            total_green += stats.green_reservations
            total_load += station.density

        green_share = 0.0
        if total_reservations > 0:
            green_share = round_price(total_green / total_reservations * 100)
        avg_load = round_half_up(total_load / len(stations)) if stations else 0

        return {
            "stats": {
                "total_revenue": round_price(total_revenue),
                "total_reservations": total_reservations,
                "green_share": green_share,
                "avg_load": avg_load,
            },
            "stations": stations,
        }

    def create_station(
        self,
        owner_id: int,
        *,
        name: str,
        lat: float,
        lng: float,
        price: float,
        address: Optional[str] = None,
    ) -> dict[str, Any]:
        if not name.strip():
            raise ValidationError("name is required")
        if price <= 0:
            raise ValidationError("price must be > 0")
        _validate_coordinates(lat, lng)
        if self._repository.get_user(owner_id) is None:
            raise NotFoundError("User")

        station = self._repository.create_station(
            name=name.strip(),
            lat=lat,
            lng=lng,
            price=price,
            address=address,
            density_profile=FLAT_PROFILE,
            owner_id=owner_id,
            density=self._settings.default_density,
        )
        logger.info(describe("Station created", owner_id=owner_id, station_id=station.station_id))
        return station.to_dict()

    def update_station(
        self,
        station_id: int,
        *,
        name: Optional[str] = None,
        lat: Optional[float] = None,
        lng: Optional[float] = None,
        price: Optional[float] = None,
        address: Optional[str] = None,
    ) -> dict[str, Any]:
        existing = self._repository.get_station(station_id)
        if existing is None:
            raise NotFoundError("Station")
        if name is not None and not name.strip():
            raise ValidationError("name is required")

        resolved_price = existing.price if price is None else price
        if resolved_price <= 0:
            raise ValidationError("price must be > 0")
        resolved_lat = existing.lat if lat is None else lat
        resolved_lng = existing.lng if lng is None else lng
        _validate_coordinates(resolved_lat, resolved_lng)

        updated = self._repository.update_station(
            station_id,
            name=existing.name if name is None else name.strip(),
            lat=resolved_lat,
            lng=resolved_lng,
            price=resolved_price,
            address=existing.address if address is None else address,
        )
        if updated is None:
            raise NotFoundError("Station")
        return updated.to_dict()

    def delete_station(self, station_id: int) -> None:
        self._repository.delete_station(station_id)
        logger.info(describe("Station deleted", station_id=station_id))
