"""Seed catalog: demo users, badges, stations and campaigns."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


@dataclass(frozen=True)
class UserSeed:
    name: str
    email: str
    role: str
    badge_names: tuple[str, ...] = ()


@dataclass(frozen=True)
class BadgeSeed:
    name: str
    description: str
    icon: str


@dataclass(frozen=True)
class StationSeed:
    name: str
    lat: float
    lng: float
    price: float
    address: str
    density: int
    density_profile: str


@dataclass(frozen=True)
class CampaignSeed:
    title: str
    description: str
    target: str
    discount: str
    coin_reward: int
    end_date: Optional[datetime]
    badge_names: tuple[str, ...] = ()


@dataclass(frozen=True)
class SeedCatalog:
    """Everything written by a first-run seed; owner of stations is the first operator."""

    users: tuple[UserSeed, ...] = field(default_factory=tuple)
    badges: tuple[BadgeSeed, ...] = field(default_factory=tuple)
    stations: tuple[StationSeed, ...] = field(default_factory=tuple)
    campaigns: tuple[CampaignSeed, ...] = field(default_factory=tuple)


DEFAULT_CATALOG = SeedCatalog(
    users=(
        UserSeed(name="Zorlu Enerji", email="info@zorlu.com", role="OPERATOR"),
        UserSeed(
            name="Demo Driver",
            email="driver@test.com",
            role="DRIVER",
            badge_names=("Night Owl", "Eco Champion", "Weekend Warrior", "Early Bird"),
        ),
    ),
    badges=(
        BadgeSeed("Night Owl", "Charge five times on the night tariff", "owl"),
        BadgeSeed("Eco Champion", "Prefer green-energy stations", "seedling"),
        BadgeSeed("Weekend Warrior", "Charge on weekends", "beach"),
        BadgeSeed("Early Bird", "Charge between 06:00 and 09:00", "sunrise"),
        BadgeSeed("Long Hauler", "Charge at intercity stations", "road"),
    ),
    stations=(
        StationSeed("Manisa Magnesia AVM", 38.614, 27.405, 7.5, "Laleli, Manisa", 85, "central"),
        StationSeed("Uncubozkoy Campus", 38.625, 27.420, 6.0, "Uncubozkoy, Manisa", 40, "suburban"),
        StationSeed("Manisa Organized Industry", 38.580, 27.350, 8.5, "MOSB 1, Manisa", 90, "central"),
        StationSeed("Manisa Prime AVM", 38.618, 27.412, 7.8, "Guzelyurt, Manisa", 65, "suburban"),
        StationSeed("Spil Mountain Park", 38.550, 27.450, 9.5, "Spil Summit Road, Manisa", 10, "outskirt"),
        StationSeed("Manisa City Hospital", 38.605, 27.380, 6.5, "Adnan Menderes, Manisa", 75, "central"),
        StationSeed("Muradiye Campus", 38.650, 27.320, 5.5, "Muradiye, Manisa", 30, "outskirt"),
        StationSeed("Saruhanli Center", 38.730, 27.570, 7.0, "Saruhanli Square, Manisa", 20, "outskirt"),
        StationSeed("Turgutlu Highway Exit", 38.490, 27.700, 8.0, "E-96 Highway, Turgutlu", 50, "suburban"),
        StationSeed("Akhisar Novada", 38.920, 27.830, 7.5, "Akhisar Ring Road, Manisa", 60, "suburban"),
        StationSeed("Manisa Bus Terminal", 38.610, 27.430, 6.8, "New Terminal, Manisa", 55, "suburban"),
        StationSeed("Manisa Train Station", 38.608, 27.432, 6.5, "Istasyon St., Manisa", 30, "outskirt"),
        StationSeed("Manisa Kent Park", 38.612, 27.415, 7.2, "Kent Park, Manisa", 75, "central"),
        StationSeed("Izmir Bornova DC", 38.460, 27.220, 9.0, "Bornova, Izmir", 95, "central"),
        StationSeed("Alsancak Port", 38.435, 27.150, 10.0, "Alsancak Port St., Izmir", 80, "central"),
    ),
    campaigns=(
        CampaignSeed(
            title="Night Owl Special - 20% Off",
            description="Charge between 22:00 and 06:00 for 20% off.",
            target="Drivers holding the Night Owl badge",
            discount="%20",
            coin_reward=100,
            end_date=datetime(2027, 3, 1, tzinfo=timezone.utc),
            badge_names=("Night Owl",),
        ),
        CampaignSeed(
            title="Eco Deal - 2x Coin",
            description="Charge at green-energy stations and earn double coins.",
            target="Drivers holding the Eco Champion badge",
            discount="2x Coin",
            coin_reward=200,
            end_date=datetime(2027, 2, 28, tzinfo=timezone.utc),
            badge_names=("Eco Champion",),
        ),
        CampaignSeed(
            title="Weekend Escape - First Hour Free",
            description="For drivers who like to charge on weekends.",
            target="Drivers holding the Weekend Warrior badge",
            discount="First hour free",
            coin_reward=75,
            end_date=datetime(2027, 2, 15, tzinfo=timezone.utc),
            badge_names=("Weekend Warrior",),
        ),
        CampaignSeed(
            title="Early Bird - 15% Off",
            description="Charge between 06:00 and 09:00 for 15% off.",
            target="Drivers holding the Early Bird badge",
            discount="%15",
            coin_reward=50,
            end_date=datetime(2027, 3, 15, tzinfo=timezone.utc),
            badge_names=("Early Bird",),
        ),
    ),
)
