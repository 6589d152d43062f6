"""Immutable pricing, reward and load-profile rules with their validation."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping


@dataclass(frozen=True)
class ProfileConfig:
    """Synthetic load archetype for a station."""

    base_load: float
    peak_multiplier: float
    variance: float


@dataclass(frozen=True)
class PricingPolicy:
    green_start_hour: int = 23
    green_end_hour: int = 6
    green_price_multiplier: float = 0.8
    base_coins: int = 10
    green_coins: int = 50
    red_load_threshold: int = 65
    yellow_load_threshold: int = 45
    next_green_hour_label: str = "23:00"


@dataclass(frozen=True)
class RewardPolicy:
    base_coins: int = 10
    green_coins: int = 50
    xp_per_completion: int = 100
    green_co2_saved: float = 2.5
    standard_co2_saved: float = 0.5


DEFAULT_PROFILES: Mapping[str, ProfileConfig] = MappingProxyType(
    {
        "central": ProfileConfig(base_load=50.0, peak_multiplier=1.8, variance=15.0),
        "suburban": ProfileConfig(base_load=35.0, peak_multiplier=1.5, variance=12.0),
        "outskirt": ProfileConfig(base_load=20.0, peak_multiplier=1.3, variance=8.0),
    }
)

# Profile tag given to operator-created stations; it has no synthetic history.
FLAT_PROFILE = "flat"


def validate_profile_config(name: str, config: ProfileConfig) -> None:
    if not name.strip():
        raise ValueError("profile name must be non-empty")
    if not 0.0 <= config.base_load <= 100.0:
        raise ValueError(f"{name}: base_load must be between 0 and 100")
    if config.peak_multiplier <= 0.0:
        raise ValueError(f"{name}: peak_multiplier must be > 0")
    if config.variance < 0.0:
        raise ValueError(f"{name}: variance must be >= 0")


def validate_pricing_policy(policy: PricingPolicy) -> None:
    for hour in (policy.green_start_hour, policy.green_end_hour):
        if not 0 <= hour <= 23:
            raise ValueError("green window hours must be between 0 and 23")
    if not 0.0 < policy.green_price_multiplier <= 1.0:
        raise ValueError("green_price_multiplier must be in (0, 1]")
    if policy.base_coins < 0 or policy.green_coins < 0:
        raise ValueError("coin amounts must be >= 0")
    if policy.yellow_load_threshold >= policy.red_load_threshold:
        raise ValueError("yellow_load_threshold must be below red_load_threshold")


def validate_reward_policy(policy: RewardPolicy) -> None:
    if policy.base_coins < 0 or policy.green_coins < 0:
        raise ValueError("coin amounts must be >= 0")
    if policy.xp_per_completion < 0:
        raise ValueError("xp_per_completion must be >= 0")
    if policy.green_co2_saved < 0.0 or policy.standard_co2_saved < 0.0:
        raise ValueError("co2 savings must be >= 0")
