from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from smartcharge.domain.errors import InternalError, NotFoundError, ValidationError
from smartcharge.domain.models import Campaign, CampaignStatus
from smartcharge.repository.data_repository import DataRepository
from smartcharge.services.campaign_service import (
    CampaignService,
    campaign_precedence_key,
    select_active_campaign,
)
from smartcharge.utils.config import get_settings
from smartcharge.utils.dates import utc_now


NOW = datetime(2026, 6, 3, 12, 0, tzinfo=timezone.utc)


def _campaign(campaign_id: int, **overrides) -> Campaign:
    defaults = {
        "campaign_id": campaign_id,
        "title": f"Campaign {campaign_id}",
        "description": "",
        "status": CampaignStatus.ACTIVE,
        "discount": "%10",
        "coin_reward": 0,
        "owner_id": 1,
        "created_at": datetime(2026, 1, 1, tzinfo=timezone.utc),
    }
    defaults.update(overrides)
    return Campaign(**defaults)


def _build_service(tmp_path) -> tuple[CampaignService, DataRepository, int, int]:
    get_settings.cache_clear()
    settings = replace(get_settings(), database_path=tmp_path / "campaigns.db")
    repository = DataRepository(settings)
    repository.initialize_database()
    owner = repository.create_user("Operator", "op@test.com", role="OPERATOR")
    station = repository.create_station(
        name="Station A",
        lat=38.6,
        lng=27.4,
        price=7.0,
        density_profile="central",
        owner_id=owner.user_id,
    )
    service = CampaignService(repository=repository, settings=settings)
    return service, repository, owner.user_id, station.station_id


# --- pure selection ---

def test_station_specific_beats_newer_global() -> None:
    specific = _campaign(1, station_id=7, created_at=datetime(2026, 1, 1, tzinfo=timezone.utc))
    newer_global = _campaign(2, created_at=datetime(2026, 5, 1, tzinfo=timezone.utc))

    assert select_active_campaign([newer_global, specific], 7, NOW) is specific


def test_newest_wins_within_class() -> None:
    old = _campaign(1, created_at=datetime(2026, 1, 1, tzinfo=timezone.utc))
    new = _campaign(2, created_at=datetime(2026, 3, 1, tzinfo=timezone.utc))
    assert select_active_campaign([new, old], 7, NOW) is new


def test_id_breaks_creation_ties() -> None:
    stamp = datetime(2026, 1, 1, tzinfo=timezone.utc)
    lower = _campaign(3, created_at=stamp)
    higher = _campaign(8, created_at=stamp)
    assert select_active_campaign([lower, higher], 7, NOW) is higher
    assert campaign_precedence_key(higher) < campaign_precedence_key(lower)


def test_inactive_expired_and_foreign_campaigns_are_ignored() -> None:
    inactive = _campaign(1, status=CampaignStatus.INACTIVE)
    expired = _campaign(2, end_date=NOW - timedelta(seconds=1))
    ends_now = _campaign(3, end_date=NOW)
    other_station = _campaign(4, station_id=99)

    assert select_active_campaign([inactive, expired, ends_now, other_station], 7, NOW) is None


def test_future_end_date_is_live() -> None:
    live = _campaign(1, end_date=NOW + timedelta(days=1))
    assert select_active_campaign([live], 7, NOW) is live


def test_no_candidates() -> None:
    assert select_active_campaign([], 7, NOW) is None


# --- service ---

def test_resolve_prefers_station_campaign(tmp_path) -> None:
    service, _, owner_id, station_id = _build_service(tmp_path)
    service.create_campaign(owner_id=owner_id, title="Global", description="", discount="%10")
    specific = service.create_campaign(
        owner_id=owner_id,
        title="Local",
        description="",
        discount="%30",
        station_id=station_id,
        coin_reward=25,
    )
    service.create_campaign(owner_id=owner_id, title="Newer Global", description="", discount="%5")

    resolved = service.resolve_active_campaign(station_id)

    assert resolved is not None
    assert resolved.campaign_id == specific["id"]
    assert resolved.coin_reward == 25


def test_resolve_skips_deactivated_campaign(tmp_path) -> None:
    service, _, owner_id, station_id = _build_service(tmp_path)
    created = service.create_campaign(owner_id=owner_id, title="Only", description="", discount="%10")
    service.update_status(created["id"], CampaignStatus.INACTIVE)
    assert service.resolve_active_campaign(station_id) is None


def test_resolve_swallows_lookup_failures(tmp_path, monkeypatch) -> None:
    service, repository, _, station_id = _build_service(tmp_path)

    def _boom(*_args, **_kwargs):
        raise InternalError("Database operation failed")

    monkeypatch.setattr(repository, "list_campaign_candidates", _boom)
    assert service.resolve_active_campaign(station_id) is None


def test_create_campaign_validation(tmp_path) -> None:
    service, _, owner_id, _ = _build_service(tmp_path)
    with pytest.raises(ValidationError):
        service.create_campaign(owner_id=owner_id, title=" ", description="", discount="%10")
    with pytest.raises(ValidationError):
        service.create_campaign(
            owner_id=owner_id, title="T", description="", discount="%10", status="PAUSED"
        )
    with pytest.raises(ValidationError):
        service.create_campaign(
            owner_id=owner_id, title="T", description="", discount="%10", end_date="soon"
        )
    with pytest.raises(NotFoundError):
        service.create_campaign(
            owner_id=owner_id, title="T", description="", discount="%10", station_id=999
        )


def test_owner_listing_and_delete(tmp_path) -> None:
    service, _, owner_id, _ = _build_service(tmp_path)
    first = service.create_campaign(owner_id=owner_id, title="A", description="", discount="%10")
    second = service.create_campaign(
        owner_id=owner_id, title="B", description="", discount="%10", end_date="2030-01-01"
    )

    listed = service.list_by_owner(owner_id)
    assert [row["id"] for row in listed] == [second["id"], first["id"]]
    assert listed[0]["end_date"] == "2030-01-01T00:00:00+00:00"

    with pytest.raises(NotFoundError):
        service.delete_campaign(first["id"], owner_id + 100)
    service.delete_campaign(first["id"], owner_id)
    assert [row["id"] for row in service.list_by_owner(owner_id)] == [second["id"]]


def test_for_user_lists_only_live_campaigns(tmp_path) -> None:
    service, _, owner_id, _ = _build_service(tmp_path)
    live = service.create_campaign(owner_id=owner_id, title="Live", description="", discount="%10")
    service.create_campaign(
        owner_id=owner_id, title="Expired", description="", discount="%10", end_date="2020-01-01"
    )
    service.create_campaign(
        owner_id=owner_id, title="Off", description="", discount="%10", status=CampaignStatus.INACTIVE
    )

    rows = service.list_for_user()

    assert [row["id"] for row in rows] == [live["id"]]
    assert rows[0]["matched_badges"] == []


def test_resolve_compares_end_date_in_utc(tmp_path) -> None:
    service, _, owner_id, station_id = _build_service(tmp_path)
    now = utc_now()
    created = service.create_campaign(
        owner_id=owner_id,
        title="Two hours",
        description="",
        discount="%10",
        end_date=(now + timedelta(hours=2)).isoformat(),
    )

    east = timezone(timedelta(hours=5))
    west = timezone(timedelta(hours=-5))
    for current in (now, now.astimezone(east), now.astimezone(west), now.replace(tzinfo=None)):
        resolved = service.resolve_active_campaign(station_id, current)
        assert resolved is not None
        assert resolved.campaign_id == created["id"]

    after_expiry = (now + timedelta(hours=3)).astimezone(west)
    assert service.resolve_active_campaign(station_id, after_expiry) is None
    assert service.list_for_user(now.astimezone(east))[0]["id"] == created["id"]


def test_update_campaign_replaces_fields(tmp_path) -> None:
    service, repository, owner_id, station_id = _build_service(tmp_path)
    created = service.create_campaign(
        owner_id=owner_id,
        title="Launch",
        description="first",
        discount="%10",
        coin_reward=20,
        end_date="2030-01-01",
        status=CampaignStatus.INACTIVE,
    )

    updated = service.update_campaign(
        created["id"],
        title=" Relaunch ",
        discount="%40",
        coin_reward=70,
        station_id=station_id,
    )

    assert updated["title"] == "Relaunch"
    assert (updated["discount"], updated["coin_reward"]) == ("%40", 70)
    assert updated["station_id"] == station_id
    assert updated["status"] == CampaignStatus.INACTIVE
    assert updated["end_date"] is None
    assert updated["description"] == ""

    cleared = service.update_campaign(
        created["id"], title="Relaunch", discount="%40", status=CampaignStatus.ACTIVE
    )
    assert cleared["coin_reward"] == 0
    assert cleared["station_id"] is None
    assert repository.get_campaign(created["id"]).status == CampaignStatus.ACTIVE


def test_update_campaign_takes_effect_on_resolution(tmp_path) -> None:
    service, _, owner_id, station_id = _build_service(tmp_path)
    created = service.create_campaign(owner_id=owner_id, title="A", description="", discount="%10")

    service.update_campaign(created["id"], title="A", discount="%25", coin_reward=40)

    resolved = service.resolve_active_campaign(station_id)
    assert resolved is not None
    assert (resolved.discount, resolved.coin_reward) == ("%25", 40)


def test_update_campaign_validation(tmp_path) -> None:
    service, _, owner_id, _ = _build_service(tmp_path)
    created = service.create_campaign(owner_id=owner_id, title="A", description="", discount="%10")
    with pytest.raises(NotFoundError):
        service.update_campaign(999, title="A", discount="%10")
    with pytest.raises(ValidationError):
        service.update_campaign(created["id"], title=" ", discount="%10")
    with pytest.raises(ValidationError):
        service.update_campaign(created["id"], title="A", discount="%10", status="PAUSED")
    with pytest.raises(ValidationError):
        service.update_campaign(created["id"], title="A", discount="%10", coin_reward=-1)
    with pytest.raises(NotFoundError):
        service.update_campaign(created["id"], title="A", discount="%10", station_id=999)
