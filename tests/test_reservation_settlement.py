from __future__ import annotations

import sqlite3
import threading
from contextlib import closing
from dataclasses import replace

import pytest

from smartcharge.domain.errors import (
    AlreadyCompletedError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from smartcharge.domain.models import CampaignStatus, ReservationStatus
from smartcharge.repository.data_repository import DataRepository
from smartcharge.services.campaign_service import CampaignService
from smartcharge.services.reservation_service import ReservationService
from smartcharge.utils.config import get_settings


def _build_test_settings(tmp_path, filename: str):
    get_settings.cache_clear()
    base = get_settings()
    return replace(base, database_path=tmp_path / filename, database_busy_timeout_seconds=30.0)


class _World:
    def __init__(self, tmp_path, filename: str = "settlement.db") -> None:
        settings = _build_test_settings(tmp_path, filename)
        self.repository = DataRepository(settings)
        self.repository.initialize_database()
        self.operator = self.repository.create_user("Operator", "op@test.com", role="OPERATOR")
        self.driver = self.repository.create_user("Driver", "driver@test.com")
        self.station = self.repository.create_station(
            name="Station A",
            lat=38.6,
            lng=27.4,
            price=7.5,
            density_profile="central",
            owner_id=self.operator.user_id,
        )
        self.campaigns = CampaignService(repository=self.repository, settings=settings)
        self.reservations = ReservationService(
            repository=self.repository,
            campaign_service=self.campaigns,
            settings=settings,
        )

    def book(self, *, is_green: bool, date: str = "2026-06-03", hour: str = "23:00") -> dict:
        return self.reservations.create(
            user_id=self.driver.user_id,
            station_id=self.station.station_id,
            date=date,
            hour=hour,
            is_green=is_green,
        )

    def add_campaign(self, coin_reward: int, **overrides) -> dict:
        return self.campaigns.create_campaign(
            owner_id=self.operator.user_id,
            title=overrides.pop("title", f"Bonus {coin_reward}"),
            description="",
            discount=overrides.pop("discount", "%10"),
            coin_reward=coin_reward,
            **overrides,
        )


@pytest.fixture()
def world(tmp_path) -> _World:
    return _World(tmp_path)


# --- creation ---

def test_green_booking_without_campaign_earns_fifty(world: _World) -> None:
    reservation = world.book(is_green=True)

    assert reservation["earned_coins"] == 50
    assert reservation["status"] == ReservationStatus.PENDING
    assert reservation["saved_co2"] == 0.0
    assert reservation["station_name"] == "Station A"
    assert reservation["date"] == "2026-06-03T00:00:00+00:00"


def test_campaign_coins_are_added_at_booking(world: _World) -> None:
    world.add_campaign(100)
    assert world.book(is_green=False)["earned_coins"] == 110
    assert world.book(is_green=True)["earned_coins"] == 150


def test_station_campaign_takes_precedence_over_global(world: _World) -> None:
    world.add_campaign(20, station_id=world.station.station_id)
    world.add_campaign(300)
    assert world.book(is_green=False)["earned_coins"] == 30


def test_rfc3339_dates_are_accepted(world: _World) -> None:
    reservation = world.book(is_green=False, date="2026-06-03T18:00:00Z")
    assert reservation["date"] == "2026-06-03T18:00:00+00:00"


def test_invalid_booking_inputs(world: _World) -> None:
    with pytest.raises(ValidationError):
        world.book(is_green=False, date="03/06/2026")
    with pytest.raises(ValidationError):
        world.book(is_green=False, date="")
    with pytest.raises(ValidationError):
        world.book(is_green=False, hour="  ")
    with pytest.raises(NotFoundError):
        world.reservations.create(
            user_id=world.driver.user_id, station_id=999, date="2026-06-03", hour="10:00", is_green=False
        )
    with pytest.raises(NotFoundError):
        world.reservations.create(
            user_id=999, station_id=world.station.station_id, date="2026-06-03", hour="10:00", is_green=False
        )


# --- settlement ---

def test_complete_green_reservation_credits_user(world: _World) -> None:
    created = world.book(is_green=True)

    result = world.reservations.complete(created["id"])

    assert result["reservation"]["status"] == ReservationStatus.COMPLETED
    assert result["reservation"]["saved_co2"] == pytest.approx(2.5)
    assert result["user"] == {
        "id": world.driver.user_id,
        "coins": 50,
        "co2_saved": pytest.approx(2.5),
        "xp": 100,
    }


def test_complete_standard_reservation_uses_standard_co2(world: _World) -> None:
    created = world.book(is_green=False)
    result = world.reservations.complete(created["id"])
    assert result["user"]["coins"] == 10
    assert result["user"]["co2_saved"] == pytest.approx(0.5)


def test_complete_twice_credits_once(world: _World) -> None:
    created = world.book(is_green=True)
    world.reservations.complete(created["id"])

    with pytest.raises(AlreadyCompletedError):
        world.reservations.complete(created["id"])

    user = world.repository.get_user(world.driver.user_id)
    assert (user.coins, user.xp) == (50, 100)


def test_campaign_changes_after_booking_do_not_change_credit(world: _World) -> None:
    campaign = world.add_campaign(100)
    created = world.book(is_green=True)
    assert created["earned_coins"] == 150

    world.campaigns.update_status(campaign["id"], CampaignStatus.INACTIVE)
    world.add_campaign(1000, title="Mega bonus")

    result = world.reservations.complete(created["id"])
    assert result["user"]["coins"] == 150


def test_concurrent_completion_credits_exactly_once(world: _World) -> None:
    created = world.book(is_green=True)
    workers = 8
    barrier = threading.Barrier(workers)
    outcomes: list[str] = []
    lock = threading.Lock()

    def _settle() -> None:
        barrier.wait()
        try:
            world.reservations.complete(created["id"])
            outcome = "ok"
        except AlreadyCompletedError:
            outcome = "already"
        except Exception as exc:  # pragma: no cover - surfaced by the assertion below
            outcome = f"error:{exc!r}"
        with lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=_settle) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(outcomes) == ["already"] * (workers - 1) + ["ok"]
    user = world.repository.get_user(world.driver.user_id)
    assert (user.coins, user.xp) == (50, 100)
    assert user.co2_saved == pytest.approx(2.5)


def test_failed_credit_rolls_back_status_change(world: _World) -> None:
    created = world.book(is_green=True)
    with closing(sqlite3.connect(world.repository.database_path)) as conn, conn:
        conn.execute(
            """
            CREATE TRIGGER block_user_credit BEFORE UPDATE ON Users
            BEGIN
                SELECT RAISE(ABORT, 'credit blocked');
            END;
            """
        )

    with pytest.raises(InternalError):
        world.reservations.complete(created["id"])

    reservation = world.repository.get_reservation(created["id"])
    assert reservation.status == ReservationStatus.PENDING
    assert reservation.saved_co2 == 0.0
    assert world.repository.get_user(world.driver.user_id).coins == 0

    with closing(sqlite3.connect(world.repository.database_path)) as conn, conn:
        conn.execute("DROP TRIGGER block_user_credit;")

    result = world.reservations.complete(created["id"])
    assert result["user"]["coins"] == 50


def test_complete_missing_reservation(world: _World) -> None:
    with pytest.raises(NotFoundError):
        world.reservations.complete(12345)


# --- status updates ---

def test_status_update_flow(world: _World) -> None:
    created = world.book(is_green=False)

    confirmed = world.reservations.update_status(created["id"], "confirmed")
    assert confirmed["status"] == ReservationStatus.CONFIRMED
    assert confirmed["earned_coins"] == created["earned_coins"]

    with pytest.raises(ValidationError):
        world.reservations.update_status(created["id"], ReservationStatus.COMPLETED)
    with pytest.raises(ValidationError):
        world.reservations.update_status(created["id"], "DONE")
    with pytest.raises(NotFoundError):
        world.reservations.update_status(999, ReservationStatus.CANCELLED)


def test_completed_reservation_is_terminal(world: _World) -> None:
    created = world.book(is_green=False)
    world.reservations.complete(created["id"])

    with pytest.raises(AlreadyCompletedError):
        world.reservations.update_status(created["id"], ReservationStatus.CANCELLED)
    assert world.reservations.get(created["id"])["status"] == ReservationStatus.COMPLETED


def test_cancelled_reservation_is_terminal(world: _World) -> None:
    created = world.book(is_green=True)
    world.reservations.update_status(created["id"], ReservationStatus.CANCELLED)

    with pytest.raises(AlreadyCompletedError):
        world.reservations.complete(created["id"])
    with pytest.raises(AlreadyCompletedError):
        world.reservations.update_status(created["id"], ReservationStatus.PENDING)
    assert world.repository.get_user(world.driver.user_id).coins == 0


# --- listing ---

def test_list_for_user_newest_date_first(world: _World) -> None:
    older = world.book(is_green=False, date="2026-06-01")
    newer = world.book(is_green=True, date="2026-06-05")

    rows = world.reservations.list_for_user(world.driver.user_id)

    assert [row["id"] for row in rows] == [newer["id"], older["id"]]
    assert all(row["station_name"] == "Station A" for row in rows)
    with pytest.raises(NotFoundError):
        world.reservations.list_for_user(999)
