"""Repository layer responsible for all database access."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterable, Iterator, Optional

from smartcharge.domain.catalog import SeedCatalog
from smartcharge.domain.errors import (
    AlreadyCompletedError,
    ConflictError,
    InternalError,
    NotFoundError,
    SmartChargeError,
)
from smartcharge.domain.models import (
    Badge,
    Campaign,
    CampaignStatus,
    ForecastEntry,
    Reservation,
    ReservationStatus,
    Station,
    StationReservationStats,
    User,
    UserRole,
)
from smartcharge.utils.config import Settings, get_settings
from smartcharge.utils.dates import ensure_utc, from_storage, utc_now
from smartcharge.utils.logger import describe, get_logger


logger = get_logger(__name__)


_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS Users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        email TEXT NOT NULL UNIQUE,
        role TEXT NOT NULL DEFAULT 'DRIVER',
        coins INTEGER NOT NULL DEFAULT 0 CHECK (coins >= 0),
        co2_saved REAL NOT NULL DEFAULT 0 CHECK (co2_saved >= 0),
        xp INTEGER NOT NULL DEFAULT 0 CHECK (xp >= 0),
        created_at TEXT NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS Badges (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL UNIQUE,
        description TEXT NOT NULL,
        icon TEXT NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS UserBadges (
        user_id INTEGER NOT NULL,
        badge_id INTEGER NOT NULL,
        PRIMARY KEY (user_id, badge_id),
        FOREIGN KEY (user_id) REFERENCES Users(id) ON DELETE CASCADE,
        FOREIGN KEY (badge_id) REFERENCES Badges(id) ON DELETE CASCADE
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS Stations (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        lat REAL NOT NULL,
        lng REAL NOT NULL,
        address TEXT,
        price REAL NOT NULL CHECK (price >= 0),
        density INTEGER NOT NULL DEFAULT 50 CHECK (density BETWEEN 0 AND 100),
        density_profile TEXT NOT NULL,
        owner_id INTEGER,
        created_at TEXT NOT NULL,
        FOREIGN KEY (owner_id) REFERENCES Users(id) ON DELETE SET NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS StationDensityForecasts (
        station_id INTEGER NOT NULL,
        day_of_week INTEGER NOT NULL CHECK (day_of_week BETWEEN 0 AND 6),
        hour INTEGER NOT NULL CHECK (hour BETWEEN 0 AND 23),
        predicted_load INTEGER NOT NULL CHECK (predicted_load BETWEEN 0 AND 100),
        updated_at TEXT NOT NULL,
        PRIMARY KEY (station_id, day_of_week, hour),
        FOREIGN KEY (station_id) REFERENCES Stations(id) ON DELETE CASCADE
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS Campaigns (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        title TEXT NOT NULL,
        description TEXT NOT NULL DEFAULT '',
        status TEXT NOT NULL DEFAULT 'ACTIVE',
        target TEXT NOT NULL DEFAULT '',
        discount TEXT NOT NULL,
        coin_reward INTEGER NOT NULL DEFAULT 0 CHECK (coin_reward >= 0),
        end_date TEXT,
        owner_id INTEGER NOT NULL,
        station_id INTEGER,
        created_at TEXT NOT NULL,
        FOREIGN KEY (owner_id) REFERENCES Users(id) ON DELETE CASCADE,
        FOREIGN KEY (station_id) REFERENCES Stations(id) ON DELETE CASCADE
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS CampaignTargetBadges (
        campaign_id INTEGER NOT NULL,
        badge_id INTEGER NOT NULL,
        PRIMARY KEY (campaign_id, badge_id),
        FOREIGN KEY (campaign_id) REFERENCES Campaigns(id) ON DELETE CASCADE,
        FOREIGN KEY (badge_id) REFERENCES Badges(id) ON DELETE CASCADE
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS Reservations (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL,
        station_id INTEGER NOT NULL,
        date TEXT NOT NULL,
        hour TEXT NOT NULL,
        is_green INTEGER NOT NULL CHECK (is_green IN (0, 1)),
        earned_coins INTEGER NOT NULL CHECK (earned_coins >= 0),
        saved_co2 REAL NOT NULL DEFAULT 0,
        status TEXT NOT NULL DEFAULT 'PENDING'
            CHECK (status IN ('PENDING', 'CONFIRMED', 'CANCELLED', 'COMPLETED')),
        created_at TEXT NOT NULL,
        FOREIGN KEY (user_id) REFERENCES Users(id),
        FOREIGN KEY (station_id) REFERENCES Stations(id)
    );
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_campaigns_station_status
    ON Campaigns(station_id, status, end_date);
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_reservations_user
    ON Reservations(user_id, created_at);
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_reservations_station
    ON Reservations(station_id);
    """,
)


_STATION_COLUMNS = """
    s.id, s.name, s.lat, s.lng, s.address, s.price, s.density,
    s.density_profile, s.owner_id, u.name AS owner_name
"""

_CAMPAIGN_COLUMNS = """
    c.id, c.title, c.description, c.status, c.target, c.discount,
    c.coin_reward, c.end_date, c.owner_id, c.station_id, c.created_at,
    s.name AS station_name
"""

_RESERVATION_COLUMNS = """
    r.id, r.user_id, r.station_id, r.date, r.hour, r.is_green,
    r.earned_coins, r.saved_co2, r.status, s.name AS station_name
"""


def _station_from_row(row: sqlite3.Row) -> Station:
    return Station(
        station_id=int(row["id"]),
        name=str(row["name"]),
        lat=float(row["lat"]),
        lng=float(row["lng"]),
        address=row["address"],
        price=float(row["price"]),
        density=int(row["density"]),
        density_profile=str(row["density_profile"]),
        owner_id=None if row["owner_id"] is None else int(row["owner_id"]),
        owner_name=row["owner_name"],
    )


def _reservation_from_row(row: sqlite3.Row) -> Reservation:
    return Reservation(
        reservation_id=int(row["id"]),
        user_id=int(row["user_id"]),
        station_id=int(row["station_id"]),
        date=from_storage(str(row["date"])),
        hour=str(row["hour"]),
        is_green=bool(row["is_green"]),
        earned_coins=int(row["earned_coins"]),
        saved_co2=float(row["saved_co2"]),
        status=str(row["status"]),
        station_name=row["station_name"],
    )


def _user_from_row(row: sqlite3.Row) -> User:
    return User(
        user_id=int(row["id"]),
        name=str(row["name"]),
        email=str(row["email"]),
        role=str(row["role"]),
        coins=int(row["coins"]),
        co2_saved=float(row["co2_saved"]),
        xp=int(row["xp"]),
    )


def _badge_from_row(row: sqlite3.Row) -> Badge:
    return Badge(
        badge_id=int(row["id"]),
        name=str(row["name"]),
        description=str(row["description"]),
        icon=str(row["icon"]),
    )


class DataRepository:
    """Encapsulates SQLite access so business logic stays storage-agnostic."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._db_path = Path(self._settings.database_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def database_path(self) -> Path:
        return self._db_path

    @contextmanager
    def _session(self, *, immediate: bool = False) -> Iterator[sqlite3.Connection]:
        """Run one transaction; IMMEDIATE takes the write lock up front."""
        connection = sqlite3.connect(
            self._db_path,
            timeout=self._settings.database_busy_timeout_seconds,
            isolation_level=None,
        )
        connection.row_factory = sqlite3.Row
        try:
            connection.execute("PRAGMA foreign_keys = ON;")
            connection.execute("BEGIN IMMEDIATE;" if immediate else "BEGIN;")
            try:
                yield connection
            except BaseException:
                if connection.in_transaction:
                    connection.execute("ROLLBACK;")
                raise
            connection.execute("COMMIT;")
        except SmartChargeError:
            raise
        except sqlite3.IntegrityError as exc:
            raise ConflictError(f"Constraint violated: {exc}") from exc
        except sqlite3.Error as exc:
            logger.error(describe("Database failure", path=self._db_path, error=exc))
            raise InternalError("Database operation failed") from exc
        finally:
            connection.close()

    def initialize_database(self) -> None:
        """Create all persistence artifacts before API startup."""
        with self._session() as conn:
            for statement in _SCHEMA:
                conn.execute(statement)
        logger.info("Database initialized at %s", self._db_path)

    # --- seeding -----------------------------------------------------------------

    def seed_catalog(self, catalog: SeedCatalog) -> bool:
        """Write the catalog once; returns False when users already exist."""
        now = utc_now().isoformat()
        with self._session(immediate=True) as conn:
            existing = conn.execute("SELECT COUNT(*) AS count FROM Users;").fetchone()
            if int(existing["count"]) > 0:
                logger.info("Catalog already present; skipping seed")
                return False

            badge_ids: dict[str, int] = {}
            for badge in catalog.badges:
                cursor = conn.execute(
                    "INSERT INTO Badges (name, description, icon) VALUES (?, ?, ?);",
                    (badge.name, badge.description, badge.icon),
                )
                badge_ids[badge.name] = int(cursor.lastrowid)

            operator_id: Optional[int] = None
            for user in catalog.users:
                cursor = conn.execute(
                    """
                    INSERT INTO Users (name, email, role, created_at)
                    VALUES (?, ?, ?, ?);
                    """,
                    (user.name, user.email, user.role, now),
                )
                user_id = int(cursor.lastrowid)
                if user.role == UserRole.OPERATOR and operator_id is None:
                    operator_id = user_id
                conn.executemany(
                    "INSERT INTO UserBadges (user_id, badge_id) VALUES (?, ?);",
                    [(user_id, badge_ids[name]) for name in user.badge_names],
                )

            conn.executemany(
                """
                INSERT INTO Stations (
                    name, lat, lng, address, price, density, density_profile,
                    owner_id, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);
                """,
                [
                    (
                        station.name,
                        station.lat,
                        station.lng,
                        station.address,
                        station.price,
                        station.density,
                        station.density_profile,
                        operator_id,
                        now,
                    )
                    for station in catalog.stations
                ],
            )

            if operator_id is not None:
                for campaign in catalog.campaigns:
                    cursor = conn.execute(
                        """
                        INSERT INTO Campaigns (
                            title, description, status, target, discount,
                            coin_reward, end_date, owner_id, station_id, created_at
                        )
                        VALUES (?, ?, 'ACTIVE', ?, ?, ?, ?, ?, NULL, ?);
                        """,
                        (
                            campaign.title,
                            campaign.description,
                            campaign.target,
                            campaign.discount,
                            campaign.coin_reward,
                            campaign.end_date.isoformat() if campaign.end_date else None,
                            operator_id,
                            utc_now().isoformat(),
                        ),
                    )
                    conn.executemany(
                        """
                        INSERT INTO CampaignTargetBadges (campaign_id, badge_id)
                        VALUES (?, ?);
                        """,
                        [(int(cursor.lastrowid), badge_ids[name]) for name in campaign.badge_names],
                    )

        logger.info(
            describe(
                "Catalog seed completed",
                badges=len(catalog.badges),
                campaigns=len(catalog.campaigns),
                stations=len(catalog.stations),
                users=len(catalog.users),
            )
        )
        return True

    # --- users & badges ----------------------------------------------------------

    def create_user(self, name: str, email: str, role: str = UserRole.DRIVER) -> User:
        with self._session() as conn:
            cursor = conn.execute(
                "INSERT INTO Users (name, email, role, created_at) VALUES (?, ?, ?, ?);",
                (name, email, role, utc_now().isoformat()),
            )
            row = conn.execute(
                "SELECT * FROM Users WHERE id = ?;", (int(cursor.lastrowid),)
            ).fetchone()
            return _user_from_row(row)

    def get_user(self, user_id: int) -> Optional[User]:
        with self._session() as conn:
            row = conn.execute("SELECT * FROM Users WHERE id = ?;", (user_id,)).fetchone()
            return None if row is None else _user_from_row(row)

    def list_leaderboard(self, limit: int) -> list[User]:
        """Drivers ranked by xp, then coins; ties go to the older account."""
        with self._session() as conn:
            rows = conn.execute(
                """
                SELECT *
                FROM Users
                WHERE role = ?
                ORDER BY xp DESC, coins DESC, id ASC
                LIMIT ?;
                """,
                (UserRole.DRIVER, limit),
            ).fetchall()
            return [_user_from_row(row) for row in rows]

    def list_badges(self) -> list[Badge]:
        with self._session() as conn:
            rows = conn.execute("SELECT * FROM Badges ORDER BY id ASC;").fetchall()
            return [_badge_from_row(row) for row in rows]

    def list_user_badges(self, user_id: int) -> list[Badge]:
        with self._session() as conn:
            rows = conn.execute(
                """
                SELECT b.*
                FROM Badges AS b
                INNER JOIN UserBadges AS ub ON ub.badge_id = b.id
                WHERE ub.user_id = ?
                ORDER BY b.id ASC;
                """,
                (user_id,),
            ).fetchall()
            return [_badge_from_row(row) for row in rows]

    # --- stations ----------------------------------------------------------------

    def list_stations(self) -> list[Station]:
        with self._session() as conn:
            rows = conn.execute(
                f"""
                SELECT {_STATION_COLUMNS}
                FROM Stations AS s
                LEFT JOIN Users AS u ON u.id = s.owner_id
                ORDER BY s.id ASC;
                """
            ).fetchall()
            return [_station_from_row(row) for row in rows]

    def list_stations_by_owner(self, owner_id: int) -> list[Station]:
        with self._session() as conn:
            rows = conn.execute(
                f"""
                SELECT {_STATION_COLUMNS}
                FROM Stations AS s
                LEFT JOIN Users AS u ON u.id = s.owner_id
                WHERE s.owner_id = ?
                ORDER BY s.id ASC;
                """,
                (owner_id,),
            ).fetchall()
            return [_station_from_row(row) for row in rows]

    def get_station(self, station_id: int) -> Optional[Station]:
        with self._session() as conn:
            return self._fetch_station(conn, station_id)

    def _fetch_station(self, conn: sqlite3.Connection, station_id: int) -> Optional[Station]:
        row = conn.execute(
            f"""
            SELECT {_STATION_COLUMNS}
            FROM Stations AS s
            LEFT JOIN Users AS u ON u.id = s.owner_id
            WHERE s.id = ?;
            """,
            (station_id,),
        ).fetchone()
        return None if row is None else _station_from_row(row)

    def create_station(
        self,
        *,
        name: str,
        lat: float,
        lng: float,
        price: float,
        density_profile: str,
        owner_id: Optional[int],
        address: Optional[str] = None,
        density: int = 50,
    ) -> Station:
        with self._session() as conn:
            cursor = conn.execute(
                """
                INSERT INTO Stations (
                    name, lat, lng, address, price, density, density_profile,
                    owner_id, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);
                """,
                (
                    name,
                    lat,
                    lng,
                    address,
                    price,
                    density,
                    density_profile,
                    owner_id,
                    utc_now().isoformat(),
                ),
            )
            return self._fetch_station(conn, int(cursor.lastrowid))

    def update_station(
        self,
        station_id: int,
        *,
        name: str,
        lat: float,
        lng: float,
        price: float,
        address: Optional[str],
    ) -> Optional[Station]:
        with self._session() as conn:
            cursor = conn.execute(
                """
                UPDATE Stations
                SET name = ?, lat = ?, lng = ?, price = ?, address = ?
                WHERE id = ?;
                """,
                (name, lat, lng, price, address, station_id),
            )
            if cursor.rowcount == 0:
                return None
            return self._fetch_station(conn, station_id)

    def delete_station(self, station_id: int) -> None:
        """Delete a station; linked reservations block the delete."""
        with self._session() as conn:
            exists = conn.execute(
                "SELECT 1 FROM Stations WHERE id = ?;", (station_id,)
            ).fetchone()
            if exists is None:
                raise NotFoundError("Station")
            linked = conn.execute(
                "SELECT COUNT(*) AS count FROM Reservations WHERE station_id = ?;",
                (station_id,),
            ).fetchone()
            if int(linked["count"]) > 0:
                raise ConflictError(
                    "Could not delete station. It has linked reservations."
                )
            conn.execute("DELETE FROM Stations WHERE id = ?;", (station_id,))

    def update_station_density(self, station_id: int, density: int) -> None:
        with self._session() as conn:
            conn.execute(
                "UPDATE Stations SET density = ? WHERE id = ?;",
                (density, station_id),
            )

    def get_station_reservation_stats(self, station_id: int) -> StationReservationStats:
        """Reservation counts and green-discounted revenue for one station."""
        with self._session() as conn:
            row = conn.execute(
                """
                SELECT
                    COUNT(r.id) AS total_reservations,
                    COALESCE(SUM(r.is_green), 0) AS green_reservations,
                    COALESCE(
                        SUM(
                            CASE
                                WHEN r.id IS NULL THEN 0
                                WHEN r.is_green = 1 THEN s.price * 0.8
                                ELSE s.price
                            END
                        ),
                        0
                    ) AS revenue
                FROM Stations AS s
                LEFT JOIN Reservations AS r ON r.station_id = s.id
                WHERE s.id = ?;
                """,
                (station_id,),
            ).fetchone()
            return StationReservationStats(
                total_reservations=int(row["total_reservations"]),
                green_reservations=int(row["green_reservations"]),
                revenue=float(row["revenue"]),
            )

    # --- forecasts ---------------------------------------------------------------

    def upsert_forecasts(self, entries: Iterable[ForecastEntry]) -> int:
        rows = [
            (entry.station_id, entry.day_of_week, entry.hour, entry.predicted_load)
            for entry in entries
        ]
        if not rows:
            return 0
        updated_at = utc_now().isoformat()
        with self._session() as conn:
            conn.executemany(
                """
                INSERT INTO StationDensityForecasts (
                    station_id, day_of_week, hour, predicted_load, updated_at
                )
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT (station_id, day_of_week, hour)
                DO UPDATE SET
                    predicted_load = excluded.predicted_load,
                    updated_at = excluded.updated_at;
                """,
                [row + (updated_at,) for row in rows],
            )
        return len(rows)

    def get_forecast_load(self, station_id: int, day_of_week: int, hour: int) -> Optional[int]:
        with self._session() as conn:
            row = conn.execute(
                """
                SELECT predicted_load
                FROM StationDensityForecasts
                WHERE station_id = ? AND day_of_week = ? AND hour = ?;
                """,
                (station_id, day_of_week, hour),
            ).fetchone()
            return None if row is None else int(row["predicted_load"])

    def get_forecast_day(self, station_id: int, day_of_week: int) -> dict[int, int]:
        """Return hour -> predicted_load for one station/day; missing hours are absent."""
        with self._session() as conn:
            rows = conn.execute(
                """
                SELECT hour, predicted_load
                FROM StationDensityForecasts
                WHERE station_id = ? AND day_of_week = ?
                ORDER BY hour ASC;
                """,
                (station_id, day_of_week),
            ).fetchall()
            return {int(row["hour"]): int(row["predicted_load"]) for row in rows}

    def list_forecasts_at(self, day_of_week: int, hour: int) -> list[tuple[Station, int]]:
        with self._session() as conn:
            rows = conn.execute(
                f"""
                SELECT {_STATION_COLUMNS}, f.predicted_load
                FROM StationDensityForecasts AS f
                INNER JOIN Stations AS s ON s.id = f.station_id
                LEFT JOIN Users AS u ON u.id = s.owner_id
                WHERE f.day_of_week = ? AND f.hour = ?
                ORDER BY s.id ASC;
                """,
                (day_of_week, hour),
            ).fetchall()
            return [(_station_from_row(row), int(row["predicted_load"])) for row in rows]

    def count_forecasts(self, station_id: Optional[int] = None) -> int:
        with self._session() as conn:
            if station_id is None:
                row = conn.execute(
                    "SELECT COUNT(*) AS count FROM StationDensityForecasts;"
                ).fetchone()
            else:
                row = conn.execute(
                    "SELECT COUNT(*) AS count FROM StationDensityForecasts WHERE station_id = ?;",
                    (station_id,),
                ).fetchone()
            return int(row["count"])

    # --- campaigns ---------------------------------------------------------------

    def _attach_target_badges(
        self, conn: sqlite3.Connection, rows: list[sqlite3.Row]
    ) -> list[Campaign]:
        campaign_ids = [int(row["id"]) for row in rows]
        badges_by_campaign: dict[int, list[Badge]] = {cid: [] for cid in campaign_ids}
        if campaign_ids:
            placeholders = ",".join("?" for _ in campaign_ids)
            badge_rows = conn.execute(
                f"""
                SELECT ctb.campaign_id, b.*
                FROM CampaignTargetBadges AS ctb
                INNER JOIN Badges AS b ON b.id = ctb.badge_id
                WHERE ctb.campaign_id IN ({placeholders})
                ORDER BY b.id ASC;
                """,
                tuple(campaign_ids),
            ).fetchall()
            for badge_row in badge_rows:
                badges_by_campaign[int(badge_row["campaign_id"])].append(
                    _badge_from_row(badge_row)
                )
        return [
            Campaign(
                campaign_id=int(row["id"]),
                title=str(row["title"]),
                description=str(row["description"]),
                status=str(row["status"]),
                target=str(row["target"]),
                discount=str(row["discount"]),
                coin_reward=int(row["coin_reward"]),
                end_date=from_storage(row["end_date"]),
                owner_id=int(row["owner_id"]),
                station_id=None if row["station_id"] is None else int(row["station_id"]),
                created_at=from_storage(str(row["created_at"])),
                station_name=row["station_name"],
                target_badges=tuple(badges_by_campaign[int(row["id"])]),
            )
            for row in rows
        ]

    def create_campaign(
        self,
        *,
        title: str,
        description: str,
        status: str,
        target: str,
        discount: str,
        coin_reward: int,
        end_date: Optional[datetime],
        owner_id: int,
        station_id: Optional[int],
        target_badge_ids: Iterable[int] = (),
    ) -> Campaign:
        with self._session() as conn:
            cursor = conn.execute(
                """
                INSERT INTO Campaigns (
                    title, description, status, target, discount, coin_reward,
                    end_date, owner_id, station_id, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
                """,
                (
                    title,
                    description,
                    status,
                    target,
                    discount,
                    coin_reward,
                    end_date.isoformat() if end_date else None,
                    owner_id,
                    station_id,
                    utc_now().isoformat(),
                ),
            )
            campaign_id = int(cursor.lastrowid)
            conn.executemany(
                """
                INSERT OR IGNORE INTO CampaignTargetBadges (campaign_id, badge_id)
                VALUES (?, ?);
                """,
                [(campaign_id, int(badge_id)) for badge_id in target_badge_ids],
            )
            return self._fetch_campaign(conn, campaign_id)

    def _fetch_campaign(self, conn: sqlite3.Connection, campaign_id: int) -> Optional[Campaign]:
        rows = conn.execute(
            f"""
            SELECT {_CAMPAIGN_COLUMNS}
            FROM Campaigns AS c
            LEFT JOIN Stations AS s ON s.id = c.station_id
            WHERE c.id = ?;
            """,
            (campaign_id,),
        ).fetchall()
        campaigns = self._attach_target_badges(conn, rows)
        return campaigns[0] if campaigns else None

    def get_campaign(self, campaign_id: int) -> Optional[Campaign]:
        with self._session() as conn:
            return self._fetch_campaign(conn, campaign_id)

    def list_campaigns_by_owner(self, owner_id: int) -> list[Campaign]:
        with self._session() as conn:
            rows = conn.execute(
                f"""
                SELECT {_CAMPAIGN_COLUMNS}
                FROM Campaigns AS c
                LEFT JOIN Stations AS s ON s.id = c.station_id
                WHERE c.owner_id = ?
                ORDER BY c.created_at DESC, c.id DESC;
                """,
                (owner_id,),
            ).fetchall()
            return self._attach_target_badges(conn, rows)

    def list_active_campaigns(self, now: datetime) -> list[Campaign]:
        with self._session() as conn:
            rows = conn.execute(
                f"""
                SELECT {_CAMPAIGN_COLUMNS}
                FROM Campaigns AS c
                LEFT JOIN Stations AS s ON s.id = c.station_id
                WHERE c.status = ?
                  AND (c.end_date IS NULL OR c.end_date > ?)
                ORDER BY c.created_at DESC, c.id DESC;
                """,
                (CampaignStatus.ACTIVE, ensure_utc(now).isoformat()),
            ).fetchall()
            return self._attach_target_badges(conn, rows)

    def list_campaign_candidates(self, station_id: int, now: datetime) -> list[Campaign]:
        """Active, unexpired campaigns that target this station or all stations."""
        with self._session() as conn:
            rows = conn.execute(
                f"""
                SELECT {_CAMPAIGN_COLUMNS}
                FROM Campaigns AS c
                LEFT JOIN Stations AS s ON s.id = c.station_id
                WHERE c.status = ?
                  AND (c.end_date IS NULL OR c.end_date > ?)
                  AND (c.station_id IS NULL OR c.station_id = ?);
                """,
                (CampaignStatus.ACTIVE, ensure_utc(now).isoformat(), station_id),
            ).fetchall()
            return self._attach_target_badges(conn, rows)

    def update_campaign_status(self, campaign_id: int, status: str) -> Optional[Campaign]:
        with self._session() as conn:
            cursor = conn.execute(
                "UPDATE Campaigns SET status = ? WHERE id = ?;",
                (status, campaign_id),
            )
            if cursor.rowcount == 0:
                return None
            return self._fetch_campaign(conn, campaign_id)

    def replace_campaign(
        self,
        campaign_id: int,
        *,
        title: str,
        description: str,
        status: str,
        target: str,
        discount: str,
        coin_reward: int,
        end_date: Optional[datetime],
        station_id: Optional[int],
        target_badge_ids: Iterable[int] = (),
    ) -> Optional[Campaign]:
        """Overwrite every editable field and relink target badges in one transaction."""
        with self._session() as conn:
            cursor = conn.execute(
                """
                UPDATE Campaigns
                SET title = ?, description = ?, status = ?, target = ?, discount = ?,
                    coin_reward = ?, end_date = ?, station_id = ?
                WHERE id = ?;
                """,
                (
                    title,
                    description,
                    status,
                    target,
                    discount,
                    coin_reward,
                    end_date.isoformat() if end_date else None,
                    station_id,
                    campaign_id,
                ),
            )
            if cursor.rowcount == 0:
                return None
            conn.execute(
                "DELETE FROM CampaignTargetBadges WHERE campaign_id = ?;", (campaign_id,)
            )
            conn.executemany(
                """
                INSERT OR IGNORE INTO CampaignTargetBadges (campaign_id, badge_id)
                VALUES (?, ?);
                """,
                [(campaign_id, int(badge_id)) for badge_id in target_badge_ids],
            )
            return self._fetch_campaign(conn, campaign_id)

    def delete_campaign(self, campaign_id: int) -> bool:
        with self._session() as conn:
            cursor = conn.execute("DELETE FROM Campaigns WHERE id = ?;", (campaign_id,))
            return cursor.rowcount > 0

    # --- reservations ------------------------------------------------------------

    def _fetch_reservation(
        self, conn: sqlite3.Connection, reservation_id: int
    ) -> Optional[Reservation]:
        row = conn.execute(
            f"""
            SELECT {_RESERVATION_COLUMNS}
            FROM Reservations AS r
            INNER JOIN Stations AS s ON s.id = r.station_id
            WHERE r.id = ?;
            """,
            (reservation_id,),
        ).fetchone()
        return None if row is None else _reservation_from_row(row)

    def create_reservation(
        self,
        *,
        user_id: int,
        station_id: int,
        date: datetime,
        hour: str,
        is_green: bool,
        earned_coins: int,
    ) -> Reservation:
        with self._session() as conn:
            cursor = conn.execute(
                """
                INSERT INTO Reservations (
                    user_id, station_id, date, hour, is_green, earned_coins,
                    status, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?);
                """,
                (
                    user_id,
                    station_id,
                    date.isoformat(),
                    hour,
                    1 if is_green else 0,
                    earned_coins,
                    ReservationStatus.PENDING,
                    utc_now().isoformat(),
                ),
            )
            return self._fetch_reservation(conn, int(cursor.lastrowid))

    def get_reservation(self, reservation_id: int) -> Optional[Reservation]:
        with self._session() as conn:
            return self._fetch_reservation(conn, reservation_id)

    def list_reservations_for_user(
        self, user_id: int, limit: Optional[int] = None
    ) -> list[Reservation]:
        query = f"""
            SELECT {_RESERVATION_COLUMNS}
            FROM Reservations AS r
            INNER JOIN Stations AS s ON s.id = r.station_id
            WHERE r.user_id = ?
            ORDER BY r.date DESC, r.id DESC
        """
        params: tuple[int, ...] = (user_id,)
        if limit is not None:
            query += " LIMIT ?"
            params = (user_id, limit)
        with self._session() as conn:
            rows = conn.execute(query + ";", params).fetchall()
            return [_reservation_from_row(row) for row in rows]

    def set_reservation_status(self, reservation_id: int, status: str) -> Reservation:
        """Apply a status under the write lock unless the reservation is terminal."""
        with self._session(immediate=True) as conn:
            current = self._fetch_reservation(conn, reservation_id)
            if current is None:
                raise NotFoundError("Reservation")
            if current.is_terminal:
                raise AlreadyCompletedError(reservation_id, current.status)
            conn.execute(
                "UPDATE Reservations SET status = ? WHERE id = ?;",
                (status, reservation_id),
            )
            return self._fetch_reservation(conn, reservation_id)

    def settle_reservation(
        self,
        reservation_id: int,
        *,
        xp_delta: int,
        green_co2: float,
        standard_co2: float,
    ) -> tuple[Reservation, User]:
        """Complete a reservation and credit its owner in one write transaction.

        The coin credit is the reservation's stored ``earned_coins``. The
        terminal-state check runs after ``BEGIN IMMEDIATE`` so a concurrent caller
        waits for the lock and then sees the COMPLETED row.
        """
        with self._session(immediate=True) as conn:
            reservation = self._fetch_reservation(conn, reservation_id)
            if reservation is None:
                raise NotFoundError("Reservation")
            if reservation.is_terminal:
                raise AlreadyCompletedError(reservation_id, reservation.status)

            co2_delta = green_co2 if reservation.is_green else standard_co2
            try:
                flipped = conn.execute(
                    """
                    UPDATE Reservations
                    SET status = ?, saved_co2 = ?
                    WHERE id = ? AND status NOT IN (?, ?);
                    """,
                    (
                        ReservationStatus.COMPLETED,
                        co2_delta,
                        reservation_id,
                        ReservationStatus.COMPLETED,
                        ReservationStatus.CANCELLED,
                    ),
                )
                if flipped.rowcount != 1:
                    raise AlreadyCompletedError(reservation_id)

                credited = conn.execute(
                    """
                    UPDATE Users
                    SET coins = coins + ?, co2_saved = co2_saved + ?, xp = xp + ?
                    WHERE id = ?;
                    """,
                    (reservation.earned_coins, co2_delta, xp_delta, reservation.user_id),
                )
            except sqlite3.Error as exc:
                raise InternalError("Settlement transaction failed") from exc
            if credited.rowcount != 1:
                raise InternalError("Reservation owner could not be credited")

            user_row = conn.execute(
                "SELECT * FROM Users WHERE id = ?;", (reservation.user_id,)
            ).fetchone()
            return self._fetch_reservation(conn, reservation_id), _user_from_row(user_row)
