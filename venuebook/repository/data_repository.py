"""Repository layer responsible for all database access."""

from __future__ import annotations

import json
import random
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta, timezone
from pathlib import Path
from typing import Iterable, Optional

from venuebook.domain.constraints import resolve_timezone
from venuebook.domain.models import BookingStatus, parse_instant
from venuebook.utils.config import Settings, get_settings
from venuebook.utils.logger import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class VenueRecord:
    venue_id: int
    name: str
    capacity: int
    location: str


@dataclass(frozen=True)
class DepartmentRecord:
    department_id: int
    name: str
    code: Optional[str] = None


@dataclass(frozen=True)
class UserRecord:
    user_id: int
    username: str
    email: str


@dataclass(frozen=True)
class BookingRecord:
    """Booking joined with whatever related rows still exist."""

    booking_id: int
    event_name: str
    description: Optional[str]
    start_time: datetime
    end_time: datetime
    status: BookingStatus
    rejection_reason: Optional[str]
    created_at: str
    venue: Optional[VenueRecord] = None
    department: Optional[DepartmentRecord] = None
    requester: Optional[UserRecord] = None
    poster_images: list[str] = field(default_factory=list)


def _to_db_instant(value: datetime) -> str:
    """Fixed-width UTC text so SQL string comparison orders correctly."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


_BOOKING_SELECT = """
    SELECT
        b.id, b.event_name, b.description, b.start_time, b.end_time,
        b.status, b.rejection_reason, b.poster_images, b.created_at,
        v.id AS venue_id, v.name AS venue_name, v.capacity AS venue_capacity,
        v.location AS venue_location,
        d.id AS department_id, d.name AS department_name, d.code AS department_code,
        u.id AS user_id, u.username AS user_username, u.email AS user_email
    FROM Bookings AS b
    LEFT JOIN Venues AS v ON v.id = b.venue_id
    LEFT JOIN Departments AS d ON d.id = b.department_id
    LEFT JOIN Users AS u ON u.id = b.user_id
"""


def _row_to_booking(row: sqlite3.Row) -> BookingRecord:
    venue = None
    if row["venue_id"] is not None:
        venue = VenueRecord(
            venue_id=int(row["venue_id"]),
            name=str(row["venue_name"]),
            capacity=int(row["venue_capacity"]),
            location=str(row["venue_location"]),
        )
    department = None
    if row["department_id"] is not None:
        department = DepartmentRecord(
            department_id=int(row["department_id"]),
            name=str(row["department_name"]),
            code=row["department_code"],
        )
    requester = None
    if row["user_id"] is not None:
        requester = UserRecord(
            user_id=int(row["user_id"]),
            username=str(row["user_username"]),
            email=str(row["user_email"]),
        )
    return BookingRecord(
        booking_id=int(row["id"]),
        event_name=str(row["event_name"]),
        description=row["description"],
        start_time=parse_instant(row["start_time"]),
        end_time=parse_instant(row["end_time"]),
        status=BookingStatus(row["status"]),
        rejection_reason=row["rejection_reason"],
        created_at=str(row["created_at"]),
        venue=venue,
        department=department,
        requester=requester,
        poster_images=list(json.loads(row["poster_images"] or "[]")),
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

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self._db_path)
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON;")
        return connection

    def initialize_database(self) -> None:
        """Create all persistence artifacts before API startup."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Venues (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        name TEXT NOT NULL UNIQUE,
                        capacity INTEGER NOT NULL CHECK (capacity > 0),
                        location TEXT NOT NULL
                    );
                    """
                )
                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Departments (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        name TEXT NOT NULL UNIQUE,
                        code TEXT UNIQUE,
                        description TEXT
                    );
                    """
                )
                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Users (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        username TEXT NOT NULL UNIQUE,
                        email TEXT NOT NULL UNIQUE,
                        role TEXT NOT NULL DEFAULT 'user' CHECK (role IN ('user', 'admin'))
                    );
                    """
                )
                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Bookings (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        event_name TEXT NOT NULL,
                        description TEXT,
                        start_time TEXT NOT NULL,
                        end_time TEXT NOT NULL,
                        venue_id INTEGER REFERENCES Venues(id) ON DELETE SET NULL,
                        department_id INTEGER REFERENCES Departments(id) ON DELETE SET NULL,
                        user_id INTEGER REFERENCES Users(id) ON DELETE SET NULL,
                        status TEXT NOT NULL DEFAULT 'pending'
                            CHECK (status IN ('pending', 'approved', 'rejected')),
                        rejection_reason TEXT,
                        poster_images TEXT NOT NULL DEFAULT '[]',
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                        CHECK (start_time < end_time)
                    );
                    """
                )
                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_bookings_venue_status_time
                    ON Bookings(venue_id, status, start_time, end_time);
                    """
                )
                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_bookings_status_created
                    ON Bookings(status, created_at);
                    """
                )
                conn.commit()
            logger.info("Database initialized at %s", self._db_path)
        except sqlite3.Error as exc:
            raise RuntimeError(f"Database initialization failed: {exc}") from exc

    def seed_synthetic_data(self) -> int:
        """Seed deterministic reference data only when tables are empty."""
        rng = random.Random(self._settings.synthetic_random_seed)
        tz = resolve_timezone(self._settings.local_timezone)
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute("SELECT COUNT(*) AS count FROM Venues;")
                if int(cursor.fetchone()["count"]) > 0:
                    logger.info("Reference data already present; skipping seed")
                    return 0

                cursor.executemany(
                    "INSERT INTO Venues (name, capacity, location) VALUES (?, ?, ?);",
                    [
                        ("APJ Abdul Kalam Auditorium", 600, "Main Block"),
                        ("K S Auditorium", 350, "Library Block"),
                        ("B Block Seminar Hall", 120, "B Block"),
                        ("PEB Hall", 250, "PEB Building"),
                    ],
                )
                cursor.executemany(
                    "INSERT INTO Departments (name, code, description) VALUES (?, ?, ?);",
                    [
                        ("Computer Science and Engineering", "CSE", None),
                        ("Electronics and Communication Engineering", "ECE", None),
                        ("Mechanical Engineering", "ME", None),
                        ("Student Affairs", None, "Clubs and cultural committees"),
                    ],
                )
                cursor.executemany(
                    "INSERT INTO Users (username, email, role) VALUES (?, ?, ?);",
                    [
                        ("admin", "admin@campus.example", "admin"),
                        ("asha.rao", "asha.rao@campus.example", "user"),
                        ("vikram.s", "vikram.s@campus.example", "user"),
                        ("meera.k", "meera.k@campus.example", "user"),
                    ],
                )

                venue_ids = [int(r["id"]) for r in cursor.execute("SELECT id FROM Venues;")]
                department_ids = [int(r["id"]) for r in cursor.execute("SELECT id FROM Departments;")]
                user_ids = [
                    int(r["id"]) for r in cursor.execute("SELECT id FROM Users WHERE role = 'user';")
                ]

                today = datetime.now(tz).date()
                window = self._settings.synthetic_window_days
                themes = ["Tech Talk", "Cultural Night", "Workshop", "Guest Lecture", "Hackathon"]
                rows = []
                for venue_id in venue_ids:
                    for index in range(self._settings.synthetic_bookings_per_venue):
                        day = today + timedelta(days=rng.randint(-window, window))
                        start_local = datetime.combine(day, time(rng.randint(9, 14)), tzinfo=tz)
                        if rng.random() < 0.2:
                            end_local = start_local + timedelta(days=rng.randint(1, 2))
                        else:
                            end_local = start_local + timedelta(hours=rng.randint(1, 3))
                        status = rng.choice(list(BookingStatus))
                        reason = "Venue reserved for maintenance" if status is BookingStatus.REJECTED else None
                        rows.append(
                            (
                                f"{rng.choice(themes)} #{index + 1}",
                                "Synthetic booking",
                                _to_db_instant(start_local),
                                _to_db_instant(end_local),
                                venue_id,
                                rng.choice(department_ids),
                                rng.choice(user_ids),
                                status.value,
                                reason,
                            )
                        )
                cursor.executemany(
                    """
                    INSERT INTO Bookings (
                        event_name, description, start_time, end_time,
                        venue_id, department_id, user_id, status, rejection_reason
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);
                    """,
                    rows,
                )
                conn.commit()
            logger.info("Synthetic seed completed with %s bookings", len(rows))
            return len(rows)
        except sqlite3.Error as exc:
            raise RuntimeError(f"Synthetic data seeding failed: {exc}") from exc

    def create_venue(self, name: str, capacity: int, location: str) -> int:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "INSERT INTO Venues (name, capacity, location) VALUES (?, ?, ?);",
                (name, capacity, location),
            )
            conn.commit()
            return int(cursor.lastrowid)

    def create_department(
        self,
        name: str,
        code: Optional[str] = None,
        description: Optional[str] = None,
    ) -> int:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "INSERT INTO Departments (name, code, description) VALUES (?, ?, ?);",
                (name, code.upper() if code else None, description),
            )
            conn.commit()
            return int(cursor.lastrowid)

    def create_user(self, username: str, email: str, role: str = "user") -> int:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "INSERT INTO Users (username, email, role) VALUES (?, ?, ?);",
                (username, email.lower(), role),
            )
            conn.commit()
            return int(cursor.lastrowid)

    def create_booking(
        self,
        *,
        event_name: str,
        start_time: datetime,
        end_time: datetime,
        venue_id: int,
        department_id: int,
        user_id: int,
        status: BookingStatus = BookingStatus.PENDING,
        rejection_reason: Optional[str] = None,
        description: Optional[str] = None,
        poster_images: Iterable[str] = (),
    ) -> int:
        """Insert a booking row; used by seeding, scripts and tests."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO Bookings (
                    event_name, description, start_time, end_time, venue_id,
                    department_id, user_id, status, rejection_reason, poster_images
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
                """,
                (
                    event_name,
                    description,
                    _to_db_instant(start_time),
                    _to_db_instant(end_time),
                    venue_id,
                    department_id,
                    user_id,
                    BookingStatus(status).value,
                    rejection_reason,
                    json.dumps(list(poster_images)),
                ),
            )
            conn.commit()
            return int(cursor.lastrowid)

    def delete_venue(self, venue_id: int) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM Venues WHERE id = ?;", (venue_id,))
            conn.commit()

    def delete_user(self, user_id: int) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM Users WHERE id = ?;", (user_id,))
            conn.commit()

    def get_venue(self, venue_id: int) -> Optional[VenueRecord]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT id, name, capacity, location FROM Venues WHERE id = ?;",
                (venue_id,),
            ).fetchone()
        if row is None:
            return None
        return VenueRecord(
            venue_id=int(row["id"]),
            name=str(row["name"]),
            capacity=int(row["capacity"]),
            location=str(row["location"]),
        )

    def list_venues(self) -> list[VenueRecord]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT id, name, capacity, location FROM Venues ORDER BY name ASC;"
            ).fetchall()
        return [
            VenueRecord(
                venue_id=int(row["id"]),
                name=str(row["name"]),
                capacity=int(row["capacity"]),
                location=str(row["location"]),
            )
            for row in rows
        ]

    def list_departments(self) -> list[DepartmentRecord]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT id, name, code FROM Departments ORDER BY name ASC;"
            ).fetchall()
        return [
            DepartmentRecord(department_id=int(row["id"]), name=str(row["name"]), code=row["code"])
            for row in rows
        ]

    def get_booking(self, booking_id: int) -> Optional[BookingRecord]:
        with self._connect() as conn:
            row = conn.execute(f"{_BOOKING_SELECT} WHERE b.id = ?;", (booking_id,)).fetchone()
        return _row_to_booking(row) if row is not None else None

    def list_bookings(
        self,
        status: Optional[BookingStatus] = None,
        limit: Optional[int] = None,
    ) -> list[BookingRecord]:
        """Return bookings newest first, optionally for one status and capped."""
        query = _BOOKING_SELECT
        params: tuple = ()
        if status is not None:
            query += " WHERE b.status = ?"
            params = (BookingStatus(status).value,)
        query += " ORDER BY b.created_at DESC, b.id DESC"
        if limit is not None:
            query += " LIMIT ?"
            params += (int(limit),)
        with self._connect() as conn:
            rows = conn.execute(query + ";", params).fetchall()
        return [_row_to_booking(row) for row in rows]

    def list_approved_starting_between(
        self,
        window_start: datetime,
        window_end: datetime,
    ) -> list[BookingRecord]:
        """Approved bookings of every venue starting in ``[window_start, window_end)``."""
        with self._connect() as conn:
            rows = conn.execute(
                f"""
                {_BOOKING_SELECT}
                WHERE b.status = 'approved'
                  AND b.start_time >= ?
                  AND b.start_time < ?
                ORDER BY b.start_time ASC, b.id ASC;
                """,
                (_to_db_instant(window_start), _to_db_instant(window_end)),
            ).fetchall()
        return [_row_to_booking(row) for row in rows]

    def list_approved_in_window(
        self,
        venue_id: int,
        window_start: datetime,
        window_end: datetime,
    ) -> list[BookingRecord]:
        """Approved bookings of a venue overlapping ``[window_start, window_end)``."""
        with self._connect() as conn:
            rows = conn.execute(
                f"""
                {_BOOKING_SELECT}
                WHERE b.venue_id = ?
                  AND b.status = 'approved'
                  AND b.start_time < ?
                  AND b.end_time > ?
                ORDER BY b.start_time ASC, b.id ASC;
                """,
                (venue_id, _to_db_instant(window_end), _to_db_instant(window_start)),
            ).fetchall()
        return [_row_to_booking(row) for row in rows]

    def find_approved_conflict(
        self,
        venue_id: int,
        start_time: datetime,
        end_time: datetime,
        exclude_booking_id: int,
    ) -> Optional[BookingRecord]:
        with self._connect() as conn:
            row = conn.execute(
                f"""
                {_BOOKING_SELECT}
                WHERE b.venue_id = ?
                  AND b.id != ?
                  AND b.status = 'approved'
                  AND b.start_time < ?
                  AND b.end_time > ?
                ORDER BY b.start_time ASC
                LIMIT 1;
                """,
                (
                    venue_id,
                    exclude_booking_id,
                    _to_db_instant(end_time),
                    _to_db_instant(start_time),
                ),
            ).fetchone()
        return _row_to_booking(row) if row is not None else None

    def update_booking_status(
        self,
        booking_id: int,
        status: BookingStatus,
        rejection_reason: Optional[str] = None,
    ) -> Optional[BookingRecord]:
        with self._connect() as conn:
            conn.execute(
                "UPDATE Bookings SET status = ?, rejection_reason = ? WHERE id = ?;",
                (BookingStatus(status).value, rejection_reason, booking_id),
            )
            conn.commit()
        return self.get_booking(booking_id)

    def count_bookings_by_status(self) -> dict[str, int]:
        counts = {status.value: 0 for status in BookingStatus}
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT status, COUNT(*) AS count FROM Bookings GROUP BY status;"
            ).fetchall()
        for row in rows:
            counts[str(row["status"])] = int(row["count"])
        counts["total"] = sum(counts[status.value] for status in BookingStatus)
        return counts
