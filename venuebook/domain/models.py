"""Domain records for venue bookings."""

from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from enum import Enum
from typing import Optional

from venuebook.domain.errors import DataQualityWarning


class BookingStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not BookingStatus.PENDING


@dataclass(frozen=True)
class Venue:
    id: Optional[str]
    name: str
    location: Optional[str] = None
    capacity: Optional[int] = None
    is_placeholder: bool = False

    @property
    def label(self) -> str:
        if self.location:
            return f"{self.name} ({self.location})"
        return self.name


@dataclass(frozen=True)
class Department:
    id: Optional[str]
    name: str
    code: Optional[str] = None
    is_placeholder: bool = False


@dataclass(frozen=True)
class Requester:
    id: Optional[str]
    username: str
    email: str
    is_placeholder: bool = False

    @property
    def display_name(self) -> str:
        return self.username or self.email


# Related records that no longer exist are replaced once, at ingestion.
MISSING_VENUE = Venue(id=None, name="N/A", is_placeholder=True)
MISSING_DEPARTMENT = Department(id=None, name="N/A (Missing)", is_placeholder=True)
MISSING_REQUESTER = Requester(id=None, username="N/A", email="N/A", is_placeholder=True)

UNTITLED_EVENT = "Untitled Event"
MISSING_REJECTION_REASON = "No reason recorded"


@dataclass(frozen=True)
class Booking:
    """A venue reservation as seen by the admin tools.

    ``start_time``/``end_time`` are UTC instants, or ``None`` when the source
    value could not be parsed. Interval consumers go through :meth:`span`.
    """

    id: str
    event_name: Optional[str]
    start_time: Optional[datetime]
    end_time: Optional[datetime]
    status: BookingStatus
    venue: Venue = MISSING_VENUE
    department: Department = MISSING_DEPARTMENT
    requester: Requester = MISSING_REQUESTER
    rejection_reason: Optional[str] = None
    description: Optional[str] = None
    poster_images: tuple[str, ...] = field(default_factory=tuple)

    @property
    def display_name(self) -> str:
        return self.event_name or UNTITLED_EVENT

    @property
    def poster_preview(self) -> Optional[str]:
        return self.poster_images[0] if self.poster_images else None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def span(self) -> tuple[datetime, datetime]:
        if self.start_time is None:
            raise DataQualityWarning(self.id, "start time is missing or unparsable")
        if self.end_time is None:
            raise DataQualityWarning(self.id, "end time is missing or unparsable")
        return self.start_time, self.end_time


def parse_instant(value: object) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp into an aware UTC datetime.

    Naive values are read as UTC. Anything unparsable yields ``None``.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_instant(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat()


@dataclass(frozen=True, order=True)
class YearMonth:
    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"month must be between 1 and 12, got {self.month}")

    @classmethod
    def from_date(cls, value: date) -> "YearMonth":
        return cls(value.year, value.month)

    @classmethod
    def parse(cls, value: str) -> "YearMonth":
        year_text, _, month_text = value.partition("-")
        return cls(int(year_text), int(month_text))

    def next(self) -> "YearMonth":
        if self.month == 12:
            return YearMonth(self.year + 1, 1)
        return YearMonth(self.year, self.month + 1)

    def previous(self) -> "YearMonth":
        if self.month == 1:
            return YearMonth(self.year - 1, 12)
        return YearMonth(self.year, self.month - 1)

    @property
    def first_day(self) -> date:
        return date(self.year, self.month, 1)

    def days(self) -> list[date]:
        count = calendar.monthrange(self.year, self.month)[1]
        return [self.first_day + timedelta(days=offset) for offset in range(count)]

    def bounds(self, tz: tzinfo) -> tuple[datetime, datetime]:
        """Local ``[month start, next month start)`` window."""
        start = datetime.combine(self.first_day, time.min, tzinfo=tz)
        end = datetime.combine(self.next().first_day, time.min, tzinfo=tz)
        return start, end

    @property
    def label(self) -> str:
        return f"{calendar.month_name[self.month]} {self.year}"

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"
