"""Conjunctive in-memory search over a booking collection."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, tzinfo
from typing import Iterable, Optional, Union

from venuebook.domain.errors import DataQualityWarning
from venuebook.domain.models import Booking, BookingStatus
from venuebook.engine.intervals import local_date, local_timezone
from venuebook.utils.logger import get_logger


logger = get_logger(__name__)

ALL = "all"


@dataclass(frozen=True)
class FilterCriteria:
    """Search criteria; every default matches everything."""

    text: Optional[str] = None
    status: Union[BookingStatus, str] = ALL
    venue_name: str = ALL
    department_id: str = ALL
    exact_date: Optional[date] = None


DEFAULT_CRITERIA = FilterCriteria()


def _text_matches(booking: Booking, term: str) -> bool:
    needle = term.lower()
    haystacks: tuple[Optional[str], ...] = (booking.event_name,)
    # "N/A" placeholder fields are display text, not requester data.
    if not booking.requester.is_placeholder:
        haystacks += (booking.requester.username, booking.requester.email)
    return any(value is not None and needle in value.lower() for value in haystacks)


def _date_matches(booking: Booking, target: date, tz: tzinfo) -> bool:
    if booking.start_time is None:
        logger.warning(
            "Data quality: skipping %s",
            DataQualityWarning(booking.id, "start time is missing or unparsable"),
        )
        return False
    return local_date(booking.start_time, tz) == target


def matches(
    booking: Booking,
    criteria: FilterCriteria,
    tz: Optional[tzinfo] = None,
) -> bool:
    if criteria.text and not _text_matches(booking, criteria.text):
        return False
    if criteria.status != ALL and booking.status != criteria.status:
        return False
    if criteria.venue_name != ALL and booking.venue.name != criteria.venue_name:
        return False
    if criteria.department_id != ALL and booking.department.id != criteria.department_id:
        return False
    if criteria.exact_date is not None:
        return _date_matches(booking, criteria.exact_date, tz or local_timezone())
    return True


def filter_bookings(
    bookings: Iterable[Booking],
    criteria: Optional[FilterCriteria] = None,
    tz: Optional[tzinfo] = None,
) -> list[Booking]:
    """Return the bookings that satisfy ``criteria``, in input order."""
    active = criteria or DEFAULT_CRITERIA
    resolved_tz = tz or local_timezone()
    return [booking for booking in bookings if matches(booking, active, resolved_tz)]


def venue_name_options(bookings: Iterable[Booking]) -> list[str]:
    return sorted({b.venue.name for b in bookings if not b.venue.is_placeholder})
