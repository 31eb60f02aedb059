"""Half-open interval primitives over local calendar days."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, tzinfo
from typing import Iterable, Iterator, Optional

from venuebook.domain.constraints import resolve_timezone
from venuebook.domain.errors import DataQualityWarning
from venuebook.domain.models import Booking
from venuebook.utils.config import get_settings
from venuebook.utils.logger import get_logger


logger = get_logger(__name__)

_PRIOR_INSTANT = timedelta(microseconds=1)


def local_timezone(name: Optional[str] = None) -> tzinfo:
    return resolve_timezone(name or get_settings().local_timezone)


def day_bounds(day: date, tz: tzinfo) -> tuple[datetime, datetime]:
    """Return the local ``[day start, next day start)`` span."""
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return start, end


def local_date(moment: datetime, tz: tzinfo) -> date:
    return moment.astimezone(tz).date()


def effective_end(end: datetime, tz: tzinfo) -> datetime:
    """Pull an end that falls exactly on local midnight back by one instant."""
    if end.astimezone(tz).time() == time.min:
        return end - _PRIOR_INSTANT
    return end


def overlaps(
    start: datetime,
    end: datetime,
    window_start: datetime,
    window_end: datetime,
) -> bool:
    return start < window_end and end > window_start


def touches_day(booking: Booking, day: date, tz: tzinfo) -> bool:
    """Plain overlap with the day; no midnight adjustment.

    Raises ``DataQualityWarning`` when the booking has no usable span.
    """
    start, end = booking.span()
    day_start, day_end = day_bounds(day, tz)
    return overlaps(start, end, day_start, day_end)


def usable_spans(
    bookings: Iterable[Booking],
) -> Iterator[tuple[Booking, datetime, datetime]]:
    """Yield ``(booking, start, end)``, logging and skipping unusable records."""
    for booking in bookings:
        try:
            start, end = booking.span()
        except DataQualityWarning as warning:
            logger.warning("Data quality: skipping %s", warning)
            continue
        yield booking, start, end
