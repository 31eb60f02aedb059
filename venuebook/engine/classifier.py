"""Calendar-day classification against a set of bookings."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, tzinfo
from typing import Iterable, Optional

from venuebook.domain.models import Booking, YearMonth
from venuebook.engine.intervals import (
    day_bounds,
    effective_end,
    local_date,
    local_timezone,
    overlaps,
    usable_spans,
)


@dataclass(frozen=True)
class DayInfo:
    """How a single day relates to the bookings that touch it.

    Flags are aggregated over all touching bookings, so a day can be the end
    of one event and the start of another at the same time.
    """

    touched_count: int = 0
    is_single_day_event: bool = False
    is_range_start: bool = False
    is_range_end: bool = False
    is_range_middle: bool = False

    @property
    def has_bookings(self) -> bool:
        return self.touched_count > 0


@dataclass(frozen=True)
class _ResolvedSpan:
    start: datetime
    effective_end: datetime
    start_day: date
    end_day: date


def _resolve(bookings: Iterable[Booking], tz: tzinfo) -> list[_ResolvedSpan]:
    resolved = []
    for _, start, end in usable_spans(bookings):
        adjusted_end = effective_end(end, tz)
        resolved.append(
            _ResolvedSpan(
                start=start,
                effective_end=adjusted_end,
                start_day=local_date(start, tz),
                end_day=local_date(adjusted_end, tz),
            )
        )
    return resolved


def _classify(day: date, spans: list[_ResolvedSpan], tz: tzinfo) -> DayInfo:
    day_start, day_end = day_bounds(day, tz)
    touched = 0
    single = start = end = middle = False
    for span in spans:
        if not overlaps(span.start, span.effective_end, day_start, day_end):
            continue
        touched += 1
        starts_here = span.start_day == day
        ends_here = span.end_day == day
        if starts_here and ends_here:
            single = True
        elif starts_here:
            start = True
        elif ends_here:
            end = True
        else:
            middle = True
    return DayInfo(
        touched_count=touched,
        is_single_day_event=single,
        is_range_start=start,
        is_range_end=end,
        is_range_middle=middle,
    )


def classify_day(
    day: date,
    bookings: Iterable[Booking],
    tz: Optional[tzinfo] = None,
) -> DayInfo:
    resolved_tz = tz or local_timezone()
    return _classify(day, _resolve(bookings, resolved_tz), resolved_tz)


def classify_month(
    month: YearMonth,
    bookings: Iterable[Booking],
    tz: Optional[tzinfo] = None,
) -> dict[date, DayInfo]:
    """Classify every day of ``month``; each booking span is resolved once."""
    resolved_tz = tz or local_timezone()
    spans = _resolve(bookings, resolved_tz)
    return {day: _classify(day, spans, resolved_tz) for day in month.days()}


def tile_classes(info: DayInfo, *, selected: bool = False) -> list[str]:
    """Calendar tile classes; start/end styling wins over middle."""
    classes: list[str] = []
    if info.has_bookings:
        if info.is_single_day_event:
            classes.append("booking-single-day")
        if info.is_range_start:
            classes.append("booking-start")
        if info.is_range_end:
            classes.append("booking-end")
        if info.is_range_middle and not (info.is_range_start or info.is_range_end):
            classes.append("booking-middle")
        classes.append("has-booking")
    if selected:
        classes.append("selected-day")
    return classes
