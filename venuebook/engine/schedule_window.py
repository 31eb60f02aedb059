"""Month-at-a-time view of one venue's approved schedule."""

from __future__ import annotations

import asyncio
from datetime import date, datetime, timezone, tzinfo
from enum import Enum
from typing import Any, Optional

from venuebook.domain.errors import BookingEngineError, DataQualityWarning
from venuebook.domain.models import Booking, YearMonth
from venuebook.engine.classifier import DayInfo, classify_day, classify_month, tile_classes
from venuebook.engine.intervals import local_timezone, touches_day
from venuebook.utils.logger import get_logger


logger = get_logger(__name__)


class WindowState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


class ScheduleWindow:
    """Caches the bookings of one (venue, month) pair.

    Every fetch takes a ticket from a monotonically increasing sequence, and
    changing the venue or month advances the sequence as well. A response is
    committed only while its ticket is still the latest one.
    """

    def __init__(
        self,
        client: Any,
        *,
        venue_id: Optional[str] = None,
        month: Optional[YearMonth] = None,
        tz: Optional[tzinfo] = None,
    ) -> None:
        self._client = client
        self._tz = tz or local_timezone()
        self._venue_id = venue_id
        self._month = month or YearMonth.from_date(datetime.now(timezone.utc).astimezone(self._tz).date())
        self._sequence = 0
        self._state = WindowState.IDLE
        self._error_message = ""
        self._bookings: tuple[Booking, ...] = ()
        self._selected_date: Optional[date] = None

    @property
    def venue_id(self) -> Optional[str]:
        return self._venue_id

    @property
    def month(self) -> YearMonth:
        return self._month

    @property
    def state(self) -> WindowState:
        return self._state

    @property
    def is_loading(self) -> bool:
        return self._state is WindowState.LOADING

    @property
    def error_message(self) -> str:
        return self._error_message

    @property
    def bookings(self) -> list[Booking]:
        return list(self._bookings)

    @property
    def selected_date(self) -> Optional[date]:
        return self._selected_date

    @property
    def selected_bookings(self) -> list[Booking]:
        if self._selected_date is None:
            return []
        return self._bookings_touching(self._selected_date)

    def _supersede(self) -> None:
        self._sequence += 1
        self._bookings = ()
        self._selected_date = None
        self._error_message = ""
        self._state = WindowState.IDLE

    def set_venue(self, venue_id: Optional[str]) -> None:
        if venue_id == self._venue_id:
            return
        self._venue_id = venue_id
        self._supersede()

    def set_month(self, month: YearMonth) -> None:
        if month == self._month:
            return
        self._month = month
        self._supersede()

    def next_month(self) -> YearMonth:
        self.set_month(self._month.next())
        return self._month

    def previous_month(self) -> YearMonth:
        self.set_month(self._month.previous())
        return self._month

    async def get_bookings(self) -> list[Booking]:
        """Fetch the current (venue, month); superseded results are dropped."""
        if self._venue_id is None:
            self._supersede()
            return []

        self._sequence += 1
        ticket = self._sequence
        venue_id, month = self._venue_id, self._month
        self._state = WindowState.LOADING
        self._error_message = ""
        self._selected_date = None
        logger.info("Fetching schedule venue=%s month=%s (request %s)", venue_id, month, ticket)

        try:
            bookings = await asyncio.to_thread(
                self._client.get_schedule, venue_id, month.year, month.month
            )
        except BookingEngineError as exc:
            if ticket != self._sequence:
                logger.info("Discarding stale schedule failure for request %s", ticket)
                return list(self._bookings)
            logger.warning("Schedule fetch failed venue=%s month=%s: %s", venue_id, month, exc.message)
            self._state = WindowState.ERROR
            self._error_message = exc.message
            self._bookings = ()
            return []

        if ticket != self._sequence:
            logger.info(
                "Discarding stale schedule venue=%s month=%s (request %s, latest %s)",
                venue_id,
                month,
                ticket,
                self._sequence,
            )
            return list(self._bookings)

        self._bookings = tuple(bookings)
        self._state = WindowState.READY
        logger.info("Schedule ready venue=%s month=%s: %s bookings", venue_id, month, len(bookings))
        return list(self._bookings)

    def _bookings_touching(self, day: date) -> list[Booking]:
        touching: list[tuple[datetime, Booking]] = []
        for booking in self._bookings:
            try:
                if touches_day(booking, day, self._tz):
                    touching.append((booking.span()[0], booking))
            except DataQualityWarning as warning:
                logger.warning("Data quality: skipping %s", warning)
        touching.sort(key=lambda item: item[0])
        return [booking for _, booking in touching]

    def select_date(self, day: Optional[date]) -> list[Booking]:
        """Select a day and return the cached bookings touching it, by start."""
        self._selected_date = day
        return self.selected_bookings

    def day_info(self, day: date) -> DayInfo:
        return classify_day(day, self._bookings, self._tz)

    def month_grid(self) -> dict[date, DayInfo]:
        return classify_month(self._month, self._bookings, self._tz)

    def tile_classes(self, day: date) -> list[str]:
        return tile_classes(self.day_info(day), selected=day == self._selected_date)
