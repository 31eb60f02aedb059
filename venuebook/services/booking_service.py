"""Booking review workflow behind the HTTP API."""

from __future__ import annotations

from datetime import datetime, time, timedelta
from threading import RLock
from typing import Any, Optional

from venuebook.domain.constraints import (
    normalize_rejection_reason,
    resolve_timezone,
    validate_schedule_month,
)
from venuebook.domain.models import BookingStatus, YearMonth, format_instant
from venuebook.repository.data_repository import BookingRecord, DataRepository
from venuebook.utils.config import Settings, get_settings
from venuebook.utils.logger import get_logger


logger = get_logger(__name__)

UPCOMING_DEFAULT_DAYS = 7
UPCOMING_MAX_DAYS = 90
RECENT_PENDING_DEFAULT_LIMIT = 5
RECENT_PENDING_MAX_LIMIT = 50


class BookingServiceError(Exception):
    """Base failure of the booking workflow."""


class BookingValidationError(BookingServiceError):
    """Raised when request inputs are invalid."""


class BookingNotFoundError(BookingServiceError):
    """Raised when the booking id does not exist."""


class VenueNotFoundError(BookingServiceError):
    """Raised when the venue id does not exist."""


class BookingStateError(BookingServiceError):
    """Raised when the booking is no longer pending."""


class BookingConflictError(BookingServiceError):
    """Raised when approving would overlap another approved booking."""


def _bounded(value: Optional[int], default: int, maximum: int) -> int:
    """Missing or zero falls back to ``default``; the rest is clamped to [1, maximum]."""
    if not value:
        return default
    return max(1, min(int(value), maximum))


def serialize_booking(record: BookingRecord) -> dict[str, Any]:
    venue = None
    if record.venue is not None:
        venue = {
            "id": record.venue.venue_id,
            "name": record.venue.name,
            "location": record.venue.location,
            "capacity": record.venue.capacity,
        }
    department = None
    if record.department is not None:
        department = {
            "id": record.department.department_id,
            "name": record.department.name,
            "code": record.department.code,
        }
    requester = None
    if record.requester is not None:
        requester = {
            "id": record.requester.user_id,
            "username": record.requester.username,
            "email": record.requester.email,
        }
    return {
        "id": record.booking_id,
        "event_name": record.event_name,
        "description": record.description,
        "start_time": format_instant(record.start_time),
        "end_time": format_instant(record.end_time),
        "status": record.status.value,
        "rejection_reason": record.rejection_reason,
        "venue": venue,
        "department": department,
        "requester": requester,
        "poster_images": list(record.poster_images),
    }


class BookingWorkflowService:
    """Coordinates schedule reads and pending -> approved/rejected decisions."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._tz = resolve_timezone(self._settings.local_timezone)
        # Conflict check and status update must not interleave between requests.
        self._lock = RLock()

    def list_venues(self) -> dict[str, Any]:
        venues = [
            {
                "id": venue.venue_id,
                "name": venue.name,
                "location": venue.location,
                "capacity": venue.capacity,
            }
            for venue in self._repository.list_venues()
        ]
        return {"count": len(venues), "venues": venues}

    def list_departments(self) -> dict[str, Any]:
        departments = [
            {"id": item.department_id, "name": item.name, "code": item.code}
            for item in self._repository.list_departments()
        ]
        return {"count": len(departments), "departments": departments}

    def list_all_bookings(self, status: Optional[str] = None) -> dict[str, Any]:
        status_filter = None
        if status is not None:
            try:
                status_filter = BookingStatus(status.strip().lower())
            except ValueError as exc:
                raise BookingValidationError(f"Unknown status '{status}'.") from exc
        bookings = [serialize_booking(r) for r in self._repository.list_bookings(status_filter)]
        return {"count": len(bookings), "bookings": bookings}

    def get_schedule(self, venue_id: int, year: int, month: int) -> dict[str, Any]:
        """Approved bookings overlapping the venue's local calendar month."""
        try:
            validate_schedule_month(
                year,
                month,
                min_year=self._settings.schedule_min_year,
                max_year=self._settings.schedule_max_year,
            )
        except ValueError as exc:
            raise BookingValidationError(str(exc)) from exc

        venue = self._repository.get_venue(venue_id)
        if venue is None:
            raise VenueNotFoundError("Venue not found")

        window_start, window_end = YearMonth(year, month).bounds(self._tz)
        records = self._repository.list_approved_in_window(venue_id, window_start, window_end)
        logger.info(
            "Schedule venue=%s month=%04d-%02d: %s approved bookings",
            venue_id,
            year,
            month,
            len(records),
        )
        return {
            "message": f"Schedule for {venue.name}",
            "count": len(records),
            "bookings": [serialize_booking(r) for r in records],
        }

    def _pending(self, booking_id: int) -> BookingRecord:
        record = self._repository.get_booking(booking_id)
        if record is None:
            raise BookingNotFoundError("Booking not found")
        if record.status is not BookingStatus.PENDING:
            raise BookingStateError(f"Status is '{record.status.value}'.")
        return record

    def approve(self, booking_id: int) -> dict[str, Any]:
        with self._lock:
            record = self._pending(booking_id)
            if record.venue is not None:
                conflict = self._repository.find_approved_conflict(
                    record.venue.venue_id,
                    record.start_time,
                    record.end_time,
                    exclude_booking_id=booking_id,
                )
                if conflict is not None:
                    raise BookingConflictError(f"Conflict with: '{conflict.event_name}'.")
            updated = self._repository.update_booking_status(booking_id, BookingStatus.APPROVED)
        logger.info("Booking %s approved", booking_id)
        return {"message": "Booking approved.", "booking": serialize_booking(updated)}

    def reject(self, booking_id: int, rejection_reason: Optional[str]) -> dict[str, Any]:
        try:
            reason = normalize_rejection_reason(rejection_reason)
        except ValueError as exc:
            raise BookingValidationError("Reason required.") from exc
        with self._lock:
            self._pending(booking_id)
            updated = self._repository.update_booking_status(
                booking_id, BookingStatus.REJECTED, reason
            )
        logger.info("Booking %s rejected", booking_id)
        return {"message": "Booking rejected.", "booking": serialize_booking(updated)}

    def get_stats(self) -> dict[str, int]:
        counts = self._repository.count_bookings_by_status()
        return {
            "total": counts["total"],
            "pending": counts[BookingStatus.PENDING.value],
            "approved": counts[BookingStatus.APPROVED.value],
            "rejected": counts[BookingStatus.REJECTED.value],
        }

    def list_upcoming(
        self,
        days: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> dict[str, Any]:
        """Approved bookings starting from local today through ``days`` days ahead.

        The window runs from local midnight today to the end of the local day
        ``days`` days from now, soonest first.
        """
        span = _bounded(days, UPCOMING_DEFAULT_DAYS, UPCOMING_MAX_DAYS)
        today = (now or datetime.now(self._tz)).astimezone(self._tz).date()
        window_start = datetime.combine(today, time.min, tzinfo=self._tz)
        window_end = datetime.combine(today + timedelta(days=span + 1), time.min, tzinfo=self._tz)
        records = self._repository.list_approved_starting_between(window_start, window_end)
        logger.info("Upcoming %s days: %s approved bookings", span, len(records))
        return {
            "count": len(records),
            "days": span,
            "bookings": [serialize_booking(r) for r in records],
        }

    def list_recent_pending(self, limit: Optional[int] = None) -> dict[str, Any]:
        cap = _bounded(limit, RECENT_PENDING_DEFAULT_LIMIT, RECENT_PENDING_MAX_LIMIT)
        records = self._repository.list_bookings(BookingStatus.PENDING, limit=cap)
        return {
            "count": len(records),
            "limit": cap,
            "bookings": [serialize_booking(r) for r in records],
        }
