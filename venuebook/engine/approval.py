"""Admin review workflow: approve/reject with a global single-flight guard."""

from __future__ import annotations

import asyncio
import time
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import tzinfo
from typing import Any, Callable, Iterable, Iterator, Optional

from venuebook.domain.constraints import normalize_rejection_reason
from venuebook.domain.errors import (
    ActionInProgress,
    AuthError,
    BookingEngineError,
    BookingNotFound,
    InvalidTransition,
    ValidationError,
)
from venuebook.domain.models import Booking
from venuebook.engine.filters import FilterCriteria, filter_bookings, venue_name_options
from venuebook.engine.intervals import local_timezone
from venuebook.utils.config import Settings, get_settings
from venuebook.utils.logger import get_logger


logger = get_logger(__name__)

APPROVE = "approve"
REJECT = "reject"


class ActionGuard:
    """Non-queuing mutex: at most one admin action or reload in flight, globally.

    A second acquire while held fails immediately with ``ActionInProgress``.
    """

    def __init__(self) -> None:
        self._holder: Optional[str] = None

    @property
    def locked(self) -> bool:
        return self._holder is not None

    @property
    def holder(self) -> Optional[str]:
        return self._holder

    def acquire(self, holder: str) -> None:
        if self._holder is not None:
            raise ActionInProgress(
                f"Another booking action is still in progress ({self._holder})."
            )
        self._holder = holder

    def release(self) -> None:
        self._holder = None

    @contextmanager
    def hold(self, holder: str) -> Iterator[None]:
        self.acquire(holder)
        try:
            yield
        finally:
            self.release()


@dataclass
class _Notice:
    message: str
    expires_at: float


class NoticeBoard:
    """Transient operator feedback that expires after a fixed delay."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._error: Optional[_Notice] = None
        self._success: Optional[_Notice] = None

    def post_error(self, message: str) -> None:
        self._error = _Notice(message, self._clock() + self._ttl)

    def post_success(self, message: str) -> None:
        self._success = _Notice(message, self._clock() + self._ttl)

    def _live(self, notice: Optional[_Notice]) -> Optional[str]:
        if notice is None or self._clock() >= notice.expires_at:
            return None
        return notice.message

    @property
    def error(self) -> Optional[str]:
        return self._live(self._error)

    @property
    def success(self) -> Optional[str]:
        return self._live(self._success)

    def clear(self) -> None:
        self._error = None
        self._success = None


@dataclass(frozen=True)
class ActionOutcome:
    booking_id: str
    action: str
    booking: Optional[Booking] = None
    error: Optional[BookingEngineError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ApprovalStateMachine:
    """Owns the admin booking collection and drives pending -> decided.

    Errors never escape ``approve``/``reject``/``refresh``; they come back in
    the ``ActionOutcome`` and as transient notices.
    """

    def __init__(
        self,
        client: Any,
        bookings: Iterable[Booking] = (),
        *,
        guard: Optional[ActionGuard] = None,
        notices: Optional[NoticeBoard] = None,
        settings: Optional[Settings] = None,
        tz: Optional[tzinfo] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._client = client
        self._bookings: list[Booking] = list(bookings)
        self.guard = guard or ActionGuard()
        self.notices = notices or NoticeBoard(self._settings.notice_ttl_seconds)
        self._tz = tz or local_timezone(self._settings.local_timezone)
        self._editor_booking_id: Optional[str] = None
        self._staged_reasons: dict[str, str] = {}
        self.editor_error: Optional[str] = None
        self.load_error: Optional[str] = None
        self.auth_required = False

    @property
    def bookings(self) -> list[Booking]:
        return list(self._bookings)

    def get(self, booking_id: str) -> Optional[Booking]:
        for booking in self._bookings:
            if booking.id == booking_id:
                return booking
        return None

    def filtered(self, criteria: Optional[FilterCriteria] = None) -> list[Booking]:
        return filter_bookings(self._bookings, criteria, self._tz)

    def venue_name_options(self) -> list[str]:
        return venue_name_options(self._bookings)

    async def refresh(self) -> list[Booking]:
        """Replace the collection with the service's full booking list.

        Refused while an approve or reject is in flight; a running reload holds
        the guard itself.
        """
        if self.guard.locked:
            logger.warning("Reload skipped: %s is in flight", self.guard.holder)
            self.notices.post_error(ActionInProgress().message)
            return self.bookings

        self.notices.clear()
        self.load_error = None
        try:
            with self.guard.hold("reload"):
                bookings = await asyncio.to_thread(self._client.list_all_bookings)
        except BookingEngineError as exc:
            logger.error("Loading bookings failed: %s", exc.message)
            self._note_auth(exc)
            self.load_error = exc.message
            self._bookings = []
            return []
        self._bookings = list(bookings)
        logger.info("Loaded %s bookings for review", len(self._bookings))
        return self.bookings

    # -- rejection reason editor -------------------------------------------

    @property
    def rejection_editor_id(self) -> Optional[str]:
        return self._editor_booking_id

    def open_rejection_editor(self, booking_id: str) -> bool:
        """Toggle the reason editor for ``booking_id``.

        Only one editor is open at a time; opening another one starts it with
        an empty reason. Refused while an action is in flight.
        """
        if self.guard.locked:
            return False
        self.editor_error = None
        if self._editor_booking_id == booking_id:
            self._editor_booking_id = None
            return True
        self._editor_booking_id = booking_id
        self._staged_reasons[booking_id] = ""
        return True

    def close_rejection_editor(self) -> None:
        self._editor_booking_id = None
        self.editor_error = None

    def set_rejection_reason(self, booking_id: str, text: str) -> None:
        self._staged_reasons[booking_id] = text
        if booking_id == self._editor_booking_id:
            self.editor_error = None

    def staged_reason(self, booking_id: str) -> str:
        return self._staged_reasons.get(booking_id, "")

    # -- transitions ---------------------------------------------------------

    def _pending_booking(self, booking_id: str) -> Booking:
        booking = self.get(booking_id)
        if booking is None:
            raise BookingNotFound(f"Booking {booking_id} not found.")
        if booking.is_terminal:
            raise InvalidTransition(f"Status is '{booking.status.value}'.")
        return booking

    def _note_auth(self, exc: BookingEngineError) -> None:
        if isinstance(exc, AuthError):
            self.auth_required = True

    def _fail(self, booking_id: str, action: str, exc: BookingEngineError) -> ActionOutcome:
        self._note_auth(exc)
        self.notices.post_error(exc.message)
        logger.warning("%s booking %s failed: %s", action.capitalize(), booking_id, exc.message)
        return ActionOutcome(booking_id=booking_id, action=action, error=exc)

    def _merge(self, booking_id: str, payload: Any) -> Booking:
        for index, local in enumerate(self._bookings):
            if local.id == booking_id:
                merged = payload.merge_into(local)
                self._bookings[index] = merged
                return merged
        raise BookingNotFound(f"Booking {booking_id} not found.")

    async def _send(self, booking_id: str, action: str, call: Callable[[], Any]) -> ActionOutcome:
        try:
            with self.guard.hold(booking_id):
                self.notices.clear()
                payload, message = await asyncio.to_thread(call)
                merged = self._merge(booking_id, payload)
        except BookingEngineError as exc:
            return self._fail(booking_id, action, exc)

        default = "Booking approved." if action == APPROVE else "Booking rejected."
        self.notices.post_success(message or default)
        logger.info("Booking %s is now %s", booking_id, merged.status.value)
        return ActionOutcome(booking_id=booking_id, action=action, booking=merged)

    async def approve(self, booking_id: str) -> ActionOutcome:
        if self.guard.locked:
            return ActionOutcome(booking_id, APPROVE, error=ActionInProgress())
        try:
            self._pending_booking(booking_id)
        except ValidationError as exc:
            return self._fail(booking_id, APPROVE, exc)

        outcome = await self._send(
            booking_id, APPROVE, lambda: self._client.approve_booking(booking_id)
        )
        if outcome.ok and self._editor_booking_id == booking_id:
            self.close_rejection_editor()
        return outcome

    async def reject(self, booking_id: str, reason: Optional[str] = None) -> ActionOutcome:
        """Reject with ``reason``, or with the staged editor text when omitted."""
        if self.guard.locked:
            return ActionOutcome(booking_id, REJECT, error=ActionInProgress())
        try:
            self._pending_booking(booking_id)
        except ValidationError as exc:
            return self._fail(booking_id, REJECT, exc)

        text = self.staged_reason(booking_id) if reason is None else reason
        try:
            trimmed = normalize_rejection_reason(text)
        except ValueError as exc:
            error = ValidationError(str(exc))
            self._editor_booking_id = booking_id
            self.editor_error = error.message
            return ActionOutcome(booking_id, REJECT, error=error)

        if self._editor_booking_id == booking_id:
            self.close_rejection_editor()
        outcome = await self._send(
            booking_id, REJECT, lambda: self._client.reject_booking(booking_id, trimmed)
        )
        if outcome.ok:
            self._staged_reasons.pop(booking_id, None)
        return outcome
