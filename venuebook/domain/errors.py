"""Failure taxonomy shared by the HTTP client and the schedule engine."""

from __future__ import annotations

from typing import Optional


class BookingEngineError(Exception):
    """Base failure. ``message`` is safe to show to an operator."""

    default_message = "Booking action failed."

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthError(BookingEngineError):
    """Missing or rejected credential; the user must sign in again."""

    default_message = "Authentication Error: Please log in again."


class ValidationError(BookingEngineError):
    """Local input problem; never reaches the network."""

    default_message = "Invalid input."


class BookingNotFound(ValidationError):
    """The booking id is not part of the local collection."""

    default_message = "Booking not found."


class InvalidTransition(ValidationError):
    """The booking already reached a terminal status."""

    default_message = "Booking has already been decided."


class ServerError(BookingEngineError):
    """The service answered with a non-2xx status."""

    default_message = "Server error."

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransportError(BookingEngineError):
    """Network failure or a response that could not be decoded."""

    default_message = "Could not reach the booking service."


class ActionInProgress(BookingEngineError):
    """Another approve/reject action is still outstanding."""

    default_message = "Another booking action is still in progress."


class DataQualityWarning(Warning):
    """A single booking record carries unusable data (e.g. a bad timestamp)."""

    def __init__(self, booking_id: object, detail: str) -> None:
        self.booking_id = booking_id
        self.detail = detail
        super().__init__(f"booking {booking_id}: {detail}")
