"""HTTP client for the venue booking service."""

from __future__ import annotations

from typing import Any, Optional

import requests

from venuebook.client.payloads import (
    BookingPayload,
    DepartmentPayload,
    VenuePayload,
    decode,
    decode_list,
)
from venuebook.domain.errors import AuthError, ServerError, TransportError
from venuebook.domain.models import Booking, Department, Venue
from venuebook.utils.config import Settings, get_settings
from venuebook.utils.logger import get_logger


logger = get_logger(__name__)


class BookingApiClient:
    """Blocking client; every failure surfaces as a ``BookingEngineError``.

    ``session`` is anything with a ``requests.Session``-style ``request``
    method, which lets tests point the client at an in-process app.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        session: Any = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._base_url = (base_url or self._settings.api_base_url).rstrip("/")
        self._session = session or requests.Session()
        self._token = token

    @property
    def token(self) -> Optional[str]:
        return self._token

    def set_token(self, token: Optional[str]) -> None:
        self._token = token

    def _headers(self, auth: bool) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if auth:
            if not self._token:
                raise AuthError("Authentication Error: Please log in again.")
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    @staticmethod
    def _error_detail(response: Any) -> Optional[str]:
        try:
            body = response.json()
        except ValueError:
            return None
        if isinstance(body, dict):
            detail = body.get("detail") or body.get("message")
            if isinstance(detail, str):
                return detail
        return None

    def _request(
        self,
        method: str,
        path: str,
        *,
        auth: bool,
        params: Optional[dict[str, Any]] = None,
        json: Optional[dict[str, Any]] = None,
    ) -> Any:
        headers = self._headers(auth)
        url = f"{self._base_url}{path}"
        logger.debug("%s %s", method, url)
        try:
            response = self._session.request(
                method,
                url,
                params=params,
                json=json,
                headers=headers,
                timeout=self._settings.request_timeout_seconds,
            )
        except requests.RequestException as exc:
            raise TransportError(f"Backend connection failed: {exc}") from exc

        status_code = int(response.status_code)
        if status_code in (401, 403):
            raise AuthError(self._error_detail(response) or "Authentication Error: Please log in again.")
        if not 200 <= status_code < 300:
            detail = self._error_detail(response)
            raise ServerError(
                detail or f"Request failed (Status {status_code})",
                status_code=status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise TransportError(f"Server Error {status_code}: response is not JSON") from exc

    def login(self, admin_token: str) -> str:
        body = self._request(
            "POST",
            "/api/auth/admin-login",
            auth=False,
            json={"admin_token": admin_token},
        )
        token = body.get("access_token") if isinstance(body, dict) else None
        if not isinstance(token, str) or not token:
            raise TransportError("Login response did not include an access token.")
        self._token = token
        return token

    def list_venues(self) -> list[Venue]:
        body = self._request("GET", "/api/venues", auth=False)
        return [item.to_domain() for item in decode_list(VenuePayload, body, "venues")]

    def list_departments(self) -> list[Department]:
        body = self._request("GET", "/api/departments", auth=False)
        return [item.to_domain() for item in decode_list(DepartmentPayload, body, "departments")]

    def get_schedule(self, venue_id: str, year: int, month: int) -> list[Booking]:
        body = self._request(
            "GET",
            f"/api/bookings/schedule/{venue_id}",
            auth=True,
            params={"year": year, "month": month},
        )
        return [item.to_domain() for item in decode_list(BookingPayload, body, "bookings")]

    def list_all_bookings(self) -> list[Booking]:
        body = self._request("GET", "/api/bookings/admin/all", auth=True)
        return [item.to_domain() for item in decode_list(BookingPayload, body, "bookings")]

    def get_booking_stats(self) -> dict[str, int]:
        body = self._request("GET", "/api/bookings/admin/stats", auth=True)
        keys = ("total", "pending", "approved", "rejected")
        if not isinstance(body, dict) or not all(isinstance(body.get(k), int) for k in keys):
            raise TransportError("Received invalid data format for stats.")
        return {key: int(body[key]) for key in keys}

    def list_upcoming_bookings(self, days: Optional[int] = None) -> list[Booking]:
        """Approved bookings starting from local today through ``days`` days ahead."""
        params = {"days": days} if days is not None else None
        body = self._request("GET", "/api/bookings/admin/upcoming", auth=True, params=params)
        return [item.to_domain() for item in decode_list(BookingPayload, body, "bookings")]

    def list_recent_pending(self, limit: Optional[int] = None) -> list[Booking]:
        params = {"limit": limit} if limit is not None else None
        body = self._request("GET", "/api/bookings/admin/recent-pending", auth=True, params=params)
        return [item.to_domain() for item in decode_list(BookingPayload, body, "bookings")]

    def _action(self, path: str, json: Optional[dict[str, Any]] = None) -> tuple[BookingPayload, Optional[str]]:
        body = self._request("PUT", path, auth=True, json=json)
        if not isinstance(body, dict):
            raise TransportError("Received invalid data format for booking.")
        message = body.get("message") if isinstance(body.get("message"), str) else None
        return decode(BookingPayload, body.get("booking")), message

    def approve_booking(self, booking_id: str) -> tuple[BookingPayload, Optional[str]]:
        """Return the updated record and the service's confirmation message."""
        return self._action(f"/api/bookings/{booking_id}/approve")

    def reject_booking(self, booking_id: str, reason: str) -> tuple[BookingPayload, Optional[str]]:
        return self._action(
            f"/api/bookings/{booking_id}/reject",
            json={"rejection_reason": reason},
        )
