"""Admin token login and bearer session checks."""

from __future__ import annotations

import secrets
from collections import deque
from typing import Optional

from venuebook.utils.config import Settings, get_settings
from venuebook.utils.logger import get_logger


logger = get_logger(__name__)


class AuthenticationError(Exception):
    """Base authentication failure."""


class InvalidAdminTokenError(AuthenticationError):
    """Raised when a login token or bearer session is not accepted."""


class AuthService:
    """Exchanges the shared admin token for short-lived session tokens.

    Only the ``max_admin_sessions`` most recent logins stay valid; each new
    login past the cap evicts the oldest session.

    When ``ADMIN_TOKEN`` is unset the service runs open: admin routes accept
    any caller and login hands out a throwaway session.
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._sessions: deque[str] = deque(maxlen=max(1, self._settings.max_admin_sessions))

    @property
    def auth_enabled(self) -> bool:
        return bool(self._settings.admin_token)

    @property
    def active_sessions(self) -> int:
        return len(self._sessions)

    def login(self, provided_admin_token: str) -> str:
        expected = self._settings.admin_token
        if not expected:
            logger.info("Admin login accepted without ADMIN_TOKEN configured")
            return secrets.token_urlsafe(32)
        if not secrets.compare_digest(provided_admin_token.encode(), expected.encode()):
            logger.warning("Rejected admin login attempt")
            raise InvalidAdminTokenError("Invalid admin token")
        if len(self._sessions) == self._sessions.maxlen:
            logger.info("Admin session limit reached; oldest session expired")
        session = secrets.token_urlsafe(32)
        self._sessions.append(session)
        return session

    def validate_bearer_token(self, bearer_token: str) -> None:
        if not self.auth_enabled:
            return
        if not self._sessions:
            raise InvalidAdminTokenError("No active session. Login first.")
        if not any(secrets.compare_digest(bearer_token.encode(), s.encode()) for s in self._sessions):
            raise InvalidAdminTokenError("Invalid bearer token")
