"""Admin session gate for request review endpoints.

This is a convenience gate for a single operator, not a security boundary.
"""

from __future__ import annotations

import secrets
from typing import Optional

from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


class AuthenticationError(Exception):
    """Base authentication failure."""


class AdminTokenNotConfiguredError(AuthenticationError):
    """Raised when login is attempted without ADMIN_TOKEN configured."""


class InvalidAdminTokenError(AuthenticationError):
    """Raised when a login token or bearer session is invalid."""


class AuthService:
    """Exchanges the admin token for a bearer session and checks it."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._session_token: str | None = None

    @property
    def auth_enabled(self) -> bool:
        return bool(self._settings.admin_token)

    def login(self, provided_admin_token: str) -> str:
        expected = self._settings.admin_token
        if not expected:
            raise AdminTokenNotConfiguredError(
                "ADMIN_TOKEN is not configured; admin login is unavailable."
            )
        if not secrets.compare_digest(provided_admin_token, expected):
            raise InvalidAdminTokenError("Invalid credentials.")
        self._session_token = secrets.token_urlsafe(32)
        logger.info("Admin session opened")
        return self._session_token

    def logout(self) -> None:
        if self._session_token is not None:
            logger.info("Admin session closed")
        self._session_token = None

    def validate_bearer_token(self, bearer_token: str) -> None:
        if not self.auth_enabled:
            return
        if self._session_token is None:
            raise InvalidAdminTokenError("No active admin session. Login first.")
        if not secrets.compare_digest(bearer_token, self._session_token):
            raise InvalidAdminTokenError("Invalid bearer token")
