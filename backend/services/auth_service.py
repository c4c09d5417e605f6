"""Session-token stand-in for the external authentication collaborator."""

from __future__ import annotations

import secrets
from threading import RLock
from typing import Optional

from backend.domain.models import AuthenticatedUser, UserRole
from backend.utils.config import Settings, get_settings


class AuthenticationError(Exception):
    """Base authentication failure."""


class AdminTokenNotConfiguredError(AuthenticationError):
    """Raised when ADMIN_TOKEN is missing."""


class InvalidAdminTokenError(AuthenticationError):
    """Raised when provided admin token is invalid."""


class InvalidSessionError(AuthenticationError):
    """Raised when a bearer token does not belong to an active session."""


class AuthService:
    """Issues bearer tokens and resolves them to an authenticated identity."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._sessions: dict[str, AuthenticatedUser] = {}
        self._lock = RLock()

    @property
    def admin_auth_enabled(self) -> bool:
        return bool(self._settings.admin_token)

    def _expected_admin_token(self) -> str:
        if not self._settings.admin_token:
            raise AdminTokenNotConfiguredError(
                "ADMIN_TOKEN is not configured. Set ADMIN_TOKEN in environment variables."
            )
        return self._settings.admin_token

    def login(self, user_id: str, admin_token: Optional[str] = None) -> str:
        role = UserRole.USER
        if admin_token is not None:
            expected = self._expected_admin_token()
            if not secrets.compare_digest(admin_token, expected):
                raise InvalidAdminTokenError("Invalid admin token")
            role = UserRole.ADMIN
        session_token = secrets.token_urlsafe(32)
        with self._lock:
            self._sessions[session_token] = AuthenticatedUser(user_id=user_id, role=role)
        return session_token

    def resolve(self, bearer_token: str) -> AuthenticatedUser:
        with self._lock:
            user = self._sessions.get(bearer_token)
        if user is None:
            raise InvalidSessionError("Invalid or expired session. Login first.")
        return user

    def logout(self, bearer_token: str) -> None:
        with self._lock:
            self._sessions.pop(bearer_token, None)
