"""Error taxonomy for the session lifecycle."""

from __future__ import annotations

from typing import Any


class AuthSessionError(Exception):
    """Base exception for authentication session errors."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class AuthenticationFailure(AuthSessionError):
    """Request was rejected with 401 and could not be recovered."""

    def __init__(self, message: str = "Request rejected with 401", **kwargs: Any):
        kwargs.setdefault("status_code", 401)
        kwargs.setdefault("error_code", "unauthorized")
        super().__init__(message, **kwargs)


class RenewalRejected(AuthSessionError):
    """The backend refused the refresh credential. Terminal."""

    pass


class RenewalUnavailable(AuthSessionError):
    """Renewal could not be completed (network, timeout, server error)."""

    pass


class SessionExpired(AuthSessionError):
    """The session is gone and a fresh login is required."""

    def __init__(self, message: str = "Session expired. Please log in again.", **kwargs: Any):
        kwargs.setdefault("error_code", "session_expired")
        super().__init__(message, **kwargs)


class ApiError(AuthSessionError):
    """Non-authentication API error (HTTP error or failed envelope)."""

    pass
