"""Client for the credential backend.

Handles the three credential exchanges:
1. Login / signup: user credentials for the initial token pair
2. Renewal: refresh token for a new token pair
3. Logout: best-effort server-side invalidation of the refresh token

Every call is marked with the ``no_auth`` request extension so the
request pipeline neither attaches a bearer token nor attempts renewal
when one of these calls fails.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any

import httpx

from ..config import settings
from ..envelope import error_code_of, error_payload, unwrap_envelope
from ..errors import ApiError, AuthenticationFailure, AuthSessionError, RenewalRejected, RenewalUnavailable
from .storage import SessionRecord

logger = logging.getLogger(__name__)

NO_AUTH = "no_auth"
NO_AUTH_EXTENSIONS = {NO_AUTH: True}


@dataclass(frozen=True)
class CredentialPair:
    """Token pair issued on login, signup, and every renewal."""

    access_token: str
    refresh_token: str
    expires_in: int  # seconds
    token_type: str = "Bearer"
    issued_at: float = field(default_factory=time.time)

    @property
    def expires_at(self) -> float:
        """Unix timestamp when the access token expires."""
        return self.issued_at + self.expires_in

    def to_record(self) -> SessionRecord:
        """Convert to storage format."""
        return SessionRecord(
            access_token=self.access_token,
            refresh_token=self.refresh_token,
            expires_at=self.expires_at,
        )


class CredentialClient:
    """Talks to the login, signup, renewal and logout endpoints.

    Usage:
        async with httpx.AsyncClient(base_url=settings.api_base_url) as http:
            credentials = CredentialClient(http)
            pair = await credentials.login("user@example.com", "secret")
            pair = await credentials.renew(pair.refresh_token)
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        login_path: str | None = None,
        signup_path: str | None = None,
        refresh_path: str | None = None,
        logout_path: str | None = None,
        default_expires_in: int | None = None,
        clock=time.time,
    ):
        self.http = http
        self.login_path = login_path or settings.login_path
        self.signup_path = signup_path or settings.signup_path
        self.refresh_path = refresh_path or settings.refresh_path
        self.logout_path = logout_path or settings.logout_path
        self.default_expires_in = default_expires_in or settings.default_expires_in
        self._clock = clock

    async def login(self, email: str, password: str) -> CredentialPair:
        """Exchange user credentials for the initial token pair.

        Raises:
            AuthenticationFailure: If the backend rejects the credentials
            ApiError: On any other error response
        """
        return await self._issue(self.login_path, {"email": email, "password": password}, "login")

    async def signup(self, email: str, password: str, name: str) -> CredentialPair:
        """Register a user and receive the initial token pair."""
        payload = {"email": email, "password": password, "name": name}
        return await self._issue(self.signup_path, payload, "signup")

    async def renew(self, refresh_token: str) -> CredentialPair:
        """Exchange a refresh token for a new token pair.

        Raises:
            RenewalRejected: If the refresh token is invalid, expired or revoked
            RenewalUnavailable: On network errors, timeouts or server errors
        """
        try:
            response = await self.http.post(
                self.refresh_path,
                json={"refresh_token": refresh_token},
                extensions=NO_AUTH_EXTENSIONS,
            )
        except httpx.TimeoutException as e:
            raise RenewalUnavailable(f"Token renewal timed out: {e}", error_code="timeout") from e
        except httpx.TransportError as e:
            raise RenewalUnavailable(f"Token renewal failed: {e}", error_code="transport_error") from e

        if response.status_code >= 500 or response.status_code in (408, 429):
            raise RenewalUnavailable(
                f"Token renewal failed: {response.status_code}",
                error_code="server_error",
                status_code=response.status_code,
                details=error_payload(response),
            )

        if not response.is_success:
            data = error_payload(response)
            raise RenewalRejected(
                f"Token renewal rejected: {response.status_code}",
                error_code=error_code_of(data, "renewal_rejected"),
                status_code=response.status_code,
                details=data,
            )

        try:
            return self._parse_token_response(unwrap_envelope(response.json(), response.status_code))
        except ApiError as e:
            raise RenewalRejected(e.message, error_code=e.error_code, status_code=response.status_code) from e
        except (ValueError, AuthSessionError) as e:
            raise RenewalUnavailable(
                f"Invalid renewal response: {e}",
                error_code="invalid_response",
                status_code=response.status_code,
            ) from e

    async def logout(self, access_token: str | None, refresh_token: str) -> None:
        """Ask the backend to invalidate the refresh token.

        Raises:
            ApiError: If the backend reports an error
            httpx.HTTPError: On transport failures
        """
        headers = {"Authorization": f"Bearer {access_token}"} if access_token else None
        response = await self.http.post(
            self.logout_path,
            json={"refresh_token": refresh_token},
            headers=headers,
            extensions=NO_AUTH_EXTENSIONS,
        )
        if not response.is_success:
            data = error_payload(response)
            raise ApiError(
                f"Logout failed: {response.status_code}",
                error_code=error_code_of(data, "logout_failed"),
                status_code=response.status_code,
                details=data,
            )

    async def _issue(self, path: str, payload: dict[str, Any], action: str) -> CredentialPair:
        response = await self.http.post(path, json=payload, extensions=NO_AUTH_EXTENSIONS)

        if not response.is_success:
            data = error_payload(response)
            error_cls = AuthenticationFailure if response.status_code == 401 else ApiError
            raise error_cls(
                f"{action.capitalize()} failed: {response.status_code}",
                error_code=error_code_of(data, f"{action}_failed"),
                status_code=response.status_code,
                details=data,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise AuthSessionError(
                f"Invalid {action} response: not JSON",
                error_code="invalid_response",
                status_code=response.status_code,
            ) from e
        return self._parse_token_response(unwrap_envelope(data, response.status_code))

    def _parse_token_response(self, data: Any) -> CredentialPair:
        """Parse a token response.

        Raises:
            AuthSessionError: If required fields are missing
        """
        if not isinstance(data, dict):
            raise AuthSessionError("Invalid token response: not an object", error_code="invalid_response")

        try:
            access_token = data["access_token"]
            refresh_token = data["refresh_token"]
        except KeyError as e:
            raise AuthSessionError(
                f"Invalid token response: missing {e}",
                error_code="invalid_response",
                details={"missing_field": str(e), "response_keys": list(data.keys())},
            ) from e

        if not access_token or not refresh_token:
            raise AuthSessionError("Invalid token response: empty token", error_code="invalid_response")

        expires_in = data.get("expires_in")

        return CredentialPair(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=int(self.default_expires_in if expires_in is None else expires_in),
            token_type=data.get("token_type", "Bearer"),
            issued_at=self._clock(),
        )
