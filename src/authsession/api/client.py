"""API client - authenticated httpx wrapper for the application backend."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..config import settings
from ..envelope import error_code_of, error_payload, unwrap_envelope
from ..errors import ApiError, AuthenticationFailure
from ..session.manager import SessionCoordinator, SessionListener
from ..tokens.client import CredentialClient, CredentialPair
from ..tokens.storage import MemoryTokenStore, TokenStore

logger = logging.getLogger(__name__)


class ApiClient:
    """Backend API client with managed bearer authentication.

    Every request carries the current access token; a 401 triggers a single
    shared renewal and one replay. Response envelopes are unwrapped.

    Usage:
        async with ApiClient(store=FileTokenStore(settings.token_path)) as client:
            await client.login("user@example.com", "secret")
            profile = await client.get("/auth/profile")
    """

    def __init__(
        self,
        base_url: str | None = None,
        store: TokenStore | None = None,
        timeout: float | None = None,
        renewal_buffer: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        **session_options: Any,
    ):
        self.base_url = base_url or settings.api_base_url

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Content-Type": "application/json"},
            timeout=timeout or settings.request_timeout_seconds,
            transport=transport,
        )

        clock = session_options.get("clock")
        credential_options = {"clock": clock} if clock else {}
        self.credentials = CredentialClient(self._client, **credential_options)
        self.session = SessionCoordinator(
            store if store is not None else MemoryTokenStore(),
            self.credentials,
            renewal_buffer=renewal_buffer,
            **session_options,
        )
        self._client.auth = self.session.pipeline

    async def __aenter__(self):
        await self.session.start()
        return self

    async def __aexit__(self, *args):
        await self.close()

    async def close(self):
        """Stop session timers and close the HTTP client."""
        await self.session.close()
        await self._client.aclose()

    # Session operations

    async def login(self, email: str, password: str) -> CredentialPair:
        return await self.session.login(email, password)

    async def signup(self, email: str, password: str, name: str) -> CredentialPair:
        return await self.session.signup(email, password, name)

    async def logout(self) -> None:
        await self.session.logout()

    def subscribe(self, listener: SessionListener):
        return self.session.subscribe(listener)

    # HTTP verbs

    async def get(self, path: str, params: dict | None = None) -> Any:
        return await self._request("GET", path, params=params)

    async def post(self, path: str, json: Any = None, params: dict | None = None) -> Any:
        return await self._request("POST", path, params=params, json=json)

    async def put(self, path: str, json: Any = None) -> Any:
        return await self._request("PUT", path, json=json)

    async def patch(self, path: str, json: Any = None) -> Any:
        return await self._request("PATCH", path, json=json)

    async def delete(self, path: str) -> Any:
        return await self._request("DELETE", path)

    async def _request(
        self,
        method: str,
        path: str,
        params: dict | None = None,
        json: Any = None,
    ) -> Any:
        """Make an API request with error handling.

        Renewal errors (SessionExpired, RenewalUnavailable) and transport
        errors propagate unchanged.
        """
        response = await self._client.request(method=method, url=path, params=params, json=json)

        if response.status_code == 401:
            raise AuthenticationFailure(
                f"{method} {path} unauthorized after renewal",
                details=error_payload(response),
            )

        if not response.is_success:
            data = error_payload(response)
            error = data.get("error")
            message = error.get("message") if isinstance(error, dict) else None
            raise ApiError(
                message or f"API error: {response.status_code}",
                error_code=error_code_of(data, "http_error"),
                status_code=response.status_code,
                details=data,
            )

        if not response.content:
            return {}
        try:
            payload = response.json()
        except ValueError:
            return response.text
        return unwrap_envelope(payload, response.status_code)
