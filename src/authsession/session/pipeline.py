"""Request pipeline: bearer attachment and 401 recovery for httpx.

Install on an ``httpx.AsyncClient`` as its ``auth``. Requests carrying the
``no_auth`` extension (login, signup, renewal, logout) pass through
untouched, so a failing renewal call can never trigger another renewal.
"""

from __future__ import annotations

import logging
from typing import AsyncGenerator, Generator

import httpx

from ..masking import mask_token
from ..tokens.client import NO_AUTH
from ..tokens.storage import TokenStore
from .renewer import SingleFlightRenewer

logger = logging.getLogger(__name__)

RETRIED = "auth_retried"


class RequestPipeline(httpx.Auth):
    """Outbound: attach the stored access token. Inbound: on 401, renew once and replay."""

    requires_request_body = True

    def __init__(self, store: TokenStore, renewer: SingleFlightRenewer) -> None:
        self._store = store
        self._renewer = renewer

    def sync_auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        raise RuntimeError("RequestPipeline requires httpx.AsyncClient")

    async def async_auth_flow(self, request: httpx.Request) -> AsyncGenerator[httpx.Request, httpx.Response]:
        if request.extensions.get(NO_AUTH):
            yield request
            return

        await request.aread()
        self._attach(request, self._current_token())

        response = yield request

        if response.status_code != 401 or request.extensions.get(RETRIED):
            return

        request.extensions[RETRIED] = True
        logger.info("401 on %s %s, renewing session", request.method, request.url.path)

        # Renewal errors propagate to the caller; the request is not resent.
        token = await self._renewer.ensure_fresh_token()
        self._attach(request, token)

        response = yield request

        if response.status_code == 401:
            logger.warning(
                "%s %s still unauthorized after renewal, not retrying",
                request.method,
                request.url.path,
            )

    def _current_token(self) -> str | None:
        record = self._store.get()
        return record.access_token if record else None

    @staticmethod
    def _attach(request: httpx.Request, token: str | None) -> None:
        if token:
            request.headers["Authorization"] = f"Bearer {token}"
            logger.debug("Attached bearer %s to %s", mask_token(token), request.url.path)
        else:
            request.headers.pop("Authorization", None)
