"""Shared fixtures for the authsession test suite."""

import asyncio
import json

import httpx
import pytest
import pytest_asyncio

from authsession.api import ApiClient
from authsession.session import SessionCoordinator
from authsession.tokens import CredentialClient, MemoryTokenStore

BASE_URL = "http://api.test"
START_TIME = 1_700_000_000.0


async def settle(rounds: int = 50) -> None:
    """Let pending tasks run until they block again."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeClock:
    """Controllable wall clock and sleep for timer tests.

    ``sleep`` only returns once ``advance`` moves the clock past its wake time.
    """

    def __init__(self, start: float = START_TIME):
        self.now = start
        self.sleeps: list[float] = []
        self._pending: list[tuple[float, asyncio.Future]] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        wake = self.now + delay
        if wake <= self.now:
            await asyncio.sleep(0)
            return
        entry = (wake, asyncio.get_running_loop().create_future())
        self._pending.append(entry)
        try:
            await entry[1]
        finally:
            self._pending.remove(entry)

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def advance(self, seconds: float) -> None:
        self.now += seconds
        for wake, future in list(self._pending):
            if wake <= self.now and not future.done():
                future.set_result(None)
        await settle()


class FakeBackend:
    """In-process credential backend and protected API behind httpx.MockTransport."""

    def __init__(self):
        self.issued = 0
        self.access_token: str | None = None
        self.refresh_token: str | None = None
        self.expires_in: int | None = 900
        self.envelope = True

        self.refresh_status = 200
        self.refresh_error: Exception | None = None
        self.refresh_delay = 0.0
        self.logout_status = 200
        self.logout_error: Exception | None = None
        self.reject_all = False

        self.requests: list[httpx.Request] = []
        self.refresh_calls: list[str] = []
        self.logout_calls: list[dict] = []

    def calls_to(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    def revoke_access(self) -> None:
        """Invalidate the current access token server-side."""
        self.access_token = "revoked-on-server"

    def _issue(self, status_code: int = 200) -> httpx.Response:
        self.issued += 1
        self.access_token = f"access-{self.issued}"
        self.refresh_token = f"refresh-{self.issued}"
        body = {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "token_type": "Bearer",
        }
        if self.expires_in is not None:
            body["expires_in"] = self.expires_in
        if self.envelope:
            body = {"success": True, "data": body}
        return httpx.Response(status_code, json=body)

    @staticmethod
    def _error(status_code: int, code: str, message: str) -> httpx.Response:
        return httpx.Response(
            status_code,
            json={"success": False, "error": {"code": code, "message": message}},
        )

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/auth/login":
            payload = json.loads(request.content)
            if payload.get("password") != "secret":
                return self._error(401, "invalid_credentials", "Invalid email or password")
            return self._issue()

        if path == "/auth/signup":
            return self._issue(201)

        if path == "/auth/refresh":
            payload = json.loads(request.content)
            self.refresh_calls.append(payload["refresh_token"])
            if self.refresh_delay:
                await asyncio.sleep(self.refresh_delay)
            if self.refresh_error is not None:
                raise self.refresh_error
            if self.refresh_status != 200:
                return self._error(self.refresh_status, "invalid_refresh_token", "Refresh token revoked")
            if payload["refresh_token"] != self.refresh_token:
                return self._error(401, "invalid_refresh_token", "Unknown refresh token")
            return self._issue()

        if path == "/auth/logout":
            self.logout_calls.append(
                {"body": json.loads(request.content), "authorization": request.headers.get("authorization")}
            )
            if self.logout_error is not None:
                raise self.logout_error
            if self.logout_status != 200:
                return self._error(self.logout_status, "logout_failed", "Logout failed")
            return httpx.Response(200, json={"success": True, "data": None})

        if self.reject_all or request.headers.get("authorization") != f"Bearer {self.access_token}":
            return self._error(401, "unauthorized", "Token expired")

        body = json.loads(request.content) if request.content else None
        return httpx.Response(
            200,
            json={
                "success": True,
                "data": {
                    "path": path,
                    "authorization": request.headers.get("authorization"),
                    "body": body,
                },
            },
        )


@pytest.fixture
def clock():
    """Fake clock used for both token issue times and scheduler timing."""
    return FakeClock()


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def store():
    return MemoryTokenStore()


@pytest.fixture
def events():
    """List collecting session events."""
    return []


@pytest_asyncio.fixture
async def http(backend):
    """httpx client wired to the fake backend (pipeline installed by ``coordinator``)."""
    async with httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(backend.handler)) as client:
        yield client


@pytest_asyncio.fixture
async def coordinator(http, store, clock, events):
    """Started coordinator with its pipeline installed on ``http``."""
    coordinator = SessionCoordinator(
        store,
        CredentialClient(http, clock=clock),
        renewal_buffer=60,
        clock=clock,
        sleep=clock.sleep,
    )
    http.auth = coordinator.pipeline
    coordinator.subscribe(events.append)
    await coordinator.start()
    yield coordinator
    await coordinator.close()


@pytest_asyncio.fixture
async def api_client(backend, store, clock):
    """ApiClient wired to the fake backend."""
    client = ApiClient(
        base_url=BASE_URL,
        store=store,
        renewal_buffer=60,
        transport=httpx.MockTransport(backend.handler),
        clock=clock,
        sleep=clock.sleep,
    )
    async with client:
        yield client
