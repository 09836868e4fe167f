"""Session coordinator: owns the authentication state machine.

Wires the token store, credential client, single-flight renewer, proactive
scheduler and request pipeline together, and tells the application when the
session becomes authenticated or ends.

State lifecycle:
    NO_SESSION -> VALID            login / signup / restore of a live record
    VALID      -> REFRESHING       scheduler fired or a request saw a 401
    REFRESHING -> VALID            renewal succeeded, or was unavailable
    REFRESHING -> FAILED           renewal rejected (terminal latch)
    FAILED     -> VALID            only via a fresh login / signup
    any        -> NO_SESSION       explicit logout
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable

import httpx

from ..config import settings
from ..errors import AuthSessionError, RenewalRejected, SessionExpired
from ..tokens.client import CredentialClient, CredentialPair
from ..tokens.storage import TokenStore
from .pipeline import RequestPipeline
from .renewer import SingleFlightRenewer
from .scheduler import ProactiveScheduler

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    NO_SESSION = "no_session"
    VALID = "valid"
    REFRESHING = "refreshing"
    FAILED = "failed"


class SessionEvent(str, Enum):
    AUTHENTICATED = "authenticated"
    LOGGED_OUT = "logged_out"
    EXPIRED = "expired"


SessionListener = Callable[[SessionEvent], Any]


class SessionCoordinator:
    """Keeps a client continuously authenticated against a bearer-token API.

    Usage:
        coordinator = SessionCoordinator(store, CredentialClient(http))
        http.auth = coordinator.pipeline

        async with coordinator:
            coordinator.subscribe(on_session_event)
            await coordinator.login("user@example.com", "secret")
            response = await http.get("/profile")   # bearer attached, 401s recovered
            await coordinator.logout()
    """

    def __init__(
        self,
        store: TokenStore,
        credentials: CredentialClient,
        renewal_buffer: float | None = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.store = store
        self.credentials = credentials
        self._clock = clock
        self._state = SessionState.NO_SESSION
        # Bumped on every login/logout so late renewal results can be discarded
        self._epoch = 0
        self._listeners: list[SessionListener] = []

        self.renewer = SingleFlightRenewer(self)
        self.scheduler = ProactiveScheduler(
            self.renewer.ensure_fresh_token,
            buffer_seconds=settings.renewal_buffer_seconds if renewal_buffer is None else renewal_buffer,
            clock=clock,
            sleep=sleep,
        )
        self.pipeline = RequestPipeline(store, self.renewer)

    async def __aenter__(self) -> "SessionCoordinator":
        await self.start()
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_authenticated(self) -> bool:
        return self._state in (SessionState.VALID, SessionState.REFRESHING)

    @property
    def access_token(self) -> str | None:
        record = self.store.get()
        return record.access_token if record else None

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register a session event listener.

        Returns:
            A callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # Session lifecycle

    async def start(self) -> SessionState:
        """Restore a persisted session, if one is still live."""
        record = self.store.get()
        if record is None:
            self._state = SessionState.NO_SESSION
        elif record.is_expired(now=self._clock()):
            logger.info("Stored session expired, clearing it")
            self.store.clear()
            self._state = SessionState.NO_SESSION
        else:
            self._state = SessionState.VALID
            self.scheduler.arm(record.expires_at)
            logger.info("Restored session expiring at %s", _iso(record.expires_at))
            self._emit(SessionEvent.AUTHENTICATED)
        return self._state

    async def close(self) -> None:
        """Stop background work. The persisted session is left intact."""
        self.scheduler.disarm()
        self.renewer.cancel()

    async def login(self, email: str, password: str) -> CredentialPair:
        """Log in and start a session."""
        pair = await self.credentials.login(email, password)
        self._establish(pair, "Login")
        return pair

    async def signup(self, email: str, password: str, name: str) -> CredentialPair:
        """Register and start a session."""
        pair = await self.credentials.signup(email, password, name)
        self._establish(pair, "Signup")
        return pair

    async def logout(self) -> None:
        """End the session.

        The server call is best-effort; the local session is always cleared.
        """
        record = self.store.get()
        had_session = record is not None or self._state is not SessionState.NO_SESSION
        try:
            if record is not None:
                await self.credentials.logout(record.access_token, record.refresh_token)
        except (AuthSessionError, httpx.HTTPError) as e:
            logger.warning("Server-side logout failed, clearing local session anyway: %s", e)
        finally:
            self._end_session(SessionState.NO_SESSION)

        logger.info("Logged out")
        if had_session:
            self._emit(SessionEvent.LOGGED_OUT)

    def force_expire(self) -> None:
        """Terminate the session as if renewal had been rejected."""
        if self._state in (SessionState.FAILED, SessionState.NO_SESSION):
            return
        logger.warning("Session force-expired")
        self._end_session(SessionState.FAILED)
        self._emit(SessionEvent.EXPIRED)

    async def ensure_fresh_token(self) -> str:
        """Renew the access token (single-flight) and return it."""
        return await self.renewer.ensure_fresh_token()

    # Transitions driven by the renewer

    def _check_renewable(self) -> None:
        if self._state is SessionState.FAILED:
            raise SessionExpired()
        if self._state is SessionState.NO_SESSION:
            raise SessionExpired("Not logged in", error_code="no_session")

    def _renewal_started(self) -> int:
        self._state = SessionState.REFRESHING
        logger.info("Renewing session")
        return self._epoch

    def _is_current(self, epoch: int) -> bool:
        return epoch == self._epoch

    def _valid_access_token(self) -> str | None:
        if self._state is not SessionState.VALID:
            return None
        return self.access_token

    def _renewal_succeeded(self, pair: CredentialPair) -> None:
        self._state = SessionState.VALID
        self.scheduler.arm(pair.expires_at)
        logger.info("Session renewed, expires at %s", _iso(pair.expires_at))

    def _renewal_rejected(self, error: RenewalRejected) -> SessionExpired:
        expired = SessionExpired()
        expired.__cause__ = error
        logger.error("Session renewal rejected, logging out: %s", error)
        self._end_session(SessionState.FAILED)
        self._emit(SessionEvent.EXPIRED)
        return expired

    def _renewal_aborted(self, epoch: int, error: BaseException | None = None) -> None:
        if error is not None:
            logger.warning("Session renewal unavailable, keeping session: %s", error)
        if self._is_current(epoch) and self._state is SessionState.REFRESHING:
            self._state = SessionState.VALID

    # Internal helpers

    def _establish(self, pair: CredentialPair, action: str) -> None:
        self._epoch += 1
        record = pair.to_record()
        self.store.set(record)
        self._state = SessionState.VALID
        self.scheduler.arm(record.expires_at)
        logger.info("%s succeeded, session expires at %s", action, _iso(record.expires_at))
        self._emit(SessionEvent.AUTHENTICATED)

    def _end_session(self, state: SessionState) -> None:
        self._epoch += 1
        self.store.clear()
        self.scheduler.disarm()
        self._state = state

    def _emit(self, event: SessionEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Session listener failed for %s", event.value)


def _iso(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp).isoformat(timespec="seconds")
