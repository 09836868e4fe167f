"""Single-flight token renewal.

At most one renewal call is outstanding at any time. Callers that arrive
while it is in flight register a waiter and receive the same outcome: the
same new access token, or the same error.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Optional

from ..errors import RenewalRejected, SessionExpired
from ..masking import mask_token

if TYPE_CHECKING:
    from .manager import SessionCoordinator

logger = logging.getLogger(__name__)


class SingleFlightRenewer:
    """Funnels every renewal through one in-flight task.

    The "is a renewal in flight" test and the waiter registration run
    without an ``await`` in between, so two callers can never both start a
    renewal.
    """

    def __init__(self, coordinator: "SessionCoordinator") -> None:
        self._coordinator = coordinator
        self._waiters: list[asyncio.Future] = []
        self._task: Optional[asyncio.Task] = None
        self._epoch = 0

    @property
    def in_flight(self) -> bool:
        return self._task is not None

    @property
    def waiter_count(self) -> int:
        return len(self._waiters)

    async def ensure_fresh_token(self) -> str:
        """Renew the session (or join the renewal in flight).

        Returns:
            The new access token

        Raises:
            SessionExpired: If the session is failed, absent, or renewal was rejected
            RenewalUnavailable: If renewal could not reach the backend
        """
        if self._task is None:
            self._coordinator._check_renewable()

        loop = asyncio.get_running_loop()
        waiter = loop.create_future()
        self._waiters.append(waiter)

        if self._task is None:
            # State and epoch are taken now, not when the task first runs.
            self._epoch = self._coordinator._renewal_started()
            self._task = loop.create_task(self._renew(self._epoch), name="session-renewal")
        else:
            logger.debug("Joining in-flight renewal (%d waiting)", len(self._waiters))

        return await waiter

    def cancel(self) -> None:
        """Abort the renewal in flight; its waiters get SessionExpired."""
        task = self._task
        if task is None:
            return
        task.cancel()
        self._coordinator._renewal_aborted(self._epoch)
        self._settle(error=_cancelled())

    async def _renew(self, epoch: int) -> None:
        coordinator = self._coordinator

        try:
            record = coordinator.store.get()
            if record is None:
                raise RenewalRejected("No refresh token available", error_code="no_refresh_token")
            pair = await coordinator.credentials.renew(record.refresh_token)
        except RenewalRejected as e:
            if coordinator._is_current(epoch):
                self._settle(error=coordinator._renewal_rejected(e))
            else:
                self._settle_superseded()
        except asyncio.CancelledError:
            # cancel() settles its own cycle; only an outside cancellation lands here.
            if self._task is asyncio.current_task():
                coordinator._renewal_aborted(epoch)
                self._settle(error=_cancelled())
            raise
        except Exception as e:
            # RenewalUnavailable and anything unexpected: surface unchanged
            coordinator._renewal_aborted(epoch, e)
            self._settle(error=e)
        else:
            if not coordinator._is_current(epoch):
                self._settle_superseded()
                return
            coordinator.store.set(pair.to_record())
            coordinator._renewal_succeeded(pair)
            logger.debug("Resolving %d waiter(s) with %s", len(self._waiters), mask_token(pair.access_token))
            self._settle(token=pair.access_token)

    def _settle_superseded(self) -> None:
        # Logged out or logged in again while renewing: drop the result.
        logger.info("Discarding renewal result for a superseded session")
        token = self._coordinator._valid_access_token()
        if token is None:
            self._settle(error=SessionExpired("Session ended during renewal", error_code="session_superseded"))
        else:
            self._settle(token=token)

    def _settle(self, token: str | None = None, error: BaseException | None = None) -> None:
        # Detach before resolving: callers arriving from here on start a new cycle.
        waiters, self._waiters = self._waiters, []
        self._task = None

        for waiter in waiters:
            if waiter.done():
                continue
            if error is not None:
                waiter.set_exception(error)
            else:
                waiter.set_result(token)


def _cancelled() -> SessionExpired:
    return SessionExpired("Renewal cancelled", error_code="renewal_cancelled")
