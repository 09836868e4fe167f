"""Proactive renewal timer.

Arms a one-shot task that renews the session shortly before the access
token expires, independent of any failed request.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

from ..config import settings
from ..errors import AuthSessionError

logger = logging.getLogger(__name__)


class ProactiveScheduler:
    """Fires ``callback`` at ``expires_at - buffer_seconds``.

    The scheduler never re-arms itself. A successful renewal re-arms it with
    the new expiry; a failed one leaves it disarmed and the next outbound
    request surfaces the problem instead.
    """

    def __init__(
        self,
        callback: Callable[[], Awaitable[Any]],
        buffer_seconds: float | None = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._callback = callback
        self.buffer_seconds = settings.renewal_buffer_seconds if buffer_seconds is None else buffer_seconds
        self._clock = clock
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self.fire_at: float | None = None

    @property
    def armed(self) -> bool:
        return self._task is not None and not self._task.done()

    def delay_for(self, expires_at: float) -> float:
        """Seconds from now until renewal should fire (0 when overdue)."""
        return max(0.0, expires_at - self.buffer_seconds - self._clock())

    def arm(self, expires_at: float) -> None:
        """Schedule renewal for ``expires_at``, replacing any pending timer."""
        self.disarm()
        delay = self.delay_for(expires_at)
        self.fire_at = self._clock() + delay
        self._task = asyncio.get_running_loop().create_task(
            self._run(self.fire_at), name="proactive-session-renewal"
        )
        logger.info(
            "Proactive renewal armed for %s (in %.0fs)",
            datetime.fromtimestamp(self.fire_at).isoformat(timespec="seconds"),
            delay,
        )

    def disarm(self) -> None:
        """Cancel the pending timer, if any."""
        task, self._task = self._task, None
        self.fire_at = None
        if task is not None and not task.done():
            task.cancel()
            logger.debug("Proactive renewal disarmed")

    async def _run(self, fire_at: float) -> None:
        await self._sleep(max(0.0, fire_at - self._clock()))

        # Fired. Detach first so a re-arm from the callback does not cancel us.
        self._task = None
        self.fire_at = None
        logger.info("Proactive renewal firing")
        try:
            await self._callback()
        except AuthSessionError as e:
            logger.warning("Proactive renewal failed, not re-arming: %s", e)
        except Exception:
            logger.exception("Proactive renewal failed unexpectedly, not re-arming")
