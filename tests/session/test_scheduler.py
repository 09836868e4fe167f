"""Tests for the proactive renewal timer."""

import logging
from unittest.mock import AsyncMock

import pytest

from authsession.errors import RenewalUnavailable
from authsession.session.scheduler import ProactiveScheduler

from conftest import START_TIME, settle


class TestProactiveScheduler:
    """Tests for ProactiveScheduler."""

    @pytest.fixture
    def callback(self):
        return AsyncMock(return_value="token")

    @pytest.fixture
    def scheduler(self, callback, clock):
        return ProactiveScheduler(callback, buffer_seconds=60, clock=clock, sleep=clock.sleep)

    def test_delay_for(self, scheduler):
        """expires_in=900 with a 60s buffer should fire after 840s."""
        assert scheduler.delay_for(START_TIME + 900) == 840

    def test_delay_for_overdue_is_zero(self, scheduler):
        assert scheduler.delay_for(START_TIME + 30) == 0
        assert scheduler.delay_for(START_TIME - 100) == 0

    @pytest.mark.asyncio
    async def test_fires_at_expiry_minus_buffer(self, scheduler, callback, clock):
        """Should fire at issued_at + 840s, not earlier."""
        scheduler.arm(START_TIME + 900)
        await settle()

        assert scheduler.armed is True
        assert scheduler.fire_at == START_TIME + 840
        assert clock.sleeps == [840]

        await clock.advance(839)
        callback.assert_not_awaited()

        await clock.advance(1)
        callback.assert_awaited_once()
        assert scheduler.armed is False

    @pytest.mark.asyncio
    async def test_fires_immediately_when_overdue(self, scheduler, callback, clock):
        scheduler.arm(START_TIME + 10)
        await settle()

        callback.assert_awaited_once()
        assert clock.sleeps == [0]

    @pytest.mark.asyncio
    async def test_disarm_cancels_pending_timer(self, scheduler, callback, clock):
        scheduler.arm(START_TIME + 900)
        await settle()

        scheduler.disarm()
        await settle()
        await clock.advance(1000)

        callback.assert_not_awaited()
        assert scheduler.armed is False
        assert scheduler.fire_at is None
        assert clock.pending == 0

    @pytest.mark.asyncio
    async def test_arm_replaces_pending_timer(self, scheduler, callback, clock):
        """Re-arming should leave exactly one pending timer."""
        scheduler.arm(START_TIME + 900)
        await settle()
        scheduler.arm(START_TIME + 1800)
        await settle()

        assert clock.pending == 1
        await clock.advance(840)
        callback.assert_not_awaited()

        await clock.advance(900)
        callback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_does_not_rearm_itself(self, scheduler, callback, clock):
        scheduler.arm(START_TIME + 900)
        await settle()
        await clock.advance(840)

        assert scheduler.armed is False
        assert clock.pending == 0

    @pytest.mark.asyncio
    async def test_callback_may_rearm(self, clock):
        """A re-arm from inside the callback must not cancel the new timer."""
        scheduler = None

        async def renew():
            scheduler.arm(clock() + 900)

        scheduler = ProactiveScheduler(renew, buffer_seconds=60, clock=clock, sleep=clock.sleep)
        scheduler.arm(START_TIME + 900)
        await settle()
        await clock.advance(840)

        assert scheduler.armed is True
        assert scheduler.fire_at == START_TIME + 840 + 840
        scheduler.disarm()

    @pytest.mark.asyncio
    async def test_failure_is_logged_and_not_rearmed(self, clock, caplog):
        callback = AsyncMock(side_effect=RenewalUnavailable("network down"))
        scheduler = ProactiveScheduler(callback, buffer_seconds=60, clock=clock, sleep=clock.sleep)

        with caplog.at_level(logging.WARNING, logger="authsession.session.scheduler"):
            scheduler.arm(START_TIME + 900)
            await settle()
            await clock.advance(840)

        callback.assert_awaited_once()
        assert scheduler.armed is False
        assert "network down" in caplog.text
