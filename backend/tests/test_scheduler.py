"""
VoiceBrief Backend: Delayed Delivery Scheduler Unit Tests
=========================================================

The scheduler gets a fake sleep (records the delay, returns at once) and a
fixed clock, so every test runs instantly.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from voicebrief.exceptions import DeliveryError, InvalidOptionError
from voicebrief.services.scheduler import DELAY_OPTIONS, DeliveryScheduler, DeliveryState

FIXED_NOW = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


def make_scheduler(send, sleep):
    return DeliveryScheduler(send=send, sleep=sleep, now=lambda: FIXED_NOW)


class TestScheduleDelayed:

    @pytest.mark.asyncio
    async def test_five_minutes(self, sample_summary, sleep_recorder):
        sleep, delays = sleep_recorder
        send = AsyncMock()
        scheduler = make_scheduler(send, sleep)

        delivery = scheduler.schedule_delayed("user@example.com", sample_summary, "transcript", "5min")

        assert delivery.fire_at == FIXED_NOW + timedelta(minutes=5)
        assert delivery.scheduled_time == (FIXED_NOW + timedelta(minutes=5)).isoformat()
        assert delivery.human_delay == "5 minutes"
        assert delivery.state is DeliveryState.PENDING
        send.assert_not_awaited()

        await scheduler.join()

        assert delays == [300.0]
        send.assert_awaited_once_with("user@example.com", sample_summary, "transcript")
        assert delivery.state is DeliveryState.DELIVERED
        assert scheduler.pending_count == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "label, seconds, human",
        [("1hour", 3600.0, "1 hour"), ("1day", 86400.0, "1 day")],
    )
    async def test_other_offsets(self, sample_summary, sleep_recorder, label, seconds, human):
        sleep, delays = sleep_recorder
        scheduler = make_scheduler(AsyncMock(), sleep)

        delivery = scheduler.schedule_delayed("user@example.com", sample_summary, "t", label)
        await scheduler.join()

        assert delivery.human_delay == human
        assert delivery.fire_at == FIXED_NOW + DELAY_OPTIONS[label].offset
        assert delays == [seconds]

    @pytest.mark.asyncio
    async def test_unknown_option_arms_nothing(self, sample_summary, sleep_recorder):
        sleep, delays = sleep_recorder
        send = AsyncMock()
        scheduler = make_scheduler(send, sleep)

        with pytest.raises(InvalidOptionError) as exc_info:
            scheduler.schedule_delayed("user@example.com", sample_summary, "t", "2weeks")

        assert exc_info.value.field == "scheduleOption"
        assert scheduler.pending_count == 0
        await scheduler.join()
        send.assert_not_awaited()
        assert delays == []

    @pytest.mark.asyncio
    async def test_failed_send_is_terminal(self, sample_summary, sleep_recorder):
        sleep, _ = sleep_recorder
        send = AsyncMock(side_effect=DeliveryError("Failed to send email: relay down"))
        scheduler = make_scheduler(send, sleep)

        delivery = scheduler.schedule_delayed("user@example.com", sample_summary, "t", "5min")
        await scheduler.join()

        assert delivery.state is DeliveryState.FAILED
        send.assert_awaited_once()
        assert scheduler.pending_count == 0

    @pytest.mark.asyncio
    async def test_deliveries_are_independent(self, sample_summary, sleep_recorder):
        sleep, _ = sleep_recorder
        send = AsyncMock()
        scheduler = make_scheduler(send, sleep)

        first = scheduler.schedule_delayed("a@example.com", sample_summary, "t", "5min")
        second = scheduler.schedule_delayed("b@example.com", sample_summary, "t", "1hour")
        assert scheduler.pending_count == 2
        assert {d.id for d in scheduler.pending()} == {first.id, second.id}

        await scheduler.join()

        assert send.await_count == 2
        assert first.state is second.state is DeliveryState.DELIVERED


class TestShutdown:

    @pytest.mark.asyncio
    async def test_shutdown_cancels_pending(self, sample_summary):
        never = asyncio.Event()

        async def blocking_sleep(seconds):
            await never.wait()

        send = AsyncMock()
        scheduler = make_scheduler(send, blocking_sleep)
        delivery = scheduler.schedule_delayed("user@example.com", sample_summary, "t", "1day")
        await asyncio.sleep(0)

        await scheduler.shutdown()

        send.assert_not_awaited()
        assert delivery.state is DeliveryState.PENDING
        assert scheduler.pending_count == 0
