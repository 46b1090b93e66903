"""
VoiceBrief Backend: Delayed Delivery Scheduler
==============================================

What:  Defers a summary email by a fixed offset (5 minutes, 1 hour, 1 day).
How:   Each ScheduledDelivery gets one asyncio task that sleeps for the
       offset and then calls the immediate-send path. The scheduling call
       returns as soon as the task is created.
Who:   VoiceService.deliver_summary() for non-instant schedule options;
       the app lifespan calls shutdown() on exit.

State machine (no way back to PENDING, no public cancellation):

    PENDING ──timer elapses──▶ FIRED ──send ok──▶ DELIVERED
                                  └──send fails──▶ FAILED

    A failed send has no caller to report to: it is logged and terminal,
    never retried or requeued.

Durability:
    Pending deliveries live only in this process. A restart loses them; the
    lifespan shutdown logs how many were dropped.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, NamedTuple

from voicebrief.exceptions import InvalidOptionError
from voicebrief.schemas.voice import Summary
from voicebrief.services.email_service import email_service

logger = logging.getLogger(__name__)

SendFunc = Callable[[str, Summary, str], Awaitable[Any]]
SleepFunc = Callable[[float], Awaitable[None]]
ClockFunc = Callable[[], datetime]


class DelayOption(NamedTuple):
    offset: timedelta
    label: str


DELAY_OPTIONS: Dict[str, DelayOption] = {
    "5min": DelayOption(timedelta(minutes=5), "5 minutes"),
    "1hour": DelayOption(timedelta(hours=1), "1 hour"),
    "1day": DelayOption(timedelta(days=1), "1 day"),
}


class DeliveryState(str, Enum):
    PENDING = "pending"
    FIRED = "fired"
    DELIVERED = "delivered"
    FAILED = "failed"


@dataclass
class ScheduledDelivery:
    recipient: str
    summary: Summary
    transcript: str
    delay_label: str
    fire_at: datetime
    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: DeliveryState = DeliveryState.PENDING

    @property
    def human_delay(self) -> str:
        return DELAY_OPTIONS[self.delay_label].label

    @property
    def scheduled_time(self) -> str:
        return self.fire_at.isoformat()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DeliveryScheduler:
    """
    In-process one-shot timers for delayed email delivery.

    Args:
        send:   Immediate-send coroutine function (recipient, summary, transcript)
        sleep:  Awaitable sleep, injectable so tests control the clock
        now:    Wall-clock source for computing fire_at
    """

    def __init__(
        self,
        send: SendFunc,
        sleep: SleepFunc = asyncio.sleep,
        now: ClockFunc = _utcnow,
    ):
        self._send = send
        self._sleep = sleep
        self._now = now
        self._tasks: Dict[str, asyncio.Task] = {}
        self._deliveries: Dict[str, ScheduledDelivery] = {}

    def schedule_delayed(
        self,
        recipient: str,
        summary: Summary,
        transcript: str,
        delay_label: str,
    ) -> ScheduledDelivery:
        """
        Arm a timer that sends the summary after `delay_label`.

        Must be called from a running event loop. Returns immediately.

        Raises:
            InvalidOptionError: unknown label. Nothing is armed.
        """
        option = DELAY_OPTIONS.get(delay_label)
        if option is None:
            raise InvalidOptionError(delay_label, list(DELAY_OPTIONS))

        delivery = ScheduledDelivery(
            recipient=recipient,
            summary=summary,
            transcript=transcript,
            delay_label=delay_label,
            fire_at=self._now() + option.offset,
        )

        task = asyncio.get_running_loop().create_task(
            self._run(delivery, option.offset.total_seconds()),
            name=f"scheduled-delivery-{delivery.id}",
        )
        self._tasks[delivery.id] = task
        self._deliveries[delivery.id] = delivery
        task.add_done_callback(lambda _t, delivery_id=delivery.id: self._forget(delivery_id))

        logger.info(
            "Scheduled delivery %s to %s for %s (in %s)",
            delivery.id,
            recipient,
            delivery.scheduled_time,
            option.label,
        )
        return delivery

    async def _run(self, delivery: ScheduledDelivery, delay_seconds: float) -> None:
        await self._sleep(delay_seconds)
        delivery.state = DeliveryState.FIRED

        try:
            await self._send(delivery.recipient, delivery.summary, delivery.transcript)
        except Exception as e:
            delivery.state = DeliveryState.FAILED
            logger.error(
                "Scheduled delivery %s to %s failed: %s",
                delivery.id,
                delivery.recipient,
                str(e),
                exc_info=True,
            )
            return

        delivery.state = DeliveryState.DELIVERED
        logger.info("Scheduled delivery %s sent to %s", delivery.id, delivery.recipient)

    def _forget(self, delivery_id: str) -> None:
        self._tasks.pop(delivery_id, None)
        self._deliveries.pop(delivery_id, None)

    @property
    def pending_count(self) -> int:
        return len(self._tasks)

    def pending(self) -> List[ScheduledDelivery]:
        """Deliveries whose send attempt has not finished yet."""
        return list(self._deliveries.values())

    async def join(self) -> None:
        """Wait for every armed delivery to finish its send attempt."""
        tasks = list(self._tasks.values())
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def shutdown(self) -> None:
        """
        Cancel every armed timer. Pending deliveries are lost and logged.
        """
        if not self._tasks:
            return

        lost = [d for d in self._deliveries.values() if d.state is DeliveryState.PENDING]
        for delivery in lost:
            logger.warning(
                "Dropping scheduled delivery %s to %s (due %s) on shutdown",
                delivery.id,
                delivery.recipient,
                delivery.scheduled_time,
            )

        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


# ── Singleton Instance ────────────────────────────────────────────────────
delivery_scheduler = DeliveryScheduler(send=email_service.send)
