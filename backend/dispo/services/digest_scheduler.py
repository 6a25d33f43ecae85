"""
Daily digest scheduler.

Runs ``NotificationService.process_daily_digest`` once per day at the
configured HH:MM (local time) as a background asyncio task that sleeps until
the next occurrence. ``stop()`` cancels the task for a clean shutdown.
A failing run is logged and the scheduler carries on with the next day.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Awaitable, Callable

from dispo.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

NowFn = Callable[[], datetime]
SleepFn = Callable[[float], Awaitable[None]]


def parse_schedule(schedule: str) -> tuple[int, int]:
    hours, minutes = schedule.split(":")
    return int(hours), int(minutes)


def next_run_after(now: datetime, hour: int, minute: int) -> datetime:
    """Next datetime strictly after `now` that falls on hour:minute."""
    candidate = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate


class DigestScheduler:
    def __init__(
        self,
        service: NotificationService,
        schedule: str,
        *,
        now_fn: NowFn = datetime.now,
        sleep_fn: SleepFn = asyncio.sleep,
    ):
        self.service = service
        self.hour, self.minute = parse_schedule(schedule)
        self.now_fn = now_fn
        self.sleep_fn = sleep_fn
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if not self.service.is_enabled:
            logger.info("Notifications disabled, digest scheduler not started")
            return
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="daily-digest")
        logger.info("Digest scheduler started (daily at %02d:%02d)", self.hour, self.minute)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Digest scheduler stopped")

    async def run_once(self) -> None:
        try:
            await self.service.process_daily_digest(today=self.now_fn().date())
        except Exception:
            logger.exception("Failed to process daily digest")

    async def _run(self) -> None:
        while True:
            target = next_run_after(self.now_fn(), self.hour, self.minute)
            logger.debug("Next digest run at %s", target.isoformat())
            # sleep may wake early; never fire before the target minute
            remaining = (target - self.now_fn()).total_seconds()
            while remaining > 0:
                await self.sleep_fn(remaining)
                remaining = (target - self.now_fn()).total_seconds()
            await self.run_once()
