"""Scheduler service that runs the automated offer batch on cron schedules."""

import asyncio
import time
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

import structlog
from croniter import croniter

from offer_engine.config import get_settings
from offer_engine.services.offer_service import OfferService

logger = structlog.get_logger(__name__)


class OfferSchedulerService:
    """Polls the configured cron expressions and runs due offer batches."""

    def __init__(self, offer_service: Optional[OfferService] = None):
        self.offer_service = offer_service or OfferService()
        self._task: Optional[asyncio.Task] = None
        self._running = False
        self._next_runs: dict[str, datetime] = {}

    def _now(self) -> datetime:
        return datetime.now(ZoneInfo(get_settings().scheduler_timezone))

    def _schedule_from(self, start: datetime) -> None:
        """Compute the next fire time of every cron expression after ``start``."""
        self._next_runs = {
            expr: croniter(expr, start).get_next(datetime)
            for expr in get_settings().scheduler_cron_list
        }

    def start(self):
        """Start the scheduler loop as an asyncio background task."""
        self._schedule_from(self._now())
        self._running = True
        self._task = asyncio.create_task(self._poll_loop())
        logger.info(
            "offer_scheduler_started",
            next_runs={expr: run.isoformat() for expr, run in self._next_runs.items()},
        )

    async def stop(self):
        """Stop the scheduler loop."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        logger.info("offer_scheduler_stopped")

    async def _poll_loop(self):
        """Main loop: check for due schedules every poll interval."""
        interval = get_settings().scheduler_poll_interval_seconds

        while self._running:
            try:
                await self._poll_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("offer_scheduler_poll_error", error=str(e))

            try:
                await asyncio.sleep(interval)
            except asyncio.CancelledError:
                break

    async def _poll_once(self) -> bool:
        """Run the batch once if any schedule is due. Returns True if it ran."""
        now = self._now()
        due = [expr for expr, run_at in self._next_runs.items() if run_at <= now]
        if not due:
            return False

        # Several expressions due at once still trigger a single run
        for expr in due:
            self._next_runs[expr] = croniter(expr, now).get_next(datetime)

        await self.run_batch(trigger=",".join(due))
        return True

    async def run_batch(self, trigger: str = "manual") -> None:
        """Run the automated offer batch, then expire stale offers."""
        start_time = time.perf_counter()
        logger.info("offer_batch_triggered", trigger=trigger)

        try:
            result = await self.offer_service.process_automated_offers()
            expired = await self.offer_service.expire_stale_offers()
        except Exception as e:
            logger.error(
                "offer_batch_run_failed",
                trigger=trigger,
                error=str(e),
                duration_ms=int((time.perf_counter() - start_time) * 1000),
            )
            return

        logger.info(
            "offer_batch_run_completed",
            trigger=trigger,
            sent=result.sent,
            failed=result.failed,
            skipped=result.skipped,
            expired=expired,
            duration_ms=int((time.perf_counter() - start_time) * 1000),
        )
