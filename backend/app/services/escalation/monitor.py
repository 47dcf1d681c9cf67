"""
Escalation Monitor

Periodically re-evaluates every active pass.

- Each pass is checked in its own session, so one failure cannot poison
  another pass's transaction.
- Checks within a tick run concurrently, bounded by a semaphore.
- A failed check is logged with its pass id and counted; the batch goes on.
- Ticks are launched on a fixed interval. A tick that starts while the
  previous one is still running is skipped.
- start() returns a MonitorHandle; stop() is idempotent.

The sleep function is injectable so tests can drive ticks deterministically.
"""
import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Set

from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.clock import Clock, system_clock
from app.core.config import settings
from app.repositories.directory_repository import DirectoryRepository
from app.repositories.pass_repository import PassRepository
from app.schemas.escalation import EscalationThresholds
from app.services.escalation.notifications import (
    DatabaseNotificationDispatcher,
    NotificationDispatcher,
)
from app.services.escalation.service import (
    EscalationCheckResult,
    EscalationService,
    EscalationStats,
)
from app.services.escalation.thresholds import ThresholdResolver
from app.services.logging import hallpass_logger

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class BatchResult:
    checked: int
    escalated: int
    errors: int


class MonitorHandle:
    """Cancellation handle returned by EscalationMonitor.start()."""

    def __init__(self, monitor: "EscalationMonitor"):
        self._monitor = monitor

    @property
    def running(self) -> bool:
        return self._monitor.running

    async def stop(self) -> None:
        await self._monitor.stop()


class EscalationMonitor:
    def __init__(
        self,
        session_factory: async_sessionmaker,
        clock: Optional[Clock] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
        defaults: Optional[EscalationThresholds] = None,
        interval_seconds: Optional[float] = None,
        max_concurrency: Optional[int] = None,
        sleep: SleepFunc = asyncio.sleep,
    ):
        self.session_factory = session_factory
        self.clock = clock or system_clock
        self.dispatcher = dispatcher or DatabaseNotificationDispatcher(session_factory, self.clock)
        self.defaults = defaults or settings.default_thresholds
        self.interval_seconds = (
            interval_seconds if interval_seconds is not None
            else settings.ESCALATION_CHECK_INTERVAL_SECONDS
        )
        self.max_concurrency = max_concurrency or settings.ESCALATION_MAX_CONCURRENT_CHECKS
        self._sleep = sleep

        self._loop_task: Optional[asyncio.Task] = None
        self._tick_tasks: Set[asyncio.Task] = set()
        self._tick_running = False
        self._handle: Optional[MonitorHandle] = None

    def _service(self, session) -> EscalationService:
        return EscalationService(
            session,
            clock=self.clock,
            dispatcher=self.dispatcher,
            resolver=ThresholdResolver(DirectoryRepository(session), self.defaults),
        )

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    @property
    def tick_in_progress(self) -> bool:
        return self._tick_running

    # Operations

    async def check_and_update(self, pass_id: uuid.UUID) -> EscalationCheckResult:
        async with self.session_factory() as session:
            return await self._service(session).check_and_update(pass_id)

    async def clear_escalation(self, pass_id: uuid.UUID) -> bool:
        async with self.session_factory() as session:
            return await self._service(session).clear_escalation(pass_id)

    async def get_stats(self) -> EscalationStats:
        async with self.session_factory() as session:
            return await self._service(session).get_stats()

    async def check_all_active_passes(self) -> BatchResult:
        """Check every active pass; never raises."""
        started = time.monotonic()
        try:
            async with self.session_factory() as session:
                active = await PassRepository(session, self.clock).find_all_active()
                pass_ids = [p.id for p in active]
        except Exception:
            logger.exception("Failed to load active passes for escalation check")
            hallpass_logger.escalation_batch_completed(checked=0, escalated=0, errors=1)
            return BatchResult(checked=0, escalated=0, errors=1)

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def check_one(pass_id: uuid.UUID) -> Optional[EscalationCheckResult]:
            async with semaphore:
                try:
                    return await self.check_and_update(pass_id)
                except Exception as e:
                    hallpass_logger.escalation_check_failed(pass_id=pass_id, error=str(e))
                    return None

        results = await asyncio.gather(*(check_one(pid) for pid in pass_ids))

        errors = sum(1 for r in results if r is None)
        escalated = sum(1 for r in results if r is not None and r.updated)
        batch = BatchResult(checked=len(pass_ids), escalated=escalated, errors=errors)

        hallpass_logger.escalation_batch_completed(
            checked=batch.checked,
            escalated=batch.escalated,
            errors=batch.errors,
            duration_ms=round((time.monotonic() - started) * 1000, 1),
        )
        return batch

    # Scheduling

    async def run_tick(self) -> Optional[BatchResult]:
        """Run one sweep, or return None if a sweep is already running."""
        if self._tick_running:
            hallpass_logger.escalation_tick_skipped()
            return None
        self._tick_running = True
        try:
            return await self.check_all_active_passes()
        finally:
            self._tick_running = False

    def _spawn_tick(self) -> None:
        task = asyncio.create_task(self.run_tick())
        self._tick_tasks.add(task)
        task.add_done_callback(self._tick_tasks.discard)

    async def _run_loop(self) -> None:
        while True:
            self._spawn_tick()
            await self._sleep(self.interval_seconds)

    def start(self) -> MonitorHandle:
        """Start the periodic loop. Calling start on a running monitor returns its handle."""
        if self.running and self._handle:
            return self._handle
        self._loop_task = asyncio.create_task(self._run_loop())
        self._handle = MonitorHandle(self)
        logger.info(
            "Escalation monitor started (interval=%ss, max_concurrency=%s)",
            self.interval_seconds,
            self.max_concurrency,
        )
        return self._handle

    async def stop(self) -> None:
        """Stop the loop and cancel in-flight ticks. Safe to call repeatedly."""
        loop_task, self._loop_task = self._loop_task, None
        if loop_task is None:
            return

        loop_task.cancel()
        tick_tasks = list(self._tick_tasks)
        for task in tick_tasks:
            task.cancel()
        await asyncio.gather(loop_task, *tick_tasks, return_exceptions=True)
        self._tick_tasks.clear()
        self._tick_running = False
        logger.info("Escalation monitor stopped")
