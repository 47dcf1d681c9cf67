"""
Escalation Service

Session-scoped escalation operations for a single pass:
- check_and_update: re-evaluate one pass and persist a level change
- clear_escalation: reset escalation fields (idempotent)
- get_stats: counts of active passes per persisted level

Ordering within check_and_update:
1. Re-read the pass (authoritative state)
2. Compute duration, thresholds and level
3. Compare-and-swap the level on the pass version, then commit
4. On a rising edge only, dispatch notifications (best-effort)

A check that loses the compare-and-swap does not notify, so two racing
checks cannot produce two notification bursts for the same edge.
"""
import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import Clock, system_clock
from app.models.passes import EscalationLevel, PassStatus
from app.repositories.directory_repository import DirectoryRepository
from app.repositories.pass_repository import PassRepository
from app.services.errors import NotFoundError
from app.services.escalation.evaluator import (
    calculate_duration,
    determine_level,
    is_higher_escalation,
)
from app.services.escalation.notifications import EscalationNotifier, NotificationDispatcher
from app.services.escalation.thresholds import ThresholdResolver
from app.services.logging import hallpass_logger
from app.services.passes.state_machine import PassService


@dataclass(frozen=True)
class EscalationCheckResult:
    pass_id: uuid.UUID
    updated: bool
    new_level: Optional[EscalationLevel]
    duration: int
    notified: bool = False


@dataclass(frozen=True)
class EscalationStats:
    total_active: int
    warnings: int
    alerts: int
    critical: int


class EscalationService:
    def __init__(
        self,
        db: AsyncSession,
        clock: Optional[Clock] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
        resolver: Optional[ThresholdResolver] = None,
    ):
        self.db = db
        self.clock = clock or system_clock
        self.passes = PassRepository(db, self.clock)
        self.directory = DirectoryRepository(db)
        self.pass_service = PassService(db, self.clock)
        self.resolver = resolver or ThresholdResolver(self.directory)
        self.notifier = EscalationNotifier(self.directory, dispatcher) if dispatcher else None

    async def check_and_update(self, pass_id: uuid.UUID) -> EscalationCheckResult:
        """
        Re-evaluate a pass and persist its escalation level if it changed.

        Raises:
            NotFoundError: the pass does not exist
        """
        pass_record = await self.passes.get(pass_id)
        if not pass_record:
            raise NotFoundError(f"Pass {pass_id} not found")

        current_level = (
            EscalationLevel(pass_record.escalation_level) if pass_record.escalation_level else None
        )

        if pass_record.status != PassStatus.ACTIVE.value:
            duration = pass_record.total_duration or 0
            return EscalationCheckResult(pass_id, False, current_level, duration)

        now = self.clock.now()
        duration = calculate_duration(pass_record, now)
        thresholds = await self.resolver.resolve(pass_record)
        new_level = determine_level(duration, thresholds)

        if new_level == current_level:
            return EscalationCheckResult(pass_id, False, current_level, duration)

        # Rollback expires the loaded pass; read what we log beforehand
        expected_version = pass_record.version
        student_id = pass_record.student_id

        applied = await self.pass_service.apply_escalation(
            pass_id,
            new_level,
            triggered_at=now if new_level else None,
            expected_version=expected_version,
        )
        if not applied:
            await self.db.rollback()
            hallpass_logger.escalation_update_skipped(
                pass_id=pass_id,
                expected_version=expected_version,
                attempted_level=new_level.value if new_level else None,
            )
            return EscalationCheckResult(pass_id, False, current_level, duration)

        await self.db.commit()

        hallpass_logger.escalation_changed(
            pass_id=pass_id,
            student_id=student_id,
            previous_level=current_level.value if current_level else None,
            new_level=new_level.value if new_level else None,
            duration=duration,
            warning_threshold=thresholds.warning,
            alert_threshold=thresholds.alert,
        )

        notified = False
        if self.notifier and is_higher_escalation(new_level, current_level):
            # State is already committed; delivery problems must not undo it
            try:
                await self.notifier.notify(pass_record, new_level, duration)
                notified = True
            except Exception as e:
                hallpass_logger.notification_dispatch_failed(pass_id=pass_id, error=str(e))

        return EscalationCheckResult(pass_id, True, new_level, duration, notified)

    async def clear_escalation(self, pass_id: uuid.UUID) -> bool:
        """
        Reset escalation fields. Idempotent.

        Raises:
            NotFoundError: the pass does not exist
        """
        pass_record = await self.passes.get(pass_id)
        if not pass_record:
            raise NotFoundError(f"Pass {pass_id} not found")
        previous_level = pass_record.escalation_level

        cleared = await self.pass_service.clear_escalation(pass_id)
        if not cleared:
            return False

        await self.db.commit()
        hallpass_logger.escalation_cleared(pass_id=pass_id, previous_level=previous_level)
        return True

    async def get_stats(self) -> EscalationStats:
        counts = await self.passes.count_active_by_level()
        return EscalationStats(
            total_active=sum(counts.values()),
            warnings=counts.get(EscalationLevel.WARNING.value, 0),
            alerts=counts.get(EscalationLevel.ALERT.value, 0),
            critical=counts.get(EscalationLevel.CRITICAL.value, 0),
        )
