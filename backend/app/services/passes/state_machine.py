"""
Pass Lifecycle Service

Handles hall pass state transitions:
- create: no pass -> ACTIVE (at most one ACTIVE pass per student)
- check-in: ACTIVE -> ACTIVE at a new current location
- return: ACTIVE -> CLOSED (terminal)

EXPIRED and CANCELLED are reserved terminal statuses; they are never
produced here but are rejected wherever an active pass is required.

All operations:
- Re-read the pass before mutating it
- Write with a compare-and-swap on the pass version
- Append an immutable PassLeg for every movement
- Commit before returning
"""
import math
import uuid
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import Clock, ensure_utc, system_clock
from app.models.passes import (
    Pass,
    PassLeg,
    PassStatus,
    MovementState,
    EscalationLevel,
    LegDirection,
)
from app.repositories.directory_repository import DirectoryRepository
from app.repositories.pass_repository import PassRepository, ActivePassExistsError
from app.schemas.passes import PassCreate
from app.services.errors import NotFoundError, FailedPreconditionError
from app.services.logging import hallpass_logger
from app.services.validation import validate_location, validate_pass_create


def total_duration_minutes(opened_at: datetime, closed_at: datetime) -> int:
    """Elapsed minutes between open and close, rounded half-up."""
    seconds = (ensure_utc(closed_at) - ensure_utc(opened_at)).total_seconds()
    minutes = Decimal(str(max(seconds, 0))) / Decimal(60)
    return int(minutes.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def minutes_between(start: datetime, end: datetime) -> int:
    """Whole minutes elapsed, floored, never negative."""
    seconds = (ensure_utc(end) - ensure_utc(start)).total_seconds()
    return max(0, math.floor(seconds / 60))


class PassService:
    """
    Authoritative pass state machine.

    This service is the only writer of status, location and escalation
    fields. The escalation monitor writes escalation fields through
    apply_escalation / clear_escalation.
    """

    def __init__(self, db: AsyncSession, clock: Optional[Clock] = None):
        self.db = db
        self.clock = clock or system_clock
        self.passes = PassRepository(db, self.clock)
        self.directory = DirectoryRepository(db)

    async def get_pass(self, pass_id: uuid.UUID) -> Pass:
        """Get a pass by ID, re-reading authoritative state."""
        pass_record = await self.passes.get(pass_id)
        if not pass_record:
            raise NotFoundError(f"Pass {pass_id} not found")
        return pass_record

    async def list_legs(self, pass_id: uuid.UUID) -> List[PassLeg]:
        await self.get_pass(pass_id)
        return await self.passes.list_legs(pass_id)

    async def get_active_pass(self, student_id: uuid.UUID) -> Optional[Pass]:
        active = await self.passes.find_active_by_student(student_id)
        return active[0] if active else None

    async def create_pass(self, request: PassCreate) -> Pass:
        """
        Open a new pass for a student.

        Raises:
            InvalidArgumentError: malformed request (e.g. origin == destination)
            NotFoundError: unknown student or location
            FailedPreconditionError: student already has an active pass,
                or the destination is inactive
        """
        validate_pass_create(request).raise_for_errors("Invalid pass request")

        student = await self.directory.get_student(request.student_id)
        if not student:
            raise NotFoundError(f"Student {request.student_id} not found")
        if not student.is_active:
            raise FailedPreconditionError("Student is not active")

        origin = await self.directory.get_location(request.origin_location_id)
        if not origin:
            raise NotFoundError(f"Location {request.origin_location_id} not found")
        destination = await self.directory.get_location(request.destination_location_id)
        if not destination:
            raise NotFoundError(f"Location {request.destination_location_id} not found")
        if not destination.is_active:
            raise FailedPreconditionError(f"Location {destination.name} is not active")

        existing = await self.passes.find_active_by_student(request.student_id)
        if existing:
            hallpass_logger.pass_creation_conflict(
                student_id=request.student_id,
                existing_pass_id=existing[0].id,
                user_id=request.issued_by_id,
            )
            raise FailedPreconditionError(
                "Student already has an active pass",
                details={"active_pass_id": str(existing[0].id)},
            )

        now = self.clock.now()
        movement_state = MovementState.IN_TRANSIT if request.departed else MovementState.IN_CLASS
        pass_record = Pass(
            student_id=request.student_id,
            student_name=request.student_name,
            origin_location_id=request.origin_location_id,
            origin_location_name=request.origin_location_name,
            destination_location_id=request.destination_location_id,
            destination_location_name=request.destination_location_name,
            current_location_id=request.destination_location_id,
            status=PassStatus.ACTIVE.value,
            movement_state=movement_state.value,
            opened_at=now,
            closed_at=None,
            total_duration=None,
            escalation_level=None,
            escalation_triggered_at=None,
            issued_by_id=request.issued_by_id,
            issued_by_name=request.issued_by_name,
            is_override=request.is_override,
            notes=request.notes,
            version=1,
            created_at=now,
            updated_at=now,
        )

        try:
            await self.passes.create(pass_record)
        except ActivePassExistsError:
            # Lost the race against a concurrent creation for the same student
            hallpass_logger.pass_creation_conflict(
                student_id=request.student_id,
                user_id=request.issued_by_id,
            )
            raise FailedPreconditionError("Student already has an active pass")

        if request.departed:
            await self.passes.add_leg(
                pass_id=pass_record.id,
                location_id=request.origin_location_id,
                location_name=request.origin_location_name,
                actor_id=request.issued_by_id,
                actor_name=request.issued_by_name,
                direction=LegDirection.OUT.value,
                timestamp=now,
            )

        await self.db.commit()

        hallpass_logger.pass_created(
            pass_id=pass_record.id,
            student_id=pass_record.student_id,
            origin_location_id=pass_record.origin_location_id,
            destination_location_id=pass_record.destination_location_id,
            is_override=pass_record.is_override,
            user_id=request.issued_by_id,
        )

        return pass_record

    async def check_in(
        self,
        pass_id: uuid.UUID,
        location_id: uuid.UUID,
        actor_id: uuid.UUID,
        actor_name: str,
    ) -> Pass:
        """
        Record arrival at an intermediate location.

        Raises:
            NotFoundError: unknown pass or location
            FailedPreconditionError: pass not active, or location not check-in eligible
        """
        pass_record = await self.passes.get(pass_id, for_update=True)
        if not pass_record:
            raise NotFoundError(f"Pass {pass_id} not found")
        if pass_record.status != PassStatus.ACTIVE.value:
            raise FailedPreconditionError(
                f"Cannot check in: pass is {pass_record.status}. Only active passes can check in."
            )

        location = await self.directory.get_location(location_id)
        if not location:
            raise NotFoundError(f"Location {location_id} not found")
        if not location.is_active:
            raise FailedPreconditionError(f"Location {location.name} is not active")
        # Restrooms are never check-in targets, whatever the flag says
        misconfigured = any(
            issue.field == "is_check_in_eligible" for issue in validate_location(location).issues
        )
        if not location.is_check_in_eligible or misconfigured:
            raise FailedPreconditionError(f"Location {location.name} is not check-in eligible")

        now = self.clock.now()
        last_leg = await self.passes.get_last_leg(pass_id)
        since_previous = minutes_between(last_leg.timestamp, now) if last_leg else None

        applied = await self.passes.update(
            pass_id,
            {"current_location_id": location_id},
            expected_version=pass_record.version,
            expected_status=PassStatus.ACTIVE.value,
        )
        if not applied:
            await self.db.rollback()
            raise FailedPreconditionError("Pass was modified concurrently; reload and retry")

        leg = await self.passes.add_leg(
            pass_id=pass_id,
            location_id=location_id,
            location_name=location.name,
            actor_id=actor_id,
            actor_name=actor_name,
            direction=LegDirection.IN.value,
            timestamp=now,
            is_check_in=True,
            duration_from_previous=since_previous,
        )

        await self.db.commit()

        hallpass_logger.pass_checked_in(
            pass_id=pass_id,
            student_id=pass_record.student_id,
            location_id=location_id,
            leg_number=leg.leg_number,
            user_id=actor_id,
        )

        return await self.get_pass(pass_id)

    async def return_pass(
        self,
        pass_id: uuid.UUID,
        actor_id: uuid.UUID,
        actor_name: str,
    ) -> Pass:
        """
        Close a pass.

        Transitions: ACTIVE -> CLOSED. Escalation fields are cleared since a
        closed pass is no longer monitored.

        Raises:
            NotFoundError: unknown pass
            FailedPreconditionError: pass is not active
        """
        pass_record = await self.passes.get(pass_id, for_update=True)
        if not pass_record:
            raise NotFoundError(f"Pass {pass_id} not found")
        if pass_record.status != PassStatus.ACTIVE.value:
            raise FailedPreconditionError(
                f"Cannot return pass: pass is {pass_record.status}. Only active passes can be returned."
            )

        opened_at = ensure_utc(pass_record.opened_at)
        now = max(self.clock.now(), opened_at)
        total_duration = total_duration_minutes(opened_at, now)
        previous_level = pass_record.escalation_level

        last_leg = await self.passes.get_last_leg(pass_id)
        since_previous = minutes_between(last_leg.timestamp, now) if last_leg else None

        applied = await self.passes.update(
            pass_id,
            {
                "status": PassStatus.CLOSED.value,
                "closed_at": now,
                "total_duration": total_duration,
                "current_location_id": pass_record.origin_location_id,
                "movement_state": MovementState.IN_CLASS.value,
                "escalation_level": None,
                "escalation_triggered_at": None,
            },
            expected_version=pass_record.version,
            expected_status=PassStatus.ACTIVE.value,
        )
        if not applied:
            await self.db.rollback()
            raise FailedPreconditionError("Pass was modified concurrently; reload and retry")

        await self.passes.add_leg(
            pass_id=pass_id,
            location_id=pass_record.origin_location_id,
            location_name=pass_record.origin_location_name,
            actor_id=actor_id,
            actor_name=actor_name,
            direction=LegDirection.IN.value,
            timestamp=now,
            is_return=True,
            duration_from_previous=since_previous,
        )

        await self.db.commit()

        hallpass_logger.pass_returned(
            pass_id=pass_id,
            student_id=pass_record.student_id,
            total_duration=total_duration,
            user_id=actor_id,
        )
        if previous_level:
            hallpass_logger.escalation_cleared(pass_id=pass_id, previous_level=previous_level)

        return await self.get_pass(pass_id)

    # Escalation write path (caller owns the transaction)

    async def apply_escalation(
        self,
        pass_id: uuid.UUID,
        level: Optional[EscalationLevel],
        triggered_at: Optional[datetime],
        expected_version: int,
    ) -> bool:
        """
        Persist a new escalation level if the pass is unchanged and still active.

        A None level clears both escalation fields. Returns False when the
        compare-and-swap loses to a concurrent writer.
        """
        level_value = EscalationLevel(level).value if level else None
        return await self.passes.update(
            pass_id,
            {
                "escalation_level": level_value,
                "escalation_triggered_at": triggered_at if level_value else None,
            },
            expected_version=expected_version,
            expected_status=PassStatus.ACTIVE.value,
        )

    async def clear_escalation(self, pass_id: uuid.UUID) -> bool:
        """
        Reset escalation fields to null.

        Idempotent: returns False without writing when nothing is set.
        """
        pass_record = await self.get_pass(pass_id)
        if pass_record.escalation_level is None and pass_record.escalation_triggered_at is None:
            return False
        return await self.passes.update(
            pass_id,
            {"escalation_level": None, "escalation_triggered_at": None},
            expected_version=pass_record.version,
        )
