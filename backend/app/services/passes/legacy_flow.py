"""
Legacy Departure/Return Flow

The simpler two-state surface kept for older clients: inside an open pass
the student is either IN_CLASS or IN_TRANSIT.

    DECLARE_DEPARTURE: IN_CLASS   -> IN_TRANSIT (pass stays open)
    DECLARE_RETURN:    IN_TRANSIT -> IN_CLASS   (pass closes)

Invalid action/state combinations raise FailedPreconditionError instead of
silently returning the unchanged state. Closing always goes through
PassService.return_pass so durations, legs and escalation clearing behave
exactly as in the main flow.
"""
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import Clock, system_clock
from app.models.passes import Pass, PassStatus, MovementState, LegDirection
from app.services.errors import FailedPreconditionError, InvalidArgumentError
from app.services.logging import hallpass_logger
from app.services.passes.state_machine import PassService, minutes_between


class MovementAction(str, Enum):
    DECLARE_DEPARTURE = "DECLARE_DEPARTURE"
    DECLARE_RETURN = "DECLARE_RETURN"


@dataclass(frozen=True)
class MovementTransition:
    movement_state: MovementState
    status: PassStatus


def next_movement(state, status, action) -> MovementTransition:
    """
    Pure transition function for the two-state flow.

    Raises:
        FailedPreconditionError: the action is not valid from this state
        InvalidArgumentError: unknown action or state
    """
    try:
        state = MovementState(state)
        status = PassStatus(status)
        action = MovementAction(action)
    except ValueError as exc:
        raise InvalidArgumentError(str(exc))

    if status != PassStatus.ACTIVE:
        raise FailedPreconditionError(f"Pass is {status.value}; no further movement is allowed")

    if action == MovementAction.DECLARE_DEPARTURE:
        if state != MovementState.IN_CLASS:
            raise FailedPreconditionError("Cannot declare departure: student is already out of class")
        return MovementTransition(MovementState.IN_TRANSIT, PassStatus.ACTIVE)

    if state != MovementState.IN_TRANSIT:
        raise FailedPreconditionError("Cannot declare return: student has not left class")
    return MovementTransition(MovementState.IN_CLASS, PassStatus.CLOSED)


class LegacyPassFlow:
    """Departure/return surface built on top of PassService."""

    def __init__(self, db: AsyncSession, clock: Optional[Clock] = None):
        self.db = db
        self.clock = clock or system_clock
        self.pass_service = PassService(db, self.clock)

    async def declare_departure(
        self,
        pass_id: uuid.UUID,
        actor_id: uuid.UUID,
        actor_name: str,
    ) -> Pass:
        pass_record = await self.pass_service.get_pass(pass_id)
        transition = next_movement(
            pass_record.movement_state, pass_record.status, MovementAction.DECLARE_DEPARTURE
        )

        now = self.clock.now()
        passes = self.pass_service.passes
        last_leg = await passes.get_last_leg(pass_id)

        applied = await passes.update(
            pass_id,
            {"movement_state": transition.movement_state.value},
            expected_version=pass_record.version,
            expected_status=PassStatus.ACTIVE.value,
        )
        if not applied:
            await self.db.rollback()
            raise FailedPreconditionError("Pass was modified concurrently; reload and retry")

        await passes.add_leg(
            pass_id=pass_id,
            location_id=pass_record.origin_location_id,
            location_name=pass_record.origin_location_name,
            actor_id=actor_id,
            actor_name=actor_name,
            direction=LegDirection.OUT.value,
            timestamp=now,
            duration_from_previous=minutes_between(last_leg.timestamp, now) if last_leg else None,
        )
        await self.db.commit()

        hallpass_logger.pass_departure_declared(
            pass_id=pass_id,
            student_id=pass_record.student_id,
            user_id=actor_id,
        )
        return await self.pass_service.get_pass(pass_id)

    async def declare_return(
        self,
        pass_id: uuid.UUID,
        actor_id: uuid.UUID,
        actor_name: str,
    ) -> Pass:
        pass_record = await self.pass_service.get_pass(pass_id)
        next_movement(pass_record.movement_state, pass_record.status, MovementAction.DECLARE_RETURN)
        return await self.pass_service.return_pass(pass_id, actor_id, actor_name)
