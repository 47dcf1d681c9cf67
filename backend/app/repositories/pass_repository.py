from datetime import datetime
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import Clock, system_clock
from app.models.passes import Pass, PassLeg, PassStatus, ACTIVE_PASS_INDEX
from app.services.validation import validate_pass, validate_pass_leg


class ActivePassExistsError(Exception):
    """Raised when the single-active-pass index rejects an insert."""

    def __init__(self, student_id: uuid.UUID):
        super().__init__(f"Student {student_id} already has an active pass")
        self.student_id = student_id


def _is_active_pass_violation(exc: IntegrityError) -> bool:
    text = str(exc.orig)
    return ACTIVE_PASS_INDEX in text or "passes.student_id" in text


class PassRepository:
    """
    Durable store of passes and their legs.

    Reads always go to the database (populate_existing) because students,
    staff and the escalation monitor mutate passes concurrently.
    """

    def __init__(self, db: AsyncSession, clock: Optional[Clock] = None):
        self.db = db
        self.clock = clock or system_clock

    async def get(self, pass_id: uuid.UUID, for_update: bool = False) -> Optional[Pass]:
        stmt = (
            select(Pass)
            .where(Pass.id == pass_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def find_active_by_student(self, student_id: uuid.UUID) -> List[Pass]:
        result = await self.db.execute(
            select(Pass)
            .where(Pass.student_id == student_id)
            .where(Pass.status == PassStatus.ACTIVE.value)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def find_all_active(self) -> List[Pass]:
        result = await self.db.execute(
            select(Pass)
            .where(Pass.status == PassStatus.ACTIVE.value)
            .order_by(Pass.opened_at)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def create(self, pass_record: Pass) -> uuid.UUID:
        """
        Insert a new pass and flush it.

        Records breaking a pass invariant raise InvalidArgumentError before
        anything is written. On a single-active-pass violation the session
        is rolled back and ActivePassExistsError is raised.
        """
        now = self.clock.now()
        if pass_record.created_at is None:
            pass_record.created_at = now
        if pass_record.updated_at is None:
            pass_record.updated_at = pass_record.created_at
        if pass_record.version is None:
            pass_record.version = 1
        validate_pass(pass_record).raise_for_errors("Invalid pass")

        student_id = pass_record.student_id
        self.db.add(pass_record)
        try:
            await self.db.flush()
        except IntegrityError as exc:
            await self.db.rollback()
            if _is_active_pass_violation(exc):
                raise ActivePassExistsError(student_id) from exc
            raise
        return pass_record.id

    async def update(
        self,
        pass_id: uuid.UUID,
        fields: Dict[str, Any],
        expected_version: Optional[int] = None,
        expected_status: Optional[str] = None,
    ) -> bool:
        """
        Conditionally update a pass.

        The write only applies when the stored version (and status, when
        given) still match; returns False otherwise. Every successful write
        bumps the version and updated_at.
        """
        values = dict(fields)
        values["version"] = Pass.version + 1
        values["updated_at"] = self.clock.now()

        stmt = update(Pass).where(Pass.id == pass_id)
        if expected_version is not None:
            stmt = stmt.where(Pass.version == expected_version)
        if expected_status is not None:
            stmt = stmt.where(Pass.status == expected_status)

        result = await self.db.execute(
            stmt.values(**values).execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def get_last_leg(self, pass_id: uuid.UUID) -> Optional[PassLeg]:
        result = await self.db.execute(
            select(PassLeg)
            .where(PassLeg.pass_id == pass_id)
            .order_by(PassLeg.leg_number.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_legs(self, pass_id: uuid.UUID) -> List[PassLeg]:
        result = await self.db.execute(
            select(PassLeg)
            .where(PassLeg.pass_id == pass_id)
            .order_by(PassLeg.leg_number)
        )
        return list(result.scalars().all())

    async def add_leg(
        self,
        *,
        pass_id: uuid.UUID,
        location_id: uuid.UUID,
        location_name: str,
        actor_id: uuid.UUID,
        actor_name: str,
        direction: str,
        timestamp: datetime,
        is_check_in: bool = False,
        is_return: bool = False,
        duration_from_previous: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> PassLeg:
        result = await self.db.execute(
            select(func.max(PassLeg.leg_number)).where(PassLeg.pass_id == pass_id)
        )
        last_number = result.scalar() or 0

        leg = PassLeg(
            pass_id=pass_id,
            leg_number=last_number + 1,
            location_id=location_id,
            location_name=location_name,
            actor_id=actor_id,
            actor_name=actor_name,
            direction=direction,
            timestamp=timestamp,
            is_check_in=is_check_in,
            is_return=is_return,
            duration_from_previous=duration_from_previous,
            notes=notes,
        )
        validate_pass_leg(leg).raise_for_errors("Invalid pass leg")
        self.db.add(leg)
        await self.db.flush()
        return leg

    async def count_active_by_level(self) -> Dict[Optional[str], int]:
        result = await self.db.execute(
            select(Pass.escalation_level, func.count(Pass.id))
            .where(Pass.status == PassStatus.ACTIVE.value)
            .group_by(Pass.escalation_level)
        )
        return {level: count for level, count in result.all()}
