import uuid
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.roles import UserRole, UserStatus
from app.models.user import User
from app.models.student import Student, Group, group_members
from app.models.location import Location, LocationStaffAssignment
from app.schemas.escalation import EscalationThresholds


def _thresholds_of(entity) -> Optional[EscalationThresholds]:
    if entity is None:
        return None
    warning = entity.escalation_warning_minutes
    alert = entity.escalation_alert_minutes
    if warning is None or alert is None:
        return None
    return EscalationThresholds(warning=warning, alert=alert)


class DirectoryRepository:
    """Read access to users, students, groups and locations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user(self, user_id: uuid.UUID) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_student(self, student_id: uuid.UUID) -> Optional[Student]:
        result = await self.db.execute(select(Student).where(Student.id == student_id))
        return result.scalar_one_or_none()

    async def get_student_by_user(self, user_id: uuid.UUID) -> Optional[Student]:
        result = await self.db.execute(select(Student).where(Student.user_id == user_id))
        return result.scalar_one_or_none()

    async def get_location(self, location_id: uuid.UUID) -> Optional[Location]:
        result = await self.db.execute(
            select(Location)
            .where(Location.id == location_id)
            .options(selectinload(Location.staff_assignments))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_student_thresholds(self, student_id: uuid.UUID) -> Optional[EscalationThresholds]:
        return _thresholds_of(await self.get_student(student_id))

    async def get_location_thresholds(self, location_id: uuid.UUID) -> Optional[EscalationThresholds]:
        return _thresholds_of(await self.get_location(location_id))

    async def get_group_thresholds_for_student(
        self, student_id: uuid.UUID
    ) -> Optional[EscalationThresholds]:
        """Strictest thresholds (lowest alert, then lowest warning) among the student's active groups."""
        result = await self.db.execute(
            select(Group)
            .join(group_members, group_members.c.group_id == Group.id)
            .where(group_members.c.student_id == student_id)
            .where(Group.is_active.is_(True))
            .where(Group.escalation_warning_minutes.is_not(None))
            .where(Group.escalation_alert_minutes.is_not(None))
            .order_by(Group.escalation_alert_minutes, Group.escalation_warning_minutes)
            .limit(1)
        )
        return _thresholds_of(result.scalar_one_or_none())

    async def list_location_staff(self, location_id: uuid.UUID) -> List[LocationStaffAssignment]:
        result = await self.db.execute(
            select(LocationStaffAssignment)
            .where(LocationStaffAssignment.location_id == location_id)
            .order_by(LocationStaffAssignment.is_primary.desc())
        )
        return list(result.scalars().all())

    async def list_approved_admins(self) -> List[User]:
        result = await self.db.execute(
            select(User)
            .where(User.role == UserRole.ADMIN.value)
            .where(User.status == UserStatus.APPROVED.value)
        )
        return list(result.scalars().all())
