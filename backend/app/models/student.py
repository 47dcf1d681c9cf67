"""
Student and Group Models

Students carry optional per-student escalation thresholds. Groups (e.g. a
"frequent flyer" watch list) carry thresholds that apply to all members.
"""
import uuid
import enum
from datetime import datetime
from typing import Optional, List
from sqlalchemy import (
    String, Integer, Boolean, DateTime, ForeignKey, Table, Column,
    CheckConstraint, func
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base


THRESHOLD_PAIR_CHECK = (
    "(escalation_warning_minutes IS NULL AND escalation_alert_minutes IS NULL) OR "
    "(escalation_warning_minutes IS NOT NULL AND escalation_alert_minutes IS NOT NULL "
    "AND escalation_alert_minutes > escalation_warning_minutes)"
)


group_members = Table(
    "group_members",
    Base.metadata,
    Column("group_id", UUID(as_uuid=True), ForeignKey("groups.id", ondelete="CASCADE"), primary_key=True),
    Column("student_id", UUID(as_uuid=True), ForeignKey("students.id", ondelete="CASCADE"), primary_key=True),
)


class GroupType(str, enum.Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"


class Student(Base):
    __tablename__ = "students"
    __table_args__ = (
        CheckConstraint(THRESHOLD_PAIR_CHECK, name="ck_students_thresholds"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, unique=True
    )
    student_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    grade: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    escalation_warning_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    escalation_alert_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    user = relationship("User")
    groups: Mapped[List["Group"]] = relationship(
        "Group", secondary=group_members, back_populates="members"
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Group(Base):
    __tablename__ = "groups"
    __table_args__ = (
        CheckConstraint(THRESHOLD_PAIR_CHECK, name="ck_groups_thresholds"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    group_type: Mapped[str] = mapped_column(String(20), default=GroupType.NEGATIVE.value)
    escalation_warning_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    escalation_alert_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    # Relationships
    members: Mapped[List[Student]] = relationship(
        "Student", secondary=group_members, back_populates="groups"
    )
