"""
Hall Pass Models

Models for:
- Hall passes (one journey out of class and back)
- Pass legs (immutable movement records within a pass)

The single-active-pass rule is enforced by a partial unique index on
student_id restricted to status = 'active', so two concurrent creations for
the same student cannot both commit.
"""
import uuid
from datetime import datetime
from typing import Optional, List
from sqlalchemy import (
    String, Integer, Boolean, DateTime, ForeignKey, Text, Index,
    CheckConstraint, UniqueConstraint, text
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base
from app.core.pass_states import PassStatus, MovementState, EscalationLevel, LegDirection


ACTIVE_PASS_INDEX = "uq_passes_one_active_per_student"


class Pass(Base):
    __tablename__ = "passes"
    __table_args__ = (
        CheckConstraint(
            "origin_location_id <> destination_location_id",
            name="ck_passes_origin_not_destination",
        ),
        CheckConstraint(
            "closed_at IS NULL OR closed_at >= opened_at",
            name="ck_passes_closed_after_opened",
        ),
        CheckConstraint(
            "(escalation_level IS NULL AND escalation_triggered_at IS NULL) OR "
            "(escalation_level IS NOT NULL AND escalation_triggered_at IS NOT NULL)",
            name="ck_passes_escalation_pair",
        ),
        CheckConstraint(
            "updated_at >= created_at",
            name="ck_passes_updated_after_created",
        ),
        CheckConstraint(
            "total_duration IS NULL OR total_duration >= 0",
            name="ck_passes_total_duration_non_negative",
        ),
        Index(
            ACTIVE_PASS_INDEX,
            "student_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
        Index("ix_passes_status", "status"),
        Index("ix_passes_student_status", "student_id", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    student_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("students.id", ondelete="CASCADE"), nullable=False
    )
    student_name: Mapped[str] = mapped_column(String(255), nullable=False)

    origin_location_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("locations.id"), nullable=False
    )
    origin_location_name: Mapped[str] = mapped_column(String(255), nullable=False)
    destination_location_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("locations.id"), nullable=False
    )
    destination_location_name: Mapped[str] = mapped_column(String(255), nullable=False)
    current_location_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("locations.id"), nullable=True
    )

    status: Mapped[str] = mapped_column(String(20), nullable=False, default=PassStatus.ACTIVE.value)
    movement_state: Mapped[str] = mapped_column(
        String(20), nullable=False, default=MovementState.IN_TRANSIT.value
    )

    opened_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    total_duration: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # minutes

    escalation_level: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    escalation_triggered_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    issued_by_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )
    issued_by_name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_override: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Bumped on every write; conditional updates compare against it
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Relationships
    legs: Mapped[List["PassLeg"]] = relationship(
        "PassLeg",
        back_populates="pass_record",
        order_by="PassLeg.leg_number",
        cascade="all, delete-orphan",
    )

    @property
    def is_active(self) -> bool:
        return self.status == PassStatus.ACTIVE.value


class PassLeg(Base):
    """
    Immutable movement record.

    Legs are append-only: leg 1 is the departure from the origin, later legs
    are check-ins and the final return.
    """
    __tablename__ = "pass_legs"
    __table_args__ = (
        UniqueConstraint("pass_id", "leg_number", name="uq_pass_legs_pass_leg_number"),
        CheckConstraint("leg_number >= 1", name="ck_pass_legs_leg_number_positive"),
        CheckConstraint(
            "duration_from_previous IS NULL OR duration_from_previous >= 0",
            name="ck_pass_legs_duration_non_negative",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    pass_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("passes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    leg_number: Mapped[int] = mapped_column(Integer, nullable=False)
    location_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("locations.id"), nullable=False
    )
    location_name: Mapped[str] = mapped_column(String(255), nullable=False)
    actor_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    actor_name: Mapped[str] = mapped_column(String(255), nullable=False)
    direction: Mapped[str] = mapped_column(String(10), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_check_in: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_return: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    duration_from_previous: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # minutes
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Relationships
    pass_record = relationship("Pass", back_populates="legs")
