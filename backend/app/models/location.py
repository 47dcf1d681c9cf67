"""
Location Models

Classrooms, restrooms, offices and other places a pass can point at, plus
the staff assigned to them (who are notified when an escalated pass is
checked in at their location).
"""
import uuid
import enum
from datetime import datetime
from typing import Optional, List
from sqlalchemy import (
    String, Integer, Boolean, DateTime, ForeignKey, CheckConstraint,
    UniqueConstraint, func
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base
from app.models.student import THRESHOLD_PAIR_CHECK


class LocationType(str, enum.Enum):
    CLASSROOM = "classroom"
    RESTROOM = "restroom"
    OFFICE = "office"
    LIBRARY = "library"
    CAFETERIA = "cafeteria"
    GYM = "gym"
    PARKING = "parking"
    OTHER = "other"


class Location(Base):
    __tablename__ = "locations"
    __table_args__ = (
        CheckConstraint(THRESHOLD_PAIR_CHECK, name="ck_locations_thresholds"),
        CheckConstraint(
            "NOT (location_type = 'restroom' AND is_check_in_eligible)",
            name="ck_locations_restroom_not_check_in",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    short_name: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    location_type: Mapped[str] = mapped_column(String(20), default=LocationType.CLASSROOM.value)
    is_check_in_eligible: Mapped[bool] = mapped_column(Boolean, default=True)
    is_shared: Mapped[bool] = mapped_column(Boolean, default=False)
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
    staff_assignments: Mapped[List["LocationStaffAssignment"]] = relationship(
        "LocationStaffAssignment", back_populates="location", cascade="all, delete-orphan"
    )


class LocationStaffAssignment(Base):
    __tablename__ = "location_staff_assignments"
    __table_args__ = (
        UniqueConstraint("location_id", "staff_user_id", name="uq_location_staff"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    location_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("locations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    staff_user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    staff_name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    is_primary: Mapped[bool] = mapped_column(Boolean, default=False)
    assigned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    # Relationships
    location = relationship("Location", back_populates="staff_assignments")
