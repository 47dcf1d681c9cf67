"""
Hall Pass Schemas

Pydantic schemas for the pass lifecycle API.
"""
from datetime import datetime
from typing import Optional, List
from uuid import UUID
from pydantic import BaseModel, Field

from app.core.pass_states import PassStatus, MovementState, EscalationLevel, LegDirection


class PassCreate(BaseModel):
    """
    Input to PassService.create_pass.

    Cross-field rules (origin != destination, required names) are enforced by
    app.services.validation so library callers get the same errors as the API.
    """
    student_id: UUID
    student_name: str
    origin_location_id: UUID
    origin_location_name: str
    destination_location_id: UUID
    destination_location_name: str
    issued_by_id: UUID
    issued_by_name: str
    is_override: bool = False
    notes: Optional[str] = None
    departed: bool = True


class CreatePassRequest(BaseModel):
    """HTTP request to open a pass; issuer and names are filled from the directory."""
    student_id: Optional[UUID] = Field(
        None, description="Student to issue for; defaults to the caller's own student record"
    )
    origin_location_id: UUID
    destination_location_id: UUID
    notes: Optional[str] = Field(None, max_length=500)
    departed: bool = Field(True, description="False when the student has not left class yet")


class CheckInRequest(BaseModel):
    """Request to check in at an intermediate location."""
    location_id: UUID


class PassResponse(BaseModel):
    """Response for a hall pass."""
    id: UUID
    student_id: UUID
    student_name: str
    origin_location_id: UUID
    origin_location_name: str
    destination_location_id: UUID
    destination_location_name: str
    current_location_id: Optional[UUID] = None
    status: PassStatus
    movement_state: MovementState
    opened_at: datetime
    closed_at: Optional[datetime] = None
    total_duration: Optional[int] = None
    escalation_level: Optional[EscalationLevel] = None
    escalation_triggered_at: Optional[datetime] = None
    issued_by_id: UUID
    issued_by_name: str
    is_override: bool
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PassLegResponse(BaseModel):
    """Immutable movement record."""
    id: UUID
    pass_id: UUID
    leg_number: int
    location_id: UUID
    location_name: str
    actor_id: UUID
    actor_name: str
    direction: LegDirection
    timestamp: datetime
    is_check_in: bool
    is_return: bool
    duration_from_previous: Optional[int] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class PassLegsResponse(BaseModel):
    pass_id: UUID
    legs: List[PassLegResponse]
    total_count: int
