"""
Escalation Schemas

Pydantic schemas for escalation thresholds, check results and statistics.
"""
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, Field, model_validator

from app.core.pass_states import EscalationLevel
from app.services.validation import validate_thresholds


class EscalationThresholds(BaseModel):
    """Warning/alert duration thresholds in minutes."""
    warning: int = Field(..., description="Minutes before a WARNING escalation")
    alert: int = Field(..., description="Minutes before an ALERT escalation")

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def check_ordering(self) -> "EscalationThresholds":
        result = validate_thresholds(self.warning, self.alert)
        if not result.is_valid:
            raise ValueError(result.issues[0].message)
        return self


class EscalationCheckResponse(BaseModel):
    """Result of re-evaluating a single pass."""
    pass_id: UUID
    updated: bool
    new_level: Optional[EscalationLevel] = None
    duration: int


class EscalationBatchResponse(BaseModel):
    """Result of re-evaluating every active pass."""
    checked: int
    escalated: int
    errors: int


class EscalationStatsResponse(BaseModel):
    """Active passes grouped by persisted escalation level."""
    total_active: int
    warnings: int
    alerts: int
    critical: int


class EscalationClearResponse(BaseModel):
    pass_id: UUID
    cleared: bool
