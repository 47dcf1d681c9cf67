"""
Pass State Constants Module

Single source of truth for the values stored in pass columns and exposed by
the API. Both the ORM models and the pydantic schemas import from here.

Usage:
    from app.core.pass_states import PassStatus, EscalationLevel
"""
from enum import Enum


class PassStatus(str, Enum):
    """Pass status. Only ACTIVE -> CLOSED is driven by the service."""
    ACTIVE = "active"
    CLOSED = "closed"
    EXPIRED = "expired"      # reserved terminal state
    CANCELLED = "cancelled"  # reserved terminal state


class MovementState(str, Enum):
    """Legacy two-state movement flag nested inside an open pass."""
    IN_CLASS = "IN_CLASS"
    IN_TRANSIT = "IN_TRANSIT"


class EscalationLevel(str, Enum):
    """Escalation levels, in increasing severity."""
    WARNING = "warning"
    ALERT = "alert"
    CRITICAL = "critical"  # reserved


class LegDirection(str, Enum):
    OUT = "out"
    IN = "in"
