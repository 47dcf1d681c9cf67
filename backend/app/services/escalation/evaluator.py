"""
Escalation Evaluator

Pure functions: no database access, no clock reads. Callers pass `now`.

Levels rise monotonically with duration:
    duration >= alert   -> ALERT
    duration >= warning -> WARNING
    otherwise           -> no escalation
CRITICAL is ranked above ALERT but is not produced by determine_level.
"""
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional

from app.core.clock import ensure_utc
from app.models.passes import EscalationLevel
from app.schemas.escalation import EscalationThresholds


@dataclass(frozen=True)
class EscalationLevelInfo:
    severity: str
    color: str
    icon: str
    description: str


ESCALATION_LEVELS: Dict[EscalationLevel, EscalationLevelInfo] = {
    EscalationLevel.WARNING: EscalationLevelInfo(
        severity="warning",
        color="yellow",
        icon="⚠️",
        description="Pass duration exceeds warning threshold",
    ),
    EscalationLevel.ALERT: EscalationLevelInfo(
        severity="alert",
        color="red",
        icon="🚨",
        description="Pass duration exceeds alert threshold",
    ),
    EscalationLevel.CRITICAL: EscalationLevelInfo(
        severity="critical",
        color="red",
        icon="🚨",
        description="Pass requires immediate attention",
    ),
}

_ORDER = (EscalationLevel.WARNING, EscalationLevel.ALERT, EscalationLevel.CRITICAL)


def level_rank(level) -> int:
    """0 for no escalation, then 1..3 in severity order."""
    if level is None:
        return 0
    return _ORDER.index(EscalationLevel(level)) + 1


def calculate_duration(pass_record, now: datetime) -> int:
    """Whole minutes since the pass opened, floored and never negative."""
    opened_at = ensure_utc(pass_record.opened_at)
    elapsed_ms = (ensure_utc(now) - opened_at).total_seconds() * 1000
    return max(0, math.floor(elapsed_ms / 60000))


def determine_level(duration: int, thresholds: EscalationThresholds) -> Optional[EscalationLevel]:
    # Both boundaries are inclusive
    if duration >= thresholds.alert:
        return EscalationLevel.ALERT
    if duration >= thresholds.warning:
        return EscalationLevel.WARNING
    return None


def is_higher_escalation(new_level, current_level) -> bool:
    """True only on a rising edge; equal levels never re-notify."""
    if new_level is None:
        return False
    return level_rank(new_level) > level_rank(current_level)
