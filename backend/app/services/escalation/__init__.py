# Escalation services module
from app.services.escalation.evaluator import (
    ESCALATION_LEVELS,
    calculate_duration,
    determine_level,
    is_higher_escalation,
    level_rank,
)
from app.services.escalation.thresholds import ThresholdResolver
from app.services.escalation.notifications import (
    EscalationNotification,
    NotificationDispatcher,
    DatabaseNotificationDispatcher,
    EscalationNotifier,
)
from app.services.escalation.service import (
    EscalationService,
    EscalationCheckResult,
    EscalationStats,
)
from app.services.escalation.monitor import EscalationMonitor, MonitorHandle, BatchResult

__all__ = [
    "ESCALATION_LEVELS",
    "calculate_duration",
    "determine_level",
    "is_higher_escalation",
    "level_rank",
    "ThresholdResolver",
    "EscalationNotification",
    "NotificationDispatcher",
    "DatabaseNotificationDispatcher",
    "EscalationNotifier",
    "EscalationService",
    "EscalationCheckResult",
    "EscalationStats",
    "EscalationMonitor",
    "MonitorHandle",
    "BatchResult",
]
