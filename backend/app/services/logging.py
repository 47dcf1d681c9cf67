"""
Structured Logging Service

Provides hall-pass-aware structured logging for key events:
- Pass created / checked in / returned / departure declared
- Pass creation conflict (second active pass rejected)
- Escalation changed / cleared / update skipped
- Escalation notifications sent / dispatch failed
- Escalation check failed / batch completed / tick skipped
- Threshold lookup failed

Each log entry includes:
- entity_type (pass, escalation, notification, threshold, monitor)
- entity_id
- student_id (if applicable)
- user_id (if applicable)
- severity (INFO/WARN/ERROR)
"""
import json
import logging
from datetime import datetime, timezone
from typing import Optional, Any
from uuid import UUID
from enum import Enum


class LogSeverity(str, Enum):
    """Log severity levels."""
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"


class LogEntityType(str, Enum):
    """Entity types for structured logging."""
    PASS = "pass"
    ESCALATION = "escalation"
    NOTIFICATION = "notification"
    THRESHOLD = "threshold"
    MONITOR = "monitor"


class StructuredLogger:
    """
    Structured logging service for hall pass events.

    Logs are emitted in JSON format suitable for:
    - Application logs
    - Later metrics integration
    - Audit trail requirements
    """

    def __init__(self, logger_name: str = "hallpass"):
        self.logger = logging.getLogger(logger_name)
        self._ensure_handler()

    def _ensure_handler(self):
        """Ensure logger has a proper handler configured."""
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter('%(message)s'))
            self.logger.addHandler(handler)
            self.logger.setLevel(logging.INFO)

    def _serialize_value(self, value: Any) -> Any:
        """Serialize UUID, datetime and enum values."""
        if isinstance(value, UUID):
            return str(value)
        if isinstance(value, datetime):
            return value.isoformat()
        if isinstance(value, Enum):
            return value.value
        return value

    def _create_log_entry(
        self,
        event: str,
        severity: LogSeverity,
        entity_type: LogEntityType,
        entity_id: Optional[UUID] = None,
        student_id: Optional[UUID] = None,
        user_id: Optional[UUID] = None,
        message: Optional[str] = None,
        **extra
    ) -> dict:
        """Create a structured log entry."""
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event": event,
            "severity": severity.value,
            "entity_type": entity_type.value,
        }

        if entity_id:
            entry["entity_id"] = str(entity_id)
        if student_id:
            entry["student_id"] = str(student_id)
        if user_id:
            entry["user_id"] = str(user_id)
        if message:
            entry["message"] = message

        for key, value in extra.items():
            entry[key] = self._serialize_value(value)

        return entry

    def _log(self, entry: dict, severity: LogSeverity):
        """Emit the log entry at the appropriate level."""
        log_str = json.dumps(entry)
        if severity == LogSeverity.ERROR:
            self.logger.error(log_str)
        elif severity == LogSeverity.WARN:
            self.logger.warning(log_str)
        else:
            self.logger.info(log_str)

    # Pass lifecycle events
    def pass_created(
        self,
        pass_id: UUID,
        student_id: UUID,
        origin_location_id: UUID,
        destination_location_id: UUID,
        is_override: bool,
        user_id: Optional[UUID] = None
    ):
        """Log pass creation."""
        entry = self._create_log_entry(
            event="pass.created",
            severity=LogSeverity.INFO,
            entity_type=LogEntityType.PASS,
            entity_id=pass_id,
            student_id=student_id,
            user_id=user_id,
            message="Override pass issued" if is_override else "Pass issued",
            origin_location_id=origin_location_id,
            destination_location_id=destination_location_id,
            is_override=is_override
        )
        self._log(entry, LogSeverity.INFO)

    def pass_creation_conflict(
        self,
        student_id: UUID,
        existing_pass_id: Optional[UUID] = None,
        user_id: Optional[UUID] = None
    ):
        """Log rejection of a second active pass for the same student."""
        entry = self._create_log_entry(
            event="pass.creation_conflict",
            severity=LogSeverity.WARN,
            entity_type=LogEntityType.PASS,
            entity_id=existing_pass_id,
            student_id=student_id,
            user_id=user_id,
            message="Student already has an active pass"
        )
        self._log(entry, LogSeverity.WARN)

    def pass_checked_in(
        self,
        pass_id: UUID,
        student_id: UUID,
        location_id: UUID,
        leg_number: int,
        user_id: Optional[UUID] = None
    ):
        """Log check-in at an intermediate location."""
        entry = self._create_log_entry(
            event="pass.checked_in",
            severity=LogSeverity.INFO,
            entity_type=LogEntityType.PASS,
            entity_id=pass_id,
            student_id=student_id,
            user_id=user_id,
            message="Pass checked in",
            location_id=location_id,
            leg_number=leg_number
        )
        self._log(entry, LogSeverity.INFO)

    def pass_returned(
        self,
        pass_id: UUID,
        student_id: UUID,
        total_duration: int,
        user_id: Optional[UUID] = None
    ):
        """Log pass closure."""
        entry = self._create_log_entry(
            event="pass.returned",
            severity=LogSeverity.INFO,
            entity_type=LogEntityType.PASS,
            entity_id=pass_id,
            student_id=student_id,
            user_id=user_id,
            message=f"Pass closed after {total_duration} minutes",
            total_duration=total_duration
        )
        self._log(entry, LogSeverity.INFO)

    def pass_departure_declared(
        self,
        pass_id: UUID,
        student_id: UUID,
        user_id: Optional[UUID] = None
    ):
        """Log a legacy-flow departure."""
        entry = self._create_log_entry(
            event="pass.departure_declared",
            severity=LogSeverity.INFO,
            entity_type=LogEntityType.PASS,
            entity_id=pass_id,
            student_id=student_id,
            user_id=user_id,
            message="Student left class"
        )
        self._log(entry, LogSeverity.INFO)

    # Escalation events
    def escalation_changed(
        self,
        pass_id: UUID,
        student_id: UUID,
        previous_level: Optional[str],
        new_level: Optional[str],
        duration: int,
        warning_threshold: int,
        alert_threshold: int
    ):
        """Log a persisted escalation level change."""
        entry = self._create_log_entry(
            event="escalation.changed",
            severity=LogSeverity.WARN if new_level else LogSeverity.INFO,
            entity_type=LogEntityType.ESCALATION,
            entity_id=pass_id,
            student_id=student_id,
            message=f"Escalation {previous_level or 'none'} -> {new_level or 'none'} after {duration} minutes",
            previous_level=previous_level,
            new_level=new_level,
            duration=duration,
            warning_threshold=warning_threshold,
            alert_threshold=alert_threshold
        )
        self._log(entry, LogSeverity.WARN if new_level else LogSeverity.INFO)

    def escalation_cleared(
        self,
        pass_id: UUID,
        previous_level: Optional[str] = None
    ):
        """Log explicit escalation reset."""
        entry = self._create_log_entry(
            event="escalation.cleared",
            severity=LogSeverity.INFO,
            entity_type=LogEntityType.ESCALATION,
            entity_id=pass_id,
            message="Escalation cleared",
            previous_level=previous_level
        )
        self._log(entry, LogSeverity.INFO)

    def escalation_update_skipped(
        self,
        pass_id: UUID,
        expected_version: int,
        attempted_level: Optional[str]
    ):
        """Log a lost compare-and-swap race on the escalation fields."""
        entry = self._create_log_entry(
            event="escalation.update_skipped",
            severity=LogSeverity.INFO,
            entity_type=LogEntityType.ESCALATION,
            entity_id=pass_id,
            message="Pass changed concurrently; escalation update skipped",
            expected_version=expected_version,
            attempted_level=attempted_level
        )
        self._log(entry, LogSeverity.INFO)

    def escalation_check_failed(
        self,
        pass_id: UUID,
        error: str
    ):
        """Log a failed per-pass escalation check."""
        entry = self._create_log_entry(
            event="escalation.check_failed",
            severity=LogSeverity.ERROR,
            entity_type=LogEntityType.ESCALATION,
            entity_id=pass_id,
            message=f"Escalation check failed: {error}",
            error=error
        )
        self._log(entry, LogSeverity.ERROR)

    # Notification events
    def escalation_notifications_sent(
        self,
        pass_id: UUID,
        level: str,
        recipient_count: int,
        failed_count: int = 0
    ):
        """Log an escalation notification burst."""
        entry = self._create_log_entry(
            event="escalation.notifications_sent",
            severity=LogSeverity.INFO,
            entity_type=LogEntityType.NOTIFICATION,
            entity_id=pass_id,
            message=f"Sent {recipient_count} {level} notifications",
            level=level,
            recipient_count=recipient_count,
            failed_count=failed_count
        )
        self._log(entry, LogSeverity.INFO)

    def notification_dispatch_failed(
        self,
        pass_id: UUID,
        error: str,
        recipient_id: Optional[UUID] = None
    ):
        """Log a single failed notification delivery."""
        entry = self._create_log_entry(
            event="notification.dispatch_failed",
            severity=LogSeverity.WARN,
            entity_type=LogEntityType.NOTIFICATION,
            entity_id=pass_id,
            user_id=recipient_id,
            message=f"Notification dispatch failed: {error}",
            error=error
        )
        self._log(entry, LogSeverity.WARN)

    # Monitor events
    def escalation_batch_completed(
        self,
        checked: int,
        escalated: int,
        errors: int,
        duration_ms: Optional[float] = None
    ):
        """Log the result of a full active-pass sweep."""
        severity = LogSeverity.WARN if errors else LogSeverity.INFO
        entry = self._create_log_entry(
            event="escalation.batch_completed",
            severity=severity,
            entity_type=LogEntityType.MONITOR,
            message=f"Checked {checked} passes, {escalated} escalated, {errors} errors",
            checked=checked,
            escalated=escalated,
            errors=errors,
            duration_ms=duration_ms
        )
        self._log(entry, severity)

    def escalation_tick_skipped(self, reason: str = "previous tick still running"):
        """Log a monitor tick that was skipped because one is in progress."""
        entry = self._create_log_entry(
            event="escalation.tick_skipped",
            severity=LogSeverity.WARN,
            entity_type=LogEntityType.MONITOR,
            message=f"Escalation tick skipped: {reason}",
            reason=reason
        )
        self._log(entry, LogSeverity.WARN)

    # Threshold events
    def threshold_lookup_failed(
        self,
        pass_id: UUID,
        source: str,
        error: str
    ):
        """Log a threshold lookup that degraded to defaults."""
        entry = self._create_log_entry(
            event="threshold.lookup_failed",
            severity=LogSeverity.WARN,
            entity_type=LogEntityType.THRESHOLD,
            entity_id=pass_id,
            message=f"Threshold lookup failed ({source}), using defaults",
            source=source,
            error=error
        )
        self._log(entry, LogSeverity.WARN)


# Global logger instance
hallpass_logger = StructuredLogger()
