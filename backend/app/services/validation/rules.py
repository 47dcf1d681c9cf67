"""
Hall Pass Validation Rules

Cross-field rules for passes, legs, locations and escalation thresholds.
Each rule returns a ValidationResult instead of raising, so callers decide
whether a violation is fatal (request boundary) or only reportable
(auditing stored records).

Rules:
- Thresholds: whole minutes in 1..1440, alert strictly greater than warning
- Pass: origin != destination, closed_at >= opened_at,
  escalation level and trigger time set together,
  total duration present exactly for terminal statuses,
  updated_at >= created_at
- Location: restrooms are never check-in eligible,
  non-shared locations have at most one primary staff member
- Leg: leg numbers start at 1, durations are non-negative
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from app.services.errors import InvalidArgumentError

MIN_THRESHOLD_MINUTES = 1
MAX_THRESHOLD_MINUTES = 1440  # 24 hours
MAX_NOTES_LENGTH = 500

TERMINAL_PASS_STATUSES = frozenset({"closed", "expired", "cancelled"})


@dataclass(frozen=True)
class ValidationIssue:
    """A single rule violation."""
    field: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"field": self.field, "message": self.message}


@dataclass
class ValidationResult:
    """Outcome of a validation rule set."""
    issues: List[ValidationIssue] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.issues

    def add(self, field_name: str, message: str) -> None:
        self.issues.append(ValidationIssue(field_name, message))

    def merge(self, other: "ValidationResult", prefix: Optional[str] = None) -> None:
        for issue in other.issues:
            name = f"{prefix}.{issue.field}" if prefix else issue.field
            self.issues.append(ValidationIssue(name, issue.message))

    def raise_for_errors(self, message: str = "Validation failed") -> None:
        """Raise InvalidArgumentError listing every issue, if any."""
        if self.issues:
            raise InvalidArgumentError(
                f"{message}: {self.issues[0].message}",
                issues=[issue.to_dict() for issue in self.issues],
            )


def _value(obj: Any, name: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _enum_value(value: Any) -> Any:
    return getattr(value, "value", value)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def validate_thresholds(warning: Any, alert: Any) -> ValidationResult:
    """Validate a warning/alert threshold pair."""
    result = ValidationResult()
    for name, value in (("warning", warning), ("alert", alert)):
        if isinstance(value, bool) or not isinstance(value, int):
            result.add(name, f"{name.capitalize()} threshold must be a whole number of minutes")
        elif not MIN_THRESHOLD_MINUTES <= value <= MAX_THRESHOLD_MINUTES:
            result.add(
                name,
                f"{name.capitalize()} threshold must be between "
                f"{MIN_THRESHOLD_MINUTES} and {MAX_THRESHOLD_MINUTES} minutes",
            )
    if result.is_valid and alert <= warning:
        result.add("alert", "Alert threshold must be greater than warning threshold")
    return result


def validate_pass_create(request: Any) -> ValidationResult:
    """Validate a pass creation request before touching the repository."""
    result = ValidationResult()

    for name in (
        "student_id",
        "student_name",
        "origin_location_id",
        "origin_location_name",
        "destination_location_id",
        "destination_location_name",
        "issued_by_id",
        "issued_by_name",
    ):
        if _is_blank(_value(request, name)):
            result.add(name, f"{name} is required")

    origin = _value(request, "origin_location_id")
    destination = _value(request, "destination_location_id")
    if origin is not None and destination is not None and str(origin) == str(destination):
        result.add("destination_location_id", "Origin and destination locations must be different")

    notes = _value(request, "notes")
    if notes is not None and len(notes) > MAX_NOTES_LENGTH:
        result.add("notes", f"Notes must be at most {MAX_NOTES_LENGTH} characters")

    return result


def validate_pass(pass_record: Any) -> ValidationResult:
    """Check the record-level invariants of a stored pass."""
    result = ValidationResult()

    if _value(pass_record, "origin_location_id") == _value(pass_record, "destination_location_id"):
        result.add("destination_location_id", "Origin and destination locations must be different")

    opened_at = _value(pass_record, "opened_at")
    closed_at = _value(pass_record, "closed_at")
    if closed_at is not None and opened_at is not None and closed_at < opened_at:
        result.add("closed_at", "Closed time must be after or equal to opened time")

    level = _value(pass_record, "escalation_level")
    triggered_at = _value(pass_record, "escalation_triggered_at")
    if (level is None) != (triggered_at is None):
        result.add(
            "escalation_triggered_at",
            "Escalation trigger time must be set exactly when an escalation level is set",
        )

    status = _enum_value(_value(pass_record, "status"))
    total_duration = _value(pass_record, "total_duration")
    if status in TERMINAL_PASS_STATUSES and total_duration is None:
        result.add("total_duration", "Terminal passes must record a total duration")
    if status not in TERMINAL_PASS_STATUSES and total_duration is not None:
        result.add("total_duration", "Open passes cannot have a total duration")
    if total_duration is not None and total_duration < 0:
        result.add("total_duration", "Total duration cannot be negative")

    created_at = _value(pass_record, "created_at")
    updated_at = _value(pass_record, "updated_at")
    if created_at is not None and updated_at is not None and updated_at < created_at:
        result.add("updated_at", "Updated time must be after or equal to created time")

    return result


def validate_location(location: Any) -> ValidationResult:
    """Check location configuration rules."""
    result = ValidationResult()

    if _enum_value(_value(location, "location_type")) == "restroom" and _value(location, "is_check_in_eligible"):
        result.add("is_check_in_eligible", "Restrooms cannot be check-in eligible")

    assignments = _value(location, "staff_assignments") or []
    primary_count = sum(1 for a in assignments if _value(a, "is_primary"))
    if not _value(location, "is_shared") and primary_count > 1:
        result.add("staff_assignments", "Non-shared locations can have at most one primary staff assignment")

    warning = _value(location, "escalation_warning_minutes")
    alert = _value(location, "escalation_alert_minutes")
    if warning is not None or alert is not None:
        result.merge(validate_thresholds(warning, alert), prefix="escalation_thresholds")

    return result


def validate_pass_leg(leg: Any) -> ValidationResult:
    """Check a movement leg before it is appended."""
    result = ValidationResult()

    leg_number = _value(leg, "leg_number")
    if leg_number is None or leg_number < 1:
        result.add("leg_number", "Leg numbers start at 1")

    duration = _value(leg, "duration_from_previous")
    if duration is not None and duration < 0:
        result.add("duration_from_previous", "Duration from previous leg cannot be negative")

    if _enum_value(_value(leg, "direction")) not in ("out", "in"):
        result.add("direction", "Direction must be 'out' or 'in'")

    return result
