from app.services.validation.rules import (
    ValidationIssue,
    ValidationResult,
    validate_thresholds,
    validate_pass_create,
    validate_pass,
    validate_location,
    validate_pass_leg,
    TERMINAL_PASS_STATUSES,
)

__all__ = [
    "ValidationIssue",
    "ValidationResult",
    "validate_thresholds",
    "validate_pass_create",
    "validate_pass",
    "validate_location",
    "validate_pass_leg",
    "TERMINAL_PASS_STATUSES",
]
