"""
Hall Pass Error Taxonomy

Every failure surfaced by the pass lifecycle and escalation services is a
HallPassError subclass carrying a stable error code. API routes translate
these into HTTP responses with a {"code", "message"} detail body.

| Error                    | Code                | HTTP |
|--------------------------|---------------------|------|
| UnauthenticatedError     | unauthenticated     | 401  |
| PermissionDeniedError    | permission-denied   | 403  |
| NotFoundError            | not-found           | 404  |
| FailedPreconditionError  | failed-precondition | 409  |
| InvalidArgumentError     | invalid-argument    | 422  |
| InternalError            | internal            | 500  |
"""
from typing import Any, Dict, List, Optional


class HallPassError(Exception):
    """Base exception for hall pass operations."""
    code = "internal"
    http_status = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_detail(self) -> Dict[str, Any]:
        detail: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            detail.update(self.details)
        return detail


class UnauthenticatedError(HallPassError):
    """Raised when the caller identity is missing."""
    code = "unauthenticated"
    http_status = 401


class PermissionDeniedError(HallPassError):
    """Raised when the actor may not act on the target pass."""
    code = "permission-denied"
    http_status = 403


class NotFoundError(HallPassError):
    """Raised when a referenced pass, student or location does not exist."""
    code = "not-found"
    http_status = 404


class FailedPreconditionError(HallPassError):
    """Raised when a state transition is not allowed from the current state."""
    code = "failed-precondition"
    http_status = 409


class InvalidArgumentError(HallPassError):
    """Raised when a request payload fails validation."""
    code = "invalid-argument"
    http_status = 422

    def __init__(self, message: str, issues: Optional[List[Dict[str, str]]] = None):
        super().__init__(message, {"issues": issues} if issues else None)
        self.issues = issues or []


class InternalError(HallPassError):
    """Raised on unexpected repository or dispatch failures."""
    code = "internal"
    http_status = 500
