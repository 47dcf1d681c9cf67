from typing import Annotated, NoReturn, Optional
from uuid import UUID

from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import Clock, system_clock
from app.core.database import get_db, get_session_factory
from app.models.passes import Pass
from app.models.user import User
from app.repositories.directory_repository import DirectoryRepository
from app.services.errors import (
    HallPassError,
    UnauthenticatedError,
    PermissionDeniedError,
)
from app.services.escalation import EscalationMonitor


# =============================================================================
# Error translation
# =============================================================================

def raise_http_error(error: HallPassError) -> NoReturn:
    """Translate a service error into an HTTPException with a {code, message} body."""
    raise HTTPException(status_code=error.http_status, detail=error.to_detail())


# =============================================================================
# Collaborators
# =============================================================================

def get_clock() -> Clock:
    return system_clock


_monitor: Optional[EscalationMonitor] = None


def get_escalation_monitor() -> EscalationMonitor:
    """Process-wide escalation monitor (also started by the app lifespan)."""
    global _monitor
    if _monitor is None:
        _monitor = EscalationMonitor(get_session_factory())
    return _monitor


ClockDep = Annotated[Clock, Depends(get_clock)]
MonitorDep = Annotated[EscalationMonitor, Depends(get_escalation_monitor)]


# =============================================================================
# Authentication: identity supplied by the upstream auth layer
# =============================================================================

async def get_current_user(
    db: Annotated[AsyncSession, Depends(get_db)],
    x_user_id: Annotated[Optional[str], Header()] = None,
) -> User:
    """
    Resolve the caller from the X-User-Id header.

    Raises:
        HTTP 401: If the header is missing, malformed or the user is unknown
        HTTP 403: If the account is not approved
    """
    if not x_user_id:
        raise_http_error(UnauthenticatedError("Authentication required"))
    try:
        user_id = UUID(x_user_id)
    except ValueError:
        raise_http_error(UnauthenticatedError("Invalid user identity"))

    user = await DirectoryRepository(db).get_user(user_id)
    if user is None:
        raise_http_error(UnauthenticatedError("Unknown user"))
    if not user.is_approved:
        raise_http_error(PermissionDeniedError(f"Account is {user.status}"))

    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


# =============================================================================
# Common Role Guards
# =============================================================================

def require_staff(current_user: User) -> None:
    """
    Guard: Allows teachers, support staff and admins.

    Raises:
        HTTP 403: If user is a student
    """
    if not current_user.is_staff:
        raise_http_error(PermissionDeniedError("This endpoint is only available for staff"))


async def require_pass_access(
    pass_record: Pass,
    current_user: User,
    db: AsyncSession,
) -> None:
    """
    Verify the caller may act on the pass.

    Staff may act on any pass; students only on their own.

    Raises:
        HTTP 403: If a student targets another student's pass
    """
    if current_user.is_staff:
        return
    student = await DirectoryRepository(db).get_student_by_user(current_user.id)
    if student is None or student.id != pass_record.student_id:
        raise_http_error(PermissionDeniedError("You may only act on your own passes"))
