"""
Escalation API Endpoints

Staff-only endpoints for on-demand escalation checks and statistics. The
periodic monitor runs in the background; these trigger the same operations
immediately.
"""
from uuid import UUID

from fastapi import APIRouter

from app.schemas.escalation import (
    EscalationBatchResponse,
    EscalationCheckResponse,
    EscalationClearResponse,
    EscalationStatsResponse,
)
from app.services.errors import HallPassError
from app.api.v1.deps import CurrentUser, MonitorDep, raise_http_error, require_staff

router = APIRouter()


@router.post("/escalations/check", response_model=EscalationBatchResponse)
async def check_all_active_passes(
    current_user: CurrentUser,
    monitor: MonitorDep,
):
    """Re-evaluate every active pass now."""
    require_staff(current_user)
    result = await monitor.check_all_active_passes()
    return EscalationBatchResponse(
        checked=result.checked,
        escalated=result.escalated,
        errors=result.errors,
    )


@router.post("/escalations/passes/{pass_id}/check", response_model=EscalationCheckResponse)
async def check_pass(
    pass_id: UUID,
    current_user: CurrentUser,
    monitor: MonitorDep,
):
    require_staff(current_user)
    try:
        result = await monitor.check_and_update(pass_id)
    except HallPassError as e:
        raise_http_error(e)
    return EscalationCheckResponse(
        pass_id=result.pass_id,
        updated=result.updated,
        new_level=result.new_level.value if result.new_level else None,
        duration=result.duration,
    )


@router.delete("/escalations/passes/{pass_id}", response_model=EscalationClearResponse)
async def clear_escalation(
    pass_id: UUID,
    current_user: CurrentUser,
    monitor: MonitorDep,
):
    require_staff(current_user)
    try:
        cleared = await monitor.clear_escalation(pass_id)
    except HallPassError as e:
        raise_http_error(e)
    return EscalationClearResponse(pass_id=pass_id, cleared=cleared)


@router.get("/escalations/stats", response_model=EscalationStatsResponse)
async def get_escalation_stats(
    current_user: CurrentUser,
    monitor: MonitorDep,
):
    require_staff(current_user)
    stats = await monitor.get_stats()
    return EscalationStatsResponse(
        total_active=stats.total_active,
        warnings=stats.warnings,
        alerts=stats.alerts,
        critical=stats.critical,
    )
