"""
Hall Pass API Endpoints

- Issue a pass (students for themselves, staff as override)
- Check in at an intermediate location
- Return (close) a pass
- Legacy departure/arrival flow
- Read passes, their legs and a student's active pass
"""
from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.models.passes import Pass
from app.repositories.directory_repository import DirectoryRepository
from app.schemas.passes import (
    CreatePassRequest,
    CheckInRequest,
    PassCreate,
    PassResponse,
    PassLegResponse,
    PassLegsResponse,
)
from app.services.errors import (
    HallPassError,
    NotFoundError,
    PermissionDeniedError,
    InvalidArgumentError,
)
from app.services.passes import PassService, LegacyPassFlow
from app.api.v1.deps import (
    CurrentUser,
    ClockDep,
    raise_http_error,
    require_pass_access,
)

router = APIRouter()


async def _load_pass_for_actor(
    service: PassService,
    pass_id: UUID,
    current_user,
    db: AsyncSession,
) -> Pass:
    pass_record = await service.get_pass(pass_id)
    await require_pass_access(pass_record, current_user, db)
    return pass_record


@router.post("/passes", response_model=PassResponse, status_code=201)
async def create_pass(
    request: CreatePassRequest,
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
    clock: ClockDep,
):
    """
    Issue a new pass.

    Students issue passes for themselves. Staff issue override passes on
    behalf of a student and must name the student.
    """
    directory = DirectoryRepository(db)
    try:
        if current_user.is_staff:
            if request.student_id is None:
                raise InvalidArgumentError(
                    "student_id is required for override passes",
                    issues=[{"field": "student_id", "message": "student_id is required"}],
                )
            student = await directory.get_student(request.student_id)
            is_override = True
        else:
            student = await directory.get_student_by_user(current_user.id)
            if student is None:
                raise PermissionDeniedError("No student record is linked to this account")
            if request.student_id is not None and request.student_id != student.id:
                raise PermissionDeniedError("Students may only issue passes for themselves")
            is_override = False

        if student is None:
            raise NotFoundError(f"Student {request.student_id} not found")

        origin = await directory.get_location(request.origin_location_id)
        if origin is None:
            raise NotFoundError(f"Location {request.origin_location_id} not found")
        destination = await directory.get_location(request.destination_location_id)
        if destination is None:
            raise NotFoundError(f"Location {request.destination_location_id} not found")

        pass_record = await PassService(db, clock).create_pass(PassCreate(
            student_id=student.id,
            student_name=student.full_name,
            origin_location_id=origin.id,
            origin_location_name=origin.name,
            destination_location_id=destination.id,
            destination_location_name=destination.name,
            issued_by_id=current_user.id,
            issued_by_name=current_user.display_name,
            is_override=is_override,
            notes=request.notes,
            departed=request.departed,
        ))
    except HallPassError as e:
        raise_http_error(e)

    return PassResponse.model_validate(pass_record)


@router.get("/passes/{pass_id}", response_model=PassResponse)
async def get_pass(
    pass_id: UUID,
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
    clock: ClockDep,
):
    try:
        pass_record = await _load_pass_for_actor(PassService(db, clock), pass_id, current_user, db)
    except HallPassError as e:
        raise_http_error(e)
    return PassResponse.model_validate(pass_record)


@router.get("/passes/{pass_id}/legs", response_model=PassLegsResponse)
async def list_pass_legs(
    pass_id: UUID,
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
    clock: ClockDep,
):
    service = PassService(db, clock)
    try:
        await _load_pass_for_actor(service, pass_id, current_user, db)
        legs = await service.list_legs(pass_id)
    except HallPassError as e:
        raise_http_error(e)
    return PassLegsResponse(
        pass_id=pass_id,
        legs=[PassLegResponse.model_validate(leg) for leg in legs],
        total_count=len(legs),
    )


@router.get("/students/{student_id}/active-pass", response_model=Optional[PassResponse])
async def get_active_pass(
    student_id: UUID,
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
    clock: ClockDep,
):
    """Get the student's active pass, or null when they have none."""
    try:
        if not current_user.is_staff:
            own = await DirectoryRepository(db).get_student_by_user(current_user.id)
            if own is None or own.id != student_id:
                raise PermissionDeniedError("You may only view your own passes")
        pass_record = await PassService(db, clock).get_active_pass(student_id)
    except HallPassError as e:
        raise_http_error(e)
    return PassResponse.model_validate(pass_record) if pass_record else None


@router.post("/passes/{pass_id}/check-in", response_model=PassResponse)
async def check_in(
    pass_id: UUID,
    request: CheckInRequest,
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
    clock: ClockDep,
):
    service = PassService(db, clock)
    try:
        await _load_pass_for_actor(service, pass_id, current_user, db)
        pass_record = await service.check_in(
            pass_id, request.location_id, current_user.id, current_user.display_name
        )
    except HallPassError as e:
        raise_http_error(e)
    return PassResponse.model_validate(pass_record)


@router.post("/passes/{pass_id}/return", response_model=PassResponse)
async def return_pass(
    pass_id: UUID,
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
    clock: ClockDep,
):
    service = PassService(db, clock)
    try:
        await _load_pass_for_actor(service, pass_id, current_user, db)
        pass_record = await service.return_pass(pass_id, current_user.id, current_user.display_name)
    except HallPassError as e:
        raise_http_error(e)
    return PassResponse.model_validate(pass_record)


@router.post("/passes/{pass_id}/departure", response_model=PassResponse)
async def declare_departure(
    pass_id: UUID,
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
    clock: ClockDep,
):
    """Legacy flow: student leaves class (IN_CLASS -> IN_TRANSIT)."""
    flow = LegacyPassFlow(db, clock)
    try:
        await _load_pass_for_actor(flow.pass_service, pass_id, current_user, db)
        pass_record = await flow.declare_departure(pass_id, current_user.id, current_user.display_name)
    except HallPassError as e:
        raise_http_error(e)
    return PassResponse.model_validate(pass_record)


@router.post("/passes/{pass_id}/arrival", response_model=PassResponse)
async def declare_return(
    pass_id: UUID,
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
    clock: ClockDep,
):
    """Legacy flow: student is back in class (IN_TRANSIT -> IN_CLASS, pass closes)."""
    flow = LegacyPassFlow(db, clock)
    try:
        await _load_pass_for_actor(flow.pass_service, pass_id, current_user, db)
        pass_record = await flow.declare_return(pass_id, current_user.id, current_user.display_name)
    except HallPassError as e:
        raise_http_error(e)
    return PassResponse.model_validate(pass_record)
