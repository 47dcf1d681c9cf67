"""
Tests for the pass lifecycle state machine.

Tests cover:
- Creation (single active pass per student, including concurrent attempts)
- Check-in eligibility
- Return / close (duration rounding, escalation reset)
- Leg history
- Compare-and-swap escalation writes
"""
import asyncio
import pytest
import uuid
from datetime import timedelta

from app.core.clock import ensure_utc
from app.models.passes import EscalationLevel, MovementState, PassStatus
from app.services.errors import (
    FailedPreconditionError,
    InvalidArgumentError,
    NotFoundError,
)
from app.services.passes import PassService, total_duration_minutes
from app.services.validation import validate_pass


class TestCreatePass:

    @pytest.mark.asyncio
    async def test_create_pass_success(self, db_session, clock, make_pass_request, restroom, classroom):
        service = PassService(db_session, clock)

        pass_record = await service.create_pass(make_pass_request())

        stored = await service.get_pass(pass_record.id)
        assert stored.status == PassStatus.ACTIVE.value
        assert stored.current_location_id == restroom.id
        assert ensure_utc(stored.opened_at) == clock.now()
        assert stored.closed_at is None
        assert stored.total_duration is None
        assert stored.escalation_level is None
        assert stored.movement_state == MovementState.IN_TRANSIT.value
        assert stored.is_override is True
        assert stored.version == 1

        legs = await service.list_legs(pass_record.id)
        assert len(legs) == 1
        assert legs[0].leg_number == 1
        assert legs[0].direction == "out"
        assert legs[0].location_id == classroom.id

    @pytest.mark.asyncio
    async def test_origin_equals_destination_rejected(self, db_session, clock, make_pass_request, classroom):
        service = PassService(db_session, clock)

        with pytest.raises(InvalidArgumentError):
            await service.create_pass(make_pass_request(
                destination_location_id=classroom.id,
                destination_location_name=classroom.name,
            ))

    @pytest.mark.asyncio
    async def test_second_active_pass_rejected(self, db_session, clock, make_pass_request):
        service = PassService(db_session, clock)
        first = await service.create_pass(make_pass_request())

        with pytest.raises(FailedPreconditionError) as exc_info:
            await service.create_pass(make_pass_request())

        assert exc_info.value.details["active_pass_id"] == str(first.id)

    @pytest.mark.asyncio
    async def test_new_pass_allowed_after_return(self, db_session, clock, make_pass_request, teacher_user):
        service = PassService(db_session, clock)
        first = await service.create_pass(make_pass_request())
        clock.advance(minutes=4)
        await service.return_pass(first.id, teacher_user.id, teacher_user.display_name)

        second = await service.create_pass(make_pass_request())
        assert second.id != first.id

    @pytest.mark.asyncio
    async def test_unknown_student(self, db_session, clock, make_pass_request):
        service = PassService(db_session, clock)
        with pytest.raises(NotFoundError):
            await service.create_pass(make_pass_request(student_id=uuid.uuid4()))

    @pytest.mark.asyncio
    async def test_unknown_destination(self, db_session, clock, make_pass_request):
        service = PassService(db_session, clock)
        with pytest.raises(NotFoundError):
            await service.create_pass(make_pass_request(destination_location_id=uuid.uuid4()))

    @pytest.mark.asyncio
    async def test_not_departed_starts_in_class_without_legs(self, db_session, clock, make_pass_request):
        service = PassService(db_session, clock)
        pass_record = await service.create_pass(make_pass_request(departed=False))

        assert pass_record.movement_state == MovementState.IN_CLASS.value
        assert await service.list_legs(pass_record.id) == []


class TestConcurrentCreation:

    @pytest.mark.asyncio
    async def test_exactly_one_concurrent_create_succeeds(
        self, session_factory, clock, make_pass_request, student
    ):
        """Two simultaneous creations for the same student: one wins, one fails."""

        async def attempt():
            async with session_factory() as session:
                try:
                    return await PassService(session, clock).create_pass(make_pass_request())
                except FailedPreconditionError as e:
                    return e

        results = await asyncio.gather(attempt(), attempt())

        successes = [r for r in results if not isinstance(r, Exception)]
        failures = [r for r in results if isinstance(r, FailedPreconditionError)]
        assert len(successes) == 1
        assert len(failures) == 1

        async with session_factory() as session:
            active = await PassService(session, clock).passes.find_active_by_student(student.id)
        assert [p.id for p in active] == [successes[0].id]


class TestCheckIn:

    @pytest.mark.asyncio
    async def test_restroom_is_not_check_in_eligible(
        self, db_session, clock, make_pass_request, restroom, teacher_user
    ):
        service = PassService(db_session, clock)
        pass_record = await service.create_pass(make_pass_request())

        with pytest.raises(FailedPreconditionError):
            await service.check_in(pass_record.id, restroom.id, teacher_user.id, teacher_user.display_name)

    @pytest.mark.asyncio
    async def test_restroom_flagged_eligible_is_still_rejected(
        self, db_session, clock, make_pass_request, restroom, teacher_user
    ):
        restroom.is_check_in_eligible = True
        await db_session.commit()
        service = PassService(db_session, clock)
        pass_record = await service.create_pass(make_pass_request())

        with pytest.raises(FailedPreconditionError):
            await service.check_in(pass_record.id, restroom.id, teacher_user.id, teacher_user.display_name)

        stored = await service.get_pass(pass_record.id)
        assert stored.current_location_id == restroom.id
        assert stored.version == 1

    @pytest.mark.asyncio
    async def test_check_in_updates_location_and_appends_leg(
        self, db_session, clock, make_pass_request, library, librarian_user
    ):
        service = PassService(db_session, clock)
        pass_record = await service.create_pass(make_pass_request())
        clock.advance(minutes=5, seconds=40)

        updated = await service.check_in(
            pass_record.id, library.id, librarian_user.id, librarian_user.display_name
        )

        assert updated.current_location_id == library.id
        assert updated.status == PassStatus.ACTIVE.value
        assert updated.version == 2

        legs = await service.list_legs(pass_record.id)
        assert [leg.leg_number for leg in legs] == [1, 2]
        assert legs[1].is_check_in is True
        assert legs[1].direction == "in"
        assert legs[1].location_name == "Library"
        assert legs[1].duration_from_previous == 5

    @pytest.mark.asyncio
    async def test_check_in_on_closed_pass(
        self, db_session, clock, make_pass_request, library, teacher_user
    ):
        service = PassService(db_session, clock)
        pass_record = await service.create_pass(make_pass_request())
        await service.return_pass(pass_record.id, teacher_user.id, teacher_user.display_name)

        with pytest.raises(FailedPreconditionError):
            await service.check_in(pass_record.id, library.id, teacher_user.id, teacher_user.display_name)

    @pytest.mark.asyncio
    async def test_check_in_unknown_pass(self, db_session, clock, library, teacher_user):
        service = PassService(db_session, clock)
        with pytest.raises(NotFoundError):
            await service.check_in(uuid.uuid4(), library.id, teacher_user.id, teacher_user.display_name)

    @pytest.mark.asyncio
    async def test_check_in_unknown_location(self, db_session, clock, make_pass_request, teacher_user):
        service = PassService(db_session, clock)
        pass_record = await service.create_pass(make_pass_request())
        with pytest.raises(NotFoundError):
            await service.check_in(pass_record.id, uuid.uuid4(), teacher_user.id, teacher_user.display_name)


class TestReturnPass:

    @pytest.mark.asyncio
    async def test_return_after_37_minutes(
        self, db_session, clock, make_pass_request, teacher_user, classroom
    ):
        service = PassService(db_session, clock)
        pass_record = await service.create_pass(make_pass_request())
        clock.advance(minutes=25)
        assert await service.apply_escalation(
            pass_record.id, EscalationLevel.ALERT, clock.now(), expected_version=1
        )
        await db_session.commit()
        clock.advance(minutes=12)

        closed = await service.return_pass(pass_record.id, teacher_user.id, teacher_user.display_name)

        assert closed.status == PassStatus.CLOSED.value
        assert closed.total_duration == 37
        assert ensure_utc(closed.closed_at) == clock.now()
        assert closed.escalation_level is None
        assert closed.escalation_triggered_at is None
        assert closed.current_location_id == classroom.id
        assert validate_pass(closed).is_valid

        legs = await service.list_legs(pass_record.id)
        assert legs[-1].is_return is True
        assert legs[-1].location_id == classroom.id
        assert legs[-1].duration_from_previous == 37

    @pytest.mark.asyncio
    async def test_return_closed_pass_fails(self, db_session, clock, make_pass_request, teacher_user):
        service = PassService(db_session, clock)
        pass_record = await service.create_pass(make_pass_request())
        await service.return_pass(pass_record.id, teacher_user.id, teacher_user.display_name)

        with pytest.raises(FailedPreconditionError):
            await service.return_pass(pass_record.id, teacher_user.id, teacher_user.display_name)

    @pytest.mark.asyncio
    async def test_return_unknown_pass(self, db_session, clock, teacher_user):
        service = PassService(db_session, clock)
        with pytest.raises(NotFoundError):
            await service.return_pass(uuid.uuid4(), teacher_user.id, teacher_user.display_name)


class TestTotalDurationRounding:

    def test_rounds_half_up(self, clock):
        opened_at = clock.now()
        assert total_duration_minutes(opened_at, opened_at + timedelta(minutes=36, seconds=30)) == 37
        assert total_duration_minutes(opened_at, opened_at + timedelta(minutes=36, seconds=29)) == 36

    def test_never_negative(self, clock):
        opened_at = clock.now()
        assert total_duration_minutes(opened_at, opened_at - timedelta(minutes=1)) == 0


class TestEscalationWritePath:

    @pytest.mark.asyncio
    async def test_stale_version_is_rejected(self, db_session, clock, make_pass_request):
        service = PassService(db_session, clock)
        pass_record = await service.create_pass(make_pass_request())

        assert await service.apply_escalation(
            pass_record.id, EscalationLevel.WARNING, clock.now(), expected_version=1
        ) is True
        assert await service.apply_escalation(
            pass_record.id, EscalationLevel.ALERT, clock.now(), expected_version=1
        ) is False
        await db_session.commit()

        stored = await service.get_pass(pass_record.id)
        assert stored.escalation_level == EscalationLevel.WARNING.value
        assert stored.version == 2

    @pytest.mark.asyncio
    async def test_closed_pass_is_not_escalated(self, db_session, clock, make_pass_request, teacher_user):
        service = PassService(db_session, clock)
        pass_record = await service.create_pass(make_pass_request())
        closed = await service.return_pass(pass_record.id, teacher_user.id, teacher_user.display_name)

        assert await service.apply_escalation(
            pass_record.id, EscalationLevel.WARNING, clock.now(), expected_version=closed.version
        ) is False

    @pytest.mark.asyncio
    async def test_clear_escalation_is_idempotent(self, db_session, clock, make_pass_request):
        service = PassService(db_session, clock)
        pass_record = await service.create_pass(make_pass_request())
        await service.apply_escalation(pass_record.id, EscalationLevel.WARNING, clock.now(), expected_version=1)
        await db_session.commit()

        assert await service.clear_escalation(pass_record.id) is True
        await db_session.commit()
        first = await service.get_pass(pass_record.id)
        state = (first.escalation_level, first.escalation_triggered_at, first.version)

        assert await service.clear_escalation(pass_record.id) is False
        second = await service.get_pass(pass_record.id)
        assert (second.escalation_level, second.escalation_triggered_at, second.version) == state
        assert state[:2] == (None, None)
