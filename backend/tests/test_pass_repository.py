"""
Tests for the pass repository: active-pass queries, the single active pass
index, conditional updates and leg numbering.
"""
import pytest
import uuid

from app.models.passes import Pass, PassStatus, EscalationLevel, LegDirection
from app.repositories.pass_repository import PassRepository, ActivePassExistsError
from app.services.errors import InvalidArgumentError


def _new_pass(student, origin, destination, issuer, opened_at) -> Pass:
    return Pass(
        id=uuid.uuid4(),
        student_id=student.id,
        student_name=student.full_name,
        origin_location_id=origin.id,
        origin_location_name=origin.name,
        destination_location_id=destination.id,
        destination_location_name=destination.name,
        current_location_id=destination.id,
        status=PassStatus.ACTIVE.value,
        opened_at=opened_at,
        issued_by_id=issuer.id,
        issued_by_name=issuer.display_name,
    )


class TestActivePassQueries:

    @pytest.mark.asyncio
    async def test_create_and_get(self, db_session, clock, student, classroom, restroom, teacher_user):
        repo = PassRepository(db_session, clock)

        pass_id = await repo.create(_new_pass(student, classroom, restroom, teacher_user, clock.now()))
        await db_session.commit()

        stored = await repo.get(pass_id)
        assert stored is not None
        assert stored.version == 1
        assert stored.created_at == stored.updated_at
        assert await repo.get(uuid.uuid4()) is None

    @pytest.mark.asyncio
    async def test_find_active(
        self, db_session, clock, student, other_student, classroom, restroom, teacher_user
    ):
        repo = PassRepository(db_session, clock)
        first = await repo.create(_new_pass(student, classroom, restroom, teacher_user, clock.now()))
        clock.advance(minutes=1)
        second = await repo.create(_new_pass(other_student, classroom, restroom, teacher_user, clock.now()))
        await db_session.commit()

        assert [p.id for p in await repo.find_active_by_student(student.id)] == [first]
        assert [p.id for p in await repo.find_all_active()] == [first, second]

        await repo.update(first, {"status": PassStatus.CLOSED.value, "closed_at": clock.now()})
        await db_session.commit()

        assert await repo.find_active_by_student(student.id) == []
        assert [p.id for p in await repo.find_all_active()] == [second]

    @pytest.mark.asyncio
    async def test_second_active_pass_is_rejected(
        self, db_session, clock, student, classroom, restroom, teacher_user
    ):
        repo = PassRepository(db_session, clock)
        student_id = student.id
        await repo.create(_new_pass(student, classroom, restroom, teacher_user, clock.now()))
        await db_session.commit()

        with pytest.raises(ActivePassExistsError) as exc_info:
            await repo.create(_new_pass(student, classroom, restroom, teacher_user, clock.now()))

        assert exc_info.value.student_id == student_id

    @pytest.mark.asyncio
    async def test_closed_pass_without_duration_is_rejected(
        self, db_session, clock, student, classroom, restroom, teacher_user
    ):
        repo = PassRepository(db_session, clock)
        record = _new_pass(student, classroom, restroom, teacher_user, clock.now())
        record.status = PassStatus.CLOSED.value
        record.closed_at = clock.now()

        with pytest.raises(InvalidArgumentError) as exc_info:
            await repo.create(record)

        assert [issue["field"] for issue in exc_info.value.issues] == ["total_duration"]
        assert await repo.get(record.id) is None


class TestConditionalUpdate:

    @pytest.mark.asyncio
    async def test_version_mismatch_is_not_applied(
        self, db_session, clock, student, classroom, restroom, teacher_user
    ):
        repo = PassRepository(db_session, clock)
        pass_id = await repo.create(_new_pass(student, classroom, restroom, teacher_user, clock.now()))
        await db_session.commit()

        clock.advance(minutes=10)
        applied = await repo.update(
            pass_id,
            {"escalation_level": EscalationLevel.WARNING.value, "escalation_triggered_at": clock.now()},
            expected_version=1,
        )
        stale = await repo.update(
            pass_id,
            {"escalation_level": EscalationLevel.ALERT.value, "escalation_triggered_at": clock.now()},
            expected_version=1,
        )
        await db_session.commit()

        assert applied is True
        assert stale is False
        stored = await repo.get(pass_id)
        assert stored.version == 2
        assert stored.escalation_level == EscalationLevel.WARNING.value

    @pytest.mark.asyncio
    async def test_status_guard(self, db_session, clock, student, classroom, restroom, teacher_user):
        repo = PassRepository(db_session, clock)
        pass_id = await repo.create(_new_pass(student, classroom, restroom, teacher_user, clock.now()))
        await repo.update(pass_id, {"status": PassStatus.CLOSED.value, "closed_at": clock.now()})
        await db_session.commit()

        applied = await repo.update(
            pass_id, {"notes": "late"}, expected_status=PassStatus.ACTIVE.value
        )
        assert applied is False

    @pytest.mark.asyncio
    async def test_count_active_by_level(
        self, db_session, clock, student, other_student, classroom, restroom, teacher_user
    ):
        repo = PassRepository(db_session, clock)
        first = await repo.create(_new_pass(student, classroom, restroom, teacher_user, clock.now()))
        await repo.create(_new_pass(other_student, classroom, restroom, teacher_user, clock.now()))
        await repo.update(
            first,
            {"escalation_level": EscalationLevel.ALERT.value, "escalation_triggered_at": clock.now()},
        )
        await db_session.commit()

        assert await repo.count_active_by_level() == {None: 1, "alert": 1}


class TestLegs:

    @pytest.mark.asyncio
    async def test_leg_numbers_increase(self, db_session, clock, student, classroom, restroom, teacher_user):
        repo = PassRepository(db_session, clock)
        pass_id = await repo.create(_new_pass(student, classroom, restroom, teacher_user, clock.now()))

        for direction in (LegDirection.OUT, LegDirection.IN):
            await repo.add_leg(
                pass_id=pass_id,
                location_id=classroom.id,
                location_name=classroom.name,
                actor_id=teacher_user.id,
                actor_name=teacher_user.display_name,
                direction=direction.value,
                timestamp=clock.now(),
            )
        await db_session.commit()

        legs = await repo.list_legs(pass_id)
        assert [leg.leg_number for leg in legs] == [1, 2]
        assert (await repo.get_last_leg(pass_id)).direction == "in"

    @pytest.mark.asyncio
    async def test_invalid_leg_is_rejected(self, db_session, clock, student, classroom, restroom, teacher_user):
        repo = PassRepository(db_session, clock)
        pass_id = await repo.create(_new_pass(student, classroom, restroom, teacher_user, clock.now()))

        with pytest.raises(InvalidArgumentError) as exc_info:
            await repo.add_leg(
                pass_id=pass_id,
                location_id=classroom.id,
                location_name=classroom.name,
                actor_id=teacher_user.id,
                actor_name=teacher_user.display_name,
                direction="sideways",
                timestamp=clock.now(),
                duration_from_previous=-2,
            )

        fields = {issue["field"] for issue in exc_info.value.issues}
        assert fields == {"direction", "duration_from_previous"}
        assert await repo.list_legs(pass_id) == []
