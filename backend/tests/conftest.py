"""
Pytest configuration and fixtures for backend tests.

Provides common test fixtures for async client, database sessions, a frozen
clock, seeded users/students/locations and identity headers.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ESCALATION_MONITOR_ENABLED", "false")

import pytest
import pytest_asyncio
import uuid
from datetime import datetime, timezone
from typing import AsyncGenerator, List, Set

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from app.main import app
from app.core.clock import FrozenClock
from app.core.database import get_db, Base
from app.core.roles import UserRole, UserStatus
from app.models.user import User
from app.models.student import Student
from app.models.location import Location, LocationStaffAssignment
from app.schemas.passes import PassCreate
from app.services.escalation import EscalationMonitor, NotificationDispatcher, EscalationNotification
from app.api.v1.deps import get_clock, get_escalation_monitor


SCHOOL_DAY_START = datetime(2024, 9, 3, 9, 0, tzinfo=timezone.utc)


class RecordingDispatcher(NotificationDispatcher):
    """Collects notifications; raises for recipients listed in fail_for."""

    def __init__(self):
        self.sent: List[EscalationNotification] = []
        self.fail_for: Set[uuid.UUID] = set()

    async def send(self, notification: EscalationNotification) -> None:
        if notification.recipient_id in self.fail_for:
            raise RuntimeError("push gateway unavailable")
        self.sent.append(notification)

    def recipients(self) -> Set[uuid.UUID]:
        return {n.recipient_id for n in self.sent}


# A file database so separate sessions (connections) see the same data
# and compete for the same write lock.
@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    """Create a test database engine."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'hallpass.db'}",
        poolclass=NullPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_factory(test_engine) -> async_sessionmaker:
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(SCHOOL_DAY_START)


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def monitor(session_factory, clock, dispatcher) -> EscalationMonitor:
    return EscalationMonitor(
        session_factory,
        clock=clock,
        dispatcher=dispatcher,
        interval_seconds=60,
        max_concurrency=4,
    )


async def _create_user(
    db: AsyncSession,
    email: str,
    display_name: str,
    role: UserRole,
    status: UserStatus = UserStatus.APPROVED,
) -> User:
    user = User(
        id=uuid.uuid4(),
        email=email,
        display_name=display_name,
        role=role.value,
        status=status.value,
    )
    db.add(user)
    await db.commit()
    return user


@pytest_asyncio.fixture(scope="function")
async def admin_user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "principal@eaglepass.test", "Principal Ortiz", UserRole.ADMIN)


@pytest_asyncio.fixture(scope="function")
async def teacher_user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "mr.hale@eaglepass.test", "Mr. Hale", UserRole.TEACHER)


@pytest_asyncio.fixture(scope="function")
async def librarian_user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "librarian@eaglepass.test", "Ms. Reyes", UserRole.SUPPORT)


@pytest_asyncio.fixture(scope="function")
async def student_user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "avery@students.eaglepass.test", "Avery Chen", UserRole.STUDENT)


@pytest_asyncio.fixture(scope="function")
async def other_student_user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "jordan@students.eaglepass.test", "Jordan Blake", UserRole.STUDENT)


@pytest_asyncio.fixture(scope="function")
async def pending_user(db_session: AsyncSession) -> User:
    return await _create_user(
        db_session, "new.teacher@eaglepass.test", "New Teacher", UserRole.TEACHER, UserStatus.PENDING
    )


@pytest_asyncio.fixture(scope="function")
async def student(db_session: AsyncSession, student_user: User) -> Student:
    record = Student(
        id=uuid.uuid4(),
        user_id=student_user.id,
        student_number="S-1001",
        first_name="Avery",
        last_name="Chen",
        grade=10,
        is_active=True,
    )
    db_session.add(record)
    await db_session.commit()
    return record


@pytest_asyncio.fixture(scope="function")
async def other_student(db_session: AsyncSession, other_student_user: User) -> Student:
    record = Student(
        id=uuid.uuid4(),
        user_id=other_student_user.id,
        student_number="S-1002",
        first_name="Jordan",
        last_name="Blake",
        grade=11,
        is_active=True,
    )
    db_session.add(record)
    await db_session.commit()
    return record


async def _create_location(db: AsyncSession, **kwargs) -> Location:
    location = Location(id=uuid.uuid4(), is_active=True, **kwargs)
    db.add(location)
    await db.commit()
    return location


@pytest_asyncio.fixture(scope="function")
async def classroom(db_session: AsyncSession) -> Location:
    return await _create_location(
        db_session, name="Room 101", short_name="101", location_type="classroom", is_check_in_eligible=True
    )


@pytest_asyncio.fixture(scope="function")
async def restroom(db_session: AsyncSession) -> Location:
    return await _create_location(
        db_session, name="East Restroom", short_name="ER", location_type="restroom", is_check_in_eligible=False
    )


@pytest_asyncio.fixture(scope="function")
async def library(
    db_session: AsyncSession,
    librarian_user: User,
) -> Location:
    location = await _create_location(
        db_session, name="Library", short_name="LIB", location_type="library", is_check_in_eligible=True
    )
    db_session.add(LocationStaffAssignment(
        location_id=location.id,
        staff_user_id=librarian_user.id,
        staff_name=librarian_user.display_name,
        role=librarian_user.role,
        is_primary=True,
    ))
    await db_session.commit()
    return location


@pytest.fixture
def make_pass_request(student: Student, classroom: Location, restroom: Location, teacher_user: User):
    """Build a PassCreate from Room 101 to the restroom, issued by the teacher."""

    def _make(**overrides) -> PassCreate:
        values = dict(
            student_id=student.id,
            student_name=student.full_name,
            origin_location_id=classroom.id,
            origin_location_name=classroom.name,
            destination_location_id=restroom.id,
            destination_location_name=restroom.name,
            issued_by_id=teacher_user.id,
            issued_by_name=teacher_user.display_name,
            is_override=True,
        )
        values.update(overrides)
        return PassCreate(**values)

    return _make


def identity_headers(user: User) -> dict:
    return {"X-User-Id": str(user.id)}


@pytest.fixture
def student_headers(student_user: User) -> dict:
    return identity_headers(student_user)


@pytest.fixture
def teacher_headers(teacher_user: User) -> dict:
    return identity_headers(teacher_user)


@pytest_asyncio.fixture(scope="function")
async def async_client(
    db_session: AsyncSession,
    clock: FrozenClock,
    monitor: EscalationMonitor,
) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client with database, clock and monitor overrides."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_escalation_monitor] = lambda: monitor

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as client:
        yield client

    app.dependency_overrides.clear()
