"""
ScoreSmart Sessions - Test Configuration and Fixtures
"""
import os
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest
from httpx import AsyncClient, ASGITransport

# Set testing environment before any scoresmart import reads it
os.environ['DATABASE_URL'] = 'sqlite+aiosqlite://'
os.environ['API_TOKEN'] = 'test-token'
os.environ['ENABLE_SCHEDULER'] = 'false'

from scoresmart.services.enrollment_workflow import EnrollmentWorkflow, get_enrollment_workflow
from scoresmart.services.feature_gate import InMemoryFeatureStore, get_feature_store
from scoresmart.services.session_admin import SessionAdmin, get_session_admin
from scoresmart.services.session_catalog import InMemorySessionCatalog
from scoresmart.services.session_types import (
    Caller,
    CallerRole,
    SessionRecord,
    SessionStatus,
    SessionType,
)

# Tuesday morning, fixed so time windows are deterministic
NOW = datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)


def make_session(
    session_id: str,
    start: datetime,
    duration_minutes: int = 60,
    session_type: SessionType = SessionType.SMART_QUAD,
    max_participants: int = 4,
    current_participants: int = 0,
    status: SessionStatus = SessionStatus.SCHEDULED,
    course_type: str = "PTE",
    title: str = None,
    description: str = None,
    tutor_id: str = "tutor-1",
    tutor_name: str = "Maya Chen",
) -> SessionRecord:
    """Build a SessionRecord with sensible defaults"""
    return SessionRecord(
        id=session_id,
        title=title or f"{course_type} practice {session_id}",
        description=description,
        session_type=session_type,
        course_type=course_type,
        start_time=start,
        end_time=start + timedelta(minutes=duration_minutes),
        max_participants=max_participants,
        current_participants=current_participants,
        status=status,
        tutor_id=tutor_id,
        tutor_name=tutor_name,
    )


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def student() -> Caller:
    """Student with Smart Quad and Masterclass access"""
    return Caller(
        id="student-1",
        role=CallerRole.STUDENT,
        enabled_features=frozenset({"smart_quad", "masterclass"}),
    )


@pytest.fixture
def restricted_student() -> Caller:
    """Student with no session features enabled"""
    return Caller(id="student-9", role=CallerRole.STUDENT)


@pytest.fixture
def tutor() -> Caller:
    return Caller(id="tutor-1", role=CallerRole.TUTOR)


@pytest.fixture
def admin() -> Caller:
    return Caller(id="admin-1", role=CallerRole.ADMIN)


@pytest.fixture
def catalog() -> InMemorySessionCatalog:
    return InMemorySessionCatalog()


@pytest.fixture
def workflow(catalog: InMemorySessionCatalog) -> EnrollmentWorkflow:
    return EnrollmentWorkflow(catalog)


# API fixtures

@pytest.fixture
def api_catalog() -> InMemorySessionCatalog:
    """Catalog seeded relative to the real clock (routes use wall-clock time)"""
    start = datetime.now(timezone.utc) + timedelta(days=2)
    return InMemorySessionCatalog([
        make_session("quad-open", start, max_participants=2),
        make_session("quad-full", start + timedelta(hours=2), max_participants=2, current_participants=2),
        make_session(
            "master-1",
            start + timedelta(hours=4),
            session_type=SessionType.MASTERCLASS,
            max_participants=30,
            course_type="IELTS",
        ),
    ])


@pytest.fixture
def feature_store() -> InMemoryFeatureStore:
    return InMemoryFeatureStore({
        "student-1": {"smart_quad"},
    })


@pytest.fixture
async def client(api_catalog, feature_store) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with in-memory engine overrides"""
    from main import app

    workflow = EnrollmentWorkflow(api_catalog)
    admin = SessionAdmin(api_catalog)

    app.dependency_overrides[get_enrollment_workflow] = lambda: workflow
    app.dependency_overrides[get_session_admin] = lambda: admin
    app.dependency_overrides[get_feature_store] = lambda: feature_store

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac

    app.dependency_overrides.clear()


def caller_headers(caller_id: str, role: str, token: str = 'test-token') -> dict:
    """Authentication and identity headers for a caller"""
    return {
        'Authorization': f'Bearer {token}',
        'X-Caller-Id': caller_id,
        'X-Caller-Role': role,
    }
