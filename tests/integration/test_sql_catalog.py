"""
Integration tests for the SQL-backed catalog and feature store

Runs the guarded UPDATE/DELETE statements against a SQLite database
(sqlite+aiosqlite) created from the ORM metadata.
"""

import asyncio
import pytest
from datetime import timedelta
from sqlalchemy.exc import IntegrityError

from conftest import make_session
from scoresmart.database import Base, build_engine, build_session_factory
from scoresmart.models import Tutor
from scoresmart.services.enrollment_workflow import EnrollmentWorkflow
from scoresmart.services.feature_gate import SqlFeatureStore
from scoresmart.services.results import ErrorCode
from scoresmart.services.session_catalog import ReleaseStatus, ReserveStatus, SqlSessionCatalog
from scoresmart.services.session_types import Caller, CallerRole, SessionStatus


@pytest.fixture(scope="function")
async def session_factory(tmp_path):
    """Fresh SQLite database with all tables"""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'sessions.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield build_session_factory(engine)

    await engine.dispose()


@pytest.fixture
async def sql_catalog(session_factory, now):
    catalog = SqlSessionCatalog(session_factory)
    async with session_factory() as db:
        db.add(Tutor(id="tutor-1", name="Maya Chen", email="maya@example.com"))
        await db.commit()
    await catalog.add_session(make_session("s1", now + timedelta(days=1), max_participants=2))
    return catalog


class TestSqlSessionCatalog:
    """Test catalog reads and guarded mutators"""

    @pytest.mark.asyncio
    async def test_round_trip_with_tutor_name(self, sql_catalog, now):
        record = await sql_catalog.get_session("s1")

        assert record.tutor_name == "Maya Chen"
        assert record.start_time == now + timedelta(days=1)
        assert record.start_time.tzinfo is not None
        assert record.status == SessionStatus.SCHEDULED
        assert await sql_catalog.get_session("missing") is None

    @pytest.mark.asyncio
    async def test_list_sessions_ordered_by_start(self, sql_catalog, now):
        await sql_catalog.add_session(make_session("s0", now + timedelta(hours=2)))
        ids = [record.id for record in await sql_catalog.list_sessions()]
        assert ids == ["s0", "s1"]

    @pytest.mark.asyncio
    async def test_reserve_until_full(self, sql_catalog, now):
        assert await sql_catalog.reserve_seat("s1", "student-1", "enr_000000000001", now) == ReserveStatus.RESERVED
        assert await sql_catalog.reserve_seat("s1", "student-2", "enr_000000000002", now) == ReserveStatus.RESERVED
        assert await sql_catalog.reserve_seat("s1", "student-3", "enr_000000000003", now) == ReserveStatus.FULL

        record = await sql_catalog.get_session("s1")
        assert record.current_participants == 2
        enrollment = await sql_catalog.get_enrollment("s1", "student-1")
        assert enrollment.confirmation_ref == "enr_000000000001"
        assert enrollment.enrolled_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_duplicate_reservation(self, sql_catalog, now):
        await sql_catalog.reserve_seat("s1", "student-1", "enr_000000000001", now)
        status = await sql_catalog.reserve_seat("s1", "student-1", "enr_000000000002", now)

        assert status == ReserveStatus.ALREADY_ENROLLED
        assert (await sql_catalog.get_session("s1")).current_participants == 1

    @pytest.mark.asyncio
    async def test_reserve_after_start(self, sql_catalog, now):
        later = now + timedelta(days=1, minutes=1)
        status = await sql_catalog.reserve_seat("s1", "student-1", "enr_000000000001", later)
        assert status == ReserveStatus.NOT_JOINABLE

    @pytest.mark.asyncio
    async def test_reserve_with_stale_stored_status(self, sql_catalog, now):
        """Only a stored CANCELLED blocks the conditional update; the start time decides the rest"""
        await sql_catalog.add_session(make_session("s2", now + timedelta(days=2), status=SessionStatus.ONGOING))
        await sql_catalog.add_session(make_session("s3", now + timedelta(days=2), status=SessionStatus.CANCELLED))

        assert await sql_catalog.reserve_seat("s2", "student-1", "enr_000000000001", now) == ReserveStatus.RESERVED
        assert await sql_catalog.reserve_seat("s3", "student-1", "enr_000000000002", now) == ReserveStatus.NOT_JOINABLE
        assert (await sql_catalog.get_session("s2")).current_participants == 1

    @pytest.mark.asyncio
    async def test_reserve_unknown_session(self, sql_catalog, now):
        status = await sql_catalog.reserve_seat("missing", "student-1", "enr_000000000001", now)
        assert status == ReserveStatus.NOT_FOUND

    @pytest.mark.asyncio
    async def test_release(self, sql_catalog, now):
        await sql_catalog.reserve_seat("s1", "student-1", "enr_000000000001", now)

        assert await sql_catalog.release_seat("s1", "student-1") == ReleaseStatus.RELEASED
        assert await sql_catalog.release_seat("s1", "student-1") == ReleaseStatus.NOT_ENROLLED
        assert await sql_catalog.release_seat("missing", "student-1") == ReleaseStatus.NOT_FOUND
        assert (await sql_catalog.get_session("s1")).current_participants == 0

    @pytest.mark.asyncio
    async def test_mark_cancelled(self, sql_catalog, now):
        await sql_catalog.reserve_seat("s1", "student-1", "enr_000000000001", now)

        voided = await sql_catalog.mark_cancelled("s1", now)

        assert [e.participant_id for e in voided] == ["student-1"]
        record = await sql_catalog.get_session("s1")
        assert record.status == SessionStatus.CANCELLED
        assert record.current_participants == 0
        assert await sql_catalog.list_enrollments("s1") == []
        assert await sql_catalog.mark_cancelled("s1", now) is None

    @pytest.mark.asyncio
    async def test_check_constraint_rejects_overfilled_session(self, sql_catalog, now):
        with pytest.raises(IntegrityError):
            await sql_catalog.add_session(
                make_session("bad", now + timedelta(days=1), max_participants=2, current_participants=3)
            )


class TestWorkflowOverSql:
    """Test the enrollment workflow end to end on the SQL catalog"""

    @pytest.mark.asyncio
    async def test_concurrent_joins_never_overbook(self, sql_catalog, now):
        workflow = EnrollmentWorkflow(sql_catalog)
        callers = [
            Caller(id=f"student-{i}", role=CallerRole.STUDENT, enabled_features=frozenset({"smart_quad"}))
            for i in range(5)
        ]

        outcomes = await asyncio.gather(*[workflow.join(c, "s1", now) for c in callers])

        assert sum(1 for o in outcomes if o.ok) == 2
        assert sum(1 for o in outcomes if o.code == ErrorCode.SESSION_FULL) == 3
        assert (await sql_catalog.get_session("s1")).current_participants == 2
        assert len(await sql_catalog.list_enrollments("s1")) == 2


class TestSqlFeatureStore:
    @pytest.mark.asyncio
    async def test_set_and_read_flags(self, session_factory):
        store = SqlFeatureStore(session_factory)

        await store.set_feature("student-1", "smart_quad", True)
        await store.set_feature("student-1", "masterclass", True)
        await store.set_feature("student-1", "masterclass", False)

        assert await store.enabled_features("student-1") == frozenset({"smart_quad"})
        assert await store.enabled_features("student-2") == frozenset()
