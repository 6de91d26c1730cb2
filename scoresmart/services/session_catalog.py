"""
Session Catalog

Storage boundary for session and enrollment records. The engine reads sessions
through the catalog and mutates them only through the conditional operations
below (seat reservation, seat release, cancellation), each of which applies
atomically with respect to other writers on the same session.

Two implementations:
- InMemorySessionCatalog: single-process store used by tests and demos
- SqlSessionCatalog: SQLAlchemy async ORM, guarded UPDATE statements
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select, update, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker

from scoresmart.models.session import Session
from scoresmart.models.enrollment import SessionEnrollment
from scoresmart.models.tutor import Tutor
from scoresmart.services.session_types import (
    EnrollmentRecord,
    SessionRecord,
    SessionStatus,
    SessionType,
)

logger = logging.getLogger(__name__)


class ReserveStatus(str, Enum):
    RESERVED = "reserved"
    FULL = "full"
    NOT_JOINABLE = "not_joinable"
    ALREADY_ENROLLED = "already_enrolled"
    NOT_FOUND = "not_found"


class ReleaseStatus(str, Enum):
    RELEASED = "released"
    RELEASED_AT_FLOOR = "released_at_floor"  # enrollment removed, count already 0
    NOT_ENROLLED = "not_enrolled"
    NOT_FOUND = "not_found"


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive timestamps (SQLite drops the offset)"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SessionCatalog(ABC):
    """Read access plus the guarded mutators the engine is allowed to use"""

    @abstractmethod
    async def get_session(self, session_id: str) -> Optional[SessionRecord]:
        ...

    @abstractmethod
    async def list_sessions(self) -> List[SessionRecord]:
        ...

    @abstractmethod
    async def add_session(self, record: SessionRecord) -> SessionRecord:
        ...

    @abstractmethod
    async def get_enrollment(self, session_id: str, participant_id: str) -> Optional[EnrollmentRecord]:
        ...

    @abstractmethod
    async def list_enrollments(self, session_id: str) -> List[EnrollmentRecord]:
        ...

    @abstractmethod
    async def reserve_seat(
        self,
        session_id: str,
        participant_id: str,
        confirmation_ref: str,
        now: datetime,
    ) -> ReserveStatus:
        """
        Take one seat and record the enrollment in a single atomic step.

        Applies only while current_participants < max_participants, the stored
        status is not CANCELLED and the session has not started yet. Any other
        stored status is ignored because the clock decides the lifecycle.
        """

    @abstractmethod
    async def release_seat(self, session_id: str, participant_id: str) -> ReleaseStatus:
        """Remove the enrollment and give its seat back, floor at 0"""

    @abstractmethod
    async def mark_cancelled(self, session_id: str, now: datetime) -> Optional[List[EnrollmentRecord]]:
        """
        Move a session that is not cancelled and has not ended to CANCELLED.

        Voids all enrollments and resets the participant count. Returns the
        voided enrollments, or None when the session was not cancellable.
        """


class InMemorySessionCatalog(SessionCatalog):
    """Dictionary-backed catalog; each mutator runs without yielding to the event loop"""

    def __init__(self, sessions: Optional[List[SessionRecord]] = None):
        self._sessions: Dict[str, SessionRecord] = {}
        self._enrollments: Dict[Tuple[str, str], EnrollmentRecord] = {}
        for record in sessions or []:
            self._sessions[record.id] = record

    async def get_session(self, session_id: str) -> Optional[SessionRecord]:
        return self._sessions.get(session_id)

    async def list_sessions(self) -> List[SessionRecord]:
        return list(self._sessions.values())

    async def add_session(self, record: SessionRecord) -> SessionRecord:
        self._sessions[record.id] = record
        return record

    async def get_enrollment(self, session_id: str, participant_id: str) -> Optional[EnrollmentRecord]:
        return self._enrollments.get((session_id, participant_id))

    async def list_enrollments(self, session_id: str) -> List[EnrollmentRecord]:
        return [e for (sid, _), e in self._enrollments.items() if sid == session_id]

    async def reserve_seat(self, session_id, participant_id, confirmation_ref, now) -> ReserveStatus:
        record = self._sessions.get(session_id)
        if record is None:
            return ReserveStatus.NOT_FOUND
        if (session_id, participant_id) in self._enrollments:
            return ReserveStatus.ALREADY_ENROLLED
        if record.status == SessionStatus.CANCELLED or record.start_time <= now:
            return ReserveStatus.NOT_JOINABLE
        if record.current_participants >= record.max_participants:
            return ReserveStatus.FULL

        self._sessions[session_id] = replace(
            record, current_participants=record.current_participants + 1
        )
        self._enrollments[(session_id, participant_id)] = EnrollmentRecord(
            confirmation_ref=confirmation_ref,
            session_id=session_id,
            participant_id=participant_id,
            enrolled_at=now,
        )
        return ReserveStatus.RESERVED

    async def release_seat(self, session_id: str, participant_id: str) -> ReleaseStatus:
        record = self._sessions.get(session_id)
        if record is None:
            return ReleaseStatus.NOT_FOUND
        if self._enrollments.pop((session_id, participant_id), None) is None:
            return ReleaseStatus.NOT_ENROLLED
        if record.current_participants <= 0:
            return ReleaseStatus.RELEASED_AT_FLOOR

        self._sessions[session_id] = replace(
            record, current_participants=record.current_participants - 1
        )
        return ReleaseStatus.RELEASED

    async def mark_cancelled(self, session_id: str, now: datetime) -> Optional[List[EnrollmentRecord]]:
        record = self._sessions.get(session_id)
        if record is None or record.status == SessionStatus.CANCELLED or record.end_time <= now:
            return None

        voided = [e for (sid, _), e in self._enrollments.items() if sid == session_id]
        for enrollment in voided:
            del self._enrollments[(session_id, enrollment.participant_id)]
        self._sessions[session_id] = replace(
            record, status=SessionStatus.CANCELLED, current_participants=0
        )
        return voided


class SqlSessionCatalog(SessionCatalog):
    """
    Catalog backed by the sessions / session_enrollments tables.

    Seat accounting uses conditional UPDATE statements
    (SET current = current + 1 WHERE current < max AND ...), so concurrent
    writers in other processes cannot over-book a session either.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    @staticmethod
    def _to_record(row: Session, tutor_name: Optional[str] = None) -> SessionRecord:
        return SessionRecord(
            id=row.id,
            title=row.title,
            description=row.description,
            session_type=SessionType(row.session_type),
            course_type=row.course_type,
            start_time=as_utc(row.start_time),
            end_time=as_utc(row.end_time),
            max_participants=row.max_participants,
            current_participants=row.current_participants,
            status=SessionStatus(row.status),
            tutor_id=row.tutor_id,
            tutor_name=tutor_name,
            meeting_link=row.meeting_link,
            calendar_event_ref=row.calendar_event_ref,
        )

    @staticmethod
    def _to_enrollment(row: SessionEnrollment) -> EnrollmentRecord:
        return EnrollmentRecord(
            confirmation_ref=row.confirmation_ref,
            session_id=row.session_id,
            participant_id=row.participant_id,
            enrolled_at=as_utc(row.enrolled_at),
        )

    def _select_with_tutor(self):
        return select(Session, Tutor.name).outerjoin(Tutor, Session.tutor_id == Tutor.id)

    async def get_session(self, session_id: str) -> Optional[SessionRecord]:
        async with self._session_factory() as db:
            result = await db.execute(self._select_with_tutor().where(Session.id == session_id))
            row = result.first()
            if row is None:
                return None
            return self._to_record(row[0], row[1])

    async def list_sessions(self) -> List[SessionRecord]:
        async with self._session_factory() as db:
            result = await db.execute(self._select_with_tutor().order_by(Session.start_time, Session.id))
            return [self._to_record(session, tutor_name) for session, tutor_name in result.all()]

    async def add_session(self, record: SessionRecord) -> SessionRecord:
        async with self._session_factory() as db:
            db.add(Session(
                id=record.id,
                title=record.title,
                description=record.description,
                session_type=record.session_type.value,
                course_type=record.course_type,
                start_time=as_utc(record.start_time),
                end_time=as_utc(record.end_time),
                max_participants=record.max_participants,
                current_participants=record.current_participants,
                status=record.status.value,
                tutor_id=record.tutor_id,
                meeting_link=record.meeting_link,
                calendar_event_ref=record.calendar_event_ref,
            ))
            await db.commit()

        logger.debug(f"Stored session {record.id} ({record.session_type.value})")
        return await self.get_session(record.id)

    async def get_enrollment(self, session_id: str, participant_id: str) -> Optional[EnrollmentRecord]:
        async with self._session_factory() as db:
            row = await db.scalar(
                select(SessionEnrollment).where(
                    SessionEnrollment.session_id == session_id,
                    SessionEnrollment.participant_id == participant_id,
                )
            )
            return self._to_enrollment(row) if row is not None else None

    async def list_enrollments(self, session_id: str) -> List[EnrollmentRecord]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(SessionEnrollment)
                .where(SessionEnrollment.session_id == session_id)
                .order_by(SessionEnrollment.enrolled_at)
            )
            return [self._to_enrollment(row) for row in result.scalars().all()]

    async def reserve_seat(self, session_id, participant_id, confirmation_ref, now) -> ReserveStatus:
        now = as_utc(now)
        try:
            async with self._session_factory() as db:
                async with db.begin():
                    existing = await db.scalar(
                        select(SessionEnrollment.confirmation_ref).where(
                            SessionEnrollment.session_id == session_id,
                            SessionEnrollment.participant_id == participant_id,
                        )
                    )
                    if existing is not None:
                        return ReserveStatus.ALREADY_ENROLLED

                    result = await db.execute(
                        update(Session)
                        .where(
                            Session.id == session_id,
                            Session.current_participants < Session.max_participants,
                            Session.status != SessionStatus.CANCELLED.value,
                            Session.start_time > now,
                        )
                        .values(current_participants=Session.current_participants + 1)
                        .execution_options(synchronize_session=False)
                    )

                    if result.rowcount != 1:
                        row = await db.get(Session, session_id)
                        if row is None:
                            return ReserveStatus.NOT_FOUND
                        if row.current_participants >= row.max_participants:
                            return ReserveStatus.FULL
                        return ReserveStatus.NOT_JOINABLE

                    db.add(SessionEnrollment(
                        confirmation_ref=confirmation_ref,
                        session_id=session_id,
                        participant_id=participant_id,
                        enrolled_at=now,
                    ))
                return ReserveStatus.RESERVED
        except IntegrityError:
            # Unique (session_id, participant_id) lost a race with another request
            logger.info(f"Duplicate enrollment rejected for {participant_id} in session {session_id}")
            return ReserveStatus.ALREADY_ENROLLED

    async def release_seat(self, session_id: str, participant_id: str) -> ReleaseStatus:
        async with self._session_factory() as db:
            async with db.begin():
                deleted = await db.execute(
                    delete(SessionEnrollment)
                    .where(
                        SessionEnrollment.session_id == session_id,
                        SessionEnrollment.participant_id == participant_id,
                    )
                    .execution_options(synchronize_session=False)
                )
                if deleted.rowcount == 0:
                    exists = await db.scalar(select(Session.id).where(Session.id == session_id))
                    return ReleaseStatus.NOT_FOUND if exists is None else ReleaseStatus.NOT_ENROLLED

                result = await db.execute(
                    update(Session)
                    .where(Session.id == session_id, Session.current_participants > 0)
                    .values(current_participants=Session.current_participants - 1)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    return ReleaseStatus.RELEASED_AT_FLOOR
            return ReleaseStatus.RELEASED

    async def mark_cancelled(self, session_id: str, now: datetime) -> Optional[List[EnrollmentRecord]]:
        now = as_utc(now)
        async with self._session_factory() as db:
            async with db.begin():
                result = await db.execute(
                    update(Session)
                    .where(
                        Session.id == session_id,
                        Session.status != SessionStatus.CANCELLED.value,
                        Session.end_time > now,
                    )
                    .values(status=SessionStatus.CANCELLED.value, current_participants=0)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    return None

                rows = await db.execute(
                    select(SessionEnrollment).where(SessionEnrollment.session_id == session_id)
                )
                voided = [self._to_enrollment(row) for row in rows.scalars().all()]
                await db.execute(
                    delete(SessionEnrollment)
                    .where(SessionEnrollment.session_id == session_id)
                    .execution_options(synchronize_session=False)
                )
            return voided


# Global catalog instance
_catalog: Optional[SessionCatalog] = None


def get_session_catalog() -> SessionCatalog:
    """Get or create global SQL-backed SessionCatalog instance."""
    global _catalog
    if _catalog is None:
        from scoresmart.database import AsyncSessionLocal
        _catalog = SqlSessionCatalog(AsyncSessionLocal)
    return _catalog
