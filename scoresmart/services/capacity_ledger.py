"""
Capacity Ledger

Single source of truth for seat accounting. Every reservation and release for
a session is serialized through a per-session asyncio.Lock, and the catalog
applies the seat change with a guarded conditional update, so two concurrent
joins can never both take the last seat.
"""
import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Dict, Optional

from scoresmart.services.results import ErrorCode, Outcome
from scoresmart.services.session_catalog import ReleaseStatus, ReserveStatus, SessionCatalog
from scoresmart.services.session_types import EnrollmentRecord, SessionRecord

logger = logging.getLogger(__name__)


class _SessionGuard:
    """Lock plus the number of tasks holding or waiting on it"""

    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = asyncio.Lock()
        self.users = 0


def new_confirmation_ref() -> str:
    return f"enr_{uuid.uuid4().hex[:12]}"


def validate_capacity(record: SessionRecord) -> Optional[Outcome]:
    """
    Check 0 <= current_participants <= max_participants and max_participants > 0.

    A violation means upstream data corruption: it is surfaced as
    InvalidCapacity and logged for operators, never clamped.

    Returns:
        Failure outcome, or None when the record is consistent
    """
    if record.max_participants > 0 and 0 <= record.current_participants <= record.max_participants:
        return None

    logger.warning(
        f"Invalid capacity on session {record.id}: "
        f"current={record.current_participants}, max={record.max_participants}"
    )
    return Outcome.failure(
        ErrorCode.INVALID_CAPACITY,
        "Session capacity configuration is inconsistent",
        {
            "session_id": record.id,
            "current_participants": record.current_participants,
            "max_participants": record.max_participants,
        },
    )


class CapacityLedger:
    """
    Seat reservation and release with per-session mutual exclusion.

    reserve_seat / release_seat acquire the session's guard themselves.
    Callers that need several checks and the reservation to see one
    consistent snapshot (the enrollment workflow) hold guard(session_id)
    and call the *_locked variants instead.

    A guard entry lives only while some task holds or awaits it, so the lock
    map stays bounded by the number of in-flight requests rather than by
    every session id ever requested.
    """

    def __init__(self, catalog: SessionCatalog):
        self.catalog = catalog
        self._locks: Dict[str, _SessionGuard] = {}

    @asynccontextmanager
    async def guard(self, session_id: str) -> AsyncIterator[None]:
        """Hold the per-session lock serializing all seat changes for session_id"""
        entry = self._locks.get(session_id)
        if entry is None:
            entry = self._locks[session_id] = _SessionGuard()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[session_id]

    async def reserve_seat(
        self,
        session_id: str,
        participant_id: str,
        now: Optional[datetime] = None,
    ) -> Outcome[EnrollmentRecord]:
        async with self.guard(session_id):
            return await self.reserve_seat_locked(session_id, participant_id, now)

    async def reserve_seat_locked(
        self,
        session_id: str,
        participant_id: str,
        now: Optional[datetime] = None,
    ) -> Outcome[EnrollmentRecord]:
        """
        Take one seat for participant_id. Caller must hold guard(session_id).

        Returns:
            Outcome with the new EnrollmentRecord, or one of SessionNotFound,
            InvalidCapacity, AlreadyEnrolled, SessionNotJoinable, SessionFull
        """
        now = now or datetime.now(timezone.utc)

        record = await self.catalog.get_session(session_id)
        if record is None:
            return Outcome.failure(ErrorCode.SESSION_NOT_FOUND, f"Session '{session_id}' not found")

        invalid = validate_capacity(record)
        if invalid is not None:
            return invalid

        confirmation_ref = new_confirmation_ref()
        status = await self.catalog.reserve_seat(session_id, participant_id, confirmation_ref, now)

        if status == ReserveStatus.RESERVED:
            logger.info(
                f"Seat reserved: session={session_id}, participant={participant_id}, "
                f"ref={confirmation_ref}"
            )
            enrollment = await self.catalog.get_enrollment(session_id, participant_id)
            return Outcome.success(enrollment)

        if status == ReserveStatus.FULL:
            return Outcome.failure(
                ErrorCode.SESSION_FULL,
                "No seats remaining in this session",
                {"session_id": session_id, "max_participants": record.max_participants},
            )
        if status == ReserveStatus.ALREADY_ENROLLED:
            return Outcome.failure(
                ErrorCode.ALREADY_ENROLLED,
                "You are already enrolled in this session",
                {"session_id": session_id},
            )
        if status == ReserveStatus.NOT_FOUND:
            return Outcome.failure(ErrorCode.SESSION_NOT_FOUND, f"Session '{session_id}' not found")
        return Outcome.failure(
            ErrorCode.SESSION_NOT_JOINABLE,
            "Session is no longer open for enrollment",
            {"session_id": session_id},
        )

    async def release_seat(self, session_id: str, participant_id: str) -> Outcome[None]:
        async with self.guard(session_id):
            return await self.release_seat_locked(session_id, participant_id)

    async def release_seat_locked(self, session_id: str, participant_id: str) -> Outcome[None]:
        """
        Give back participant_id's seat. Caller must hold guard(session_id).

        Returns:
            Success, or SessionNotFound / NotEnrolled
        """
        status = await self.catalog.release_seat(session_id, participant_id)

        if status == ReleaseStatus.NOT_FOUND:
            return Outcome.failure(ErrorCode.SESSION_NOT_FOUND, f"Session '{session_id}' not found")
        if status == ReleaseStatus.NOT_ENROLLED:
            return Outcome.failure(
                ErrorCode.NOT_ENROLLED,
                "You are not enrolled in this session",
                {"session_id": session_id},
            )
        if status == ReleaseStatus.RELEASED_AT_FLOOR:
            logger.warning(
                f"Released enrollment for {participant_id} in session {session_id} "
                "but participant count was already 0"
            )

        logger.info(f"Seat released: session={session_id}, participant={participant_id}")
        return Outcome.success()

    async def spots_remaining(self, session_id: str) -> Optional[int]:
        """Seats left (max - current); None for an unknown session"""
        record = await self.catalog.get_session(session_id)
        if record is None:
            return None
        return record.spots_remaining
