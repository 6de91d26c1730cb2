"""
Session Lifecycle Controller

State machine over session status:

    SCHEDULED --(now >= start_time)--> ONGOING --(now >= end_time)--> COMPLETED
    SCHEDULED / ONGOING --(admin or tutor action)--> CANCELLED

COMPLETED and CANCELLED are absorbing. Time-driven transitions are never
stored by a poller: effective status is recomputed on every read from
(start_time, end_time, now, stored status). The stored status is only
consulted for CANCELLED; any other stored value is superseded by the clock.
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional

from scoresmart.services.results import ErrorCode, Outcome
from scoresmart.services.session_catalog import SessionCatalog
from scoresmart.services.session_types import (
    Caller,
    CallerRole,
    EnrollmentRecord,
    SessionRecord,
    SessionStatus,
)

logger = logging.getLogger(__name__)

_ALLOWED_TRANSITIONS = {
    SessionStatus.SCHEDULED: {SessionStatus.ONGOING, SessionStatus.CANCELLED},
    SessionStatus.ONGOING: {SessionStatus.COMPLETED, SessionStatus.CANCELLED},
    SessionStatus.COMPLETED: set(),
    SessionStatus.CANCELLED: set(),
}


def time_derived_status(start_time: datetime, end_time: datetime, now: datetime) -> SessionStatus:
    if now >= end_time:
        return SessionStatus.COMPLETED
    if now >= start_time:
        return SessionStatus.ONGOING
    return SessionStatus.SCHEDULED


def effective_status(
    start_time: datetime,
    end_time: datetime,
    now: datetime,
    stored_status: SessionStatus,
) -> SessionStatus:
    """
    Compute effective status lazily.

    Args:
        start_time: Session start (inclusive)
        end_time: Session end (exclusive)
        now: Current wall-clock time
        stored_status: Persisted status

    Returns:
        CANCELLED if stored as cancelled, otherwise the state implied by
        the clock
    """
    if stored_status == SessionStatus.CANCELLED:
        return SessionStatus.CANCELLED
    return time_derived_status(start_time, end_time, now)


def can_transition(current: SessionStatus, target: SessionStatus) -> bool:
    return target in _ALLOWED_TRANSITIONS[current]


class LifecycleController:
    """Effective status queries and the explicit cancel transition"""

    def __init__(self, catalog: SessionCatalog):
        self.catalog = catalog

    def status_of(self, record: SessionRecord, now: Optional[datetime] = None) -> SessionStatus:
        now = now or datetime.now(timezone.utc)
        return effective_status(record.start_time, record.end_time, now, record.status)

    def is_joinable(self, record: SessionRecord, now: Optional[datetime] = None) -> bool:
        return self.status_of(record, now) == SessionStatus.SCHEDULED

    def check_joinable(self, record: SessionRecord, now: Optional[datetime] = None) -> Optional[Outcome]:
        """Return a SessionNotJoinable failure unless effective status is SCHEDULED"""
        status = self.status_of(record, now)
        if status == SessionStatus.SCHEDULED:
            return None
        return Outcome.failure(
            ErrorCode.SESSION_NOT_JOINABLE,
            f"Session is {status.value.lower()} and cannot be joined",
            {"session_id": record.id, "status": status.value},
        )

    async def cancel(
        self,
        caller: Caller,
        session_id: str,
        now: Optional[datetime] = None,
    ) -> Outcome[List[EnrollmentRecord]]:
        """
        Cancel a session (admins: any session; tutors: their own sessions).

        Returns:
            Outcome with the enrollments voided by the cancellation, or
            SessionNotFound / NotPermitted / InvalidTransition
        """
        now = now or datetime.now(timezone.utc)

        record = await self.catalog.get_session(session_id)
        if record is None:
            return Outcome.failure(ErrorCode.SESSION_NOT_FOUND, f"Session '{session_id}' not found")

        if caller.role == CallerRole.STUDENT or (
            caller.role == CallerRole.TUTOR and record.tutor_id != caller.id
        ):
            return Outcome.failure(
                ErrorCode.NOT_PERMITTED,
                "You can only cancel your own sessions",
                {"session_id": session_id},
            )

        current = self.status_of(record, now)
        if not can_transition(current, SessionStatus.CANCELLED):
            return Outcome.failure(
                ErrorCode.INVALID_TRANSITION,
                f"Cannot cancel a {current.value.lower()} session",
                {"session_id": session_id, "status": current.value},
            )

        voided = await self.catalog.mark_cancelled(session_id, now)
        if voided is None:
            # Session ended or was cancelled between the read and the update
            latest = await self.catalog.get_session(session_id)
            latest_status = self.status_of(latest, now).value if latest else current.value
            return Outcome.failure(
                ErrorCode.INVALID_TRANSITION,
                f"Cannot cancel a {latest_status.lower()} session",
                {"session_id": session_id, "status": latest_status},
            )

        logger.info(
            f"Session {session_id} cancelled by {caller.role.value} {caller.id}: "
            f"{len(voided)} enrollments voided"
        )
        return Outcome.success(voided)
