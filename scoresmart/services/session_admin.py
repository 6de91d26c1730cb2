"""
Session Administration

Creates session records with the validation and per-type defaults of the
tutor and admin scheduling screens:

- title, start, end and session type are required
- SMART_QUAD and MASTERCLASS need a configured course type
- end after start, start in the future
- SMART_QUAD lasts 30 minutes to 4 hours
- capacity defaults and bounds per session type
- only admins schedule masterclasses; tutors own the sessions they create

A connected calendar provider may attach a meeting link; its failure never
blocks creation.
"""
import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import List, Optional

from scoresmart.config import (
    CAPACITY_BOUNDS,
    COURSE_TYPES,
    DEFAULT_MAX_PARTICIPANTS,
    SMART_QUAD_MAX_MINUTES,
    SMART_QUAD_MIN_MINUTES,
)
from scoresmart.services.integrations import CalendarIntegration, NullCalendarIntegration
from scoresmart.services.results import ErrorCode, Outcome
from scoresmart.services.session_catalog import SessionCatalog, as_utc
from scoresmart.services.session_types import (
    Caller,
    CallerRole,
    SessionRecord,
    SessionStatus,
    SessionType,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionDraft:
    """Caller-supplied fields; seat count and status are never accepted"""
    title: str
    session_type: str
    start_time: datetime
    end_time: datetime
    description: Optional[str] = None
    course_type: Optional[str] = None
    max_participants: Optional[int] = None
    tutor_id: Optional[str] = None  # admins may schedule on a tutor's behalf
    meeting_link: Optional[str] = None


def validate_draft(draft: SessionDraft, now: datetime) -> List[str]:
    """
    Validate a session draft.

    Returns:
        List of human-readable problems; empty when the draft is valid
    """
    errors = []

    if not draft.title or not draft.title.strip():
        errors.append("Title is required")

    if draft.session_type not in SessionType.__members__:
        errors.append("Invalid session type. Must be ONE_TO_ONE, SMART_QUAD, or MASTERCLASS")
        return errors

    session_type = SessionType(draft.session_type)

    if draft.course_type is not None and draft.course_type not in COURSE_TYPES:
        errors.append(f"Invalid course type. Must be one of: {', '.join(COURSE_TYPES)}")
    elif draft.course_type is None and session_type != SessionType.ONE_TO_ONE:
        errors.append(f"Course type is required for {session_type.value} sessions")

    if draft.end_time <= draft.start_time:
        errors.append("End time must be after start time")
    elif session_type == SessionType.SMART_QUAD:
        duration_minutes = (draft.end_time - draft.start_time).total_seconds() / 60
        if duration_minutes < SMART_QUAD_MIN_MINUTES or duration_minutes > SMART_QUAD_MAX_MINUTES:
            errors.append("Session duration must be between 30 minutes and 4 hours")

    if draft.start_time <= now:
        errors.append("Start time must be in the future")

    if draft.max_participants is not None:
        low, high = CAPACITY_BOUNDS[session_type.value]
        if not low <= draft.max_participants <= high:
            errors.append(
                f"max_participants for {session_type.value} must be between {low} and {high}"
            )

    return errors


class SessionAdmin:
    def __init__(self, catalog: SessionCatalog, calendar: Optional[CalendarIntegration] = None):
        self.catalog = catalog
        self.calendar = calendar or NullCalendarIntegration()

    async def create_session(
        self,
        caller: Caller,
        draft: SessionDraft,
        now: Optional[datetime] = None,
    ) -> Outcome[SessionRecord]:
        now = now or datetime.now(timezone.utc)

        if caller.role == CallerRole.STUDENT:
            return Outcome.failure(ErrorCode.NOT_PERMITTED, "Only tutors and admins can create sessions")
        if draft.session_type == SessionType.MASTERCLASS.value and caller.role != CallerRole.ADMIN:
            return Outcome.failure(ErrorCode.NOT_PERMITTED, "Only administrators can create masterclasses")

        draft = replace(draft, start_time=as_utc(draft.start_time), end_time=as_utc(draft.end_time))
        errors = validate_draft(draft, now)
        if errors:
            return Outcome.failure(ErrorCode.INVALID_SESSION, errors[0], {"errors": errors})

        session_type = SessionType(draft.session_type)
        tutor_id = draft.tutor_id if caller.role == CallerRole.ADMIN and draft.tutor_id else caller.id

        record = SessionRecord(
            id=str(uuid.uuid4()),
            title=draft.title.strip(),
            description=draft.description,
            session_type=session_type,
            course_type=draft.course_type,
            start_time=draft.start_time,
            end_time=draft.end_time,
            max_participants=draft.max_participants or DEFAULT_MAX_PARTICIPANTS[session_type.value],
            current_participants=0,
            status=SessionStatus.SCHEDULED,
            tutor_id=tutor_id,
            meeting_link=draft.meeting_link,
        )

        warnings = []
        try:
            meeting_link, event_ref = await self.calendar.create_event(record)
        except Exception as e:
            logger.warning(f"Calendar event creation failed for session '{record.title}': {e}")
            warnings.append(f"Calendar event could not be created: {e}")
        else:
            record = replace(
                record,
                meeting_link=record.meeting_link or meeting_link,
                calendar_event_ref=event_ref,
            )

        stored = await self.catalog.add_session(record)
        logger.info(
            f"Session created: id={stored.id}, type={session_type.value}, "
            f"course={stored.course_type}, seats={stored.max_participants}, by {caller.role.value} {caller.id}"
        )
        return Outcome.success(stored, warnings)


# Global admin instance
_admin: Optional[SessionAdmin] = None


def get_session_admin() -> SessionAdmin:
    """Get or create global SessionAdmin instance."""
    global _admin
    if _admin is None:
        from scoresmart.services.session_catalog import get_session_catalog
        _admin = SessionAdmin(get_session_catalog())
    return _admin
