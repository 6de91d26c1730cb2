"""
Session Domain Types

Plain value objects shared by the enrollment engine. Catalog implementations
translate their storage rows into these records so the ledger, lifecycle
controller, filter and workflow never touch ORM objects directly.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import FrozenSet, Optional


class SessionType(str, Enum):
    ONE_TO_ONE = "ONE_TO_ONE"
    SMART_QUAD = "SMART_QUAD"
    MASTERCLASS = "MASTERCLASS"


class SessionStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    ONGOING = "ONGOING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class CallerRole(str, Enum):
    STUDENT = "STUDENT"
    TUTOR = "TUTOR"
    ADMIN = "ADMIN"


@dataclass(frozen=True)
class SessionRecord:
    """Snapshot of a persisted session"""
    id: str
    title: str
    session_type: SessionType
    start_time: datetime
    end_time: datetime
    max_participants: int
    tutor_id: str
    description: Optional[str] = None
    course_type: Optional[str] = None
    current_participants: int = 0
    status: SessionStatus = SessionStatus.SCHEDULED
    tutor_name: Optional[str] = None
    meeting_link: Optional[str] = None
    calendar_event_ref: Optional[str] = None

    @property
    def spots_remaining(self) -> int:
        return self.max_participants - self.current_participants


@dataclass(frozen=True)
class EnrollmentRecord:
    """A participant's active seat in a session"""
    confirmation_ref: str
    session_id: str
    participant_id: str
    enrolled_at: datetime


@dataclass(frozen=True)
class Caller:
    """Identity and capabilities of the requester, supplied by the auth layer"""
    id: str
    role: CallerRole
    enabled_features: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def is_staff(self) -> bool:
        return self.role in (CallerRole.ADMIN, CallerRole.TUTOR)
