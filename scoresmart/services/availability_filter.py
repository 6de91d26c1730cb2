"""
Session Availability Filter

Pure function from (sessions, query, now) to a display-ready ordered list.
Replaces the per-page filtering of the Smart Quad, Masterclass and admin
session views with one parameterized query:

- time window: all, today, this_week (inclusive start, exclusive end,
  anchored at midnight of `now` in its own timezone, then a fixed 24h or
  7 day span in UTC)
- course type, session type, free-text search, owning tutor (AND-combined)
- derived fields: effective status, spots remaining, fill percentage,
  time until start
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from scoresmart.services.lifecycle import effective_status
from scoresmart.services.session_types import SessionRecord, SessionStatus, SessionType

ALL = "all"
TIME_WINDOWS = [ALL, "today", "this_week"]


class ListingMode(str, Enum):
    AVAILABLE = "available"  # joinable sessions with open seats
    ALL = "all"  # admin view: full, closed and cancelled sessions too
    MINE = "mine"  # tutor view: own sessions in every state


def get_time_window_bounds(window_type: str, now: datetime) -> Optional[Tuple[datetime, datetime]]:
    """
    Calculate [start, end) bounds for a listing time window.

    Args:
        window_type: One of "all", "today", "this_week"
        now: Reference time; midnight is taken in now's timezone

    Returns:
        Tuple of (start, end) in UTC, or None for "all". The span is always
        exactly 24 hours or 7 days, also across a daylight-saving change

    Raises:
        ValueError: If window_type is invalid
    """
    if window_type == ALL:
        return None

    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if midnight.tzinfo is None:
        midnight = midnight.replace(tzinfo=timezone.utc)
    start = midnight.astimezone(timezone.utc)

    if window_type == "today":
        return start, start + timedelta(hours=24)
    elif window_type == "this_week":
        return start, start + timedelta(days=7)
    else:
        raise ValueError(f"Invalid time window: {window_type}. Must be one of: {', '.join(TIME_WINDOWS)}")


@dataclass(frozen=True)
class AvailabilityQuery:
    time_window: str = ALL
    course_type: str = ALL
    session_type: str = ALL
    search_text: str = ""
    mode: ListingMode = ListingMode.AVAILABLE
    tutor_id: Optional[str] = None
    offset: int = 0
    limit: Optional[int] = None

    def __post_init__(self):
        if self.time_window not in TIME_WINDOWS:
            raise ValueError(f"Invalid time window: {self.time_window}. Must be one of: {', '.join(TIME_WINDOWS)}")
        if self.session_type != ALL and self.session_type not in SessionType.__members__:
            raise ValueError(f"Invalid session type: {self.session_type}")
        if self.offset < 0 or (self.limit is not None and self.limit < 0):
            raise ValueError("offset and limit must be non-negative")


@dataclass(frozen=True)
class TimeUntilStart:
    """Countdown to session start, bucketed for display"""
    bucket: str  # "days", "hours", "minutes" or "now"
    days: int
    hours: int
    minutes: int
    label: str


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'s' if count != 1 else ''}"


def time_until_start(start_time: datetime, now: datetime) -> TimeUntilStart:
    """
    Bucket the time until start_time into days / hours / minutes.

    Negative durations (session already started) map to "Starting now".
    """
    delta = start_time - now
    if delta < timedelta(0):
        return TimeUntilStart(bucket="now", days=0, hours=0, minutes=0, label="Starting now")

    total_minutes = int(delta.total_seconds() // 60)
    days, remainder = divmod(total_minutes, 24 * 60)
    hours, minutes = divmod(remainder, 60)

    if days > 0:
        return TimeUntilStart("days", days, hours, minutes, f"In {_plural(days, 'day')}")
    if hours > 0:
        return TimeUntilStart("hours", days, hours, minutes, f"In {_plural(hours, 'hour')}")
    if minutes > 0:
        return TimeUntilStart("minutes", days, hours, minutes, f"In {_plural(minutes, 'minute')}")
    return TimeUntilStart("minutes", 0, 0, 0, "In less than a minute")


@dataclass(frozen=True)
class SessionView:
    """A session plus presentation-only derived fields"""
    session: SessionRecord
    effective_status: SessionStatus
    spots_remaining: int
    fill_percentage: float
    time_until_start: TimeUntilStart

    @property
    def is_available(self) -> bool:
        return self.effective_status == SessionStatus.SCHEDULED and self.spots_remaining > 0

    def to_dict(self) -> Dict[str, Any]:
        s = self.session
        return {
            "id": s.id,
            "title": s.title,
            "description": s.description,
            "session_type": s.session_type.value,
            "course_type": s.course_type,
            "start_time": s.start_time.isoformat(),
            "end_time": s.end_time.isoformat(),
            "max_participants": s.max_participants,
            "current_participants": s.current_participants,
            "status": self.effective_status.value,
            "tutor_id": s.tutor_id,
            "tutor_name": s.tutor_name,
            "meeting_link": s.meeting_link,
            "spots_remaining": self.spots_remaining,
            "fill_percentage": self.fill_percentage,
            "time_until_start": {
                "bucket": self.time_until_start.bucket,
                "days": self.time_until_start.days,
                "hours": self.time_until_start.hours,
                "minutes": self.time_until_start.minutes,
                "label": self.time_until_start.label,
            },
        }


def build_view(record: SessionRecord, now: datetime) -> SessionView:
    fill = record.current_participants / record.max_participants if record.max_participants > 0 else 0.0
    return SessionView(
        session=record,
        effective_status=effective_status(record.start_time, record.end_time, now, record.status),
        spots_remaining=record.spots_remaining,
        fill_percentage=round(fill, 4),
        time_until_start=time_until_start(record.start_time, now),
    )


def _matches_text(record: SessionRecord, needle: str) -> bool:
    haystacks = (record.title, record.description, record.tutor_name)
    return any(needle in text.casefold() for text in haystacks if text)


def matches_query(
    record: SessionRecord,
    query: AvailabilityQuery,
    bounds: Optional[Tuple[datetime, datetime]],
) -> bool:
    """All non-empty filters combined with AND"""
    if bounds is not None:
        start, end = bounds
        if not (start <= record.start_time < end):
            return False

    if query.course_type != ALL and record.course_type != query.course_type:
        return False

    if query.session_type != ALL and record.session_type.value != query.session_type:
        return False

    if query.tutor_id is not None and record.tutor_id != query.tutor_id:
        return False

    needle = query.search_text.strip().casefold()
    if needle and not _matches_text(record, needle):
        return False

    return True


def filter_sessions(
    sessions: Iterable[SessionRecord],
    query: AvailabilityQuery,
    now: datetime,
    allowed_types: Optional[Set[SessionType]] = None,
) -> List[SessionView]:
    """
    Apply a listing query to a catalog snapshot.

    Args:
        sessions: Session records (any order)
        query: Filters, listing mode and pagination
        now: Reference time for windows, status and countdowns
        allowed_types: Restrict to these session types (FeatureGate result)

    Returns:
        Views ordered by (start_time, id), then sliced by offset/limit
    """
    bounds = get_time_window_bounds(query.time_window, now)

    views = []
    for record in sessions:
        if allowed_types is not None and record.session_type not in allowed_types:
            continue
        if not matches_query(record, query, bounds):
            continue
        view = build_view(record, now)
        if query.mode == ListingMode.AVAILABLE and not view.is_available:
            continue
        views.append(view)

    views.sort(key=lambda v: (v.session.start_time, v.session.id))

    end = None if query.limit is None else query.offset + query.limit
    return views[query.offset:end]
