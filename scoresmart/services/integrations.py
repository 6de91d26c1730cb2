"""
External Collaborators

Interfaces for the notification and calendar systems the engine calls on
success. Both are best-effort: the engine logs and reports their failures as
warnings but never rolls back a seat reservation or a session creation.
"""
import logging
from abc import ABC, abstractmethod
from typing import Optional, Tuple

from scoresmart.services.session_types import SessionRecord

logger = logging.getLogger(__name__)


class Notifier(ABC):
    @abstractmethod
    async def notify_enrollment(self, session_id: str, participant_id: str, outcome: str) -> None:
        """Fire-and-forget notice that participant_id was enrolled/left/cancelled"""


class LoggingNotifier(Notifier):
    """Default notifier: records the event in the application log"""

    async def notify_enrollment(self, session_id: str, participant_id: str, outcome: str) -> None:
        logger.info(f"Enrollment notification: session={session_id}, participant={participant_id}, outcome={outcome}")


class CalendarIntegration(ABC):
    @abstractmethod
    async def create_event(self, session: SessionRecord) -> Tuple[Optional[str], Optional[str]]:
        """
        Create a calendar event for a new session.

        Returns:
            (meeting_link, calendar_event_ref); either may be None
        """


class NullCalendarIntegration(CalendarIntegration):
    """Used when no calendar provider is connected"""

    async def create_event(self, session: SessionRecord) -> Tuple[Optional[str], Optional[str]]:
        return None, None
