"""
Enrollment Workflow

Orchestrates joining and leaving sessions, browsing listings and cancelling
sessions on top of the lifecycle controller, feature gate and capacity ledger.

Join order:
1. Load session (SessionNotFound), validate capacity (InvalidCapacity)
2. Effective status must be SCHEDULED (SessionNotJoinable)
3. Feature gate (FeatureDisabled)
4. No active enrollment yet (AlreadyEnrolled)
5. Reserve seat (SessionFull)
6. Notify, best effort (failure becomes a warning)

Steps 1-5 run while holding the session's ledger guard so they all see one
consistent snapshot; a concurrent cancel or join cannot slip in between.
"""
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import List, Optional

from scoresmart.services.availability_filter import (
    ALL,
    AvailabilityQuery,
    ListingMode,
    SessionView,
    build_view,
    filter_sessions,
)
from scoresmart.services.capacity_ledger import CapacityLedger, validate_capacity
from scoresmart.services.feature_gate import FEATURE_KEYS, FeatureGate
from scoresmart.services.integrations import LoggingNotifier, Notifier
from scoresmart.services.lifecycle import LifecycleController
from scoresmart.services.results import ErrorCode, Outcome
from scoresmart.services.session_catalog import SessionCatalog
from scoresmart.services.session_types import Caller, CallerRole, EnrollmentRecord, SessionType

logger = logging.getLogger(__name__)


class EnrollmentWorkflow:
    """Entry point for every caller-facing enrollment operation"""

    def __init__(
        self,
        catalog: SessionCatalog,
        gate: Optional[FeatureGate] = None,
        notifier: Optional[Notifier] = None,
    ):
        self.catalog = catalog
        self.gate = gate or FeatureGate()
        self.notifier = notifier or LoggingNotifier()
        self.ledger = CapacityLedger(catalog)
        self.lifecycle = LifecycleController(catalog)

    async def _notify(self, session_id: str, participant_id: str, outcome: str) -> Optional[str]:
        """Call the notifier; return a warning message instead of raising"""
        try:
            await self.notifier.notify_enrollment(session_id, participant_id, outcome)
        except Exception as e:
            logger.warning(
                f"Notification failed for {participant_id} in session {session_id} ({outcome}): {e}"
            )
            return f"Notification could not be delivered: {e}"
        return None

    async def join(
        self,
        caller: Caller,
        session_id: str,
        now: Optional[datetime] = None,
    ) -> Outcome[EnrollmentRecord]:
        """
        Enroll the caller in a session.

        Returns:
            Outcome with the EnrollmentRecord (confirmation_ref) on success
        """
        now = now or datetime.now(timezone.utc)

        async with self.ledger.guard(session_id):
            record = await self.catalog.get_session(session_id)
            if record is None:
                return Outcome.failure(ErrorCode.SESSION_NOT_FOUND, f"Session '{session_id}' not found")

            failure = (
                validate_capacity(record)
                or self.lifecycle.check_joinable(record, now)
                or self.gate.check(caller, record.session_type)
            )
            if failure is not None:
                return failure

            if await self.catalog.get_enrollment(session_id, caller.id) is not None:
                return Outcome.failure(
                    ErrorCode.ALREADY_ENROLLED,
                    "You are already enrolled in this session",
                    {"session_id": session_id},
                )

            reserved = await self.ledger.reserve_seat_locked(session_id, caller.id, now)
            if not reserved.ok:
                return reserved

        warning = await self._notify(session_id, caller.id, "enrolled")
        if warning:
            reserved.warnings.append(warning)
        return reserved

    async def leave(
        self,
        caller: Caller,
        session_id: str,
        now: Optional[datetime] = None,
    ) -> Outcome[None]:
        """Give up the caller's seat while the session is still SCHEDULED"""
        now = now or datetime.now(timezone.utc)

        async with self.ledger.guard(session_id):
            record = await self.catalog.get_session(session_id)
            if record is None:
                return Outcome.failure(ErrorCode.SESSION_NOT_FOUND, f"Session '{session_id}' not found")

            if await self.catalog.get_enrollment(session_id, caller.id) is None:
                return Outcome.failure(
                    ErrorCode.NOT_ENROLLED,
                    "You are not enrolled in this session",
                    {"session_id": session_id},
                )

            not_joinable = self.lifecycle.check_joinable(record, now)
            if not_joinable is not None:
                return not_joinable

            released = await self.ledger.release_seat_locked(session_id, caller.id)
            if not released.ok:
                return released

        warning = await self._notify(session_id, caller.id, "left")
        if warning:
            released.warnings.append(warning)
        return released

    async def cancel(
        self,
        caller: Caller,
        session_id: str,
        now: Optional[datetime] = None,
    ) -> Outcome[List[EnrollmentRecord]]:
        """Cancel a session and notify every participant whose seat was voided"""
        async with self.ledger.guard(session_id):
            cancelled = await self.lifecycle.cancel(caller, session_id, now)
        if not cancelled.ok:
            return cancelled

        for enrollment in cancelled.value:
            warning = await self._notify(session_id, enrollment.participant_id, "cancelled")
            if warning:
                cancelled.warnings.append(warning)
        return cancelled

    async def browse(
        self,
        caller: Caller,
        query: AvailabilityQuery,
        now: Optional[datetime] = None,
    ) -> Outcome[List[SessionView]]:
        """
        List sessions visible to the caller.

        A caller without access to the requested session type gets
        FeatureDisabled rather than an empty list, so "no access" and
        "no sessions" stay distinguishable.

        Listing modes: AVAILABLE for everyone, ALL for admins only, and MINE
        for tutors and admins, restricted to sessions the caller owns and
        including full, past and cancelled ones.
        """
        now = now or datetime.now(timezone.utc)

        if query.mode == ListingMode.ALL and caller.role != CallerRole.ADMIN:
            return Outcome.failure(
                ErrorCode.NOT_PERMITTED,
                "Only administrators can list closed and full sessions",
            )

        if query.mode == ListingMode.MINE:
            if caller.role == CallerRole.STUDENT:
                return Outcome.failure(
                    ErrorCode.NOT_PERMITTED,
                    "Only tutors and administrators have their own session listing",
                )
            # Own sessions bypass the feature gate
            query = replace(query, tutor_id=caller.id)
            allowed = None
        elif query.session_type != ALL:
            denied = self.gate.check(caller, SessionType(query.session_type))
            if denied is not None:
                return denied
            allowed = {SessionType(query.session_type)}
        else:
            allowed = self.gate.accessible_types(caller)
            if not allowed:
                return Outcome.failure(
                    ErrorCode.FEATURE_DISABLED,
                    "You do not have access to any session features",
                    {"features": sorted(FEATURE_KEYS.values())},
                )

        sessions = await self.catalog.list_sessions()
        views = filter_sessions(sessions, query, now, allowed_types=allowed)

        logger.debug(
            f"Browse by {caller.role.value} {caller.id}: {len(views)} of {len(sessions)} sessions "
            f"(mode={query.mode.value}, window={query.time_window}, course={query.course_type}, "
            f"type={query.session_type})"
        )
        return Outcome.success(views)

    async def get_session_view(
        self,
        caller: Caller,
        session_id: str,
        now: Optional[datetime] = None,
    ) -> Outcome[SessionView]:
        now = now or datetime.now(timezone.utc)

        record = await self.catalog.get_session(session_id)
        if record is None:
            return Outcome.failure(ErrorCode.SESSION_NOT_FOUND, f"Session '{session_id}' not found")

        denied = self.gate.check(caller, record.session_type)
        if denied is not None:
            return denied

        return Outcome.success(build_view(record, now))


# Global workflow instance
_workflow: Optional[EnrollmentWorkflow] = None


def get_enrollment_workflow() -> EnrollmentWorkflow:
    """Get or create global EnrollmentWorkflow instance."""
    global _workflow
    if _workflow is None:
        from scoresmart.services.feature_gate import get_feature_gate
        from scoresmart.services.session_catalog import get_session_catalog
        _workflow = EnrollmentWorkflow(get_session_catalog(), gate=get_feature_gate())
    return _workflow
