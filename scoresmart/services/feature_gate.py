"""
Feature Gate

Capability check deciding whether a caller may see or join a session type.
Admins and tutors always pass; students need the feature flag mapped from the
session type. Enforced at the data-mutation boundary (join/leave) as well as
for listings.

Feature flags are stored per student and mutated only by admin actions.
"""
import logging
from abc import ABC, abstractmethod
from typing import Dict, FrozenSet, Optional, Set, Tuple

from sqlalchemy import select

from scoresmart.models.student_feature import StudentFeature
from scoresmart.services.results import ErrorCode, Outcome
from scoresmart.services.session_types import Caller, SessionType

logger = logging.getLogger(__name__)

FEATURE_KEYS = {
    SessionType.SMART_QUAD: "smart_quad",
    SessionType.MASTERCLASS: "masterclass",
    SessionType.ONE_TO_ONE: "one_to_one",
}


class FeatureGate:
    """Authorization-by-capability, independent of authentication"""

    def can_access(self, caller: Caller, session_type: SessionType) -> bool:
        if caller.is_staff:
            return True
        return FEATURE_KEYS[session_type] in caller.enabled_features

    def check(self, caller: Caller, session_type: SessionType) -> Optional[Outcome]:
        """Return a FeatureDisabled failure when access is denied, else None"""
        if self.can_access(caller, session_type):
            return None
        feature_key = FEATURE_KEYS[session_type]
        return Outcome.failure(
            ErrorCode.FEATURE_DISABLED,
            f"You do not have access to the {feature_key} feature",
            {"feature": feature_key, "session_type": session_type.value},
        )

    def accessible_types(self, caller: Caller) -> Set[SessionType]:
        return {session_type for session_type in SessionType if self.can_access(caller, session_type)}


class FeatureStore(ABC):
    """Per-student feature flags"""

    @abstractmethod
    async def enabled_features(self, student_id: str) -> FrozenSet[str]:
        ...

    @abstractmethod
    async def set_feature(self, student_id: str, feature_key: str, enabled: bool) -> None:
        ...


class InMemoryFeatureStore(FeatureStore):
    def __init__(self, flags: Optional[Dict[str, Set[str]]] = None):
        self._flags: Dict[Tuple[str, str], bool] = {}
        for student_id, keys in (flags or {}).items():
            for key in keys:
                self._flags[(student_id, key)] = True

    async def enabled_features(self, student_id: str) -> FrozenSet[str]:
        return frozenset(key for (sid, key), on in self._flags.items() if sid == student_id and on)

    async def set_feature(self, student_id: str, feature_key: str, enabled: bool) -> None:
        self._flags[(student_id, feature_key)] = enabled


class SqlFeatureStore(FeatureStore):
    def __init__(self, session_factory):
        self._session_factory = session_factory

    async def enabled_features(self, student_id: str) -> FrozenSet[str]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(StudentFeature.feature_key).where(
                    StudentFeature.student_id == student_id,
                    StudentFeature.enabled.is_(True),
                )
            )
            return frozenset(result.scalars().all())

    async def set_feature(self, student_id: str, feature_key: str, enabled: bool) -> None:
        async with self._session_factory() as db:
            row = await db.scalar(
                select(StudentFeature).where(
                    StudentFeature.student_id == student_id,
                    StudentFeature.feature_key == feature_key,
                )
            )
            if row is None:
                db.add(StudentFeature(student_id=student_id, feature_key=feature_key, enabled=enabled))
            else:
                row.enabled = enabled
            await db.commit()

        logger.info(f"Feature {feature_key} {'enabled' if enabled else 'disabled'} for student {student_id}")


# Global instances
_gate: Optional[FeatureGate] = None
_store: Optional[FeatureStore] = None


def get_feature_gate() -> FeatureGate:
    """Get or create global FeatureGate instance."""
    global _gate
    if _gate is None:
        _gate = FeatureGate()
    return _gate


def get_feature_store() -> FeatureStore:
    """Get or create global SQL-backed FeatureStore instance."""
    global _store
    if _store is None:
        from scoresmart.database import AsyncSessionLocal
        _store = SqlFeatureStore(AsyncSessionLocal)
    return _store
