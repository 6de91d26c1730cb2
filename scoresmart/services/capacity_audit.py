"""
Capacity Audit

Walks the session catalog and flags records that break the seat-accounting
invariants. Violations indicate upstream data corruption: they are logged at
WARNING for operator attention and summarized, never repaired automatically.
"""
import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from scoresmart.services.session_catalog import SessionCatalog
from scoresmart.services.session_types import SessionRecord, SessionStatus

logger = logging.getLogger(__name__)

Rule = Tuple[str, str, Callable[[SessionRecord], bool]]


class CapacityAudit:
    """Validate capacity and schedule invariants across all sessions"""

    # Critical violations reduce the integrity score by 20% each, warnings by 5%
    CRITICAL_ERROR_WEIGHT = 20.0
    WARNING_WEIGHT = 5.0

    def __init__(self, catalog: SessionCatalog):
        self.catalog = catalog
        self.rules = self._define_rules()

    def _define_rules(self) -> List[Rule]:
        """
        Define per-record rules as (name, severity, violated predicate).

        Returns:
            list: Rules evaluated against every session record
        """
        return [
            ("max_participants_positive", "critical", lambda s: s.max_participants <= 0),
            ("participants_not_negative", "critical", lambda s: s.current_participants < 0),
            (
                "participants_within_capacity",
                "critical",
                lambda s: s.current_participants > s.max_participants,
            ),
            ("end_after_start", "critical", lambda s: s.end_time <= s.start_time),
            (
                "cancelled_has_no_participants",
                "warning",
                lambda s: s.status == SessionStatus.CANCELLED and s.current_participants != 0,
            ),
        ]

    def _calculate_integrity_score(self, critical_count: int, warning_count: int) -> float:
        score = 100.0 - (
            critical_count * self.CRITICAL_ERROR_WEIGHT +
            warning_count * self.WARNING_WEIGHT
        )
        return max(0.0, min(100.0, score))

    async def audit(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Audit every session in the catalog.

        Also cross-checks current_participants against the number of active
        enrollment records (warning on drift).

        Returns:
            dict: sessions_checked, violations (list), critical_issues,
            warnings, integrity_score, audit_time, duration_ms
        """
        start = time.time()
        now = now or datetime.now(timezone.utc)

        sessions = await self.catalog.list_sessions()
        violations = []

        for record in sessions:
            for name, severity, violated in self.rules:
                if violated(record):
                    violations.append({
                        "session_id": record.id,
                        "rule": name,
                        "severity": severity,
                        "current_participants": record.current_participants,
                        "max_participants": record.max_participants,
                    })

            enrolled = len(await self.catalog.list_enrollments(record.id))
            if enrolled != record.current_participants:
                violations.append({
                    "session_id": record.id,
                    "rule": "enrollment_count_matches",
                    "severity": "warning",
                    "current_participants": record.current_participants,
                    "enrollments": enrolled,
                })

        for violation in violations:
            logger.warning(
                f"Capacity audit: session {violation['session_id']} violates "
                f"{violation['rule']} ({violation['severity']})"
            )

        critical_count = sum(1 for v in violations if v["severity"] == "critical")
        warning_count = len(violations) - critical_count
        duration_ms = (time.time() - start) * 1000

        return {
            "audit_time": now.isoformat(),
            "sessions_checked": len(sessions),
            "violations": violations,
            "critical_issues": critical_count,
            "warnings": warning_count,
            "integrity_score": self._calculate_integrity_score(critical_count, warning_count),
            "duration_ms": round(duration_ms, 2),
        }


# Singleton instance
_capacity_audit_instance = None


def get_capacity_audit() -> CapacityAudit:
    """Get singleton instance of CapacityAudit"""
    global _capacity_audit_instance
    if _capacity_audit_instance is None:
        from scoresmart.services.session_catalog import get_session_catalog
        _capacity_audit_instance = CapacityAudit(get_session_catalog())
    return _capacity_audit_instance
