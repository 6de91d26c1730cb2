"""
APScheduler Configuration

Manages the periodic capacity audit. Session status transitions are computed
lazily on read and need no scheduled job.
"""
import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from scoresmart.services.capacity_audit import get_capacity_audit

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = AsyncIOScheduler()


async def audit_session_capacity():
    """
    Hourly job checking seat-accounting invariants on every session.

    Logs a summary; individual violations are logged by the audit itself.
    """
    logger.info("Starting hourly capacity audit")

    try:
        audit = get_capacity_audit()
        summary = await audit.audit()

        logger.info(
            f"Capacity audit complete: {summary['sessions_checked']} sessions, "
            f"{len(summary['violations'])} violations in {summary['duration_ms']:.2f}ms"
        )

        if summary['critical_issues'] > 0:
            logger.warning(
                f"Capacity ALERT: {summary['critical_issues']} critical violations "
                f"(integrity score {summary['integrity_score']:.1f}%)"
            )

    except Exception as e:
        logger.error(f"Failed to audit session capacity: {e}", exc_info=True)


def configure_scheduler():
    """
    Configure APScheduler with all scheduled jobs.

    Jobs:
        - Capacity audit: Every hour at :15
    """
    scheduler.add_job(
        audit_session_capacity,
        trigger=CronTrigger(hour='*', minute=15),  # Every hour at :15
        id='capacity_audit',
        name='Audit Session Capacity',
        replace_existing=True,
        coalesce=True,  # Combine missed runs into single execution
        max_instances=1  # Only one instance at a time
    )

    logger.info("Scheduler configured with capacity audit job")


def start_scheduler():
    """Start the APScheduler"""
    configure_scheduler()
    scheduler.start()
    logger.info("Scheduler started")


def stop_scheduler():
    """Stop the APScheduler"""
    scheduler.shutdown()
    logger.info("Scheduler stopped")
