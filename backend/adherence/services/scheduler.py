"""Scheduler service - in-process clock for the reminder jobs.

Jobs (all UTC):
- routine pushes at the top of every hour
- escalation sweep once a day at ESCALATION_HOUR_UTC
- housekeeping of expired tokens and old attempts once a day

Each job allows a single running instance; a tick that comes due while the
previous run is still going is dropped rather than run in parallel.
"""
import logging
from datetime import timedelta
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy import delete

from ..config import Settings
from ..database import Database
from ..models import NotificationAttempt
from ..utils.db_utils import retry_on_lock
from ..utils.time import utcnow
from .tokens import purge_expired_tokens
from .triggers import TriggerService

logger = logging.getLogger(__name__)

# Seconds a job may start late (e.g. after a blocked event loop) and still run
MISFIRE_GRACE_SECONDS = 300


class SchedulerService:
    """Owns the APScheduler instance and the job definitions."""

    def __init__(self, settings: Settings, database: Database, triggers: TriggerService):
        self._settings = settings
        self._db = database
        self._triggers = triggers
        self.scheduler: Optional[AsyncIOScheduler] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def enabled(self) -> bool:
        return self._settings.scheduler_enabled and self._triggers.enabled

    def start(self):
        """Start the scheduler. Misconfiguration leaves it off; it never raises."""
        if self._running:
            return

        if not self._settings.scheduler_enabled:
            logger.info("Scheduler disabled by configuration")
            return

        if not self._triggers.enabled:
            logger.info("CRON_SECRET not set - routine and escalation jobs will not run automatically")
            return

        try:
            self.scheduler = AsyncIOScheduler(timezone="UTC")

            self.scheduler.add_job(
                self._run_routine_pushes,
                trigger=CronTrigger(minute=0, timezone="UTC"),
                id="routine_pushes",
                replace_existing=True,
                max_instances=1,
                coalesce=True,
                misfire_grace_time=MISFIRE_GRACE_SECONDS,
            )

            self.scheduler.add_job(
                self._run_escalation_sweep,
                trigger=CronTrigger(hour=self._settings.escalation_hour_utc, minute=0, timezone="UTC"),
                id="reminder_escalations",
                replace_existing=True,
                max_instances=1,
                coalesce=True,
                misfire_grace_time=MISFIRE_GRACE_SECONDS,
            )

            self.scheduler.add_job(
                self._cleanup_old_records,
                trigger=CronTrigger(hour=3, minute=30, timezone="UTC"),
                id="cleanup_old_records",
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )

            self.scheduler.start()
            self._running = True
            logger.info(
                f"Scheduler started (routine pushes hourly, escalations daily "
                f"{self._settings.escalation_hour_utc:02d}:00 UTC)"
            )
        except Exception as e:
            logger.error(f"Failed to start scheduler: {e}")
            self.scheduler = None
            self._running = False

    def stop(self):
        """Stop the scheduler."""
        if self.scheduler and self._running:
            self.scheduler.shutdown(wait=False)
            self._running = False
            logger.info("Scheduler stopped")

    async def _run_routine_pushes(self):
        summary = await self._triggers.trigger_routine_push(self._settings.cron_secret)
        logger.info(f"Scheduled routine pushes: {summary.status} sent={summary.sent} failed={summary.failed}")

    async def _run_escalation_sweep(self):
        summary = await self._triggers.trigger_escalation_sweep(self._settings.cron_secret)
        logger.info(f"Scheduled escalation sweep: {summary.status} sent={summary.sent} failed={summary.failed}")

    async def cleanup_old_records(self) -> tuple[int, int]:
        """Delete expired reminder tokens and attempts past the retention window."""
        now = utcnow()
        cutoff = now - timedelta(days=self._settings.attempt_retention_days)

        async with self._db.session() as session:
            tokens = await purge_expired_tokens(session, before=now - timedelta(days=1))
            result = await session.execute(
                delete(NotificationAttempt).where(NotificationAttempt.created_at < cutoff)
            )
            attempts = result.rowcount or 0
            await retry_on_lock(session.commit)

        logger.info(f"Cleaned up {tokens} expired tokens and {attempts} old notification attempts")
        return tokens, attempts

    async def _cleanup_old_records(self):
        try:
            await self.cleanup_old_records()
        except Exception as e:
            logger.error(f"Error cleaning up records: {e}")
