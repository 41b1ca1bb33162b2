"""Cron triggers - secret-guarded, non-overlapping entry points for the two jobs.

Both the in-process scheduler and the /internal HTTP endpoints come through
here. A trigger never raises once the secret check has passed; it always
hands back a TriggerSummary.
"""
import asyncio
import hmac
import logging
from datetime import datetime
from typing import Awaitable, Callable, Optional

from ..config import Settings
from ..schemas.triggers import TriggerSummary
from .escalation import EscalationEngine
from .routine import RoutinePushService

logger = logging.getLogger(__name__)

ROUTINE_ENDPOINT = "/internal/send-routine-pushes"
ESCALATION_ENDPOINT = "/internal/process-reminder-escalations"


class TriggerService:
    """Runs the routine and escalation jobs behind the shared cron secret."""

    def __init__(self, settings: Settings, routine: RoutinePushService, escalation: EscalationEngine):
        self._secret = settings.cron_secret or ""
        self._routine = routine
        self._escalation = escalation
        self._in_flight = {
            ROUTINE_ENDPOINT: asyncio.Lock(),
            ESCALATION_ENDPOINT: asyncio.Lock(),
        }

    @property
    def enabled(self) -> bool:
        return bool(self._secret)

    def is_authorized(self, provided: Optional[str]) -> bool:
        if not self._secret or not provided:
            return False
        return hmac.compare_digest(provided.encode(), self._secret.encode())

    async def trigger_routine_push(self, secret: Optional[str], now: Optional[datetime] = None) -> TriggerSummary:
        async def job() -> TriggerSummary:
            result = await self._routine.run(now)
            return TriggerSummary(
                trigger=ROUTINE_ENDPOINT,
                status="ok",
                processed=result.processed,
                sent=result.sent,
                failed=result.failed,
                skipped=result.skipped,
            )

        return await self._run(ROUTINE_ENDPOINT, secret, job)

    async def trigger_escalation_sweep(self, secret: Optional[str], now: Optional[datetime] = None) -> TriggerSummary:
        async def job() -> TriggerSummary:
            result = await self._escalation.sweep(now)
            return TriggerSummary(
                trigger=ESCALATION_ENDPOINT,
                status="ok",
                processed=result.processed,
                sent=result.sent,
                failed=result.failed,
                cleared=result.cleared,
                started=result.started,
                escalated=result.escalated,
                exhausted=result.exhausted,
            )

        return await self._run(ESCALATION_ENDPOINT, secret, job)

    async def _run(
        self,
        endpoint: str,
        secret: Optional[str],
        job: Callable[[], Awaitable[TriggerSummary]],
    ) -> TriggerSummary:
        if not self.enabled:
            logger.info(f"{endpoint}: cron secret not configured, trigger disabled")
            return TriggerSummary.noop(endpoint)

        if not self.is_authorized(secret):
            # Same answer as "disabled" so callers learn nothing about the secret
            logger.warning(f"{endpoint}: rejected trigger with missing or wrong secret")
            return TriggerSummary.noop(endpoint)

        lock = self._in_flight[endpoint]
        if lock.locked():
            logger.warning(f"{endpoint}: previous run still in progress, skipping this tick")
            return TriggerSummary(trigger=endpoint, status="skipped")

        async with lock:
            try:
                return await job()
            except Exception as e:
                logger.error(f"{endpoint} failed: {e}")
                return TriggerSummary(trigger=endpoint, status="error", error=str(e))
