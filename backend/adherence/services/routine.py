"""Routine pushes - the hourly "log now" prompt at each patient's preferred hour."""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from ..config import Settings
from ..database import Database
from ..models import ReminderPreference
from ..utils.db_utils import retry_on_lock
from ..utils.time import hour_window, utcnow
from .delivery import Channel, DeliveryOutcome, FAILED_OUTCOMES
from .dispatcher import ReminderDispatcher, DispatchResult, routine_key
from .messages import routine_copy
from .push_sender import PushPayload
from .tokens import issue_token

logger = logging.getLogger(__name__)


@dataclass
class RoutineRunResult:
    processed: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0


class RoutinePushService:
    """Sends the routine push to every patient due in the current UTC hour.

    Independent of escalation state: a patient can get both on the same day.
    """

    def __init__(self, settings: Settings, database: Database, dispatcher: ReminderDispatcher):
        self._settings = settings
        self._db = database
        self._dispatcher = dispatcher
        self._token_ttl = timedelta(minutes=settings.routine_token_ttl_minutes)

    async def run(self, now: Optional[datetime] = None) -> RoutineRunResult:
        now = now or utcnow()
        result = RoutineRunResult()

        async with self._db.session() as session:
            due = await self._dispatcher.store.due_routine_preferences(session, now.hour)

        if not due:
            logger.info(f"Routine pushes: nobody due at {now.hour:02d}:00 UTC")
            return result

        semaphore = asyncio.Semaphore(self._settings.max_concurrent_dispatches)

        async def send_with_limit(preference: ReminderPreference):
            async with semaphore:
                return await self._send_one(preference, now)

        outcomes = await asyncio.gather(*[send_with_limit(p) for p in due])

        for dispatch in outcomes:
            result.processed += 1
            if dispatch is None:
                result.failed += 1
            elif dispatch.deduplicated:
                result.skipped += 1
            elif dispatch.outcome == DeliveryOutcome.SENT:
                result.sent += 1
            elif dispatch.outcome in FAILED_OUTCOMES:
                result.failed += 1

        logger.info(
            f"Routine pushes at {now.hour:02d}:00 UTC: processed={result.processed} "
            f"sent={result.sent} failed={result.failed} skipped={result.skipped}"
        )
        return result

    async def _send_one(self, preference: ReminderPreference, now: datetime) -> Optional[DispatchResult]:
        """Send to one patient in its own session. Errors stay with this patient."""
        patient_id = preference.patient_id
        tag = f"routine-{preference.vital_type}"
        try:
            async with self._db.session() as session:

                async def send():
                    token = await issue_token(
                        session,
                        patient_id=patient_id,
                        kind="routine",
                        vital_type=preference.vital_type,
                        ttl=self._token_ttl,
                        value_text=preference.suggested_value,
                        now=now,
                    )
                    title, body = routine_copy(preference.vital_type, preference.suggested_value)
                    payload = PushPayload(
                        title=title,
                        body=body,
                        tag=tag,
                        token=token.token,
                        value=preference.suggested_value,
                    )
                    return await self._dispatcher.push_to_patient(
                        session, patient_id, payload, ttl=self._settings.routine_push_ttl_seconds
                    )

                dispatch = await self._dispatcher.deliver(
                    session,
                    patient_id=patient_id,
                    channel=Channel.PUSH,
                    kind="routine",
                    key=routine_key(patient_id, hour_window(now), Channel.PUSH),
                    template_or_payload_id=tag,
                    send=send,
                )
                await retry_on_lock(session.commit)
                return dispatch
        except Exception as e:
            logger.error(f"Routine push failed for patient {patient_id}: {e}")
            return None
