"""Escalation engine - daily state machine over patients who have not logged.

States per patient:
- Compliant: no EscalationState row
- Escalating: row with current_day_bucket in ESCALATION_BUCKETS
- Exhausted: row with exhausted=1, waiting for a clinician

Transitions, once per sweep:
1. Logged within the compliance window -> Compliant, whatever the bucket or
   acknowledgment. With an open cycle the window runs from the start of the
   cycle day; without one it covers the day since the previous sweep.
   Reminders turned off -> the open cycle is closed without sending.
2. No row -> start a cycle at bucket 1 and send the day 1 reminder.
3. Row -> map the cycle day to a bucket; a higher bucket is a new step
   (reset acknowledgment, send); the same bucket sends nothing new.
4. Cycle day past the last bucket -> Exhausted, raise one follow-up alert.
"""
import asyncio
import logging
from bisect import bisect_right
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import Settings
from ..database import Database
from ..models import EscalationState, FollowUpAlert
from ..utils.db_utils import retry_on_lock
from ..utils.locks import PatientLocks
from ..utils.time import day_bounds, utcnow
from .compliance import LogCompletionOracle
from .delivery import Channel, DeliveryOutcome, FAILED_OUTCOMES, RETRYABLE_OUTCOMES
from .dispatcher import ReminderDispatcher, DispatchResult, escalation_key
from .messages import escalation_copy, follow_up_copy, vital_label
from .push_sender import PushPayload
from .tokens import issue_token

logger = logging.getLogger(__name__)

ESCALATION_BUCKETS = (1, 2, 3, 5)

# From this bucket on, WhatsApp goes out alongside push
WHATSAPP_FROM_BUCKET = 3

DEFAULT_VITAL_TYPE = "blood_pressure"

# Daily sweep: a patient without an open cycle is judged on the last day
COMPLIANCE_LOOKBACK = timedelta(days=1)


def bucket_for_cycle_day(cycle_day: int) -> Optional[int]:
    """Largest bucket not exceeding ``cycle_day``; None once past the last bucket.

    The cycle start is day 1. Days before it clamp to the first bucket.
    """
    if cycle_day > ESCALATION_BUCKETS[-1]:
        return None
    index = bisect_right(ESCALATION_BUCKETS, cycle_day) - 1
    return ESCALATION_BUCKETS[max(index, 0)]


def channels_for_bucket(bucket: int) -> tuple:
    if bucket >= WHATSAPP_FROM_BUCKET:
        return (Channel.PUSH, Channel.WHATSAPP)
    return (Channel.PUSH,)


def cycle_day(cycle_start_date: date, today: date) -> int:
    return (today - cycle_start_date).days + 1


@dataclass
class PatientSweepResult:
    patient_id: str
    transition: str  # compliant, cleared, opted_out, started, escalated, retried, waiting, exhausted, exhausted_now, error
    bucket: Optional[int] = None
    dispatches: List[DispatchResult] = field(default_factory=list)


@dataclass
class SweepResult:
    processed: int = 0
    sent: int = 0
    failed: int = 0
    cleared: int = 0
    started: int = 0
    escalated: int = 0
    exhausted: int = 0
    patients: Dict[str, PatientSweepResult] = field(default_factory=dict)

    def add(self, outcome: PatientSweepResult):
        self.processed += 1
        self.patients[outcome.patient_id] = outcome
        if outcome.transition == "error":
            self.failed += 1
        elif outcome.transition == "cleared" or (outcome.transition == "opted_out" and outcome.bucket is not None):
            self.cleared += 1
        elif outcome.transition == "started":
            self.started += 1
        elif outcome.transition == "escalated":
            self.escalated += 1
        elif outcome.transition == "exhausted_now":
            self.exhausted += 1

        for dispatch in outcome.dispatches:
            if dispatch.deduplicated:
                continue
            if dispatch.outcome == DeliveryOutcome.SENT:
                self.sent += 1
            elif dispatch.outcome in FAILED_OUTCOMES:
                self.failed += 1


class EscalationEngine:
    """Owns EscalationState transitions."""

    def __init__(
        self,
        settings: Settings,
        database: Database,
        dispatcher: ReminderDispatcher,
        oracle: LogCompletionOracle,
        locks: PatientLocks,
    ):
        self._settings = settings
        self._db = database
        self._dispatcher = dispatcher
        self._oracle = oracle
        self._locks = locks
        self._token_ttl = timedelta(hours=settings.escalation_token_ttl_hours)

    async def sweep(self, now: Optional[datetime] = None) -> SweepResult:
        """Evaluate every patient on the roster.

        A failure reading the roster propagates; a failure for one patient is
        logged and counted, and the sweep carries on.
        """
        now = now or utcnow()
        result = SweepResult()

        async with self._db.session() as session:
            roster = await self._dispatcher.store.escalation_roster(session)

        if not roster:
            logger.info("Escalation sweep: no patients on the roster")
            return result

        semaphore = asyncio.Semaphore(self._settings.max_concurrent_dispatches)

        async def process_with_limit(patient_id: str):
            async with semaphore:
                return await self._process_patient_safe(patient_id, now)

        for outcome in await asyncio.gather(*[process_with_limit(pid) for pid in roster]):
            result.add(outcome)

        logger.info(
            f"Escalation sweep for {now.date().isoformat()}: processed={result.processed} "
            f"sent={result.sent} failed={result.failed} cleared={result.cleared} "
            f"started={result.started} escalated={result.escalated} exhausted={result.exhausted}"
        )
        return result

    async def _process_patient_safe(self, patient_id: str, now: datetime) -> PatientSweepResult:
        try:
            return await self.process_patient(patient_id, now)
        except Exception as e:
            logger.error(f"Escalation failed for patient {patient_id}: {e}")
            return PatientSweepResult(patient_id, "error")

    async def process_patient(self, patient_id: str, now: Optional[datetime] = None) -> PatientSweepResult:
        """Apply one transition for one patient, in its own transaction."""
        now = now or utcnow()
        today = now.date()

        async with self._locks.hold(patient_id):
            async with self._db.session() as session:
                state = await session.get(EscalationState, patient_id)

                # Rule 1: logging always wins
                if state is None:
                    since = now - COMPLIANCE_LOOKBACK
                else:
                    since = day_bounds(state.cycle_start_date)[0]
                if await self._oracle.has_logged_since(session, patient_id, since, until=now):
                    if state is None:
                        return PatientSweepResult(patient_id, "compliant")
                    bucket = state.current_day_bucket
                    await session.delete(state)
                    await retry_on_lock(session.commit)
                    logger.info(f"Escalation closed for patient {patient_id}: logged since cycle start (bucket was {bucket})")
                    return PatientSweepResult(patient_id, "cleared", bucket=bucket)

                preference = await self._dispatcher.store.get_preference(session, patient_id)
                if preference is None or not preference.enabled:
                    if state is None:
                        return PatientSweepResult(patient_id, "opted_out")
                    bucket = state.current_day_bucket
                    await session.delete(state)
                    await retry_on_lock(session.commit)
                    logger.info(f"Escalation closed for patient {patient_id}: reminders turned off (bucket was {bucket})")
                    return PatientSweepResult(patient_id, "opted_out", bucket=bucket)

                if state is None:
                    # Rule 2: first non-compliant day opens a cycle
                    state = EscalationState(
                        patient_id=patient_id,
                        cycle_start_date=today,
                        current_day_bucket=ESCALATION_BUCKETS[0],
                        acknowledged=0,
                        exhausted=0,
                    )
                    session.add(state)
                    transition = "started"
                    channels = channels_for_bucket(state.current_day_bucket)
                elif state.exhausted:
                    return PatientSweepResult(patient_id, "exhausted", bucket=state.current_day_bucket)
                else:
                    bucket = bucket_for_cycle_day(cycle_day(state.cycle_start_date, today))

                    if bucket is None:
                        # Rule 4: out of buckets, hand over to a clinician
                        state.exhausted = 1
                        await self._raise_follow_up(session, state)
                        await retry_on_lock(session.commit)
                        logger.warning(
                            f"Escalation exhausted for patient {patient_id} "
                            f"(cycle started {state.cycle_start_date.isoformat()})"
                        )
                        return PatientSweepResult(patient_id, "exhausted_now", bucket=state.current_day_bucket)

                    if bucket > state.current_day_bucket:
                        # Rule 3: new escalation step
                        state.current_day_bucket = bucket
                        state.acknowledged = 0
                        state.acknowledged_at = None
                        state.ack_action = None
                        state.set_channel_attempts({})
                        transition = "escalated"
                        channels = channels_for_bucket(bucket)
                    else:
                        # Same bucket: only channels whose last try failed in transit go again
                        channels = tuple(
                            Channel(name)
                            for name, outcome in state.get_channel_attempts().items()
                            if DeliveryOutcome(outcome) in RETRYABLE_OUTCOMES
                        )
                        if not channels:
                            return PatientSweepResult(patient_id, "waiting", bucket=state.current_day_bucket)
                        transition = "retried"

                dispatches = await self._dispatch(session, state, channels, now)

                attempts = state.get_channel_attempts()
                for dispatch in dispatches:
                    attempts[dispatch.channel.value] = dispatch.outcome.value
                state.set_channel_attempts(attempts)
                if any(d.outcome == DeliveryOutcome.SENT and not d.deduplicated for d in dispatches):
                    state.last_sent_at = now

                await retry_on_lock(session.commit)

                logger.info(
                    f"Escalation {transition} for patient {patient_id}: bucket {state.current_day_bucket}, "
                    + ", ".join(f"{d.channel.value}={d.outcome.value}" for d in dispatches)
                )
                return PatientSweepResult(patient_id, transition, state.current_day_bucket, dispatches)

    async def _dispatch(
        self,
        session: AsyncSession,
        state: EscalationState,
        channels: tuple,
        now: datetime,
    ) -> List[DispatchResult]:
        """Send the reminder for the state's bucket through each channel.

        Channels run one after the other on this patient's session; each
        returns an outcome rather than raising, so one never stops the other.
        """
        patient_id = state.patient_id
        bucket = state.current_day_bucket
        store = self._dispatcher.store

        preference = await store.get_preference(session, patient_id)
        vital_type = preference.vital_type if preference else DEFAULT_VITAL_TYPE
        suggested_value = preference.suggested_value if preference else None

        results = []
        for channel in channels:
            key = escalation_key(patient_id, state.cycle_start_date, bucket, channel)

            if channel == Channel.PUSH:
                tag = f"escalation-{vital_type}-{bucket}"

                async def send_push(tag=tag):
                    token = await issue_token(
                        session,
                        patient_id=patient_id,
                        kind="escalation",
                        vital_type=vital_type,
                        ttl=self._token_ttl,
                        value_text=suggested_value,
                        cycle_start_date=state.cycle_start_date,
                        day_bucket=bucket,
                        now=now,
                    )
                    title, body = escalation_copy(vital_type, bucket)
                    payload = PushPayload(
                        title=title,
                        body=body,
                        tag=tag,
                        token=token.token,
                        value=suggested_value,
                    )
                    return await self._dispatcher.push_to_patient(
                        session, patient_id, payload, ttl=self._settings.escalation_push_ttl_seconds
                    )

                results.append(await self._dispatcher.deliver(
                    session, patient_id, channel, "escalation", key, tag, send_push
                ))
            else:
                template = self._settings.whatsapp_reminder_template

                async def send_whatsapp(template=template):
                    contact = await store.get_contact(session, patient_id)
                    name = (contact.full_name if contact and contact.full_name else "there")
                    parameters = [name, f"log your {vital_label(vital_type)}", f"Day {bucket} reminder"]
                    return await self._dispatcher.whatsapp_to_patient(session, patient_id, template, parameters)

                results.append(await self._dispatcher.deliver(
                    session, patient_id, channel, "escalation", key, template, send_whatsapp
                ))

        return results

    async def _raise_follow_up(self, session: AsyncSession, state: EscalationState):
        """Record the one-time clinician follow-up for this cycle."""
        result = await session.execute(
            select(FollowUpAlert).where(
                FollowUpAlert.patient_id == state.patient_id,
                FollowUpAlert.cycle_start_date == state.cycle_start_date,
            )
        )
        if result.scalar_one_or_none() is not None:
            return

        store = self._dispatcher.store
        preference = await store.get_preference(session, state.patient_id)
        contact = await store.get_contact(session, state.patient_id)
        title, description = follow_up_copy(
            preference.vital_type if preference else DEFAULT_VITAL_TYPE,
            contact.full_name if contact else None,
        )
        session.add(FollowUpAlert(
            patient_id=state.patient_id,
            cycle_start_date=state.cycle_start_date,
            title=title,
            description=description,
            status="open",
        ))
