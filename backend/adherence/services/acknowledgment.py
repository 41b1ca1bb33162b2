"""Acknowledgment handler - closes the loop when a patient acts on a reminder.

The handler only ever sets ``acknowledged``; clearing a cycle is left to the
next sweep, which sees the new log entry.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from urllib.parse import quote

from sqlalchemy.ext.asyncio import AsyncSession

from ..config import Settings
from ..database import Database
from ..models import EscalationState, ReminderToken
from ..utils.db_utils import retry_on_lock
from ..utils.locks import PatientLocks
from ..utils.time import utcnow
from .compliance import LogCompletionOracle
from .tokens import get_valid_token

logger = logging.getLogger(__name__)

ACTIONS = ("log", "skip", "open")

# Log kinds for the vital types a reminder can be about
LOG_KINDS = {
    "blood_pressure": "vital",
    "blood_sugar": "vital",
    "medication": "medication",
    "food": "food",
}


def log_deep_link(app_origin: str, token: str) -> str:
    """Where the "log" action lands: the patient page with the token attached."""
    return f"{app_origin.rstrip('/')}/patient?log_token={quote(token, safe='')}"


@dataclass
class AckResult:
    ok: bool
    action: Optional[str] = None
    reason: Optional[str] = None
    redirect_url: Optional[str] = None
    vital_type: Optional[str] = None
    value: Optional[str] = None
    acknowledged_escalation: bool = False


@dataclass
class RedeemResult:
    ok: bool
    reason: Optional[str] = None
    vital_type: Optional[str] = None
    value: Optional[str] = None


class AcknowledgmentHandler:
    """Handles notification actions (log, skip) and app opens from a deep link."""

    def __init__(
        self,
        settings: Settings,
        database: Database,
        oracle: LogCompletionOracle,
        locks: PatientLocks,
    ):
        self._app_origin = settings.app_origin
        self._db = database
        self._oracle = oracle
        self._locks = locks

    async def acknowledge(
        self,
        token: str,
        action: str = "open",
        now: Optional[datetime] = None,
    ) -> AckResult:
        """Record that the patient saw the reminder behind ``token``."""
        if action not in ACTIONS:
            return AckResult(ok=False, action=action, reason="invalid_action")

        now = now or utcnow()

        async with self._db.session() as session:
            record, reason = await get_valid_token(session, token, now)
            if record is None:
                logger.info(f"Reminder acknowledgment rejected: {reason}")
                return AckResult(ok=False, action=action, reason=reason)
            patient_id = record.patient_id

        async with self._locks.hold(patient_id):
            async with self._db.session() as session:
                record = await session.get(ReminderToken, token)
                record.acknowledged_at = record.acknowledged_at or now
                record.ack_action = action

                acknowledged = await self._acknowledge_state(session, record, action, now)
                await retry_on_lock(session.commit)

        logger.info(
            f"Reminder '{record.kind}' acknowledged by patient {patient_id} with '{action}'"
            + (" (escalation acknowledged)" if acknowledged else "")
        )

        result = AckResult(
            ok=True,
            action=action,
            vital_type=record.vital_type,
            value=record.value_text,
            acknowledged_escalation=acknowledged,
        )
        if action == "log":
            result.redirect_url = log_deep_link(self._app_origin, token)
        return result

    async def _acknowledge_state(
        self,
        session: AsyncSession,
        record: ReminderToken,
        action: str,
        now: datetime,
    ) -> bool:
        """Flag the open escalation cycle as seen, if the token belongs to it."""
        if record.kind != "escalation":
            return False
        state = await session.get(EscalationState, record.patient_id)
        if state is None or state.cycle_start_date != record.cycle_start_date:
            # Cycle already closed or replaced by a newer one
            return False
        state.acknowledged = 1
        state.acknowledged_at = now
        state.ack_action = action
        return True

    async def redeem(
        self,
        token: str,
        value: Optional[str] = None,
        now: Optional[datetime] = None,
        patient_id: Optional[str] = None,
    ) -> RedeemResult:
        """Log the reminder's vital from the notification, then spend the token.

        Also counts as an acknowledgment of the reminder. When ``patient_id``
        is given, a token issued to someone else is treated as invalid.
        """
        now = now or utcnow()

        async with self._db.session() as session:
            record, reason = await get_valid_token(session, token, now)
            if record is None:
                return RedeemResult(ok=False, reason=reason)
            if patient_id is not None and record.patient_id != patient_id:
                return RedeemResult(ok=False, reason="invalid_token")
            if record.used_at is not None:
                return RedeemResult(ok=False, reason="already_used")
            patient_id = record.patient_id

        async with self._locks.hold(patient_id):
            async with self._db.session() as session:
                record = await session.get(ReminderToken, token)
                if record.used_at is not None:
                    return RedeemResult(ok=False, reason="already_used")

                value_text = value if value is not None else record.value_text
                await self._oracle.record(
                    session,
                    patient_id=patient_id,
                    kind=LOG_KINDS.get(record.vital_type, "vital"),
                    vital_type=record.vital_type,
                    value_text=value_text,
                    source="push",
                    logged_at=now,
                )
                record.used_at = now
                record.acknowledged_at = record.acknowledged_at or now
                record.ack_action = record.ack_action or "log"
                await self._acknowledge_state(session, record, "log", now)
                await retry_on_lock(session.commit)

        logger.info(f"Patient {patient_id} logged {record.vital_type} from a notification")
        return RedeemResult(ok=True, vital_type=record.vital_type, value=value_text)
