"""Reminder action tokens - opaque, time-bounded capabilities for push actions."""
import secrets
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import ReminderToken
from ..utils.time import utcnow


def new_token() -> str:
    return secrets.token_hex(24)


async def issue_token(
    session: AsyncSession,
    patient_id: str,
    kind: str,
    vital_type: str,
    ttl: timedelta,
    value_text: Optional[str] = None,
    cycle_start_date: Optional[date] = None,
    day_bucket: Optional[int] = None,
    now: Optional[datetime] = None,
) -> ReminderToken:
    """Create a token for one reminder. It only identifies the reminder, never the session."""
    now = now or utcnow()
    token = ReminderToken(
        token=new_token(),
        patient_id=patient_id,
        kind=kind,
        vital_type=vital_type,
        value_text=value_text,
        cycle_start_date=cycle_start_date,
        day_bucket=day_bucket,
        expires_at=now + ttl,
        created_at=now,
    )
    session.add(token)
    return token


async def get_valid_token(
    session: AsyncSession,
    token: str,
    now: Optional[datetime] = None,
) -> tuple[Optional[ReminderToken], Optional[str]]:
    """Look up a token. Returns ``(token, None)`` or ``(None, reason)``."""
    if not token:
        return None, "invalid_token"
    record = await session.get(ReminderToken, token)
    if record is None:
        return None, "invalid_token"
    if (now or utcnow()) > record.expires_at:
        return None, "expired"
    return record, None


async def purge_expired_tokens(session: AsyncSession, before: datetime) -> int:
    result = await session.execute(
        delete(ReminderToken).where(ReminderToken.expires_at < before)
    )
    return result.rowcount or 0
