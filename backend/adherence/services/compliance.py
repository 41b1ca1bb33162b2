"""Log completion - has the patient logged anything in a given window (UTC)?"""
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import HealthLogEntry
from ..utils.time import utcnow

# Log kinds that count towards daily completion
QUALIFYING_KINDS = ("vital", "food", "medication")


class LogCompletionOracle:
    """Answers DailyLogCompletion from the health log table.

    Clinical log stores are owned elsewhere; a deployment that keeps them
    in another service swaps this class for one that asks that service.
    """

    async def has_logged_since(
        self,
        session: AsyncSession,
        patient_id: str,
        since: datetime,
        until: Optional[datetime] = None,
    ) -> bool:
        """True if a qualifying entry exists in ``[since, until]``."""
        query = select(HealthLogEntry.id).where(
            HealthLogEntry.patient_id == patient_id,
            HealthLogEntry.kind.in_(QUALIFYING_KINDS),
            HealthLogEntry.logged_at >= since,
        )
        if until is not None:
            query = query.where(HealthLogEntry.logged_at <= until)
        result = await session.execute(query.limit(1))
        return result.first() is not None

    async def record(
        self,
        session: AsyncSession,
        patient_id: str,
        kind: str,
        vital_type: Optional[str] = None,
        value_text: Optional[str] = None,
        source: str = "app",
        logged_at: Optional[datetime] = None,
    ) -> HealthLogEntry:
        entry = HealthLogEntry(
            patient_id=patient_id,
            kind=kind,
            vital_type=vital_type,
            value_text=value_text,
            source=source,
            logged_at=logged_at or utcnow(),
        )
        session.add(entry)
        return entry
