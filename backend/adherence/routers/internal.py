"""Internal cron trigger endpoints.

Callable by an external cron as a substitute for the in-process scheduler.
A wrong or missing x-cron-secret gets the same no-op summary as a server
with no secret configured.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Header
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..dependencies import get_db, get_runtime
from ..models import FollowUpAlert
from ..runtime import Runtime
from ..schemas import TriggerSummary, FollowUpAlertResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/internal", tags=["internal"])


@router.post("/send-routine-pushes", response_model=TriggerSummary)
async def send_routine_pushes(
    x_cron_secret: Optional[str] = Header(default=None),
    runtime: Runtime = Depends(get_runtime),
):
    """Send the hourly "log now" push to patients due this UTC hour."""
    return await runtime.triggers.trigger_routine_push(x_cron_secret)


@router.post("/process-reminder-escalations", response_model=TriggerSummary)
async def process_reminder_escalations(
    x_cron_secret: Optional[str] = Header(default=None),
    runtime: Runtime = Depends(get_runtime),
):
    """Run the daily escalation sweep (Day 1 -> 2 -> 3 -> 5)."""
    return await runtime.triggers.trigger_escalation_sweep(x_cron_secret)


@router.get("/follow-ups", response_model=List[FollowUpAlertResponse])
async def list_follow_ups(
    x_cron_secret: Optional[str] = Header(default=None),
    runtime: Runtime = Depends(get_runtime),
    db: AsyncSession = Depends(get_db),
):
    """Open clinician follow-ups raised by exhausted escalations."""
    if not runtime.triggers.is_authorized(x_cron_secret):
        return []
    result = await db.execute(
        select(FollowUpAlert)
        .where(FollowUpAlert.status == "open")
        .order_by(FollowUpAlert.created_at.desc())
        .limit(500)
    )
    return list(result.scalars().all())
