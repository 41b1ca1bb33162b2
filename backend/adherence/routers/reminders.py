"""Patient-facing reminder endpoints: preferences, contact, and notification actions."""
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from ..dependencies import get_db, get_patient_id, get_runtime
from ..runtime import Runtime
from ..schemas import (
    ReminderPreferenceUpdate,
    ReminderPreferenceResponse,
    ContactUpdate,
    ContactResponse,
    AckRequest,
    AckResponse,
    QuickLogRequest,
    QuickLogResponse,
)
from ..utils.db_utils import retry_on_lock

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/me", tags=["reminders"])


def _preference_response(preference) -> ReminderPreferenceResponse:
    return ReminderPreferenceResponse(
        patient_id=preference.patient_id,
        vital_type=preference.vital_type,
        preferred_hour=preference.preferred_hour,
        enabled=preference.enabled == 1,
        suggested_value=preference.suggested_value,
    )


@router.get("/reminder-preference", response_model=ReminderPreferenceResponse)
async def get_reminder_preference(
    patient_id: str = Depends(get_patient_id),
    runtime: Runtime = Depends(get_runtime),
    db: AsyncSession = Depends(get_db),
):
    preference = await runtime.store.get_preference(db, patient_id)
    if preference is None:
        raise HTTPException(status_code=404, detail="No reminder preference set")
    return _preference_response(preference)


@router.put("/reminder-preference", response_model=ReminderPreferenceResponse)
async def update_reminder_preference(
    body: ReminderPreferenceUpdate,
    patient_id: str = Depends(get_patient_id),
    runtime: Runtime = Depends(get_runtime),
    db: AsyncSession = Depends(get_db),
):
    """Set the hour (UTC) for the routine "log now" push."""
    preference = await runtime.store.upsert_preference(
        db,
        patient_id=patient_id,
        vital_type=body.vital_type,
        preferred_hour=body.preferred_hour,
        enabled=body.enabled,
        suggested_value=body.suggested_value,
    )
    await retry_on_lock(db.commit)
    logger.info(f"Reminder preference for patient {patient_id}: {body.vital_type} at {body.preferred_hour:02d}:00 UTC")
    return _preference_response(preference)


@router.put("/contact", response_model=ContactResponse)
async def update_contact(
    body: ContactUpdate,
    patient_id: str = Depends(get_patient_id),
    runtime: Runtime = Depends(get_runtime),
    db: AsyncSession = Depends(get_db),
):
    """Set the WhatsApp number used for escalated reminders."""
    contact = await runtime.store.set_contact(db, patient_id, body.whatsapp_phone, body.full_name)
    await retry_on_lock(db.commit)
    return ContactResponse(
        patient_id=patient_id,
        whatsapp_phone=contact.whatsapp_phone,
        full_name=contact.full_name,
    )


@router.post("/reminders/ack", response_model=AckResponse)
async def acknowledge_reminder(
    body: AckRequest,
    runtime: Runtime = Depends(get_runtime),
):
    """Record a notification action or an app open from a reminder deep link.

    The token is the credential here; it is scoped to one reminder and expires.
    """
    result = await runtime.acknowledgments.acknowledge(body.token, body.action)
    return AckResponse(
        ok=result.ok,
        action=result.action,
        reason=result.reason,
        redirect_url=result.redirect_url,
        vital_type=result.vital_type,
        value=result.value,
    )


@router.post("/quick-log-from-notification", response_model=QuickLogResponse)
async def quick_log_from_notification(
    body: QuickLogRequest,
    patient_id: str = Depends(get_patient_id),
    runtime: Runtime = Depends(get_runtime),
):
    """Log the reminder's vital in one tap. Each token can be spent once."""
    result = await runtime.acknowledgments.redeem(body.token, body.value, patient_id=patient_id)
    if not result.ok:
        status_code = 409 if result.reason == "already_used" else 400
        raise HTTPException(status_code=status_code, detail=result.reason)
    return QuickLogResponse(ok=True, vital_type=result.vital_type, value=result.value)
