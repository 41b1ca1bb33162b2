"""Push subscription registration endpoints."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..dependencies import get_db, get_patient_id, get_runtime
from ..runtime import Runtime
from ..schemas import PushSubscribeRequest, PushSubscribeStatus
from ..utils.db_utils import retry_on_lock

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/me/push-subscribe", tags=["push"])


@router.post("")
async def subscribe(
    body: PushSubscribeRequest,
    request: Request,
    patient_id: str = Depends(get_patient_id),
    runtime: Runtime = Depends(get_runtime),
    db: AsyncSession = Depends(get_db),
):
    """Register (or refresh) this browser's push subscription.

    The client should call this whenever the service worker subscribes, so
    rotated keys replace the stored ones.
    """
    subscription = body.subscription
    user_agent = (request.headers.get("user-agent") or "")[:200]
    await runtime.store.upsert_push_subscription(
        db,
        patient_id=patient_id,
        endpoint=subscription.endpoint,
        p256dh=subscription.keys.p256dh,
        auth=subscription.keys.auth,
        user_agent=user_agent,
    )
    await retry_on_lock(db.commit)

    logger.info(f"Push subscription saved for patient {patient_id}")
    return {"ok": True}


@router.get("", response_model=PushSubscribeStatus)
async def subscription_status(
    patient_id: str = Depends(get_patient_id),
    runtime: Runtime = Depends(get_runtime),
    db: AsyncSession = Depends(get_db),
):
    subscriptions = await runtime.store.list_push_subscriptions(db, patient_id)
    if not subscriptions:
        return PushSubscribeStatus(subscribed=False)
    return PushSubscribeStatus(subscribed=True, endpoint=subscriptions[-1].endpoint)


@router.delete("")
async def unsubscribe(
    endpoint: Optional[str] = None,
    patient_id: str = Depends(get_patient_id),
    runtime: Runtime = Depends(get_runtime),
    db: AsyncSession = Depends(get_db),
):
    """Remove one push subscription (query parameter ``endpoint``)."""
    if not endpoint:
        raise HTTPException(status_code=400, detail="endpoint required")

    removed = await runtime.store.remove_push_subscription(db, patient_id, endpoint)
    await retry_on_lock(db.commit)

    if not removed:
        raise HTTPException(status_code=404, detail="Subscription not found")

    logger.info(f"Push subscription removed for patient {patient_id}")
    return {"ok": True}
