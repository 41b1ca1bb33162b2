"""Reminder dispatcher - sends through a channel and records the attempt.

Every delivery is keyed. A key that already has a final outcome is never
sent again; a key whose last outcome was a transport error or a dead
endpoint is retried by a later tick and the same row is updated.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import date
from typing import Awaitable, Callable, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import NotificationAttempt
from .delivery import Channel, ChannelResult, DeliveryOutcome, RETRYABLE_OUTCOMES
from .push_sender import PushChannel, PushPayload
from .subscription_store import SubscriptionStore
from .whatsapp_sender import WhatsAppChannel

logger = logging.getLogger(__name__)


def escalation_key(patient_id: str, cycle_start_date: date, bucket: int, channel: Channel) -> str:
    return f"escalation:{patient_id}:{cycle_start_date.isoformat()}:{bucket}:{channel.value}"


def routine_key(patient_id: str, window: str, channel: Channel) -> str:
    return f"routine:{patient_id}:{window}:{channel.value}"


@dataclass
class DispatchResult:
    """Outcome of one keyed delivery."""
    channel: Channel
    outcome: DeliveryOutcome
    deduplicated: bool = False


class ReminderDispatcher:
    """Keyed delivery through the push and WhatsApp channels."""

    def __init__(self, store: SubscriptionStore, push: PushChannel, whatsapp: WhatsAppChannel):
        self.store = store
        self.push = push
        self.whatsapp = whatsapp

    async def _get_attempt(self, session: AsyncSession, key: str) -> Optional[NotificationAttempt]:
        result = await session.execute(
            select(NotificationAttempt).where(NotificationAttempt.idempotency_key == key)
        )
        return result.scalar_one_or_none()

    async def deliver(
        self,
        session: AsyncSession,
        patient_id: str,
        channel: Channel,
        kind: str,
        key: str,
        template_or_payload_id: str,
        send: Callable[[], Awaitable[ChannelResult]],
    ) -> DispatchResult:
        """Run ``send`` unless ``key`` already reached a final outcome, then record it."""
        attempt = await self._get_attempt(session, key)
        if attempt is not None and DeliveryOutcome(attempt.outcome) not in RETRYABLE_OUTCOMES:
            logger.debug(f"Skipping {key}: already {attempt.outcome}")
            return DispatchResult(channel, DeliveryOutcome(attempt.outcome), deduplicated=True)

        result = await send()

        if attempt is None:
            attempt = NotificationAttempt(
                idempotency_key=key,
                patient_id=patient_id,
                channel=channel.value,
                kind=kind,
                template_or_payload_id=template_or_payload_id,
                outcome=result.outcome.value,
                detail=result.detail,
                retry_count=0,
            )
            session.add(attempt)
        else:
            attempt.outcome = result.outcome.value
            attempt.detail = result.detail
            attempt.retry_count = (attempt.retry_count or 0) + 1
        await session.flush()

        return DispatchResult(channel, result.outcome)

    async def push_to_patient(
        self,
        session: AsyncSession,
        patient_id: str,
        payload: PushPayload,
        ttl: int,
    ) -> ChannelResult:
        """Send one payload to every device of a patient.

        Dead subscriptions are deleted. The combined outcome is ``sent`` if any
        device accepted it.
        """
        if not self.push.available:
            return ChannelResult(DeliveryOutcome.CHANNEL_NOT_CONFIGURED)

        subscriptions = await self.store.list_push_subscriptions(session, patient_id)
        if not subscriptions:
            logger.info(f"No push subscription for patient {patient_id}")
            return ChannelResult(DeliveryOutcome.CHANNEL_NOT_CONFIGURED, detail="no subscription")

        # One send per device so a hung endpoint does not hold up the others
        results: Sequence[ChannelResult] = await asyncio.gather(
            *[self.push.send(sub, payload, ttl=ttl) for sub in subscriptions]
        )

        for subscription, result in zip(subscriptions, results):
            if result.outcome == DeliveryOutcome.ENDPOINT_INVALID:
                await self.store.delete_push_subscription(session, subscription.id)
                logger.info(f"Removed dead push subscription {subscription.id} for patient {patient_id}")

        if any(r.sent for r in results):
            return ChannelResult(DeliveryOutcome.SENT)
        failed = next((r for r in results if r.outcome == DeliveryOutcome.TRANSPORT_ERROR), None)
        if failed is not None:
            return ChannelResult(DeliveryOutcome.TRANSPORT_ERROR, status_code=failed.status_code, detail=failed.detail)
        return ChannelResult(DeliveryOutcome.ENDPOINT_INVALID, detail="all subscriptions gone")

    async def whatsapp_to_patient(
        self,
        session: AsyncSession,
        patient_id: str,
        template_name: str,
        parameters: Sequence[str],
    ) -> ChannelResult:
        """Send a template to the patient's WhatsApp number, if one is on file."""
        if not self.whatsapp.available:
            return ChannelResult(DeliveryOutcome.CHANNEL_NOT_CONFIGURED)

        contact = await self.store.get_contact(session, patient_id)
        if contact is None or not contact.whatsapp_phone:
            logger.info(f"No WhatsApp number for patient {patient_id}")
            return ChannelResult(DeliveryOutcome.CHANNEL_NOT_CONFIGURED, detail="no phone")

        return await self.whatsapp.send_template(contact.whatsapp_phone, template_name, parameters)
