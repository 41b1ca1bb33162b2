"""Subscription store - data access for delivery endpoints and reminder preferences."""
import logging
from typing import List, Optional

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import PushSubscription, ReminderPreference, PatientContact, EscalationState
from ..utils.time import utcnow

logger = logging.getLogger(__name__)


class SubscriptionStore:
    """Reads and writes endpoints and preferences. Callers own the session and commit."""

    # ---------- push subscriptions ----------

    async def upsert_push_subscription(
        self,
        session: AsyncSession,
        patient_id: str,
        endpoint: str,
        p256dh: str,
        auth: str,
        user_agent: Optional[str] = None,
    ) -> PushSubscription:
        result = await session.execute(
            select(PushSubscription).where(
                PushSubscription.patient_id == patient_id,
                PushSubscription.endpoint == endpoint,
            )
        )
        subscription = result.scalar_one_or_none()

        if subscription:
            subscription.p256dh = p256dh
            subscription.auth = auth
            subscription.user_agent = user_agent
            subscription.updated_at = utcnow()
            return subscription

        subscription = PushSubscription(
            patient_id=patient_id,
            endpoint=endpoint,
            p256dh=p256dh,
            auth=auth,
            user_agent=user_agent,
        )
        session.add(subscription)
        await session.flush()
        return subscription

    async def list_push_subscriptions(self, session: AsyncSession, patient_id: str) -> List[PushSubscription]:
        result = await session.execute(
            select(PushSubscription)
            .where(PushSubscription.patient_id == patient_id)
            .order_by(PushSubscription.id)
        )
        return list(result.scalars().all())

    async def delete_push_subscription(self, session: AsyncSession, subscription_id: int):
        await session.execute(
            delete(PushSubscription).where(PushSubscription.id == subscription_id)
        )

    async def remove_push_subscription(self, session: AsyncSession, patient_id: str, endpoint: str) -> bool:
        result = await session.execute(
            delete(PushSubscription).where(
                PushSubscription.patient_id == patient_id,
                PushSubscription.endpoint == endpoint,
            )
        )
        return result.rowcount > 0

    # ---------- WhatsApp contact ----------

    async def get_contact(self, session: AsyncSession, patient_id: str) -> Optional[PatientContact]:
        return await session.get(PatientContact, patient_id)

    async def set_contact(
        self,
        session: AsyncSession,
        patient_id: str,
        whatsapp_phone: Optional[str],
        full_name: Optional[str] = None,
    ) -> PatientContact:
        contact = await session.get(PatientContact, patient_id)
        if contact is None:
            contact = PatientContact(patient_id=patient_id)
            session.add(contact)
        contact.whatsapp_phone = whatsapp_phone
        if full_name is not None:
            contact.full_name = full_name
        return contact

    # ---------- reminder preferences ----------

    async def get_preference(self, session: AsyncSession, patient_id: str) -> Optional[ReminderPreference]:
        return await session.get(ReminderPreference, patient_id)

    async def upsert_preference(
        self,
        session: AsyncSession,
        patient_id: str,
        vital_type: str,
        preferred_hour: int,
        enabled: bool = True,
        suggested_value: Optional[str] = None,
    ) -> ReminderPreference:
        preference = await session.get(ReminderPreference, patient_id)
        if preference is None:
            preference = ReminderPreference(patient_id=patient_id)
            session.add(preference)
        preference.vital_type = vital_type
        preference.preferred_hour = preferred_hour
        preference.enabled = 1 if enabled else 0
        preference.suggested_value = suggested_value
        return preference

    async def due_routine_preferences(self, session: AsyncSession, hour: int) -> List[ReminderPreference]:
        """Enabled preferences whose preferred hour is ``hour`` (UTC)."""
        result = await session.execute(
            select(ReminderPreference)
            .where(
                ReminderPreference.enabled == 1,
                ReminderPreference.preferred_hour == hour,
            )
            .order_by(ReminderPreference.patient_id)
        )
        return list(result.scalars().all())

    async def escalation_roster(self, session: AsyncSession) -> List[str]:
        """Patients the escalation sweep has to look at.

        Everyone with an enabled preference, plus anyone still holding an
        escalation row so that a disabled preference can still be cleared.
        """
        enabled = await session.execute(
            select(ReminderPreference.patient_id).where(ReminderPreference.enabled == 1)
        )
        open_cycles = await session.execute(select(EscalationState.patient_id))
        patient_ids = set(enabled.scalars().all()) | set(open_cycles.scalars().all())
        return sorted(patient_ids)
