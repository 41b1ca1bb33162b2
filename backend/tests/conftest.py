"""
Shared fixtures for the reminder service tests.

Every test gets its own SQLite database under tmp_path. Web push goes to a
recording fake in place of pywebpush.webpush and the WhatsApp Business API
is served by an httpx.MockTransport, so nothing leaves the process.
"""

import json
from datetime import datetime

import httpx
import pytest
import pytest_asyncio
from pywebpush import WebPushException
from sqlalchemy import select

from adherence.config import Settings
from adherence.models import (
    EscalationState,
    FollowUpAlert,
    HealthLogEntry,
    NotificationAttempt,
    PushSubscription,
)
from adherence.runtime import build_runtime

CRON_SECRET = "test-cron-secret"

# Monday 09:00 UTC, the default escalation hour
DAY_ONE = datetime(2026, 3, 2, 9, 0)


class FakeResponse:
    def __init__(self, status_code: int):
        self.status_code = status_code
        self.text = f"status {status_code}"


class FakeWebPush:
    """Stands in for pywebpush.webpush and records every call."""

    def __init__(self):
        self.calls = []
        self.failures = {}  # endpoint -> HTTP status to fail with

    def __call__(self, subscription_info, data, vapid_private_key, vapid_claims, ttl, timeout=None):
        endpoint = subscription_info["endpoint"]
        self.calls.append({
            "endpoint": endpoint,
            "payload": json.loads(data),
            "claims": vapid_claims,
            "ttl": ttl,
            "timeout": timeout,
        })
        status = self.failures.get(endpoint)
        if status is not None:
            raise WebPushException(f"Push failed: {status}", response=FakeResponse(status))

    @property
    def payloads(self):
        return [c["payload"] for c in self.calls]


class FakeWhatsAppApi:
    """Recording handler behind httpx.MockTransport."""

    def __init__(self):
        self.requests = []
        self.status_code = 200

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append({
            "url": str(request.url),
            "authorization": request.headers.get("authorization"),
            "body": json.loads(request.content),
        })
        if self.status_code >= 400:
            return httpx.Response(self.status_code, json={"error": {"message": "rejected"}})
        return httpx.Response(200, json={"messages": [{"id": "wamid.test"}]})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def make_settings(tmp_path, **overrides) -> Settings:
    values = dict(
        data_path=str(tmp_path),
        database_url=None,
        cron_secret=CRON_SECRET,
        scheduler_enabled=False,
        vapid_public_key="test-public-key",
        vapid_private_key="test-private-key",
        vapid_subject="mailto:test@example.com",
        whatsapp_api_url="https://graph.example.test/v18.0/1234",
        whatsapp_api_token="test-whatsapp-token",
        app_origin="https://app.example.test",
    )
    values.update(overrides)
    return Settings(**values)


class Seeder:
    """Writes fixtures straight to the database and reads results back."""

    def __init__(self, runtime):
        self.runtime = runtime
        self.store = runtime.store

    async def patient(
        self,
        patient_id: str,
        hour: int = 9,
        vital_type: str = "blood_pressure",
        enabled: bool = True,
        suggested_value: str = None,
        endpoints=("https://push.example.test/device-1",),
        phone: str = None,
        name: str = None,
    ):
        async with self.runtime.database.session() as session:
            await self.store.upsert_preference(
                session, patient_id, vital_type, hour, enabled=enabled, suggested_value=suggested_value
            )
            for endpoint in endpoints:
                await self.store.upsert_push_subscription(
                    session, patient_id, endpoint, p256dh="p256dh-key", auth="auth-secret"
                )
            if phone or name:
                await self.store.set_contact(session, patient_id, phone, name)
            await session.commit()

    async def log(self, patient_id: str, at: datetime, kind: str = "vital"):
        async with self.runtime.database.session() as session:
            session.add(HealthLogEntry(patient_id=patient_id, kind=kind, vital_type="blood_pressure", logged_at=at))
            await session.commit()

    async def state(self, patient_id: str):
        async with self.runtime.database.session() as session:
            return await session.get(EscalationState, patient_id)

    async def attempts(self, patient_id: str = None, channel: str = None):
        async with self.runtime.database.session() as session:
            query = select(NotificationAttempt).order_by(NotificationAttempt.id)
            if patient_id:
                query = query.where(NotificationAttempt.patient_id == patient_id)
            if channel:
                query = query.where(NotificationAttempt.channel == channel)
            result = await session.execute(query)
            return list(result.scalars().all())

    async def subscriptions(self, patient_id: str):
        async with self.runtime.database.session() as session:
            result = await session.execute(
                select(PushSubscription).where(PushSubscription.patient_id == patient_id)
            )
            return list(result.scalars().all())

    async def follow_ups(self, patient_id: str):
        async with self.runtime.database.session() as session:
            result = await session.execute(
                select(FollowUpAlert).where(FollowUpAlert.patient_id == patient_id)
            )
            return list(result.scalars().all())

    async def log_entries(self, patient_id: str):
        async with self.runtime.database.session() as session:
            result = await session.execute(
                select(HealthLogEntry).where(HealthLogEntry.patient_id == patient_id)
            )
            return list(result.scalars().all())


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture
def web_push():
    return FakeWebPush()


@pytest.fixture
def whatsapp_api():
    return FakeWhatsAppApi()


@pytest_asyncio.fixture
async def runtime(settings, web_push, whatsapp_api):
    runtime = build_runtime(settings, push_sender=web_push, whatsapp_transport=whatsapp_api.transport)
    await runtime.database.init()
    yield runtime
    await runtime.database.close()


@pytest.fixture
def seed(runtime):
    return Seeder(runtime)
