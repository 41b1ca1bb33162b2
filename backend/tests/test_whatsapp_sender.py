"""WhatsApp Business API channel."""

import httpx
import pytest

from adherence.services.delivery import DeliveryOutcome
from adherence.services.whatsapp_sender import (
    TEMPLATE_ENGAGEMENT,
    WhatsAppChannel,
    normalize_phone,
)

from conftest import FakeWhatsAppApi, make_settings


class TestNormalizePhone:

    def test_strips_formatting(self):
        assert normalize_phone("+44 7700-900001") == "447700900001"

    def test_empty(self):
        assert normalize_phone("") == ""
        assert normalize_phone(None) == ""


class TestWhatsAppChannel:

    def test_unavailable_without_token(self, tmp_path):
        channel = WhatsAppChannel(make_settings(tmp_path, whatsapp_api_token=None))
        assert channel.available is False

    @pytest.mark.asyncio
    async def test_unavailable_send_is_not_configured(self, tmp_path):
        api = FakeWhatsAppApi()
        channel = WhatsAppChannel(make_settings(tmp_path, whatsapp_api_url=None), transport=api.transport)

        result = await channel.send_template("+15550001111", TEMPLATE_ENGAGEMENT, ["Ada"])

        assert result.outcome == DeliveryOutcome.CHANNEL_NOT_CONFIGURED
        assert api.requests == []

    @pytest.mark.asyncio
    async def test_template_message(self, tmp_path):
        api = FakeWhatsAppApi()
        channel = WhatsAppChannel(make_settings(tmp_path), transport=api.transport)

        result = await channel.send_template("+1 555 000 1111", TEMPLATE_ENGAGEMENT, ["Ada", "log your blood pressure"])

        assert result.sent
        body = api.requests[0]["body"]
        assert body["messaging_product"] == "whatsapp"
        assert body["type"] == "template"
        assert body["to"] == "15550001111"
        assert body["template"]["language"] == {"code": "en"}
        assert body["template"]["components"][0]["parameters"] == [
            {"type": "text", "text": "Ada"},
            {"type": "text", "text": "log your blood pressure"},
        ]

    @pytest.mark.asyncio
    async def test_template_without_parameters(self, tmp_path):
        api = FakeWhatsAppApi()
        channel = WhatsAppChannel(make_settings(tmp_path), transport=api.transport)

        await channel.send_template("15550001111", "adherence_welcome", language="es")

        template = api.requests[0]["body"]["template"]
        assert "components" not in template
        assert template["language"] == {"code": "es"}

    @pytest.mark.asyncio
    async def test_text_message(self, tmp_path):
        api = FakeWhatsAppApi()
        channel = WhatsAppChannel(make_settings(tmp_path), transport=api.transport)

        result = await channel.send_text("15550001111", "Please log your blood pressure")

        assert result.sent
        assert api.requests[0]["body"]["text"] == {"body": "Please log your blood pressure"}

    @pytest.mark.asyncio
    async def test_http_error_status(self, tmp_path):
        api = FakeWhatsAppApi()
        api.status_code = 401
        channel = WhatsAppChannel(make_settings(tmp_path), transport=api.transport)

        result = await channel.send_template("15550001111", TEMPLATE_ENGAGEMENT)

        assert result.outcome == DeliveryOutcome.TRANSPORT_ERROR
        assert result.status_code == 401

    @pytest.mark.asyncio
    async def test_network_error(self, tmp_path):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        channel = WhatsAppChannel(make_settings(tmp_path), transport=httpx.MockTransport(handler))

        result = await channel.send_template("15550001111", TEMPLATE_ENGAGEMENT)

        assert result.outcome == DeliveryOutcome.TRANSPORT_ERROR
        assert "connection refused" in result.detail

    @pytest.mark.asyncio
    async def test_phone_without_digits(self, tmp_path):
        api = FakeWhatsAppApi()
        channel = WhatsAppChannel(make_settings(tmp_path), transport=api.transport)

        result = await channel.send_text("n/a", "hello")

        assert result.outcome == DeliveryOutcome.TRANSPORT_ERROR
        assert api.requests == []
