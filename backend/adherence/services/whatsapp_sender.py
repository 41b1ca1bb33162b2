"""WhatsApp Business API sender - pre-approved templates and plain text."""
import logging
import re
from typing import Optional, Sequence

import httpx

from ..config import Settings
from .delivery import ChannelResult, DeliveryOutcome

logger = logging.getLogger(__name__)

# Pre-approved template names registered with the WhatsApp Business account
TEMPLATE_OTP = "adherence_otp"
TEMPLATE_WELCOME = "adherence_welcome"
TEMPLATE_ENGAGEMENT = "adherence_engagement"
TEMPLATE_CASE_UPDATE = "adherence_case_update"


def normalize_phone(phone: str) -> str:
    """Strip everything but digits, e.g. "+44 7700-900001" -> "447700900001"."""
    return re.sub(r"[^0-9]", "", phone or "")


def _mask(phone: str) -> str:
    return f"***{phone[-4:]}" if len(phone) > 4 else "***"


class WhatsAppChannel:
    """WhatsApp delivery channel.

    Available only when both the API URL and token are set. An unavailable
    channel answers every send with ``channel_not_configured``.
    """

    name = "whatsapp"

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._api_url = (settings.whatsapp_api_url or "").rstrip("/")
        self._token = settings.whatsapp_api_token or ""
        self._language = settings.whatsapp_language
        self._timeout = settings.whatsapp_timeout_seconds
        self._transport = transport
        self.available = bool(self._api_url and self._token)

        if self.available:
            logger.info(f"WhatsApp channel configured: {self._api_url}")
        else:
            logger.info("WhatsApp channel disabled - API URL or token not set")

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self._token}",
            "Content-Type": "application/json",
        }

    async def send_template(
        self,
        phone: str,
        template_name: str,
        parameters: Sequence[str] = (),
        language: Optional[str] = None,
    ) -> ChannelResult:
        """Send a pre-approved template with positional body parameters."""
        if not self.available:
            logger.info(f"WhatsApp not configured - skipping template '{template_name}'")
            return ChannelResult(DeliveryOutcome.CHANNEL_NOT_CONFIGURED)

        template = {
            "name": template_name,
            "language": {"code": language or self._language},
        }
        if parameters:
            template["components"] = [
                {
                    "type": "body",
                    "parameters": [{"type": "text", "text": str(p)} for p in parameters],
                }
            ]

        payload = {
            "messaging_product": "whatsapp",
            "to": normalize_phone(phone),
            "type": "template",
            "template": template,
        }
        return await self._post(payload, f"template '{template_name}'")

    async def send_text(self, phone: str, body: str) -> ChannelResult:
        """Send a free-form text message (only valid inside a customer service window)."""
        if not self.available:
            logger.info("WhatsApp not configured - skipping text message")
            return ChannelResult(DeliveryOutcome.CHANNEL_NOT_CONFIGURED)

        payload = {
            "messaging_product": "whatsapp",
            "to": normalize_phone(phone),
            "type": "text",
            "text": {"body": body},
        }
        return await self._post(payload, "text")

    async def _post(self, payload: dict, label: str) -> ChannelResult:
        to = payload["to"]
        if not to:
            logger.warning(f"WhatsApp {label} skipped - no digits in phone number")
            return ChannelResult(DeliveryOutcome.TRANSPORT_ERROR, detail="invalid phone number")

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(
                    f"{self._api_url}/messages",
                    json=payload,
                    headers=self._headers(),
                )
        except httpx.HTTPError as e:
            logger.error(f"WhatsApp {label} to {_mask(to)} failed: {e}")
            return ChannelResult(DeliveryOutcome.TRANSPORT_ERROR, detail=str(e))

        if response.status_code >= 400:
            logger.warning(
                f"WhatsApp {label} to {_mask(to)} failed: {response.status_code} {response.text[:200]}"
            )
            return ChannelResult(
                DeliveryOutcome.TRANSPORT_ERROR,
                status_code=response.status_code,
                detail=response.text[:500],
            )

        logger.info(f"WhatsApp {label} sent to {_mask(to)}")
        return ChannelResult(DeliveryOutcome.SENT, status_code=response.status_code)
