"""Push notification sender using Web Push (VAPID) via pywebpush."""
import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from pywebpush import webpush, WebPushException

from ..config import Settings
from ..models.push_subscription import PushSubscription
from .delivery import ChannelResult, DeliveryOutcome

logger = logging.getLogger(__name__)

# Push service status codes meaning the subscription is gone for good
GONE_STATUS_CODES = (404, 410)


@dataclass
class PushPayload:
    """Notification body as read by the client's service worker.

    ``token`` lets the client attribute a "log"/"skip" action to this
    reminder; ``value`` labels the one-tap log action when present.
    """
    title: str
    body: str
    tag: str
    token: Optional[str] = None
    value: Optional[str] = None

    def to_dict(self) -> dict:
        data = {}
        if self.token:
            data["token"] = self.token
        if self.value is not None:
            data["value"] = self.value
        return {"title": self.title, "body": self.body, "tag": self.tag, "data": data}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


def _short(endpoint: str) -> str:
    return f"{endpoint[:48]}..." if len(endpoint) > 48 else endpoint


class PushChannel:
    """Web push delivery channel.

    ``available`` is decided once here from the VAPID key pair; callers check
    it instead of re-reading configuration.
    """

    name = "push"

    def __init__(self, settings: Settings, sender: Optional[Callable] = None):
        self._private_key = settings.vapid_private_key or ""
        self._public_key = settings.vapid_public_key or ""
        self._subject = settings.vapid_subject
        self._timeout = settings.push_timeout_seconds
        self._sender = sender or webpush
        self.available = bool(self._private_key and self._public_key)

        if self.available:
            logger.info("Push channel configured")
        else:
            logger.info("Push channel disabled - VAPID keys not set")

    async def send(
        self,
        subscription: PushSubscription,
        payload: PushPayload,
        ttl: int = 0,
    ) -> ChannelResult:
        """Send a push notification to a single subscription.

        Never raises; each request is bounded by PUSH_TIMEOUT_SECONDS.
        """
        if not self.available:
            logger.debug("Push notifications not configured, skipping")
            return ChannelResult(DeliveryOutcome.CHANNEL_NOT_CONFIGURED)

        try:
            await asyncio.to_thread(
                self._sender,
                subscription_info=subscription.subscription_info(),
                data=payload.to_json(),
                vapid_private_key=self._private_key,
                # pywebpush adds aud/exp to the claims dict, so pass a fresh one
                vapid_claims={"sub": self._subject},
                ttl=ttl,
                timeout=self._timeout,
            )
        except WebPushException as e:
            status = e.response.status_code if e.response is not None else None
            if status in GONE_STATUS_CODES:
                logger.info(
                    f"Push endpoint gone ({status}) for patient {subscription.patient_id}: "
                    f"{_short(subscription.endpoint)}"
                )
                return ChannelResult(DeliveryOutcome.ENDPOINT_INVALID, status_code=status, detail=str(e))
            logger.warning(
                f"Push failed for patient {subscription.patient_id} "
                f"(status={status}): {e}"
            )
            return ChannelResult(DeliveryOutcome.TRANSPORT_ERROR, status_code=status, detail=str(e))
        except Exception as e:
            logger.error(f"Failed to send push notification to patient {subscription.patient_id}: {e}")
            return ChannelResult(DeliveryOutcome.TRANSPORT_ERROR, detail=str(e))

        logger.info(f"Push notification '{payload.tag}' sent to {_short(subscription.endpoint)}")
        return ChannelResult(DeliveryOutcome.SENT)
