"""Outcome types shared by the delivery channels."""
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Channel(str, Enum):
    PUSH = "push"
    WHATSAPP = "whatsapp"


class DeliveryOutcome(str, Enum):
    """Result of one delivery try, as recorded on NotificationAttempt."""
    SENT = "sent"
    CHANNEL_NOT_CONFIGURED = "channel_not_configured"
    ENDPOINT_INVALID = "endpoint_invalid"
    TRANSPORT_ERROR = "transport_error"


# Outcomes a later tick may try again for the same idempotency key
RETRYABLE_OUTCOMES = frozenset({DeliveryOutcome.TRANSPORT_ERROR, DeliveryOutcome.ENDPOINT_INVALID})

# Outcomes counted as failures in trigger summaries
FAILED_OUTCOMES = frozenset({DeliveryOutcome.TRANSPORT_ERROR, DeliveryOutcome.ENDPOINT_INVALID})


@dataclass
class ChannelResult:
    """What a channel reports back for a single recipient."""
    outcome: DeliveryOutcome
    status_code: Optional[int] = None
    detail: Optional[str] = None

    @property
    def sent(self) -> bool:
        return self.outcome == DeliveryOutcome.SENT
