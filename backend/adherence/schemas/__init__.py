"""Pydantic schemas for API request/response models."""
from .triggers import TriggerSummary
from .push import (
    PushKeys,
    PushSubscriptionIn,
    PushSubscribeRequest,
    PushSubscribeStatus,
)
from .reminders import (
    ReminderPreferenceUpdate,
    ReminderPreferenceResponse,
    ContactUpdate,
    ContactResponse,
    AckRequest,
    AckResponse,
    QuickLogRequest,
    QuickLogResponse,
    FollowUpAlertResponse,
)

__all__ = [
    "TriggerSummary",
    "PushKeys",
    "PushSubscriptionIn",
    "PushSubscribeRequest",
    "PushSubscribeStatus",
    "ReminderPreferenceUpdate",
    "ReminderPreferenceResponse",
    "ContactUpdate",
    "ContactResponse",
    "AckRequest",
    "AckResponse",
    "QuickLogRequest",
    "QuickLogResponse",
    "FollowUpAlertResponse",
]
