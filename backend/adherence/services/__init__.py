"""Services for reminder delivery, escalation, and scheduling."""
from .acknowledgment import AcknowledgmentHandler
from .compliance import LogCompletionOracle
from .dispatcher import ReminderDispatcher
from .escalation import EscalationEngine
from .push_sender import PushChannel
from .routine import RoutinePushService
from .scheduler import SchedulerService
from .subscription_store import SubscriptionStore
from .triggers import TriggerService
from .whatsapp_sender import WhatsAppChannel

__all__ = [
    "AcknowledgmentHandler",
    "LogCompletionOracle",
    "ReminderDispatcher",
    "EscalationEngine",
    "PushChannel",
    "RoutinePushService",
    "SchedulerService",
    "SubscriptionStore",
    "TriggerService",
    "WhatsAppChannel",
]
