"""Database models."""
from .push_subscription import PushSubscription
from .reminder_preference import ReminderPreference
from .patient_contact import PatientContact
from .escalation_state import EscalationState
from .notification_attempt import NotificationAttempt
from .reminder_token import ReminderToken
from .follow_up_alert import FollowUpAlert
from .health_log import HealthLogEntry

__all__ = [
    "PushSubscription",
    "ReminderPreference",
    "PatientContact",
    "EscalationState",
    "NotificationAttempt",
    "ReminderToken",
    "FollowUpAlert",
    "HealthLogEntry",
]
