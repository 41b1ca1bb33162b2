"""Reminder copy for routine and escalation notifications."""
from typing import Optional

VITAL_LABELS = {
    "blood_pressure": "blood pressure",
    "blood_sugar": "blood sugar",
    "medication": "medication",
}

ESCALATION_COPY = {
    1: (
        "Reminder: log your {label}",
        "Don't forget to log your {label} today. It only takes a moment.",
    ),
    2: (
        "We noticed you haven't logged your {label}",
        "Logging regularly helps your doctor care for you. Tap to log now.",
    ),
    3: (
        "Important: please log your {label}",
        "Your care team is here if you need help. Log your {label} when you can.",
    ),
    5: (
        "Your care team is waiting on your {label}",
        "It has been 5 days since your last {label} entry. Please log it today or contact your clinic.",
    ),
}


def vital_label(vital_type: str) -> str:
    return VITAL_LABELS.get(vital_type, vital_type.replace("_", " "))


def routine_copy(vital_type: str, value: Optional[str] = None) -> tuple[str, str]:
    label = vital_label(vital_type)
    title = f"Log your {label} now"
    if value:
        return title, f"Tap to log {value}"
    return title, f"It's time to log your {label}."


def escalation_copy(vital_type: str, bucket: int) -> tuple[str, str]:
    label = vital_label(vital_type)
    title, body = ESCALATION_COPY[bucket]
    return title.format(label=label), body.format(label=label)


def follow_up_copy(vital_type: str, patient_name: Optional[str]) -> tuple[str, str]:
    label = vital_label(vital_type)
    title = f"Reminder escalation: {label} not logged for 5 days"
    description = (
        f"{patient_name or 'Patient'} has not logged {label} for 5 days despite reminders. "
        "Consider contacting the patient or their emergency contact."
    )
    return title, description
