"""ReminderToken model - short-lived action capability carried in push payloads."""
from sqlalchemy import Column, Integer, String, DateTime, Date

from ..database import Base
from ..utils.time import utcnow


class ReminderToken(Base):
    """Opaque token the client hands back when the patient acts on a reminder."""

    __tablename__ = "reminder_tokens"

    token = Column(String, primary_key=True)
    patient_id = Column(String, nullable=False, index=True)
    kind = Column(String, nullable=False)  # routine, escalation
    vital_type = Column(String, nullable=False)
    value_text = Column(String, nullable=True)
    cycle_start_date = Column(Date, nullable=True)  # escalation tokens only
    day_bucket = Column(Integer, nullable=True)  # escalation tokens only
    expires_at = Column(DateTime, nullable=False, index=True)
    acknowledged_at = Column(DateTime, nullable=True)
    ack_action = Column(String, nullable=True)
    used_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
