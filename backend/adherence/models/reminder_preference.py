"""ReminderPreference model - when a patient wants the routine "log now" push."""
from sqlalchemy import Column, Integer, String, DateTime

from ..database import Base
from ..utils.time import utcnow


class ReminderPreference(Base):
    """Preferred logging hour for a patient. One row per patient."""

    __tablename__ = "reminder_preferences"

    patient_id = Column(String, primary_key=True)
    vital_type = Column(String, nullable=False, default="blood_pressure")  # blood_pressure, blood_sugar, medication
    preferred_hour = Column(Integer, nullable=False)  # 0-23, UTC
    enabled = Column(Integer, default=1)  # 0 or 1
    suggested_value = Column(String, nullable=True)  # seeds the one-tap "log this value" action
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
