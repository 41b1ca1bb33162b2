"""PatientContact model - WhatsApp delivery endpoint for a patient."""
from sqlalchemy import Column, String, DateTime

from ..database import Base
from ..utils.time import utcnow


class PatientContact(Base):
    """Phone number and display name used for WhatsApp reminders."""

    __tablename__ = "patient_contacts"

    patient_id = Column(String, primary_key=True)
    whatsapp_phone = Column(String, nullable=True)
    full_name = Column(String, nullable=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
