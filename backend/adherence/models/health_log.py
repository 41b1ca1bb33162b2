"""HealthLogEntry model - minimal record of a patient's daily logging."""
from sqlalchemy import Column, Integer, String, DateTime

from ..database import Base
from ..utils.time import utcnow


class HealthLogEntry(Base):
    """A vital, food or medication log. Only existence per UTC day matters here."""

    __tablename__ = "health_log_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    patient_id = Column(String, nullable=False, index=True)
    kind = Column(String, nullable=False)  # vital, food, medication
    vital_type = Column(String, nullable=True)
    value_text = Column(String, nullable=True)
    source = Column(String, default="app")  # app, push, quick_log
    logged_at = Column(DateTime, default=utcnow, index=True)
