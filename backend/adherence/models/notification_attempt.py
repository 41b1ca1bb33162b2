"""NotificationAttempt model - log of delivery tries, keyed for idempotency."""
from sqlalchemy import Column, Integer, String, DateTime

from ..database import Base
from ..utils.time import utcnow


class NotificationAttempt(Base):
    """One delivery try through one channel.

    The idempotency key is unique, so a trigger fired twice in the same
    window finds the earlier row instead of sending again.
    """

    __tablename__ = "notification_attempts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    idempotency_key = Column(String, unique=True, nullable=False, index=True)
    patient_id = Column(String, nullable=False, index=True)
    channel = Column(String, nullable=False)  # push, whatsapp
    kind = Column(String, nullable=False)  # routine, escalation
    template_or_payload_id = Column(String, nullable=True)  # push tag or WhatsApp template name
    outcome = Column(String, nullable=False)  # sent, channel_not_configured, endpoint_invalid, transport_error
    detail = Column(String, nullable=True)
    retry_count = Column(Integer, default=0)
    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
