"""EscalationState model - the escalation cursor for a non-compliant patient."""
import json

from sqlalchemy import Column, Integer, String, DateTime, Date

from ..database import Base
from ..utils.time import utcnow


class EscalationState(Base):
    """Open escalation cycle. No row means the patient is compliant."""

    __tablename__ = "escalation_states"

    patient_id = Column(String, primary_key=True)
    cycle_start_date = Column(Date, nullable=False)
    current_day_bucket = Column(Integer, nullable=False, default=1)  # 1, 2, 3 or 5
    last_sent_at = Column(DateTime, nullable=True)
    acknowledged = Column(Integer, default=0)  # 0 or 1
    acknowledged_at = Column(DateTime, nullable=True)
    ack_action = Column(String, nullable=True)  # log, skip, open
    exhausted = Column(Integer, default=0)  # 1 once past day 5
    channel_attempts = Column(String, nullable=True)  # JSON: {"push": "sent", "whatsapp": "channel_not_configured"}
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    def get_channel_attempts(self) -> dict:
        if not self.channel_attempts:
            return {}
        try:
            return json.loads(self.channel_attempts)
        except json.JSONDecodeError:
            return {}

    def set_channel_attempts(self, attempts: dict):
        self.channel_attempts = json.dumps(attempts, sort_keys=True)
