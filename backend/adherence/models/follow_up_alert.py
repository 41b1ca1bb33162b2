"""FollowUpAlert model - clinician-facing signal raised when escalation is exhausted."""
from sqlalchemy import Column, Integer, String, DateTime, Date, UniqueConstraint

from ..database import Base
from ..utils.time import utcnow


class FollowUpAlert(Base):
    """Patient needs a human follow-up after the day 5 reminder went unanswered."""

    __tablename__ = "follow_up_alerts"
    __table_args__ = (
        UniqueConstraint("patient_id", "cycle_start_date", name="uq_follow_up_patient_cycle"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    patient_id = Column(String, nullable=False, index=True)
    cycle_start_date = Column(Date, nullable=False)
    title = Column(String, nullable=False)
    description = Column(String, nullable=True)
    status = Column(String, default="open")  # open, closed
    created_at = Column(DateTime, default=utcnow)
