"""PushSubscription model - web push endpoints registered by patients."""
from sqlalchemy import Column, Integer, String, DateTime, UniqueConstraint

from ..database import Base
from ..utils.time import utcnow


class PushSubscription(Base):
    """A browser or mobile push registration for one patient."""

    __tablename__ = "push_subscriptions"
    __table_args__ = (
        UniqueConstraint("patient_id", "endpoint", name="uq_push_subscription_patient_endpoint"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    patient_id = Column(String, nullable=False, index=True)
    endpoint = Column(String, nullable=False)
    p256dh = Column(String, nullable=False)
    auth = Column(String, nullable=False)
    user_agent = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    def subscription_info(self) -> dict:
        """Subscription in the shape the push transport expects."""
        return {
            "endpoint": self.endpoint,
            "keys": {"p256dh": self.p256dh, "auth": self.auth},
        }
