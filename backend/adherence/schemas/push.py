"""Push subscription schemas for API."""
from typing import Optional
from pydantic import BaseModel, Field


class PushKeys(BaseModel):
    p256dh: str = Field(..., min_length=1)
    auth: str = Field(..., min_length=1)


class PushSubscriptionIn(BaseModel):
    """Browser PushSubscription.toJSON() shape."""
    endpoint: str = Field(..., min_length=1)
    keys: PushKeys


class PushSubscribeRequest(BaseModel):
    subscription: PushSubscriptionIn


class PushSubscribeStatus(BaseModel):
    subscribed: bool
    endpoint: Optional[str] = None
