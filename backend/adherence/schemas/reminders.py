"""Reminder preference, contact and acknowledgment schemas."""
from datetime import date, datetime
from typing import Optional, Literal
from pydantic import BaseModel, Field

VitalType = Literal["blood_pressure", "blood_sugar", "medication"]


class ReminderPreferenceUpdate(BaseModel):
    vital_type: VitalType = "blood_pressure"
    preferred_hour: int = Field(..., ge=0, le=23)  # UTC
    enabled: bool = True
    suggested_value: Optional[str] = Field(None, max_length=32)


class ReminderPreferenceResponse(BaseModel):
    patient_id: str
    vital_type: str
    preferred_hour: int
    enabled: bool
    suggested_value: Optional[str] = None


class ContactUpdate(BaseModel):
    whatsapp_phone: Optional[str] = Field(None, max_length=32)
    full_name: Optional[str] = Field(None, max_length=200)


class ContactResponse(BaseModel):
    patient_id: str
    whatsapp_phone: Optional[str] = None
    full_name: Optional[str] = None


class AckRequest(BaseModel):
    """Action taken on a notification, or "open" when the app was opened from it."""
    token: str = Field(..., min_length=1)
    action: Literal["log", "skip", "open"] = "open"


class AckResponse(BaseModel):
    ok: bool
    action: Optional[str] = None
    reason: Optional[str] = None
    redirect_url: Optional[str] = None
    vital_type: Optional[str] = None
    value: Optional[str] = None


class QuickLogRequest(BaseModel):
    token: str = Field(..., min_length=1)
    value: Optional[str] = Field(None, max_length=32)


class QuickLogResponse(BaseModel):
    ok: bool
    vital_type: Optional[str] = None
    value: Optional[str] = None


class FollowUpAlertResponse(BaseModel):
    id: int
    patient_id: str
    cycle_start_date: date
    title: str
    description: Optional[str] = None
    status: str
    created_at: datetime

    class Config:
        from_attributes = True
