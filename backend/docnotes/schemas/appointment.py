import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from docnotes.models.appointment import AppointmentStatus, AppointmentType


class AppointmentCreate(BaseModel):
    """New appointments always start as ``scheduled``."""

    patient_id: uuid.UUID
    provider_id: uuid.UUID
    type: AppointmentType
    scheduled_at: datetime
    duration_minutes: int = Field(15, gt=0)
    reason: Optional[str] = Field(None, max_length=500)
    notes: Optional[str] = None


class AppointmentUpdate(BaseModel):
    type: Optional[AppointmentType] = None
    status: Optional[AppointmentStatus] = None
    scheduled_at: Optional[datetime] = None
    duration_minutes: Optional[int] = Field(None, gt=0)
    reason: Optional[str] = Field(None, max_length=500)
    notes: Optional[str] = None


class AppointmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    patient_id: uuid.UUID
    provider_id: uuid.UUID
    type: AppointmentType
    status: AppointmentStatus
    scheduled_at: datetime
    duration_minutes: int
    reason: Optional[str] = None
    notes: Optional[str] = None
    created_by: uuid.UUID
    created_at: datetime
    updated_at: datetime
