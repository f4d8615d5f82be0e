import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from docnotes.models.medical_record import RecordType


class SOAPNote(BaseModel):
    """Subjective / Objective / Assessment / Plan sections, all optional."""

    subjective: Optional[str] = None
    objective: Optional[str] = None
    assessment: Optional[str] = None
    plan: Optional[str] = None


class Vitals(BaseModel):
    blood_pressure_systolic: Optional[int] = Field(None, gt=0)
    blood_pressure_diastolic: Optional[int] = Field(None, gt=0)
    heart_rate: Optional[int] = Field(None, gt=0)
    temperature: Optional[float] = Field(None, gt=0)
    weight: Optional[float] = Field(None, gt=0)
    height: Optional[float] = Field(None, gt=0)
    oxygen_saturation: Optional[float] = Field(None, ge=0, le=100)
    respiratory_rate: Optional[int] = Field(None, gt=0)


class RecordCreate(BaseModel):
    """Schema for creating a new medical record (version 1)."""

    patient_id: uuid.UUID
    type: RecordType
    title: str = Field(..., min_length=1, max_length=500)
    content: Optional[SOAPNote] = None
    vitals: Optional[Vitals] = None
    diagnoses: list[str] = Field(default_factory=list)


class RecordUpdate(BaseModel):
    """Changes for the next version. Unset fields carry over from the parent."""

    title: Optional[str] = Field(None, min_length=1, max_length=500)
    content: Optional[SOAPNote] = None
    vitals: Optional[Vitals] = None
    diagnoses: Optional[list[str]] = None


class RecordResponse(BaseModel):
    """Schema for medical record response."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    patient_id: uuid.UUID
    type: RecordType
    title: str
    content: Optional[SOAPNote] = None
    vitals: Optional[Vitals] = None
    diagnoses: list[str] = Field(default_factory=list)
    version: int
    parent_id: Optional[uuid.UUID] = None
    lineage_id: uuid.UUID
    created_by: uuid.UUID
    created_at: datetime
    updated_at: datetime
