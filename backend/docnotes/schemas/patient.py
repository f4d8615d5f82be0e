import uuid
from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from docnotes.models.patient import AllergySeverity, Gender

BloodType = Literal["A+", "A-", "B+", "B-", "AB+", "AB-", "O+", "O-"]


class Allergy(BaseModel):
    name: str = Field(..., min_length=1)
    severity: AllergySeverity
    reaction: Optional[str] = None


class PatientCreate(BaseModel):
    """Schema for creating a new patient."""

    first_name: str = Field(..., min_length=1, max_length=255)
    last_name: str = Field(..., min_length=1, max_length=255)
    date_of_birth: date
    gender: Gender
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = Field(None, max_length=500)
    emergency_contact_name: Optional[str] = Field(None, max_length=255)
    emergency_contact_phone: Optional[str] = Field(None, max_length=20)
    blood_type: Optional[BloodType] = None
    allergies: list[Allergy] = Field(default_factory=list)
    active_conditions: list[str] = Field(default_factory=list)
    notes: Optional[str] = None


class PatientUpdate(BaseModel):
    """Schema for updating a patient (all fields optional)."""

    first_name: Optional[str] = Field(None, min_length=1, max_length=255)
    last_name: Optional[str] = Field(None, min_length=1, max_length=255)
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = Field(None, max_length=500)
    emergency_contact_name: Optional[str] = Field(None, max_length=255)
    emergency_contact_phone: Optional[str] = Field(None, max_length=20)
    blood_type: Optional[BloodType] = None
    allergies: Optional[list[Allergy]] = None
    active_conditions: Optional[list[str]] = None
    notes: Optional[str] = None


class PatientResponse(BaseModel):
    """Schema for patient response."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    first_name: str
    last_name: str
    full_name: str
    date_of_birth: date
    age: Optional[int] = None
    gender: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    blood_type: Optional[str] = None
    allergies: list[Allergy] = Field(default_factory=list)
    active_conditions: list[str] = Field(default_factory=list)
    notes: Optional[str] = None
    is_active: bool
    created_by: uuid.UUID
    created_at: datetime
    updated_at: datetime
