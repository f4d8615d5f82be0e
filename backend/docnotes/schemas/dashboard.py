from pydantic import BaseModel, Field

from docnotes.schemas.appointment import AppointmentResponse


class DashboardStats(BaseModel):
    total_patients: int = Field(..., ge=0, description="Active patients")
    today_appointments: int = Field(..., ge=0)
    records_this_week: int = Field(..., ge=0, description="Records created since Monday 00:00")
    today_schedule: list[AppointmentResponse] = Field(default_factory=list)
