from typing import Annotated

from fastapi import APIRouter, Depends

from docnotes.api.deps import (
    CurrentSession,
    get_appointment_repo,
    get_patient_repo,
    get_record_repo,
)
from docnotes.schemas.appointment import AppointmentResponse
from docnotes.schemas.dashboard import DashboardStats
from docnotes.services.appointments import AppointmentRepository
from docnotes.services.dashboard import collect_stats
from docnotes.services.patients import PatientRepository
from docnotes.services.records import RecordRepository

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get("/stats", response_model=DashboardStats)
async def get_stats(
    _session: CurrentSession,
    patients: Annotated[PatientRepository, Depends(get_patient_repo)],
    appointments: Annotated[AppointmentRepository, Depends(get_appointment_repo)],
    records: Annotated[RecordRepository, Depends(get_record_repo)],
):
    """Headline counts and today's first appointments."""
    snapshot = await collect_stats(patients, appointments, records)
    return DashboardStats(
        total_patients=snapshot.total_patients,
        today_appointments=snapshot.today_appointments,
        records_this_week=snapshot.records_this_week,
        today_schedule=[AppointmentResponse.model_validate(a) for a in snapshot.today_schedule],
    )
