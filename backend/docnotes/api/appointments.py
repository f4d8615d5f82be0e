from datetime import datetime
from typing import Annotated, Optional
import uuid

from fastapi import APIRouter, Depends, Query

from docnotes.api.deps import (
    CurrentSession,
    Pagination,
    get_appointment_repo,
    get_audit_sink,
    get_patient_repo,
    pagination,
)
from docnotes.exceptions import NotFoundError
from docnotes.models import Appointment, AppointmentStatus, AuditAction, AuditResource
from docnotes.schemas.appointment import (
    AppointmentCreate,
    AppointmentResponse,
    AppointmentUpdate,
)
from docnotes.schemas.common import Page
from docnotes.services.appointments import AppointmentFilters, AppointmentRepository
from docnotes.services.audit import AuditSink
from docnotes.services.patients import PatientRepository

router = APIRouter(prefix="/appointments", tags=["Appointments"])

Appointments = Annotated[AppointmentRepository, Depends(get_appointment_repo)]
Patients = Annotated[PatientRepository, Depends(get_patient_repo)]
Audit = Annotated[AuditSink, Depends(get_audit_sink)]


async def get_appointment_or_404(
    repo: AppointmentRepository, appointment_id: uuid.UUID
) -> Appointment:
    appointment = await repo.get_appointment(appointment_id)
    if appointment is None:
        raise NotFoundError("Appointment not found")
    return appointment


@router.get("/", response_model=Page[AppointmentResponse])
async def list_appointments(
    _session: CurrentSession,
    repo: Appointments,
    provider_id: Optional[uuid.UUID] = Query(None),
    patient_id: Optional[uuid.UUID] = Query(None),
    status: Optional[AppointmentStatus] = Query(None),
    date_from: Optional[datetime] = Query(None, alias="from"),
    date_to: Optional[datetime] = Query(None, alias="to"),
    page: Pagination = Depends(pagination),
):
    """List appointments, latest first."""
    filters = AppointmentFilters(
        provider_id=provider_id,
        patient_id=patient_id,
        status=status.value if status else None,
        date_from=date_from,
        date_to=date_to,
    )
    appointments, total = await repo.list_appointments(filters, page.skip, page.limit)
    return Page[AppointmentResponse](
        items=[AppointmentResponse.model_validate(a) for a in appointments],
        total=total,
        page=page.page,
        limit=page.limit,
    )


@router.post("/", response_model=AppointmentResponse, status_code=201)
async def create_appointment(
    data: AppointmentCreate,
    context: CurrentSession,
    repo: Appointments,
    patients: Patients,
    audit: Audit,
):
    """Book an appointment. Overlaps are not checked."""
    if await patients.get_patient(data.patient_id) is None:
        raise NotFoundError("Patient not found")
    appointment = await repo.create_appointment(data.model_dump(), context.user_id)
    audit.record(context.event(AuditAction.create, AuditResource.appointment, appointment.id))
    return AppointmentResponse.model_validate(appointment)


@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(appointment_id: uuid.UUID, _session: CurrentSession, repo: Appointments):
    return AppointmentResponse.model_validate(await get_appointment_or_404(repo, appointment_id))


@router.patch("/{appointment_id}", response_model=AppointmentResponse)
async def update_appointment(
    appointment_id: uuid.UUID,
    changes: AppointmentUpdate,
    context: CurrentSession,
    repo: Appointments,
    audit: Audit,
):
    """Partial update; ``status`` may be set to any value."""
    appointment = await get_appointment_or_404(repo, appointment_id)
    fields = {
        field: value
        for field, value in changes.model_dump(exclude_unset=True).items()
        if value is not None or field in ("reason", "notes")
    }
    appointment = await repo.update_appointment(appointment, fields)
    audit.record(context.event(AuditAction.update, AuditResource.appointment, appointment.id))
    return AppointmentResponse.model_validate(appointment)


@router.post("/{appointment_id}/cancel", response_model=AppointmentResponse)
async def cancel_appointment(
    appointment_id: uuid.UUID,
    context: CurrentSession,
    repo: Appointments,
    audit: Audit,
):
    appointment = await get_appointment_or_404(repo, appointment_id)
    appointment = await repo.update_appointment(
        appointment, {"status": AppointmentStatus.cancelled.value}
    )
    audit.record(context.event(AuditAction.delete, AuditResource.appointment, appointment.id))
    return AppointmentResponse.model_validate(appointment)
