from typing import Annotated, Optional
import uuid

from fastapi import APIRouter, Depends, Query

from docnotes.api.deps import (
    CurrentSession,
    Pagination,
    get_audit_sink,
    get_patient_repo,
    pagination,
)
from docnotes.exceptions import NotFoundError
from docnotes.models import AuditAction, AuditResource, Patient
from docnotes.schemas.common import Page
from docnotes.schemas.patient import PatientCreate, PatientResponse, PatientUpdate
from docnotes.services.audit import AuditSink
from docnotes.services.patients import PatientRepository

router = APIRouter(prefix="/patients", tags=["Patients"])

Patients = Annotated[PatientRepository, Depends(get_patient_repo)]
Audit = Annotated[AuditSink, Depends(get_audit_sink)]

REQUIRED_FIELDS = {
    "first_name",
    "last_name",
    "date_of_birth",
    "gender",
    "allergies",
    "active_conditions",
}


async def get_patient_or_404(repo: PatientRepository, patient_id: uuid.UUID) -> Patient:
    patient = await repo.get_patient(patient_id)
    if patient is None:
        raise NotFoundError("Patient not found")
    return patient


@router.get("/", response_model=Page[PatientResponse])
async def list_patients(
    _session: CurrentSession,
    repo: Patients,
    query: Optional[str] = Query(None, max_length=255, description="Name, email or phone"),
    page: Pagination = Depends(pagination),
):
    """List active patients, most recently updated first."""
    patients, total = await repo.list_patients(query, page.skip, page.limit)
    return Page[PatientResponse](
        items=[PatientResponse.model_validate(p) for p in patients],
        total=total,
        page=page.page,
        limit=page.limit,
    )


@router.post("/", response_model=PatientResponse, status_code=201)
async def create_patient(
    patient_data: PatientCreate,
    context: CurrentSession,
    repo: Patients,
    audit: Audit,
):
    """Create a new patient."""
    patient = await repo.create_patient(patient_data.model_dump(), context.user_id)
    audit.record(context.event(AuditAction.create, AuditResource.patient, patient.id))
    return PatientResponse.model_validate(patient)


@router.get("/{patient_id}", response_model=PatientResponse)
async def get_patient(patient_id: uuid.UUID, _session: CurrentSession, repo: Patients):
    """Get a patient by ID."""
    return PatientResponse.model_validate(await get_patient_or_404(repo, patient_id))


@router.patch("/{patient_id}", response_model=PatientResponse)
async def update_patient(
    patient_id: uuid.UUID,
    patient_data: PatientUpdate,
    context: CurrentSession,
    repo: Patients,
    audit: Audit,
):
    """Update only the fields that were sent."""
    patient = await get_patient_or_404(repo, patient_id)
    changes = {
        field: value
        for field, value in patient_data.model_dump(exclude_unset=True).items()
        if value is not None or field not in REQUIRED_FIELDS
    }
    patient = await repo.update_patient(patient, changes)
    audit.record(context.event(AuditAction.update, AuditResource.patient, patient.id))
    return PatientResponse.model_validate(patient)


@router.post("/{patient_id}/archive", response_model=PatientResponse)
async def archive_patient(
    patient_id: uuid.UUID,
    context: CurrentSession,
    repo: Patients,
    audit: Audit,
):
    """Soft-delete: the patient disappears from listings but keeps its history."""
    patient = await get_patient_or_404(repo, patient_id)
    patient = await repo.update_patient(patient, {"is_active": False})
    audit.record(context.event(AuditAction.delete, AuditResource.patient, patient.id))
    return PatientResponse.model_validate(patient)
