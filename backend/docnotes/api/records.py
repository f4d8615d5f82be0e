from typing import Annotated, Any, Optional
import uuid

from fastapi import APIRouter, Depends, Query

from docnotes.api.deps import (
    CurrentSession,
    Pagination,
    get_audit_sink,
    get_patient_repo,
    get_record_repo,
    pagination,
)
from docnotes.exceptions import NotFoundError
from docnotes.models import AuditAction, AuditResource, RecordType
from docnotes.schemas.common import Page
from docnotes.schemas.medical_record import RecordCreate, RecordResponse, RecordUpdate
from docnotes.services.audit import AuditSink
from docnotes.services.patients import PatientRepository
from docnotes.services.records import RecordRepository

router = APIRouter(prefix="/records", tags=["Medical Records"])

Records = Annotated[RecordRepository, Depends(get_record_repo)]
Patients = Annotated[PatientRepository, Depends(get_patient_repo)]
Audit = Annotated[AuditSink, Depends(get_audit_sink)]


def _record_fields(data: RecordCreate | RecordUpdate) -> dict[str, Any]:
    fields = data.model_dump(exclude_unset=True, exclude={"content", "vitals"})
    # An explicit null clears the section; an omitted one is left out.
    for name in ("content", "vitals"):
        if name in data.model_fields_set:
            section = getattr(data, name)
            fields[name] = None if section is None else section.model_dump(exclude_none=True)
    return fields


@router.get("/", response_model=Page[RecordResponse])
async def list_records(
    _session: CurrentSession,
    repo: Records,
    patient_id: uuid.UUID = Query(..., description="Patient whose records to list"),
    type: Optional[RecordType] = Query(None, description="Filter by record type"),
    page: Pagination = Depends(pagination),
):
    """Current version of each of a patient's records, newest first."""
    records, total = await repo.list_records(patient_id, type, page.skip, page.limit)
    return Page[RecordResponse](
        items=[RecordResponse.model_validate(r) for r in records],
        total=total,
        page=page.page,
        limit=page.limit,
    )


@router.post("/", response_model=RecordResponse, status_code=201)
async def create_record(
    record: RecordCreate,
    context: CurrentSession,
    repo: Records,
    patients: Patients,
    audit: Audit,
):
    """Create version 1 of a new record."""
    if await patients.get_patient(record.patient_id) is None:
        raise NotFoundError("Patient not found")
    new_record = await repo.create_record(_record_fields(record), context.user_id)
    audit.record(context.event(AuditAction.create, AuditResource.medical_record, new_record.id))
    return RecordResponse.model_validate(new_record)


@router.get("/lineage/{lineage_id}/latest", response_model=RecordResponse)
async def get_latest_version(lineage_id: uuid.UUID, _session: CurrentSession, repo: Records):
    record = await repo.latest(lineage_id)
    if record is None:
        raise NotFoundError("Record not found")
    return RecordResponse.model_validate(record)


@router.get("/lineage/{lineage_id}/history", response_model=list[RecordResponse])
async def get_history(lineage_id: uuid.UUID, _session: CurrentSession, repo: Records):
    """All versions of a record, oldest first."""
    records = await repo.history(lineage_id)
    if not records:
        raise NotFoundError("Record not found")
    return [RecordResponse.model_validate(r) for r in records]


@router.get("/{record_id}", response_model=RecordResponse)
async def get_record(record_id: uuid.UUID, _session: CurrentSession, repo: Records):
    """Get a specific record version by ID."""
    record = await repo.get_record(record_id)
    if record is None:
        raise NotFoundError("Record not found")
    return RecordResponse.model_validate(record)


@router.put("/{record_id}", response_model=RecordResponse)
async def update_record(
    record_id: uuid.UUID,
    changes: RecordUpdate,
    context: CurrentSession,
    repo: Records,
    audit: Audit,
):
    """Append a new version after ``record_id``; the old row is left as is.

    Only the current version of a lineage can be edited; anything older
    answers 409.
    """
    parent = await repo.get_record(record_id)
    if parent is None:
        raise NotFoundError("Record not found")
    new_record = await repo.create_version(parent, _record_fields(changes), context.user_id)
    audit.record(context.event(AuditAction.update, AuditResource.medical_record, new_record.id))
    return RecordResponse.model_validate(new_record)
