from typing import Annotated
import uuid

from fastapi import APIRouter, Depends

from docnotes.api.deps import (
    CurrentSession,
    get_audit_sink,
    get_patient_repo,
    get_record_repo,
)
from docnotes.config import settings
from docnotes.exceptions import NotFoundError
from docnotes.models import AuditAction, AuditResource
from docnotes.schemas.export import PdfExport
from docnotes.services.audit import AuditSink
from docnotes.services.export import PdfExporter
from docnotes.services.patients import PatientRepository
from docnotes.services.records import RecordRepository

router = APIRouter(prefix="/export", tags=["Export"])


def get_exporter(
    patients: Annotated[PatientRepository, Depends(get_patient_repo)],
    records: Annotated[RecordRepository, Depends(get_record_repo)],
) -> PdfExporter:
    return PdfExporter(patients, records, settings.share_summary_record_limit)


Exporter = Annotated[PdfExporter, Depends(get_exporter)]
Audit = Annotated[AuditSink, Depends(get_audit_sink)]


@router.post("/patients/{patient_id}/summary", response_model=PdfExport)
async def export_patient_summary(
    patient_id: uuid.UUID,
    context: CurrentSession,
    exporter: Exporter,
    audit: Audit,
):
    """Render the patient summary PDF and return it base64-encoded."""
    pdf = await exporter.patient_summary(patient_id)
    if pdf is None:
        raise NotFoundError("Patient not found")
    audit.record(context.event(AuditAction.export, AuditResource.patient, patient_id))
    return PdfExport(base64=pdf.base64, filename=pdf.filename)


@router.post("/records/{record_id}", response_model=PdfExport)
async def export_medical_record(
    record_id: uuid.UUID,
    context: CurrentSession,
    exporter: Exporter,
    audit: Audit,
):
    pdf = await exporter.medical_record(record_id)
    if pdf is None:
        raise NotFoundError("Record not found")
    audit.record(context.event(AuditAction.export, AuditResource.medical_record, record_id))
    return PdfExport(base64=pdf.base64, filename=pdf.filename)
