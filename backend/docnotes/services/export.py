"""Load patient/record rows and render them to PDF."""

from __future__ import annotations

import base64
import uuid
from dataclasses import dataclass
from typing import Optional

from docnotes.config import settings
from docnotes.services.patients import PatientRepository
from docnotes.services.pdf import (
    patient_snapshot,
    record_filename,
    record_snapshot,
    render_medical_record_pdf,
    render_patient_summary_pdf,
    summary_filename,
)
from docnotes.services.records import RecordRepository


@dataclass
class RenderedPdf:
    content: bytes
    filename: str
    patient_id: uuid.UUID

    @property
    def base64(self) -> str:
        return base64.b64encode(self.content).decode("ascii")


class PdfExporter:
    """Returns ``None`` when the patient or record is missing."""

    def __init__(
        self,
        patients: PatientRepository,
        records: RecordRepository,
        record_limit: int = settings.share_summary_record_limit,
    ):
        self.patients = patients
        self.records = records
        self.record_limit = record_limit

    async def patient_summary(self, patient_id: uuid.UUID) -> Optional[RenderedPdf]:
        patient = await self.patients.get_patient(patient_id)
        if patient is None:
            return None
        records = await self.records.recent_for_patient(patient_id, self.record_limit)
        snapshot = patient_snapshot(patient)
        content = render_patient_summary_pdf(
            snapshot, [record_snapshot(r) for r in records]
        )
        return RenderedPdf(content, summary_filename(snapshot), patient.id)

    async def medical_record(self, record_id: uuid.UUID) -> Optional[RenderedPdf]:
        record = await self.records.get_record(record_id)
        if record is None:
            return None
        patient = await self.patients.get_patient(record.patient_id)
        if patient is None:
            return None
        snapshot = patient_snapshot(patient)
        rendered = record_snapshot(record)
        content = render_medical_record_pdf(snapshot, rendered)
        return RenderedPdf(content, record_filename(snapshot, rendered), patient.id)
