import uuid
from enum import StrEnum
from typing import Any

from sqlalchemy import ForeignKey, Integer, String, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from docnotes.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class RecordType(StrEnum):
    visit_note = "visit_note"
    lab_result = "lab_result"
    prescription = "prescription"
    referral = "referral"
    procedure = "procedure"
    imaging = "imaging"
    document = "document"


class MedicalRecord(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """One immutable version of a clinical record.

    Versions of the same logical record share ``lineage_id`` (the id of
    version 1) and link back through ``parent_id``. An edit inserts a new row
    with ``version = parent.version + 1``; existing rows are never updated.
    """

    __tablename__ = "medical_records"

    patient_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("patients.id"), index=True, nullable=False
    )
    type: Mapped[str] = mapped_column(String(50), index=True, nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    content: Mapped[dict[str, Any] | None] = mapped_column(
        JSONB, nullable=True, comment="SOAP sections: subjective, objective, assessment, plan"
    )
    vitals: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)
    diagnoses: Mapped[list[str]] = mapped_column(
        JSONB, nullable=False, default=list, server_default="[]"
    )

    version: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1, server_default="1"
    )
    parent_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("medical_records.id"), index=True, nullable=True
    )
    lineage_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True, nullable=False)

    created_by: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), index=True, nullable=False
    )

    def __repr__(self) -> str:
        return f"<MedicalRecord(id={self.id}, lineage_id={self.lineage_id}, version={self.version})>"


class MedicalRecordHead(Base):
    """Current-version pointer for each record lineage."""

    __tablename__ = "medical_record_heads"

    lineage_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    record_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("medical_records.id"), unique=True, nullable=False
    )

    def __repr__(self) -> str:
        return f"<MedicalRecordHead(lineage_id={self.lineage_id}, record_id={self.record_id})>"
