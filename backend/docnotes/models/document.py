import uuid
from enum import StrEnum

from sqlalchemy import BigInteger, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from docnotes.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class DocumentCategory(StrEnum):
    lab_report = "lab_report"
    imaging = "imaging"
    prescription = "prescription"
    referral_letter = "referral_letter"
    consent_form = "consent_form"
    insurance = "insurance"
    clinical_photo = "clinical_photo"
    other = "other"


class DocumentStatus(StrEnum):
    uploading = "uploading"
    active = "active"
    archived = "archived"


class Document(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Attachment metadata; the payload lives in object storage under ``s3_key``.

    Lifecycle: uploading -> active (confirm) -> archived (archive).
    """

    __tablename__ = "documents"

    patient_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("patients.id"), index=True, nullable=False
    )
    medical_record_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("medical_records.id"), index=True, nullable=True
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(50), index=True, nullable=False)
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)
    size_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False)
    s3_key: Mapped[str] = mapped_column(String(1024), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=DocumentStatus.uploading.value,
        server_default=DocumentStatus.uploading.value,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    uploaded_by: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )

    __table_args__ = (Index("ix_documents_s3_key", "s3_key"),)

    def __repr__(self) -> str:
        return f"<Document(id={self.id}, name='{self.name}', status={self.status})>"
