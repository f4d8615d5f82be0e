"""Pydantic schemas for Document API."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from docnotes.config import settings
from docnotes.models.document import DocumentCategory, DocumentStatus


class UploadRequest(BaseModel):
    """Metadata for a document about to be uploaded to object storage."""

    patient_id: uuid.UUID
    medical_record_id: Optional[uuid.UUID] = None
    name: str = Field(..., min_length=1, max_length=255)
    category: DocumentCategory
    mime_type: str = Field(..., min_length=1, max_length=100)
    size_bytes: int = Field(..., gt=0, le=settings.max_document_size)
    notes: Optional[str] = None


class UploadTicket(BaseModel):
    """Presigned PUT target plus the id of the ``uploading`` row."""

    document_id: uuid.UUID
    upload_url: str
    s3_key: str


class DocumentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    category: Optional[DocumentCategory] = None
    notes: Optional[str] = None


class DocumentResponse(BaseModel):
    """Response schema for document."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    patient_id: uuid.UUID
    medical_record_id: Optional[uuid.UUID] = None
    name: str
    category: DocumentCategory
    mime_type: str
    size_bytes: int
    s3_key: str
    status: DocumentStatus
    notes: Optional[str] = None
    uploaded_by: uuid.UUID
    created_at: datetime
    updated_at: datetime


class DownloadUrlResponse(BaseModel):
    url: str
    name: str
    mime_type: str


class DocumentDeleteResponse(BaseModel):
    deleted: bool = True
