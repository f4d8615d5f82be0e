from typing import Annotated, Optional
import uuid

from fastapi import APIRouter, Depends, Query

from docnotes.api.deps import (
    CurrentSession,
    Pagination,
    get_audit_sink,
    get_document_service,
    get_patient_repo,
    pagination,
)
from docnotes.exceptions import NotFoundError
from docnotes.models import AuditAction, AuditResource, DocumentCategory
from docnotes.schemas.common import Page
from docnotes.schemas.document import (
    DocumentDeleteResponse,
    DocumentResponse,
    DocumentUpdate,
    DownloadUrlResponse,
    UploadRequest,
    UploadTicket,
)
from docnotes.services.audit import AuditSink
from docnotes.services.documents import DocumentService
from docnotes.services.patients import PatientRepository

router = APIRouter(prefix="/documents", tags=["Documents"])

Documents = Annotated[DocumentService, Depends(get_document_service)]
Patients = Annotated[PatientRepository, Depends(get_patient_repo)]
Audit = Annotated[AuditSink, Depends(get_audit_sink)]


@router.get("/", response_model=Page[DocumentResponse])
async def list_documents(
    _session: CurrentSession,
    service: Documents,
    patient_id: uuid.UUID = Query(...),
    medical_record_id: Optional[uuid.UUID] = Query(None),
    category: Optional[DocumentCategory] = Query(None),
    page: Pagination = Depends(pagination),
):
    """List a patient's documents. Abandoned uploads are left out."""
    documents, total = await service.list(
        patient_id, medical_record_id, category, page.skip, page.limit
    )
    return Page[DocumentResponse](
        items=[DocumentResponse.model_validate(d) for d in documents],
        total=total,
        page=page.page,
        limit=page.limit,
    )


@router.post("/upload", response_model=UploadTicket, status_code=201)
async def request_upload(
    data: UploadRequest,
    context: CurrentSession,
    service: Documents,
    patients: Patients,
    audit: Audit,
):
    """Reserve a document row and return a presigned PUT URL for the payload."""
    if await patients.get_patient(data.patient_id) is None:
        raise NotFoundError("Patient not found")
    document, upload_url = await service.request_upload(data.model_dump(), context.user_id)
    audit.record(context.event(AuditAction.create, AuditResource.document, document.id))
    return UploadTicket(document_id=document.id, upload_url=upload_url, s3_key=document.s3_key)


@router.get("/{document_id}", response_model=DocumentResponse)
async def get_document(document_id: uuid.UUID, _session: CurrentSession, service: Documents):
    return DocumentResponse.model_validate(await service.get(document_id))


@router.post("/{document_id}/confirm", response_model=DocumentResponse)
async def confirm_upload(
    document_id: uuid.UUID,
    context: CurrentSession,
    service: Documents,
    audit: Audit,
):
    """Mark the upload complete. Confirming twice is harmless."""
    document = await service.confirm(document_id)
    audit.record(context.event(AuditAction.update, AuditResource.document, document.id))
    return DocumentResponse.model_validate(document)


@router.get("/{document_id}/download", response_model=DownloadUrlResponse)
async def get_download_url(
    document_id: uuid.UUID,
    context: CurrentSession,
    service: Documents,
    audit: Audit,
):
    document, url = await service.download_url(document_id)
    audit.record(context.event(AuditAction.read, AuditResource.document, document.id))
    return DownloadUrlResponse(url=url, name=document.name, mime_type=document.mime_type)


@router.patch("/{document_id}", response_model=DocumentResponse)
async def update_document(
    document_id: uuid.UUID,
    changes: DocumentUpdate,
    context: CurrentSession,
    service: Documents,
    audit: Audit,
):
    fields = {
        field: value
        for field, value in changes.model_dump(exclude_unset=True).items()
        if value is not None or field == "notes"
    }
    document = await service.update(document_id, fields)
    audit.record(context.event(AuditAction.update, AuditResource.document, document.id))
    return DocumentResponse.model_validate(document)


@router.post("/{document_id}/archive", response_model=DocumentResponse)
async def archive_document(
    document_id: uuid.UUID,
    context: CurrentSession,
    service: Documents,
    audit: Audit,
):
    document = await service.archive(document_id)
    audit.record(context.event(AuditAction.update, AuditResource.document, document.id))
    return DocumentResponse.model_validate(document)


@router.delete("/{document_id}", response_model=DocumentDeleteResponse)
async def delete_document(
    document_id: uuid.UUID,
    context: CurrentSession,
    service: Documents,
    audit: Audit,
):
    """Remove the row and the stored payload."""
    document = await service.delete(document_id)
    audit.record(context.event(AuditAction.delete, AuditResource.document, document.id))
    return DocumentDeleteResponse(deleted=True)
