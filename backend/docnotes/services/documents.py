"""Document metadata repositories and the two-phase upload lifecycle.

    uploading --confirm--> active --archive--> archived

Payload bytes never pass through the API. ``request_upload`` inserts the row
and hands out a presigned PUT; the client uploads straight to the bucket and
then calls ``confirm``. Rows that stay ``uploading`` past
``stale_upload_minutes`` are hidden from listings but not removed.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Optional, Protocol

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from docnotes.config import Settings, settings
from docnotes.exceptions import BadRequestError, NotFoundError
from docnotes.models import Document, DocumentStatus, utcnow
from docnotes.services.storage import ObjectStorage, generate_object_key

logger = logging.getLogger("docnotes.documents")


class DocumentRepository(Protocol):
    async def list_documents(
        self,
        patient_id: uuid.UUID,
        medical_record_id: Optional[uuid.UUID],
        category: Optional[str],
        stale_before: datetime,
        skip: int,
        limit: int,
    ) -> tuple[list[Document], int]:
        ...

    async def get_document(self, document_id: uuid.UUID) -> Optional[Document]:
        ...

    async def create_document(self, data: dict[str, Any], uploaded_by: uuid.UUID) -> Document:
        ...

    async def transition(
        self, document_id: uuid.UUID, from_status: DocumentStatus, to_status: DocumentStatus
    ) -> Optional[Document]:
        ...

    async def update_document(self, document: Document, changes: dict[str, Any]) -> Document:
        ...

    async def delete_document(self, document: Document) -> None:
        ...


class SQLDocumentRepository:
    """Document repository backed by SQLAlchemy."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_documents(
        self,
        patient_id: uuid.UUID,
        medical_record_id: Optional[uuid.UUID],
        category: Optional[str],
        stale_before: datetime,
        skip: int,
        limit: int,
    ) -> tuple[list[Document], int]:
        conditions = [
            Document.patient_id == patient_id,
            or_(
                Document.status != DocumentStatus.uploading.value,
                Document.created_at >= stale_before,
            ),
        ]
        if medical_record_id:
            conditions.append(Document.medical_record_id == medical_record_id)
        if category:
            conditions.append(Document.category == category)

        total = await self.db.scalar(
            select(func.count()).select_from(Document).where(*conditions)
        )
        result = await self.db.execute(
            select(Document)
            .where(*conditions)
            .order_by(Document.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all()), total or 0

    async def get_document(self, document_id: uuid.UUID) -> Optional[Document]:
        result = await self.db.execute(select(Document).where(Document.id == document_id))
        return result.scalar_one_or_none()

    async def create_document(self, data: dict[str, Any], uploaded_by: uuid.UUID) -> Document:
        document = Document(
            **data,
            status=DocumentStatus.uploading.value,
            uploaded_by=uploaded_by,
        )
        self.db.add(document)
        await self.db.flush()
        await self.db.refresh(document)
        return document

    async def transition(
        self, document_id: uuid.UUID, from_status: DocumentStatus, to_status: DocumentStatus
    ) -> Optional[Document]:
        """Move ``from_status -> to_status`` in one conditional UPDATE.

        Returns the row as it stands afterwards, whether or not this call
        changed it, or ``None`` when it does not exist.
        """
        await self.db.execute(
            update(Document)
            .where(Document.id == document_id, Document.status == from_status.value)
            .values(status=to_status.value, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(
            select(Document)
            .where(Document.id == document_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def update_document(self, document: Document, changes: dict[str, Any]) -> Document:
        for field, value in changes.items():
            setattr(document, field, value)
        await self.db.flush()
        await self.db.refresh(document)
        return document

    async def delete_document(self, document: Document) -> None:
        await self.db.delete(document)
        await self.db.flush()


class InMemoryDocumentRepository:
    """In-memory repository for tests and local demos."""

    def __init__(self):
        self.documents: dict[uuid.UUID, Document] = {}

    async def list_documents(
        self,
        patient_id: uuid.UUID,
        medical_record_id: Optional[uuid.UUID],
        category: Optional[str],
        stale_before: datetime,
        skip: int,
        limit: int,
    ) -> tuple[list[Document], int]:
        documents = [
            d
            for d in self.documents.values()
            if d.patient_id == patient_id
            and (d.status != DocumentStatus.uploading.value or d.created_at >= stale_before)
        ]
        if medical_record_id:
            documents = [d for d in documents if d.medical_record_id == medical_record_id]
        if category:
            documents = [d for d in documents if d.category == category]
        documents.sort(key=lambda d: d.created_at, reverse=True)
        return documents[skip : skip + limit], len(documents)

    async def get_document(self, document_id: uuid.UUID) -> Optional[Document]:
        return self.documents.get(document_id)

    async def create_document(self, data: dict[str, Any], uploaded_by: uuid.UUID) -> Document:
        now = utcnow()
        document = Document(
            id=uuid.uuid4(),
            medical_record_id=None,
            notes=None,
            status=DocumentStatus.uploading.value,
            uploaded_by=uploaded_by,
            created_at=now,
            updated_at=now,
        )
        for field, value in data.items():
            setattr(document, field, value)
        self.documents[document.id] = document
        return document

    async def transition(
        self, document_id: uuid.UUID, from_status: DocumentStatus, to_status: DocumentStatus
    ) -> Optional[Document]:
        document = self.documents.get(document_id)
        if document is not None and document.status == from_status.value:
            document.status = to_status.value
            document.updated_at = utcnow()
        return document

    async def update_document(self, document: Document, changes: dict[str, Any]) -> Document:
        for field, value in changes.items():
            setattr(document, field, value)
        document.updated_at = utcnow()
        return document

    async def delete_document(self, document: Document) -> None:
        self.documents.pop(document.id, None)


class DocumentService:
    def __init__(
        self,
        repo: DocumentRepository,
        storage: ObjectStorage,
        config: Settings = settings,
    ):
        self.repo = repo
        self.storage = storage
        self.config = config

    async def _get_or_404(self, document_id: uuid.UUID) -> Document:
        document = await self.repo.get_document(document_id)
        if document is None:
            raise NotFoundError("Document not found")
        return document

    async def list(
        self,
        patient_id: uuid.UUID,
        medical_record_id: Optional[uuid.UUID],
        category: Optional[str],
        skip: int,
        limit: int,
    ) -> tuple[list[Document], int]:
        stale_before = utcnow() - timedelta(minutes=self.config.stale_upload_minutes)
        return await self.repo.list_documents(
            patient_id, medical_record_id, category, stale_before, skip, limit
        )

    async def get(self, document_id: uuid.UUID) -> Document:
        return await self._get_or_404(document_id)

    async def request_upload(
        self, data: dict[str, Any], uploaded_by: uuid.UUID
    ) -> tuple[Document, str]:
        s3_key = generate_object_key(data["patient_id"], data["name"])
        document = await self.repo.create_document({**data, "s3_key": s3_key}, uploaded_by)
        upload_url = self.storage.presigned_upload_url(
            s3_key, document.mime_type, document.size_bytes
        )
        logger.info("Issued upload URL for document %s", document.id)
        return document, upload_url

    async def confirm(self, document_id: uuid.UUID) -> Document:
        document = await self.repo.transition(
            document_id, DocumentStatus.uploading, DocumentStatus.active
        )
        if document is None:
            raise NotFoundError("Document not found")
        return document

    async def download_url(self, document_id: uuid.UUID) -> tuple[Document, str]:
        document = await self._get_or_404(document_id)
        if document.status != DocumentStatus.active.value:
            raise BadRequestError("Document is not available for download")
        return document, self.storage.presigned_download_url(document.s3_key, document.name)

    async def update(self, document_id: uuid.UUID, changes: dict[str, Any]) -> Document:
        document = await self._get_or_404(document_id)
        return await self.repo.update_document(document, changes)

    async def archive(self, document_id: uuid.UUID) -> Document:
        document = await self.repo.transition(
            document_id, DocumentStatus.active, DocumentStatus.archived
        )
        if document is None:
            raise NotFoundError("Document not found")
        if document.status != DocumentStatus.archived.value:
            raise BadRequestError("Only active documents can be archived")
        return document

    async def delete(self, document_id: uuid.UUID) -> Document:
        """Delete the row, then the stored object.

        Both happen inside the request transaction; if the storage delete
        fails the exception rolls the row delete back.
        """
        document = await self._get_or_404(document_id)
        await self.repo.delete_document(document)
        await self.storage.delete_object(document.s3_key)
        logger.info("Deleted document %s (%s)", document.id, document.s3_key)
        return document
