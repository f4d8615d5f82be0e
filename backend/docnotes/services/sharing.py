"""Share links: issuance, listing, revocation and public redemption.

A link is redeemable iff it is not revoked, ``now <= expires_at``, it is
under its access cap, and (when it has a password) the caller supplies the
matching password. Redemption checks those conditions in that order and
stops at the first failure; expiry and revocation are reported before any
password prompt.
"""

from __future__ import annotations

import logging
import secrets
import uuid
from datetime import datetime, timedelta
from typing import Any, Optional, Protocol

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from docnotes.config import Settings, settings
from docnotes.exceptions import BadRequestError, ForbiddenError, NotFoundError
from docnotes.models import DocumentStatus, ShareLink, ShareResourceType, utcnow
from docnotes.schemas.share import (
    ShareAccessResult,
    SharePasswordRequired,
    SharePdfResult,
    ShareRedirectResult,
)
from docnotes.services.auth import get_password_hash, verify_password
from docnotes.services.documents import DocumentRepository
from docnotes.services.export import PdfExporter
from docnotes.services.patients import PatientRepository
from docnotes.services.records import RecordRepository
from docnotes.services.storage import ObjectStorage

logger = logging.getLogger("docnotes.sharing")

LINK_NOT_FOUND = "Share link not found"
LINK_REVOKED = "This share link has been revoked"
LINK_EXPIRED = "This share link has expired"
LINK_EXHAUSTED = "This share link has reached its access limit"
INCORRECT_PASSWORD = "Incorrect password"
RESOURCE_NOT_FOUND = "Resource not found"


def generate_share_token(nbytes: int = settings.share_token_bytes) -> str:
    return secrets.token_hex(nbytes)


def share_url(token: str, web_url: str = settings.web_url) -> str:
    return f"{web_url.rstrip('/')}/share/{token}"


class ShareLinkRepository(Protocol):
    async def add(self, link: ShareLink) -> ShareLink:
        ...

    async def get(self, link_id: uuid.UUID) -> Optional[ShareLink]:
        ...

    async def get_by_token(self, token: str) -> Optional[ShareLink]:
        ...

    async def list_by_resource(
        self, resource_type: str, resource_id: uuid.UUID
    ) -> list[ShareLink]:
        ...

    async def increment_access(self, link_id: uuid.UUID) -> Optional[int]:
        ...

    async def revoke(self, link: ShareLink) -> ShareLink:
        ...


class SQLShareLinkRepository:
    """Share link repository backed by SQLAlchemy."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def add(self, link: ShareLink) -> ShareLink:
        self.db.add(link)
        await self.db.flush()
        await self.db.refresh(link)
        return link

    async def get(self, link_id: uuid.UUID) -> Optional[ShareLink]:
        result = await self.db.execute(select(ShareLink).where(ShareLink.id == link_id))
        return result.scalar_one_or_none()

    async def get_by_token(self, token: str) -> Optional[ShareLink]:
        result = await self.db.execute(select(ShareLink).where(ShareLink.token == token))
        return result.scalar_one_or_none()

    async def list_by_resource(
        self, resource_type: str, resource_id: uuid.UUID
    ) -> list[ShareLink]:
        result = await self.db.execute(
            select(ShareLink)
            .where(
                ShareLink.resource_type == resource_type,
                ShareLink.resource_id == resource_id,
            )
            .order_by(ShareLink.created_at.desc())
        )
        return list(result.scalars().all())

    async def increment_access(self, link_id: uuid.UUID) -> Optional[int]:
        """Add one redemption in the database, never past ``max_accesses``.

        Returns the new count, or ``None`` when a concurrent redemption used
        the last slot first.
        """
        result = await self.db.execute(
            update(ShareLink)
            .where(
                ShareLink.id == link_id,
                ShareLink.is_revoked.is_(False),
                or_(
                    ShareLink.max_accesses.is_(None),
                    ShareLink.access_count < ShareLink.max_accesses,
                ),
            )
            .values(access_count=ShareLink.access_count + 1)
            .returning(ShareLink.access_count)
            .execution_options(synchronize_session=False)
        )
        return result.scalar_one_or_none()

    async def revoke(self, link: ShareLink) -> ShareLink:
        link.is_revoked = True
        await self.db.flush()
        await self.db.refresh(link)
        return link


class InMemoryShareLinkRepository:
    """In-memory repository for tests and local demos."""

    def __init__(self):
        self.links: dict[uuid.UUID, ShareLink] = {}

    async def add(self, link: ShareLink) -> ShareLink:
        link.id = uuid.uuid4()
        link.access_count = 0
        link.is_revoked = False
        link.created_at = utcnow()
        self.links[link.id] = link
        return link

    async def get(self, link_id: uuid.UUID) -> Optional[ShareLink]:
        return self.links.get(link_id)

    async def get_by_token(self, token: str) -> Optional[ShareLink]:
        for link in self.links.values():
            if link.token == token:
                return link
        return None

    async def list_by_resource(
        self, resource_type: str, resource_id: uuid.UUID
    ) -> list[ShareLink]:
        links = [
            link
            for link in self.links.values()
            if link.resource_type == resource_type and link.resource_id == resource_id
        ]
        return sorted(links, key=lambda link: link.created_at, reverse=True)

    async def increment_access(self, link_id: uuid.UUID) -> Optional[int]:
        link = self.links.get(link_id)
        if link is None or link.is_revoked:
            return None
        if link.max_accesses is not None and link.access_count >= link.max_accesses:
            return None
        link.access_count += 1
        return link.access_count

    async def revoke(self, link: ShareLink) -> ShareLink:
        link.is_revoked = True
        return link


class ShareService:
    def __init__(
        self,
        links: ShareLinkRepository,
        patients: PatientRepository,
        records: RecordRepository,
        documents: DocumentRepository,
        storage: ObjectStorage,
        config: Settings = settings,
    ):
        self.links = links
        self.documents = documents
        self.storage = storage
        self.config = config
        self.exporter = PdfExporter(patients, records, config.share_summary_record_limit)

    async def create(
        self,
        resource_type: ShareResourceType,
        resource_id: uuid.UUID,
        created_by: uuid.UUID,
        expires_in_hours: int,
        password: Optional[str] = None,
        max_accesses: Optional[int] = None,
    ) -> ShareLink:
        link = ShareLink(
            resource_type=resource_type.value,
            resource_id=resource_id,
            token=generate_share_token(self.config.share_token_bytes),
            expires_at=utcnow() + timedelta(hours=expires_in_hours),
            password_hash=get_password_hash(password) if password else None,
            access_count=0,
            max_accesses=max_accesses,
            is_revoked=False,
            created_by=created_by,
        )
        link = await self.links.add(link)
        logger.info(
            "Issued share link %s for %s %s", link.id, link.resource_type, link.resource_id
        )
        return link

    def url_for(self, link: ShareLink) -> str:
        return share_url(link.token, self.config.web_url)

    async def list_by_resource(
        self, resource_type: ShareResourceType, resource_id: uuid.UUID
    ) -> list[ShareLink]:
        return await self.links.list_by_resource(resource_type.value, resource_id)

    async def revoke(self, link_id: uuid.UUID) -> ShareLink:
        link = await self.links.get(link_id)
        if link is None:
            raise NotFoundError(LINK_NOT_FOUND)
        return await self.links.revoke(link)

    @staticmethod
    def check_usable(link: Optional[ShareLink], now: datetime) -> ShareLink:
        """Raise unless the link exists and can still be redeemed at ``now``."""
        if link is None:
            raise NotFoundError(LINK_NOT_FOUND)
        if link.is_revoked:
            raise ForbiddenError(LINK_REVOKED)
        if now > link.expires_at:
            raise ForbiddenError(LINK_EXPIRED)
        if link.max_accesses is not None and link.access_count >= link.max_accesses:
            raise ForbiddenError(LINK_EXHAUSTED)
        return link

    async def access(
        self,
        token: str,
        password: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ShareAccessResult:
        link = self.check_usable(await self.links.get_by_token(token), now or utcnow())

        if link.password_hash is not None:
            if not password:
                return SharePasswordRequired()
            if not verify_password(password, link.password_hash):
                raise ForbiddenError(INCORRECT_PASSWORD)

        resolve = self._resolvers().get(link.resource_type)
        if resolve is None:
            raise BadRequestError(f"Unknown resource type: {link.resource_type}")

        # A missing resource fails before the count moves.
        result = await resolve(link.resource_id)
        if await self.links.increment_access(link.id) is None:
            raise ForbiddenError(LINK_EXHAUSTED)
        logger.info("Share link %s redeemed (%s)", link.id, link.resource_type)
        return result

    def _resolvers(self) -> dict[str, Any]:
        return {
            ShareResourceType.patient_summary.value: self._patient_summary,
            ShareResourceType.medical_record.value: self._medical_record,
            ShareResourceType.document.value: self._document,
        }

    async def _patient_summary(self, patient_id: uuid.UUID) -> SharePdfResult:
        pdf = await self.exporter.patient_summary(patient_id)
        if pdf is None:
            raise NotFoundError(RESOURCE_NOT_FOUND)
        return SharePdfResult(base64=pdf.base64, filename=pdf.filename)

    async def _medical_record(self, record_id: uuid.UUID) -> SharePdfResult:
        pdf = await self.exporter.medical_record(record_id)
        if pdf is None:
            raise NotFoundError(RESOURCE_NOT_FOUND)
        return SharePdfResult(base64=pdf.base64, filename=pdf.filename)

    async def _document(self, document_id: uuid.UUID) -> ShareRedirectResult:
        document = await self.documents.get_document(document_id)
        if document is None or document.status == DocumentStatus.uploading.value:
            raise NotFoundError(RESOURCE_NOT_FOUND)
        url = self.storage.presigned_download_url(document.s3_key, document.name)
        return ShareRedirectResult(url=url, filename=document.name)
