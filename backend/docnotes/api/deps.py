"""Shared API dependencies: repositories, services and the authorization gate."""

import asyncio
import time
import uuid
from dataclasses import dataclass
from functools import lru_cache
from typing import Annotated, Optional

from fastapi import BackgroundTasks, Depends, HTTPException, Query, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from docnotes.config import settings
from docnotes.database import get_db
from docnotes.exceptions import ForbiddenError, UnauthenticatedError
from docnotes.logging import user_id_var
from docnotes.models import AuditAction, AuditResource, UserRole
from docnotes.services.appointments import AppointmentRepository, SQLAppointmentRepository
from docnotes.services.audit import (
    AuditEvent,
    AuditLogRepository,
    AuditSink,
    AuditWriter,
    SQLAuditLogRepository,
    SQLAuditWriter,
)
from docnotes.services.auth import AuthRepository, AuthService, SQLAuthRepository
from docnotes.services.documents import (
    DocumentRepository,
    DocumentService,
    SQLDocumentRepository,
)
from docnotes.services.patients import PatientRepository, SQLPatientRepository
from docnotes.services.records import RecordRepository, SQLRecordRepository
from docnotes.services.sharing import (
    ShareLinkRepository,
    ShareService,
    SQLShareLinkRepository,
)
from docnotes.services.storage import ObjectStorage, S3Storage

security = HTTPBearer(auto_error=False)

_auth_rate_limit: dict[str, tuple[int, float]] = {}
_auth_rate_limit_lock = asyncio.Lock()


# Repositories

def get_auth_repo(db: AsyncSession = Depends(get_db)) -> AuthRepository:
    return SQLAuthRepository(db)


def get_patient_repo(db: AsyncSession = Depends(get_db)) -> PatientRepository:
    return SQLPatientRepository(db)


def get_record_repo(db: AsyncSession = Depends(get_db)) -> RecordRepository:
    return SQLRecordRepository(db)


def get_document_repo(db: AsyncSession = Depends(get_db)) -> DocumentRepository:
    return SQLDocumentRepository(db)


def get_appointment_repo(db: AsyncSession = Depends(get_db)) -> AppointmentRepository:
    return SQLAppointmentRepository(db)


def get_share_repo(db: AsyncSession = Depends(get_db)) -> ShareLinkRepository:
    return SQLShareLinkRepository(db)


def get_audit_log_repo(db: AsyncSession = Depends(get_db)) -> AuditLogRepository:
    return SQLAuditLogRepository(db)


@lru_cache()
def get_storage() -> ObjectStorage:
    return S3Storage(settings)


@lru_cache()
def get_audit_writer() -> AuditWriter:
    return SQLAuditWriter()


# Services

def get_audit_sink(
    background_tasks: BackgroundTasks,
    writer: AuditWriter = Depends(get_audit_writer),
) -> AuditSink:
    return AuditSink(background_tasks, writer)


def get_auth_service(repo: AuthRepository = Depends(get_auth_repo)) -> AuthService:
    return AuthService(repo, settings)


def get_document_service(
    repo: DocumentRepository = Depends(get_document_repo),
    storage: ObjectStorage = Depends(get_storage),
) -> DocumentService:
    return DocumentService(repo, storage, settings)


def get_share_service(
    links: ShareLinkRepository = Depends(get_share_repo),
    patients: PatientRepository = Depends(get_patient_repo),
    records: RecordRepository = Depends(get_record_repo),
    documents: DocumentRepository = Depends(get_document_repo),
    storage: ObjectStorage = Depends(get_storage),
) -> ShareService:
    return ShareService(links, patients, records, documents, storage, settings)


# Authorization gate

def client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


@dataclass(frozen=True)
class AuthContext:
    """The resolved caller of an authenticated request."""

    user_id: uuid.UUID
    role: str
    token: str
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    def event(
        self,
        action: AuditAction,
        resource: AuditResource,
        resource_id: Optional[uuid.UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            user_id=self.user_id,
            action=action,
            resource=resource,
            resource_id=resource_id,
            ip_address=self.ip_address,
            user_agent=self.user_agent,
        )


async def get_optional_session_context(
    request: Request,
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    auth: Annotated[AuthService, Depends(get_auth_service)],
) -> Optional[AuthContext]:
    """Resolve the bearer token if there is one; ``None`` otherwise."""
    if credentials is None:
        return None
    identity = await auth.resolve(credentials.credentials)
    if identity is None:
        return None
    user_id_var.set(str(identity.user_id))
    return AuthContext(
        user_id=identity.user_id,
        role=identity.role,
        token=credentials.credentials,
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )


async def get_session_context(
    context: Annotated[Optional[AuthContext], Depends(get_optional_session_context)],
) -> AuthContext:
    if context is None:
        raise UnauthenticatedError("Could not validate credentials")
    return context


def require_roles(*roles: UserRole):
    """Dependency factory: authenticated and ``role in roles``."""
    allowed = frozenset(UserRole(role).value for role in roles)

    async def dependency(
        context: Annotated[AuthContext, Depends(get_session_context)],
    ) -> AuthContext:
        if context.role not in allowed:
            raise ForbiddenError("Insufficient permissions")
        return context

    return dependency


require_gp = require_roles(UserRole.gp, UserRole.admin)
require_admin = require_roles(UserRole.admin)

CurrentSession = Annotated[AuthContext, Depends(get_session_context)]
AdminSession = Annotated[AuthContext, Depends(require_admin)]


@dataclass(frozen=True)
class Pagination:
    page: int
    limit: int

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


def pagination(
    page: int = Query(1, ge=1),
    limit: int = Query(
        settings.pagination_default_limit, ge=1, le=settings.pagination_max_limit
    ),
) -> Pagination:
    return Pagination(page=page, limit=limit)


async def rate_limit_auth(request: Request) -> None:
    """Basic in-memory rate limiter for auth endpoints."""
    window = settings.auth_rate_limit_window_seconds
    max_requests = settings.auth_rate_limit_max_requests
    ip = client_ip(request) or "unknown"
    now = time.monotonic()

    async with _auth_rate_limit_lock:
        count, reset_at = _auth_rate_limit.get(ip, (0, now + window))
        if now > reset_at:
            count = 0
            reset_at = now + window
        count += 1
        _auth_rate_limit[ip] = (count, reset_at)

        if count > max_requests:
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many requests. Please try again later.",
            )


def reset_rate_limits() -> None:
    _auth_rate_limit.clear()
