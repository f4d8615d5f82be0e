from datetime import datetime
from typing import Annotated, Optional
import uuid

from fastapi import APIRouter, Depends, Query

from docnotes.api.deps import AdminSession, get_audit_log_repo
from docnotes.models import AuditAction, AuditResource
from docnotes.schemas.audit import AuditLogResponse
from docnotes.schemas.common import Page
from docnotes.services.audit import AuditLogRepository

router = APIRouter(prefix="/audit", tags=["Audit"])


@router.get("/", response_model=Page[AuditLogResponse])
async def list_audit_logs(
    _admin: AdminSession,
    repo: Annotated[AuditLogRepository, Depends(get_audit_log_repo)],
    user_id: Optional[uuid.UUID] = Query(None),
    action: Optional[AuditAction] = Query(None),
    resource: Optional[AuditResource] = Query(None),
    date_from: Optional[datetime] = Query(None, alias="from"),
    date_to: Optional[datetime] = Query(None, alias="to"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
):
    """Admin-only view of the audit trail, newest first."""
    logs, total = await repo.list_logs(
        user_id=user_id,
        action=action.value if action else None,
        resource=resource.value if resource else None,
        date_from=date_from,
        date_to=date_to,
        skip=(page - 1) * limit,
        limit=limit,
    )
    return Page[AuditLogResponse](
        items=[AuditLogResponse.model_validate(log) for log in logs],
        total=total,
        page=page,
        limit=limit,
    )
