from typing import Annotated
import uuid

from fastapi import APIRouter, Depends, Query

from docnotes.api.deps import (
    CurrentSession,
    get_audit_sink,
    get_share_service,
)
from docnotes.models import AuditAction, AuditResource, ShareResourceType
from docnotes.schemas.share import (
    ShareAccessRequest,
    ShareAccessResult,
    ShareLinkCreate,
    ShareLinkCreated,
    ShareLinkSummary,
)
from docnotes.services.audit import AuditSink
from docnotes.services.sharing import ShareService

router = APIRouter(prefix="/share", tags=["Sharing"])

Shares = Annotated[ShareService, Depends(get_share_service)]
Audit = Annotated[AuditSink, Depends(get_audit_sink)]


@router.post("/", response_model=ShareLinkCreated, status_code=201)
async def create_share_link(
    data: ShareLinkCreate,
    context: CurrentSession,
    service: Shares,
    audit: Audit,
):
    """Issue a link to one patient summary, record or document.

    The token is only ever returned here; store the URL, not the id.
    """
    link = await service.create(
        resource_type=data.resource_type,
        resource_id=data.resource_id,
        created_by=context.user_id,
        expires_in_hours=data.expires_in_hours,
        password=data.password,
        max_accesses=data.max_accesses,
    )
    audit.record(context.event(AuditAction.share, AuditResource.share_link, link.id))
    return ShareLinkCreated(
        id=link.id,
        token=link.token,
        url=service.url_for(link),
        expires_at=link.expires_at,
        has_password=link.has_password,
    )


@router.get("/", response_model=list[ShareLinkSummary])
async def list_share_links(
    _session: CurrentSession,
    service: Shares,
    resource_type: ShareResourceType = Query(...),
    resource_id: uuid.UUID = Query(...),
):
    """Links issued for one resource, newest first."""
    links = await service.list_by_resource(resource_type, resource_id)
    return [ShareLinkSummary.model_validate(link) for link in links]


@router.post("/{link_id}/revoke", response_model=ShareLinkSummary)
async def revoke_share_link(
    link_id: uuid.UUID,
    context: CurrentSession,
    service: Shares,
    audit: Audit,
):
    link = await service.revoke(link_id)
    audit.record(context.event(AuditAction.update, AuditResource.share_link, link.id))
    return ShareLinkSummary.model_validate(link)


@router.post("/access", response_model=ShareAccessResult)
async def access_share_link(data: ShareAccessRequest, service: Shares):
    """Public redemption endpoint; no session required.

    Answers ``{"requires_password": true}`` when the link is live but
    password-protected and no password was sent.
    """
    return await service.access(data.token, data.password)
