import uuid
from datetime import datetime
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from docnotes.config import settings
from docnotes.models.share_link import ShareResourceType


class ShareLinkCreate(BaseModel):
    """Request to issue a share link for one resource."""

    resource_type: ShareResourceType
    resource_id: uuid.UUID
    expires_in_hours: int = Field(
        settings.share_default_expire_hours,
        gt=0,
        le=settings.share_max_expire_hours,
    )
    password: Optional[str] = Field(None, min_length=4, max_length=128)
    max_accesses: Optional[int] = Field(None, gt=0, le=settings.share_max_accesses_cap)


class ShareLinkCreated(BaseModel):
    id: uuid.UUID
    token: str
    url: str
    expires_at: datetime
    has_password: bool


class ShareLinkSummary(BaseModel):
    """Share link as listed for its resource; the password hash is never exposed."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    resource_type: ShareResourceType
    resource_id: uuid.UUID
    token: str
    expires_at: datetime
    access_count: int
    max_accesses: Optional[int] = None
    is_revoked: bool
    has_password: bool
    created_by: uuid.UUID
    created_at: datetime


class ShareAccessRequest(BaseModel):
    token: str = Field(..., min_length=1)
    password: Optional[str] = None


class SharePasswordRequired(BaseModel):
    """Intermediate result: the link is live but needs a password."""

    requires_password: Literal[True] = True


class SharePdfResult(BaseModel):
    requires_password: Literal[False] = False
    type: Literal["pdf"] = "pdf"
    base64: str
    filename: str


class ShareRedirectResult(BaseModel):
    requires_password: Literal[False] = False
    type: Literal["redirect"] = "redirect"
    url: str
    filename: str


ShareAccessResult = Union[SharePasswordRequired, SharePdfResult, ShareRedirectResult]
