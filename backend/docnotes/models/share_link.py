"""Capability tokens granting time- and count-bounded access to one resource."""

import uuid
from datetime import datetime
from enum import StrEnum

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from docnotes.models.base import Base, CreatedAtMixin, UUIDPrimaryKeyMixin


class ShareResourceType(StrEnum):
    patient_summary = "patient_summary"
    medical_record = "medical_record"
    document = "document"


class ShareLink(Base, UUIDPrimaryKeyMixin, CreatedAtMixin):
    """A link is usable iff it is not revoked, not expired, under its access
    cap, and (when a password is set) presented with the matching password.
    """

    __tablename__ = "share_links"

    resource_type: Mapped[str] = mapped_column(String(50), nullable=False)
    resource_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    token: Mapped[str] = mapped_column(
        String(128), unique=True, index=True, nullable=False
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), index=True, nullable=False
    )
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    access_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    max_accesses: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_revoked: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default="false"
    )
    created_by: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )

    __table_args__ = (
        Index("ix_share_links_resource", "resource_type", "resource_id"),
    )

    @property
    def has_password(self) -> bool:
        return self.password_hash is not None

    def __repr__(self) -> str:
        return (
            f"<ShareLink(id={self.id}, resource_type={self.resource_type}, "
            f"access_count={self.access_count}, is_revoked={self.is_revoked})>"
        )
