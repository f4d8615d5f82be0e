"""Append-only audit trail (compliance)."""

import uuid
from enum import StrEnum

from sqlalchemy import ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from docnotes.models.base import Base, CreatedAtMixin, UUIDPrimaryKeyMixin


class AuditAction(StrEnum):
    create = "create"
    read = "read"
    update = "update"
    delete = "delete"
    login = "login"
    logout = "logout"
    export = "export"
    share = "share"


class AuditResource(StrEnum):
    patient = "patient"
    medical_record = "medical_record"
    appointment = "appointment"
    document = "document"
    share_link = "share_link"
    user = "user"
    session = "session"
    export = "export"


class AuditLog(Base, UUIDPrimaryKeyMixin, CreatedAtMixin):
    """Who did what to which resource, and from where."""

    __tablename__ = "audit_logs"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), index=True, nullable=False
    )
    action: Mapped[str] = mapped_column(String(50), index=True, nullable=False)
    resource: Mapped[str] = mapped_column(String(50), index=True, nullable=False)
    resource_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(500), nullable=True)

    def __repr__(self) -> str:
        return f"<AuditLog(id={self.id}, action={self.action}, resource={self.resource})>"
