"""Best-effort audit trail.

``AuditSink.record`` never raises and never blocks the request: the write is
handed to FastAPI's background tasks, runs after the response has been sent
and the request transaction has committed, and uses its own session. A
failed write is logged on ``docnotes.audit`` and dropped.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol

from fastapi import BackgroundTasks
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from docnotes.database import get_db_context
from docnotes.models import AuditAction, AuditLog, AuditResource, utcnow

logger = logging.getLogger("docnotes.audit")


@dataclass(frozen=True)
class AuditEvent:
    user_id: Optional[uuid.UUID]
    action: AuditAction
    resource: AuditResource
    resource_id: Optional[uuid.UUID] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    def to_model(self) -> AuditLog:
        return AuditLog(
            user_id=self.user_id,
            action=self.action.value,
            resource=self.resource.value,
            resource_id=self.resource_id,
            ip_address=self.ip_address,
            user_agent=self.user_agent[:500] if self.user_agent else None,
        )


class AuditWriter(Protocol):
    async def write(self, event: AuditEvent) -> None:
        ...


class SQLAuditWriter:
    """Writes each event in a short transaction of its own."""

    async def write(self, event: AuditEvent) -> None:
        async with get_db_context() as db:
            db.add(event.to_model())


class AuditSink:
    """Request-scoped handle for recording audit events."""

    def __init__(self, background_tasks: BackgroundTasks, writer: AuditWriter):
        self.background_tasks = background_tasks
        self.writer = writer

    def record(self, event: AuditEvent) -> None:
        if event.user_id is None:
            return
        self.background_tasks.add_task(self._write, event)

    async def _write(self, event: AuditEvent) -> None:
        try:
            await self.writer.write(event)
        except Exception as exc:
            logger.warning(
                "Audit write failed (user=%s action=%s resource=%s resource_id=%s): %s",
                event.user_id,
                event.action.value,
                event.resource.value,
                event.resource_id,
                exc,
            )


class AuditLogRepository(Protocol):
    async def list_logs(
        self,
        user_id: Optional[uuid.UUID],
        action: Optional[str],
        resource: Optional[str],
        date_from: Optional[datetime],
        date_to: Optional[datetime],
        skip: int,
        limit: int,
    ) -> tuple[list[AuditLog], int]:
        ...


class SQLAuditLogRepository:
    """Read side of the audit trail (admin viewer)."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_logs(
        self,
        user_id: Optional[uuid.UUID],
        action: Optional[str],
        resource: Optional[str],
        date_from: Optional[datetime],
        date_to: Optional[datetime],
        skip: int,
        limit: int,
    ) -> tuple[list[AuditLog], int]:
        conditions = []
        if user_id:
            conditions.append(AuditLog.user_id == user_id)
        if action:
            conditions.append(AuditLog.action == action)
        if resource:
            conditions.append(AuditLog.resource == resource)
        if date_from:
            conditions.append(AuditLog.created_at >= date_from)
        if date_to:
            conditions.append(AuditLog.created_at <= date_to)

        total = await self.db.scalar(
            select(func.count()).select_from(AuditLog).where(*conditions)
        )
        result = await self.db.execute(
            select(AuditLog)
            .where(*conditions)
            .order_by(AuditLog.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all()), total or 0


class InMemoryAuditLog:
    """Writer and reader over a plain list, for tests and local demos."""

    def __init__(self):
        self.entries: list[AuditLog] = []
        self.fail_writes = False

    async def write(self, event: AuditEvent) -> None:
        if self.fail_writes:
            raise RuntimeError("audit store unavailable")
        entry = event.to_model()
        entry.id = uuid.uuid4()
        entry.created_at = utcnow()
        self.entries.append(entry)

    async def list_logs(
        self,
        user_id: Optional[uuid.UUID],
        action: Optional[str],
        resource: Optional[str],
        date_from: Optional[datetime],
        date_to: Optional[datetime],
        skip: int,
        limit: int,
    ) -> tuple[list[AuditLog], int]:
        entries = [
            e
            for e in self.entries
            if (user_id is None or e.user_id == user_id)
            and (action is None or e.action == action)
            and (resource is None or e.resource == resource)
            and (date_from is None or e.created_at >= date_from)
            and (date_to is None or e.created_at <= date_to)
        ]
        entries.sort(key=lambda e: e.created_at, reverse=True)
        return entries[skip : skip + limit], len(entries)

    def actions(self) -> list[tuple[str, str]]:
        return [(e.action, e.resource) for e in self.entries]
