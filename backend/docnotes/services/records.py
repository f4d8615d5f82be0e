"""Medical record repository implementations.

Records are append-only. Every logical record is a lineage of versions that
share ``lineage_id``; ``medical_record_heads`` points at the current one. An
edit inserts version ``n + 1`` and moves the head with a compare-and-set on
the previous head, so two concurrent edits of the same version cannot both
win.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Optional, Protocol

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from docnotes.exceptions import ConflictError
from docnotes.models import MedicalRecord, MedicalRecordHead, utcnow

VERSIONED_FIELDS = ("title", "content", "vitals", "diagnoses")
CLEARABLE_FIELDS = ("content", "vitals")

STALE_VERSION_DETAIL = "Record has been superseded by a newer version"


def next_version_fields(parent: MedicalRecord, changes: dict[str, Any]) -> dict[str, Any]:
    """Fields of the version after ``parent``.

    Keys missing from ``changes`` fall back to the parent. ``None`` clears
    ``content`` or ``vitals`` and is ignored for the other fields.
    """
    fields = {name: getattr(parent, name) for name in VERSIONED_FIELDS}
    fields.update(
        {
            k: v
            for k, v in changes.items()
            if k in VERSIONED_FIELDS and (v is not None or k in CLEARABLE_FIELDS)
        }
    )
    fields.update(
        patient_id=parent.patient_id,
        type=parent.type,
        version=parent.version + 1,
        parent_id=parent.id,
        lineage_id=parent.lineage_id,
    )
    return fields


class RecordRepository(Protocol):
    async def list_records(
        self,
        patient_id: uuid.UUID,
        record_type: Optional[str],
        skip: int,
        limit: int,
    ) -> tuple[list[MedicalRecord], int]:
        ...

    async def recent_for_patient(self, patient_id: uuid.UUID, limit: int) -> list[MedicalRecord]:
        ...

    async def get_record(self, record_id: uuid.UUID) -> Optional[MedicalRecord]:
        ...

    async def create_record(self, data: dict[str, Any], created_by: uuid.UUID) -> MedicalRecord:
        ...

    async def create_version(
        self, parent: MedicalRecord, changes: dict[str, Any], created_by: uuid.UUID
    ) -> MedicalRecord:
        ...

    async def latest(self, lineage_id: uuid.UUID) -> Optional[MedicalRecord]:
        ...

    async def history(self, lineage_id: uuid.UUID) -> list[MedicalRecord]:
        ...

    async def count_created_since(self, since: datetime) -> int:
        ...


class SQLRecordRepository:
    """Record repository backed by SQLAlchemy."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _current(self):
        return select(MedicalRecord).join(
            MedicalRecordHead, MedicalRecordHead.record_id == MedicalRecord.id
        )

    async def list_records(
        self,
        patient_id: uuid.UUID,
        record_type: Optional[str],
        skip: int,
        limit: int,
    ) -> tuple[list[MedicalRecord], int]:
        query = self._current().where(MedicalRecord.patient_id == patient_id)
        if record_type:
            query = query.where(MedicalRecord.type == record_type)

        total = await self.db.scalar(select(func.count()).select_from(query.subquery()))
        result = await self.db.execute(
            query.order_by(MedicalRecord.created_at.desc()).offset(skip).limit(limit)
        )
        return list(result.scalars().all()), total or 0

    async def recent_for_patient(self, patient_id: uuid.UUID, limit: int) -> list[MedicalRecord]:
        result = await self.db.execute(
            self._current()
            .where(MedicalRecord.patient_id == patient_id)
            .order_by(MedicalRecord.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def get_record(self, record_id: uuid.UUID) -> Optional[MedicalRecord]:
        result = await self.db.execute(
            select(MedicalRecord).where(MedicalRecord.id == record_id)
        )
        return result.scalar_one_or_none()

    async def create_record(self, data: dict[str, Any], created_by: uuid.UUID) -> MedicalRecord:
        record_id = uuid.uuid4()
        record = MedicalRecord(
            id=record_id,
            lineage_id=record_id,
            version=1,
            parent_id=None,
            created_by=created_by,
            **data,
        )
        self.db.add(record)
        await self.db.flush()
        self.db.add(MedicalRecordHead(lineage_id=record_id, record_id=record_id))
        await self.db.flush()
        await self.db.refresh(record)
        return record

    async def create_version(
        self, parent: MedicalRecord, changes: dict[str, Any], created_by: uuid.UUID
    ) -> MedicalRecord:
        record = MedicalRecord(**next_version_fields(parent, changes), created_by=created_by)
        self.db.add(record)
        await self.db.flush()

        moved = await self.db.execute(
            update(MedicalRecordHead)
            .where(
                MedicalRecordHead.lineage_id == parent.lineage_id,
                MedicalRecordHead.record_id == parent.id,
            )
            .values(record_id=record.id)
        )
        if moved.rowcount != 1:
            raise ConflictError(STALE_VERSION_DETAIL)

        await self.db.refresh(record)
        return record

    async def latest(self, lineage_id: uuid.UUID) -> Optional[MedicalRecord]:
        result = await self.db.execute(
            self._current().where(MedicalRecordHead.lineage_id == lineage_id)
        )
        return result.scalar_one_or_none()

    async def history(self, lineage_id: uuid.UUID) -> list[MedicalRecord]:
        result = await self.db.execute(
            select(MedicalRecord)
            .where(MedicalRecord.lineage_id == lineage_id)
            .order_by(MedicalRecord.version.asc())
        )
        return list(result.scalars().all())

    async def count_created_since(self, since: datetime) -> int:
        total = await self.db.scalar(
            select(func.count())
            .select_from(MedicalRecord)
            .where(MedicalRecord.created_at >= since)
        )
        return total or 0


class InMemoryRecordRepository:
    """In-memory repository for tests and local demos."""

    def __init__(self):
        self.records: dict[uuid.UUID, MedicalRecord] = {}
        self.heads: dict[uuid.UUID, uuid.UUID] = {}

    def _current(self) -> list[MedicalRecord]:
        return [self.records[record_id] for record_id in self.heads.values()]

    def _store(self, record: MedicalRecord) -> MedicalRecord:
        now = utcnow()
        record.created_at = now
        record.updated_at = now
        self.records[record.id] = record
        return record

    async def list_records(
        self,
        patient_id: uuid.UUID,
        record_type: Optional[str],
        skip: int,
        limit: int,
    ) -> tuple[list[MedicalRecord], int]:
        records = [r for r in self._current() if r.patient_id == patient_id]
        if record_type:
            records = [r for r in records if r.type == record_type]
        records.sort(key=lambda r: r.created_at, reverse=True)
        return records[skip : skip + limit], len(records)

    async def recent_for_patient(self, patient_id: uuid.UUID, limit: int) -> list[MedicalRecord]:
        records, _ = await self.list_records(patient_id, None, 0, limit)
        return records

    async def get_record(self, record_id: uuid.UUID) -> Optional[MedicalRecord]:
        return self.records.get(record_id)

    async def create_record(self, data: dict[str, Any], created_by: uuid.UUID) -> MedicalRecord:
        record_id = uuid.uuid4()
        record = MedicalRecord(
            id=record_id,
            lineage_id=record_id,
            version=1,
            parent_id=None,
            content=None,
            vitals=None,
            diagnoses=[],
            created_by=created_by,
        )
        for field, value in data.items():
            setattr(record, field, value)
        self.heads[record_id] = record_id
        return self._store(record)

    async def create_version(
        self, parent: MedicalRecord, changes: dict[str, Any], created_by: uuid.UUID
    ) -> MedicalRecord:
        if self.heads.get(parent.lineage_id) != parent.id:
            raise ConflictError(STALE_VERSION_DETAIL)
        record = MedicalRecord(
            id=uuid.uuid4(), **next_version_fields(parent, changes), created_by=created_by
        )
        self.heads[parent.lineage_id] = record.id
        return self._store(record)

    async def latest(self, lineage_id: uuid.UUID) -> Optional[MedicalRecord]:
        record_id = self.heads.get(lineage_id)
        return self.records.get(record_id) if record_id else None

    async def history(self, lineage_id: uuid.UUID) -> list[MedicalRecord]:
        records = [r for r in self.records.values() if r.lineage_id == lineage_id]
        return sorted(records, key=lambda r: r.version)

    async def count_created_since(self, since: datetime) -> int:
        return sum(1 for r in self.records.values() if r.created_at >= since)
