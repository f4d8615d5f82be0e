"""Appointment repository implementations."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Protocol

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from docnotes.models import Appointment, AppointmentStatus, utcnow


@dataclass
class AppointmentFilters:
    provider_id: Optional[uuid.UUID] = None
    patient_id: Optional[uuid.UUID] = None
    status: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None

    def matches(self, appointment: Appointment) -> bool:
        return (
            (self.provider_id is None or appointment.provider_id == self.provider_id)
            and (self.patient_id is None or appointment.patient_id == self.patient_id)
            and (self.status is None or appointment.status == self.status)
            and (self.date_from is None or appointment.scheduled_at >= self.date_from)
            and (self.date_to is None or appointment.scheduled_at <= self.date_to)
        )


class AppointmentRepository(Protocol):
    async def list_appointments(
        self, filters: AppointmentFilters, skip: int, limit: int
    ) -> tuple[list[Appointment], int]:
        ...

    async def get_appointment(self, appointment_id: uuid.UUID) -> Optional[Appointment]:
        ...

    async def create_appointment(self, data: dict[str, Any], created_by: uuid.UUID) -> Appointment:
        ...

    async def update_appointment(
        self, appointment: Appointment, changes: dict[str, Any]
    ) -> Appointment:
        ...

    async def schedule_between(self, start: datetime, end: datetime, limit: int) -> list[Appointment]:
        ...

    async def count_between(self, start: datetime, end: datetime) -> int:
        ...


class SQLAppointmentRepository:
    """Appointment repository backed by SQLAlchemy."""

    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def _conditions(filters: AppointmentFilters) -> list:
        conditions = []
        if filters.provider_id:
            conditions.append(Appointment.provider_id == filters.provider_id)
        if filters.patient_id:
            conditions.append(Appointment.patient_id == filters.patient_id)
        if filters.status:
            conditions.append(Appointment.status == filters.status)
        if filters.date_from:
            conditions.append(Appointment.scheduled_at >= filters.date_from)
        if filters.date_to:
            conditions.append(Appointment.scheduled_at <= filters.date_to)
        return conditions

    async def list_appointments(
        self, filters: AppointmentFilters, skip: int, limit: int
    ) -> tuple[list[Appointment], int]:
        conditions = self._conditions(filters)
        total = await self.db.scalar(
            select(func.count()).select_from(Appointment).where(*conditions)
        )
        result = await self.db.execute(
            select(Appointment)
            .where(*conditions)
            .order_by(Appointment.scheduled_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all()), total or 0

    async def get_appointment(self, appointment_id: uuid.UUID) -> Optional[Appointment]:
        result = await self.db.execute(
            select(Appointment).where(Appointment.id == appointment_id)
        )
        return result.scalar_one_or_none()

    async def create_appointment(self, data: dict[str, Any], created_by: uuid.UUID) -> Appointment:
        appointment = Appointment(
            **data,
            status=AppointmentStatus.scheduled.value,
            created_by=created_by,
        )
        self.db.add(appointment)
        await self.db.flush()
        await self.db.refresh(appointment)
        return appointment

    async def update_appointment(
        self, appointment: Appointment, changes: dict[str, Any]
    ) -> Appointment:
        for field, value in changes.items():
            setattr(appointment, field, value)
        await self.db.flush()
        await self.db.refresh(appointment)
        return appointment

    async def schedule_between(self, start: datetime, end: datetime, limit: int) -> list[Appointment]:
        result = await self.db.execute(
            select(Appointment)
            .where(Appointment.scheduled_at >= start, Appointment.scheduled_at < end)
            .order_by(Appointment.scheduled_at.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def count_between(self, start: datetime, end: datetime) -> int:
        total = await self.db.scalar(
            select(func.count())
            .select_from(Appointment)
            .where(Appointment.scheduled_at >= start, Appointment.scheduled_at < end)
        )
        return total or 0


class InMemoryAppointmentRepository:
    """In-memory repository for tests and local demos."""

    def __init__(self):
        self.appointments: dict[uuid.UUID, Appointment] = {}

    async def list_appointments(
        self, filters: AppointmentFilters, skip: int, limit: int
    ) -> tuple[list[Appointment], int]:
        appointments = [a for a in self.appointments.values() if filters.matches(a)]
        appointments.sort(key=lambda a: a.scheduled_at, reverse=True)
        return appointments[skip : skip + limit], len(appointments)

    async def get_appointment(self, appointment_id: uuid.UUID) -> Optional[Appointment]:
        return self.appointments.get(appointment_id)

    async def create_appointment(self, data: dict[str, Any], created_by: uuid.UUID) -> Appointment:
        now = utcnow()
        appointment = Appointment(
            id=uuid.uuid4(),
            status=AppointmentStatus.scheduled.value,
            duration_minutes=15,
            reason=None,
            notes=None,
            created_by=created_by,
            created_at=now,
            updated_at=now,
        )
        for field, value in data.items():
            setattr(appointment, field, value)
        self.appointments[appointment.id] = appointment
        return appointment

    async def update_appointment(
        self, appointment: Appointment, changes: dict[str, Any]
    ) -> Appointment:
        for field, value in changes.items():
            setattr(appointment, field, value)
        appointment.updated_at = utcnow()
        return appointment

    async def schedule_between(self, start: datetime, end: datetime, limit: int) -> list[Appointment]:
        appointments = sorted(
            (a for a in self.appointments.values() if start <= a.scheduled_at < end),
            key=lambda a: a.scheduled_at,
        )
        return appointments[:limit]

    async def count_between(self, start: datetime, end: datetime) -> int:
        return sum(1 for a in self.appointments.values() if start <= a.scheduled_at < end)
