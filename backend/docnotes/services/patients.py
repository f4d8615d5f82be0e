"""Patient repository implementations."""

from __future__ import annotations

import uuid
from typing import Any, Optional, Protocol

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from docnotes.models import Patient, utcnow

LIKE_ESCAPE = "\\"


def contains_pattern(term: str) -> str:
    """ILIKE pattern matching ``term`` literally anywhere in the value."""
    escaped = (
        term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"


class PatientRepository(Protocol):
    async def list_patients(
        self, query: Optional[str], skip: int, limit: int
    ) -> tuple[list[Patient], int]:
        ...

    async def get_patient(self, patient_id: uuid.UUID) -> Optional[Patient]:
        ...

    async def create_patient(self, data: dict[str, Any], created_by: uuid.UUID) -> Patient:
        ...

    async def update_patient(self, patient: Patient, changes: dict[str, Any]) -> Patient:
        ...

    async def count_active(self) -> int:
        ...


class SQLPatientRepository:
    """Patient repository backed by SQLAlchemy."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_patients(
        self, query: Optional[str], skip: int, limit: int
    ) -> tuple[list[Patient], int]:
        conditions = [Patient.is_active.is_(True)]
        if query:
            pattern = contains_pattern(query.strip())
            conditions.append(
                or_(
                    Patient.first_name.ilike(pattern, escape=LIKE_ESCAPE),
                    Patient.last_name.ilike(pattern, escape=LIKE_ESCAPE),
                    Patient.email.ilike(pattern, escape=LIKE_ESCAPE),
                    Patient.phone.ilike(pattern, escape=LIKE_ESCAPE),
                )
            )

        total = await self.db.scalar(
            select(func.count()).select_from(Patient).where(*conditions)
        )
        result = await self.db.execute(
            select(Patient)
            .where(*conditions)
            .order_by(Patient.updated_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all()), total or 0

    async def get_patient(self, patient_id: uuid.UUID) -> Optional[Patient]:
        result = await self.db.execute(select(Patient).where(Patient.id == patient_id))
        return result.scalar_one_or_none()

    async def create_patient(self, data: dict[str, Any], created_by: uuid.UUID) -> Patient:
        patient = Patient(**data, created_by=created_by)
        self.db.add(patient)
        await self.db.flush()
        await self.db.refresh(patient)
        return patient

    async def update_patient(self, patient: Patient, changes: dict[str, Any]) -> Patient:
        for field, value in changes.items():
            setattr(patient, field, value)
        await self.db.flush()
        await self.db.refresh(patient)
        return patient

    async def count_active(self) -> int:
        total = await self.db.scalar(
            select(func.count()).select_from(Patient).where(Patient.is_active.is_(True))
        )
        return total or 0


class InMemoryPatientRepository:
    """In-memory repository for tests and local demos."""

    def __init__(self):
        self.patients: dict[uuid.UUID, Patient] = {}

    async def list_patients(
        self, query: Optional[str], skip: int, limit: int
    ) -> tuple[list[Patient], int]:
        patients = [p for p in self.patients.values() if p.is_active]
        if query:
            needle = query.strip().lower()
            patients = [
                p
                for p in patients
                if any(
                    needle in (value or "").lower()
                    for value in (p.first_name, p.last_name, p.email, p.phone)
                )
            ]
        patients.sort(key=lambda p: p.updated_at, reverse=True)
        return patients[skip : skip + limit], len(patients)

    async def get_patient(self, patient_id: uuid.UUID) -> Optional[Patient]:
        return self.patients.get(patient_id)

    async def create_patient(self, data: dict[str, Any], created_by: uuid.UUID) -> Patient:
        now = utcnow()
        patient = Patient(
            id=uuid.uuid4(),
            email=None,
            phone=None,
            address=None,
            emergency_contact_name=None,
            emergency_contact_phone=None,
            blood_type=None,
            allergies=[],
            active_conditions=[],
            notes=None,
            is_active=True,
            created_by=created_by,
            created_at=now,
            updated_at=now,
        )
        for field, value in data.items():
            setattr(patient, field, value)
        self.patients[patient.id] = patient
        return patient

    async def update_patient(self, patient: Patient, changes: dict[str, Any]) -> Patient:
        for field, value in changes.items():
            setattr(patient, field, value)
        patient.updated_at = utcnow()
        return patient

    async def count_active(self) -> int:
        return sum(1 for p in self.patients.values() if p.is_active)
