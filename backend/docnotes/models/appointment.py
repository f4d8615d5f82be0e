import uuid
from datetime import datetime
from enum import StrEnum

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from docnotes.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class AppointmentType(StrEnum):
    new_patient = "new_patient"
    follow_up = "follow_up"
    routine = "routine"
    urgent = "urgent"
    telehealth = "telehealth"


class AppointmentStatus(StrEnum):
    scheduled = "scheduled"
    confirmed = "confirmed"
    checked_in = "checked_in"
    in_progress = "in_progress"
    completed = "completed"
    cancelled = "cancelled"
    no_show = "no_show"


class Appointment(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Scheduled visit. Status is a flat set; any value may replace any other."""

    __tablename__ = "appointments"

    patient_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("patients.id"), index=True, nullable=False
    )
    provider_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), index=True, nullable=False
    )
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        default=AppointmentStatus.scheduled.value,
        server_default=AppointmentStatus.scheduled.value,
    )
    scheduled_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), index=True, nullable=False
    )
    duration_minutes: Mapped[int] = mapped_column(
        Integer, nullable=False, default=15, server_default="15"
    )
    reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_by: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )

    def __repr__(self) -> str:
        return f"<Appointment(id={self.id}, scheduled_at={self.scheduled_at}, status={self.status})>"
