"""Practice-wide counters for the landing page."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, time, timedelta
from typing import Optional

from docnotes.models import Appointment, utcnow
from docnotes.services.appointments import AppointmentRepository
from docnotes.services.patients import PatientRepository
from docnotes.services.records import RecordRepository

TODAY_SCHEDULE_LIMIT = 10


def day_bounds(now: datetime) -> tuple[datetime, datetime]:
    start = datetime.combine(now.date(), time.min, tzinfo=now.tzinfo)
    return start, start + timedelta(days=1)


def week_start(now: datetime) -> datetime:
    """Monday 00:00 of the week containing ``now``."""
    start, _ = day_bounds(now)
    return start - timedelta(days=now.weekday())


@dataclass
class DashboardSnapshot:
    total_patients: int
    today_appointments: int
    records_this_week: int
    today_schedule: list[Appointment] = field(default_factory=list)


async def collect_stats(
    patients: PatientRepository,
    appointments: AppointmentRepository,
    records: RecordRepository,
    now: Optional[datetime] = None,
) -> DashboardSnapshot:
    now = now or utcnow()
    today_start, today_end = day_bounds(now)
    return DashboardSnapshot(
        total_patients=await patients.count_active(),
        today_appointments=await appointments.count_between(today_start, today_end),
        records_this_week=await records.count_created_since(week_start(now)),
        today_schedule=await appointments.schedule_between(
            today_start, today_end, TODAY_SCHEDULE_LIMIT
        ),
    )
