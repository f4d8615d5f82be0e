"""PDF rendering for patient summaries and single medical records.

Rendering is pure: snapshots in, bytes out. Callers load rows, convert them
with :func:`patient_snapshot` / :func:`record_snapshot` and pass the result
to one of the ``render_*`` functions.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Iterable, Optional

from fpdf import FPDF
from fpdf.enums import XPos, YPos

PRIMARY = (37, 99, 235)
HEADING = (30, 64, 175)
TEXT = (30, 41, 59)
MUTED = (100, 116, 139)
RULE = (226, 232, 240)
ALLERGY = (153, 27, 27)

SOAP_SECTIONS = (
    ("subjective", "Subjective"),
    ("objective", "Objective"),
    ("assessment", "Assessment"),
    ("plan", "Plan"),
)

_REPLACEMENTS = {
    "‘": "'",
    "’": "'",
    "“": '"',
    "”": '"',
    "–": "-",
    "—": "-",
    "…": "...",
    "•": "*",
    " ": " ",
    "​": "",
    "﻿": "",
}


def sanitize_text(text: Any) -> str:
    """Coerce to str and fold anything outside Latin-1 for the core fonts."""
    if text is None:
        return ""
    text = str(text)
    for char, replacement in _REPLACEMENTS.items():
        text = text.replace(char, replacement)
    return text.encode("latin-1", errors="replace").decode("latin-1")


def format_date(value: date | datetime | str) -> str:
    """DD/MM/YYYY."""
    if isinstance(value, str):
        value = date.fromisoformat(value[:10])
    return value.strftime("%d/%m/%Y")


def calculate_age(dob: date, today: Optional[date] = None) -> int:
    today = today or date.today()
    return today.year - dob.year - ((today.month, today.day) < (dob.month, dob.day))


def humanize(value: str) -> str:
    return value.replace("_", " ")


@dataclass
class AllergySnapshot:
    name: str
    severity: str
    reaction: Optional[str] = None


@dataclass
class PatientSnapshot:
    first_name: str
    last_name: str
    date_of_birth: date
    gender: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    blood_type: Optional[str] = None
    allergies: list[AllergySnapshot] = field(default_factory=list)
    active_conditions: list[str] = field(default_factory=list)
    notes: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


@dataclass
class RecordSnapshot:
    title: str
    type: str
    created_at: datetime
    content: Optional[dict[str, Any]] = None
    vitals: Optional[dict[str, Any]] = None
    diagnoses: list[str] = field(default_factory=list)


def patient_snapshot(patient: Any) -> PatientSnapshot:
    """Copy the fields the renderer needs off a Patient row."""
    allergies = [
        AllergySnapshot(
            name=item.get("name", ""),
            severity=item.get("severity", ""),
            reaction=item.get("reaction"),
        )
        for item in (patient.allergies or [])
    ]
    return PatientSnapshot(
        first_name=patient.first_name,
        last_name=patient.last_name,
        date_of_birth=patient.date_of_birth,
        gender=patient.gender,
        email=patient.email,
        phone=patient.phone,
        address=patient.address,
        emergency_contact_name=patient.emergency_contact_name,
        emergency_contact_phone=patient.emergency_contact_phone,
        blood_type=patient.blood_type,
        allergies=allergies,
        active_conditions=list(patient.active_conditions or []),
        notes=patient.notes,
    )


def record_snapshot(record: Any) -> RecordSnapshot:
    return RecordSnapshot(
        title=record.title,
        type=record.type,
        created_at=record.created_at,
        content=record.content,
        vitals=record.vitals,
        diagnoses=list(record.diagnoses or []),
    )


class ClinicalPDF(FPDF):
    """A4 page with the DocNotes confidentiality footer."""

    def __init__(self, generated_on: Optional[date] = None):
        super().__init__(orientation="P", unit="mm", format="A4")
        self.generated_on = generated_on or date.today()
        self.set_margins(15, 15, 15)
        self.set_auto_page_break(auto=True, margin=20)

    def footer(self):
        self.set_y(-15)
        self.set_draw_color(*RULE)
        self.line(self.l_margin, self.get_y(), self.w - self.r_margin, self.get_y())
        self.set_font("Helvetica", "", 8)
        self.set_text_color(*MUTED)
        self.cell(
            0,
            6,
            sanitize_text(
                f"DocNotes - Confidential Medical Record - {format_date(self.generated_on)}"
                f" - Page {self.page_no()}/{{nb}}"
            ),
            align="C",
        )

    def title_block(self, title: str, subtitle: str):
        self.set_font("Helvetica", "B", 18)
        self.set_text_color(*TEXT)
        self.multi_cell(0, 9, sanitize_text(title), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        self.set_font("Helvetica", "", 11)
        self.set_text_color(*MUTED)
        self.multi_cell(0, 6, sanitize_text(subtitle), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        self.set_draw_color(*PRIMARY)
        self.set_line_width(0.6)
        self.line(self.l_margin, self.get_y() + 2, self.w - self.r_margin, self.get_y() + 2)
        self.set_line_width(0.2)
        self.ln(6)

    def section_title(self, title: str):
        self.ln(2)
        self.set_font("Helvetica", "B", 12)
        self.set_text_color(*HEADING)
        self.cell(0, 7, sanitize_text(title), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        self.set_draw_color(*RULE)
        self.line(self.l_margin, self.get_y(), self.w - self.r_margin, self.get_y())
        self.ln(2)
        self.set_text_color(*TEXT)

    def field_row(self, label: str, value: Any):
        self.set_font("Helvetica", "B", 10)
        self.set_text_color(*MUTED)
        self.cell(45, 6, sanitize_text(f"{label}:"))
        self.set_font("Helvetica", "", 10)
        self.set_text_color(*TEXT)
        self.multi_cell(0, 6, sanitize_text(value), new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    def paragraph(self, text: str, size: int = 10, color=TEXT, style: str = ""):
        self.set_font("Helvetica", style, size)
        self.set_text_color(*color)
        self.multi_cell(0, 5.5, sanitize_text(text), new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    def bullets(self, items: Iterable[str], color=TEXT):
        for item in items:
            self.paragraph(f"* {item}", color=color)

    def to_bytes(self) -> bytes:
        return bytes(self.output())


def _vitals_lines(vitals: dict[str, Any]) -> list[tuple[str, str]]:
    lines: list[tuple[str, str]] = []
    systolic = vitals.get("blood_pressure_systolic")
    diastolic = vitals.get("blood_pressure_diastolic")
    if systolic is not None and diastolic is not None:
        lines.append(("Blood Pressure", f"{systolic}/{diastolic} mmHg"))
    units = (
        ("heart_rate", "Heart Rate", "bpm"),
        ("temperature", "Temperature", "C"),
        ("weight", "Weight", "kg"),
        ("height", "Height", "cm"),
        ("oxygen_saturation", "SpO2", "%"),
        ("respiratory_rate", "Respiratory Rate", "/min"),
    )
    for key, label, unit in units:
        value = vitals.get(key)
        if value is not None:
            lines.append((label, f"{value} {unit}"))
    return lines


def _render_demographics(pdf: ClinicalPDF, patient: PatientSnapshot) -> None:
    pdf.section_title("Demographics")
    pdf.field_row(
        "Date of Birth",
        f"{format_date(patient.date_of_birth)} ({calculate_age(patient.date_of_birth, pdf.generated_on)} years)",
    )
    pdf.field_row("Gender", humanize(patient.gender))
    if patient.blood_type:
        pdf.field_row("Blood Type", patient.blood_type)

    contact = [
        ("Phone", patient.phone),
        ("Email", patient.email),
        ("Address", patient.address),
    ]
    if patient.emergency_contact_name:
        emergency = patient.emergency_contact_name
        if patient.emergency_contact_phone:
            emergency = f"{emergency} ({patient.emergency_contact_phone})"
        contact.append(("Emergency Contact", emergency))
    contact = [(label, value) for label, value in contact if value]
    if contact:
        pdf.section_title("Contact Information")
        for label, value in contact:
            pdf.field_row(label, value)


def _render_allergies_and_conditions(pdf: ClinicalPDF, patient: PatientSnapshot) -> None:
    if patient.allergies:
        pdf.section_title("Allergies")
        for allergy in patient.allergies:
            line = f"{allergy.name} ({allergy.severity})"
            if allergy.reaction:
                line = f"{line} - {allergy.reaction}"
            pdf.paragraph(f"* {line}", color=ALLERGY)
    if patient.active_conditions:
        pdf.section_title("Active Conditions")
        pdf.bullets(patient.active_conditions)


def render_patient_summary_pdf(
    patient: PatientSnapshot,
    records: list[RecordSnapshot],
    generated_on: Optional[date] = None,
) -> bytes:
    """Demographics, contacts, allergies, conditions, record index and notes."""
    pdf = ClinicalPDF(generated_on)
    pdf.alias_nb_pages()
    pdf.add_page()
    pdf.title_block(
        patient.full_name,
        f"Patient Summary - Generated {format_date(pdf.generated_on)}",
    )
    _render_demographics(pdf, patient)
    _render_allergies_and_conditions(pdf, patient)

    if records:
        pdf.section_title(f"Medical Records ({len(records)})")
        for record in records:
            pdf.paragraph(
                f"{record.title} - {humanize(record.type)} - {format_date(record.created_at)}",
                style="B",
            )
            for diagnosis in record.diagnoses:
                pdf.paragraph(f"Dx: {diagnosis}", size=9, color=MUTED)
            pdf.ln(1)

    if patient.notes:
        pdf.section_title("Notes")
        pdf.paragraph(patient.notes)

    return pdf.to_bytes()


def render_medical_record_pdf(
    patient: PatientSnapshot,
    record: RecordSnapshot,
    generated_on: Optional[date] = None,
) -> bytes:
    """One record: diagnoses, vitals and SOAP sections, with allergy context."""
    pdf = ClinicalPDF(generated_on)
    pdf.alias_nb_pages()
    pdf.add_page()
    pdf.title_block(
        record.title,
        f"{patient.full_name} - {humanize(record.type)} - {format_date(record.created_at)}",
    )

    if record.diagnoses:
        pdf.section_title("Diagnoses")
        pdf.bullets(record.diagnoses)

    vitals = _vitals_lines(record.vitals or {})
    if vitals:
        pdf.section_title("Vitals")
        for label, value in vitals:
            pdf.field_row(label, value)

    content = record.content or {}
    sections = [(label, content.get(key)) for key, label in SOAP_SECTIONS if content.get(key)]
    if sections:
        pdf.section_title("Clinical Notes")
        for label, text in sections:
            pdf.paragraph(label, style="B", color=MUTED)
            pdf.paragraph(text)
            pdf.ln(1)

    if patient.allergies:
        pdf.section_title("Known Allergies")
        pdf.paragraph(
            ", ".join(f"{a.name} ({a.severity})" for a in patient.allergies),
            color=ALLERGY,
        )

    return pdf.to_bytes()


def summary_filename(patient: PatientSnapshot) -> str:
    return f"{patient.first_name}_{patient.last_name}_Summary.pdf"


def record_filename(patient: PatientSnapshot, record: RecordSnapshot) -> str:
    title = re.sub(r"\s+", "_", record.title)
    return f"{patient.first_name}_{patient.last_name}_{title}.pdf"
