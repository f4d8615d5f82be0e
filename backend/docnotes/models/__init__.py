from docnotes.models.appointment import Appointment, AppointmentStatus, AppointmentType
from docnotes.models.audit_log import AuditAction, AuditLog, AuditResource
from docnotes.models.base import Base, CreatedAtMixin, TimestampMixin, utcnow
from docnotes.models.document import Document, DocumentCategory, DocumentStatus
from docnotes.models.medical_record import MedicalRecord, MedicalRecordHead, RecordType
from docnotes.models.patient import BLOOD_TYPES, AllergySeverity, Gender, Patient
from docnotes.models.share_link import ShareLink, ShareResourceType
from docnotes.models.user import User, UserRole, UserSession

__all__ = [
    # Base
    "Base",
    "CreatedAtMixin",
    "TimestampMixin",
    "utcnow",
    # Core Models
    "User",
    "UserSession",
    "Patient",
    "MedicalRecord",
    "MedicalRecordHead",
    "Document",
    "Appointment",
    "ShareLink",
    "AuditLog",
    # Enums
    "UserRole",
    "Gender",
    "AllergySeverity",
    "RecordType",
    "DocumentCategory",
    "DocumentStatus",
    "AppointmentType",
    "AppointmentStatus",
    "ShareResourceType",
    "AuditAction",
    "AuditResource",
    # Constants
    "BLOOD_TYPES",
]
