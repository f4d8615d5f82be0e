"""Pydantic schemas for API request/response validation."""

from docnotes.schemas.appointment import (
    AppointmentCreate,
    AppointmentResponse,
    AppointmentUpdate,
)
from docnotes.schemas.audit import AuditLogResponse
from docnotes.schemas.auth import (
    AuthResponse,
    LogoutResponse,
    ProfileUpdate,
    UserAdminUpdate,
    UserLogin,
    UserRegister,
    UserResponse,
)
from docnotes.schemas.common import Page
from docnotes.schemas.dashboard import DashboardStats
from docnotes.schemas.document import (
    DocumentDeleteResponse,
    DocumentResponse,
    DocumentUpdate,
    DownloadUrlResponse,
    UploadRequest,
    UploadTicket,
)
from docnotes.schemas.export import PdfExport
from docnotes.schemas.medical_record import (
    RecordCreate,
    RecordResponse,
    RecordUpdate,
    SOAPNote,
    Vitals,
)
from docnotes.schemas.patient import (
    Allergy,
    PatientCreate,
    PatientResponse,
    PatientUpdate,
)
from docnotes.schemas.share import (
    ShareAccessRequest,
    ShareAccessResult,
    ShareLinkCreate,
    ShareLinkCreated,
    ShareLinkSummary,
    SharePasswordRequired,
    SharePdfResult,
    ShareRedirectResult,
)

__all__ = [
    "Page",
    # Auth
    "UserRegister",
    "UserLogin",
    "UserResponse",
    "AuthResponse",
    "LogoutResponse",
    "ProfileUpdate",
    "UserAdminUpdate",
    # Patients
    "Allergy",
    "PatientCreate",
    "PatientUpdate",
    "PatientResponse",
    # Medical records
    "SOAPNote",
    "Vitals",
    "RecordCreate",
    "RecordUpdate",
    "RecordResponse",
    # Documents
    "UploadRequest",
    "UploadTicket",
    "DocumentUpdate",
    "DocumentResponse",
    "DownloadUrlResponse",
    "DocumentDeleteResponse",
    # Appointments
    "AppointmentCreate",
    "AppointmentUpdate",
    "AppointmentResponse",
    # Sharing
    "ShareLinkCreate",
    "ShareLinkCreated",
    "ShareLinkSummary",
    "ShareAccessRequest",
    "ShareAccessResult",
    "SharePasswordRequired",
    "SharePdfResult",
    "ShareRedirectResult",
    # Misc
    "AuditLogResponse",
    "DashboardStats",
    "PdfExport",
]
