"""API routes for DocNotes."""

from docnotes.api import (
    appointments,
    audit,
    auth,
    dashboard,
    documents,
    export,
    health,
    patients,
    records,
    share,
)

__all__ = [
    "appointments",
    "audit",
    "auth",
    "dashboard",
    "documents",
    "export",
    "health",
    "patients",
    "records",
    "share",
]
