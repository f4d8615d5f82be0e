from pydantic import BaseModel


class PdfExport(BaseModel):
    """Rendered PDF returned inline."""

    base64: str
    filename: str
