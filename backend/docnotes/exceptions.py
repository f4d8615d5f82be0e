"""HTTP errors with stable machine-readable codes.

Each subclass pins one status code to one ``code`` string; the exception
handlers in ``docnotes.main`` put that code in the error envelope so clients
can branch on it without parsing messages.
"""

from fastapi import HTTPException, status

STATUS_CODES: dict[int, str] = {
    status.HTTP_400_BAD_REQUEST: "BAD_REQUEST",
    status.HTTP_401_UNAUTHORIZED: "UNAUTHORIZED",
    status.HTTP_403_FORBIDDEN: "FORBIDDEN",
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
    status.HTTP_409_CONFLICT: "CONFLICT",
    422: "VALIDATION_ERROR",
    status.HTTP_429_TOO_MANY_REQUESTS: "TOO_MANY_REQUESTS",
    status.HTTP_500_INTERNAL_SERVER_ERROR: "INTERNAL_SERVER_ERROR",
}


def code_for_status(status_code: int) -> str:
    return STATUS_CODES.get(status_code, "HTTP_ERROR")


class DocNotesError(HTTPException):
    """Base class for errors raised by services and routers."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail: str = "Internal server error"

    def __init__(self, detail: str | None = None, headers: dict[str, str] | None = None):
        super().__init__(
            status_code=type(self).status_code,
            detail=detail or type(self).default_detail,
            headers=headers,
        )

    @property
    def code(self) -> str:
        return code_for_status(self.status_code)


class UnauthenticatedError(DocNotesError):
    """No session, or the bearer token does not resolve to a live session."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Authentication required"

    def __init__(self, detail: str | None = None):
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"})


class ForbiddenError(DocNotesError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Forbidden"


class NotFoundError(DocNotesError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Resource not found"


class ConflictError(DocNotesError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Resource already exists"


class BadRequestError(DocNotesError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Bad request"
