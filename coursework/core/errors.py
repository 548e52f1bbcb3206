"""
Domain error taxonomy for the submission core.

Each error carries the HTTP status it maps to; `main.py` registers a single
handler that turns any of them into the stable response shape
``{"success": false, "message": ...}``.
"""

from fastapi import status


class DomainError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DomainError):
    """Bad grade range, disallowed file type/size, missing required field."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(DomainError):
    status_code = status.HTTP_404_NOT_FOUND


class ForbiddenError(DomainError):
    status_code = status.HTTP_403_FORBIDDEN


class ConflictError(DomainError):
    status_code = status.HTTP_409_CONFLICT


class SubmissionLockedError(ConflictError):
    """Owner tried to mutate a graded submission."""

    status_code = status.HTTP_400_BAD_REQUEST


class StorageError(DomainError):
    """Durable storage (filesystem / object store) failure."""


class InternalError(DomainError):
    pass
