"""
Error taxonomy for the Content Processor backend.

Every domain failure is a ContentProcessorError carrying an ErrorKind. Services
raise these at the point of detection and let them propagate; the single
translator in ``content_processor.api.error_handlers`` maps the kind to an HTTP
status and the standard response envelope.

Kinds:
    NOT_FOUND          -> 404
    VALIDATION_FAILED  -> 400
    PERMISSION_DENIED  -> 403
    STORAGE_FAILURE    -> 500 (message keeps the cause context)
    UNAUTHENTICATED    -> 401
    UNEXPECTED         -> 500 (generic message, details only in logs)
"""

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Discriminator for ContentProcessorError."""

    NOT_FOUND = "not_found"
    VALIDATION_FAILED = "validation_failed"
    PERMISSION_DENIED = "permission_denied"
    STORAGE_FAILURE = "storage_failure"
    UNAUTHENTICATED = "unauthenticated"
    UNEXPECTED = "unexpected"


HTTP_STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.VALIDATION_FAILED: 400,
    ErrorKind.PERMISSION_DENIED: 403,
    ErrorKind.STORAGE_FAILURE: 500,
    ErrorKind.UNAUTHENTICATED: 401,
    ErrorKind.UNEXPECTED: 500,
}

GENERIC_ERROR_MESSAGE = "An unexpected error occurred. Please try again later."


class ContentProcessorError(Exception):
    """
    Base error with a kind discriminator.

    Attributes:
        message: Human-readable message returned to the client
        data: Optional structured payload included in the error envelope
        kind: ErrorKind fixed by each subclass
    """

    kind: ErrorKind = ErrorKind.UNEXPECTED

    def __init__(self, message: str, data: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.data = data

    @property
    def status_code(self) -> int:
        return HTTP_STATUS_BY_KIND[self.kind]

    @property
    def client_message(self) -> str:
        """Message safe to expose in the response envelope."""
        if self.kind is ErrorKind.UNEXPECTED:
            return GENERIC_ERROR_MESSAGE
        return self.message


class NotFoundError(ContentProcessorError):
    """Referenced file, job or user does not exist."""

    kind = ErrorKind.NOT_FOUND

    @classmethod
    def for_resource(cls, resource: str, field: str, value: Any) -> "NotFoundError":
        return cls(f"{resource} not found with {field} : '{value}'")


class ValidationFailedError(ContentProcessorError):
    """Malformed or missing input."""

    kind = ErrorKind.VALIDATION_FAILED


class PermissionDeniedError(ContentProcessorError):
    """Authenticated, but not the owner of the target resource."""

    kind = ErrorKind.PERMISSION_DENIED


class StorageError(ContentProcessorError):
    """Disk write/delete failure, drifted metadata or unsupported cloud path."""

    kind = ErrorKind.STORAGE_FAILURE

    @property
    def client_message(self) -> str:
        return f"File storage error: {self.message}"


class UnauthenticatedError(ContentProcessorError):
    """Missing, invalid or expired credentials."""

    kind = ErrorKind.UNAUTHENTICATED
