"""
Custom exception classes for the application.

Every error raised to an API caller is an AppError so routes can turn it
into the standard error payload.
"""

from typing import Optional, Any
from datetime import datetime


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "IMPORT_BATCH_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.utcnow().isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper()}_NOT_FOUND",
            message=f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class ConflictError(AppError):
    """Conflict with existing resource (409)."""

    def __init__(
        self,
        message: str,
        code: str = "CONFLICT",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details
        )


class ExternalServiceError(AppError):
    """External service failure (503)."""

    def __init__(
        self,
        service: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code=f"{service.upper()}_ERROR",
            message=message,
            status_code=503,
            details={"service": service, **(details or {})}
        )


class DatabaseError(AppError):
    """Database operation failed (500)."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="DATABASE_ERROR",
            message=f"Database {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


# ===================
# IMPORT BATCH ERRORS
# ===================

class ImportBatchNotFoundError(NotFoundError):
    """Import batch not found."""

    def __init__(self, batch_id: str):
        super().__init__(
            resource="Import batch",
            identifier=batch_id,
            code="IMPORT_BATCH_NOT_FOUND"
        )


class BatchAlreadyCommittedError(ConflictError):
    """Commit requested for a batch that was already committed."""

    def __init__(self, batch_id: str):
        super().__init__(
            code="IMPORT_BATCH_ALREADY_COMMITTED",
            message="Batch already committed",
            details={"batch_id": batch_id}
        )


class BatchCommitInProgressError(ConflictError):
    """Another commit holds the batch."""

    def __init__(self, batch_id: str):
        super().__init__(
            code="IMPORT_BATCH_COMMIT_IN_PROGRESS",
            message="Batch commit already in progress",
            details={"batch_id": batch_id}
        )


class NoStagedItemsError(ValidationError):
    """Batch has no rows in the staged stage."""

    def __init__(self, batch_id: str):
        super().__init__(
            code="IMPORT_NO_VALID_ITEMS",
            message="No valid items to commit",
            details={"batch_id": batch_id}
        )


class UnknownProviderError(ValidationError):
    """Provider code has no adapter."""

    def __init__(self, provider_code: str, valid: list[str]):
        super().__init__(
            code="UNKNOWN_PROVIDER",
            message=f"Unknown provider code: {provider_code}",
            details={"provided": provider_code, "valid": valid}
        )


# ===================
# FILE ERRORS
# ===================

class FileDownloadError(ExternalServiceError):
    """Supplier file could not be fetched."""

    def __init__(self, url: str, message: str, status: Optional[int] = None):
        super().__init__(
            service="file_download",
            message=message,
            details={"url": url, "http_status": status}
        )


class FileParseError(ValidationError):
    """Supplier file could not be read as CSV or spreadsheet."""

    def __init__(
        self,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="IMPORT_FILE_PARSE_ERROR",
            message=message,
            details=details
        )
