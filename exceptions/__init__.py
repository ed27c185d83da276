"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    ConflictError,
    ExternalServiceError,
    DatabaseError,

    # Import batches
    ImportBatchNotFoundError,
    BatchAlreadyCommittedError,
    BatchCommitInProgressError,
    NoStagedItemsError,
    UnknownProviderError,

    # Files
    FileDownloadError,
    FileParseError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    "ExternalServiceError",
    "DatabaseError",

    # Import batches
    "ImportBatchNotFoundError",
    "BatchAlreadyCommittedError",
    "BatchCommitInProgressError",
    "NoStagedItemsError",
    "UnknownProviderError",

    # Files
    "FileDownloadError",
    "FileParseError",
]
