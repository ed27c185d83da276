"""
Business logic services.

Each service handles one stage of the import pipeline.
"""

from services.import_service import ImportService, get_import_service
from services.commit_service import CommitService, CommitTally, get_commit_service
from services.fuzzy_match_service import (
    ImageFile,
    ImageMatch,
    fuzzy_match_images,
    get_suggested_matches_for_sku,
)

__all__ = [
    "ImportService",
    "get_import_service",
    "CommitService",
    "CommitTally",
    "get_commit_service",
    "ImageFile",
    "ImageMatch",
    "fuzzy_match_images",
    "get_suggested_matches_for_sku",
]
