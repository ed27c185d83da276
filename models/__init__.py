"""
Pydantic models and canonical records for the import pipeline.
"""

from models.base import BaseSchema
from models.imports import (
    ProviderCode,
    Currency,
    SUPPORTED_CURRENCIES,
    DEFAULT_CURRENCY,
    BatchStatus,
    ItemStage,
    MatchConfidence,
    StagedItem,
    ImageFileIn,
    StageImportRequest,
    StageImportResponse,
    CommitSummary,
    CommitResponse,
    BatchInfo,
    BatchListResponse,
    PreviewSummary,
    PreviewResponse,
    ImageMappingIn,
    SaveImageMappingsRequest,
    SaveImageMappingsResponse,
    ImageMatchResponse,
    ImageSuggestionsResponse,
    DetectProviderRequest,
    DetectProviderResponse,
)

__all__ = [
    "BaseSchema",
    "ProviderCode",
    "Currency",
    "SUPPORTED_CURRENCIES",
    "DEFAULT_CURRENCY",
    "BatchStatus",
    "ItemStage",
    "MatchConfidence",
    "StagedItem",
    "ImageFileIn",
    "StageImportRequest",
    "StageImportResponse",
    "CommitSummary",
    "CommitResponse",
    "BatchInfo",
    "BatchListResponse",
    "PreviewSummary",
    "PreviewResponse",
    "ImageMappingIn",
    "SaveImageMappingsRequest",
    "SaveImageMappingsResponse",
    "ImageMatchResponse",
    "ImageSuggestionsResponse",
    "DetectProviderRequest",
    "DetectProviderResponse",
]
