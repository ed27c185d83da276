"""
Import pipeline schemas.

StagedItem is the canonical row produced by provider adapters. It is a plain
dataclass: field types are checked by parsers.validators, not on construction.

The pydantic models below are the request/response shapes of the
/api/imports routes.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Optional

from pydantic import Field

from models.base import BaseSchema


class ProviderCode(str, Enum):
    """Suppliers with a registered adapter."""
    MOTOS_Y_EQUIPOS = "motos_y_equipos"
    MRM = "mrm"


class Currency(str, Enum):
    """Currencies a staged row may carry."""
    MXN = "MXN"


# Add a member to Currency and here to accept a second currency.
SUPPORTED_CURRENCIES = frozenset({Currency.MXN})
DEFAULT_CURRENCY = Currency.MXN


class BatchStatus(str, Enum):
    """
    Import batch lifecycle.

    uploaded -> staged | failed -> committing -> committed
    """
    UPLOADED = "uploaded"
    STAGED = "staged"
    FAILED = "failed"
    COMMITTING = "committing"
    COMMITTED = "committed"


class ItemStage(str, Enum):
    """Import item lifecycle."""
    STAGED = "staged"
    FAILED = "failed"
    COMMITTED = "committed"


class MatchConfidence(str, Enum):
    """Confidence label of a fuzzy image match."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# ===================
# CANONICAL ROW
# ===================

@dataclass
class StagedItem:
    """One normalized supplier row."""
    provider_code: ProviderCode
    provider_sku: str
    name: str
    price: Optional[float] = None
    description: Optional[str] = None
    brand: Optional[str] = None
    model: Optional[str] = None
    category: Optional[str] = None
    unit: Optional[str] = None
    warehouse: Optional[str] = None
    stock: Optional[int] = None
    price_discounted: Optional[float] = None
    msrp: Optional[float] = None
    currency: Currency = DEFAULT_CURRENCY
    extra: dict[str, Any] = field(default_factory=dict)
    image_hints: Optional[list[str]] = None

    def to_dict(self) -> dict:
        """JSON-ready dict stored as import_item.staged_json."""
        data = asdict(self)
        data["provider_code"] = _enum_value(self.provider_code)
        data["currency"] = _enum_value(self.currency)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "StagedItem":
        """Rebuild from staged_json. Unknown keys are ignored."""
        currency = data.get("currency") or DEFAULT_CURRENCY.value
        try:
            currency = Currency(currency)
        except ValueError:
            # Kept as-is so validation can report it
            pass

        return cls(
            provider_code=ProviderCode(data["provider_code"]),
            provider_sku=data.get("provider_sku") or "",
            name=data.get("name") or "",
            price=data.get("price"),
            description=data.get("description"),
            brand=data.get("brand"),
            model=data.get("model"),
            category=data.get("category"),
            unit=data.get("unit"),
            warehouse=data.get("warehouse"),
            stock=data.get("stock"),
            price_discounted=data.get("price_discounted"),
            msrp=data.get("msrp"),
            currency=currency,
            extra=data.get("extra") or {},
            image_hints=data.get("image_hints"),
        )


def _enum_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


# ===================
# STAGE
# ===================

class ImageFileIn(BaseSchema):
    """Image uploaded next to the data file."""
    file_name: str = Field(..., min_length=1, description="Original file name")
    url: str = Field(..., min_length=1, description="Public URL of the image")


class StageImportRequest(BaseSchema):
    """Start an import from a supplier file URL."""
    provider_code: ProviderCode = Field(..., description="Supplier whose layout the file uses")
    file_url: str = Field(..., min_length=1, description="URL of the CSV/XLSX file")
    image_files: list[ImageFileIn] = Field(default_factory=list)
    created_by: Optional[str] = Field(None, description="Caller identifier recorded on the batch")


class StageImportResponse(BaseSchema):
    """Counts and final status of a stage run."""
    batch_id: Optional[str] = None
    total_rows: int = 0
    valid_rows: int = 0
    failed_rows: int = 0
    status: BatchStatus
    error_code: Optional[str] = Field(None, description="Set when the batch failed for a batch-level reason")
    error: Optional[str] = None


# ===================
# COMMIT
# ===================

class CommitSummary(BaseSchema):
    """Per-batch commit outcome."""
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    total: int = 0
    warnings: int = Field(0, description="Variant or image failures that did not fail a row")
    images_attached: int = 0


class CommitResponse(BaseSchema):
    batch_id: str
    summary: CommitSummary


# ===================
# PREVIEW
# ===================

class BatchInfo(BaseSchema):
    id: str
    provider_code: ProviderCode
    status: BatchStatus
    created_at: Optional[str] = None
    created_by: Optional[str] = None


class BatchListResponse(BaseSchema):
    data: list[BatchInfo]
    total: int


class PreviewSummary(BaseSchema):
    total_rows: int
    valid_rows: int
    failed_rows: int


class ValidRowSample(BaseSchema):
    provider_sku: str
    name: str
    price: Optional[float] = None
    stock: Optional[int] = None


class FailedRowSample(BaseSchema):
    provider_sku: str
    name: str
    errors: list[str] = Field(default_factory=list)


class PreviewSamples(BaseSchema):
    valid: list[ValidRowSample] = Field(default_factory=list)
    failed: list[FailedRowSample] = Field(default_factory=list)


class PreviewResponse(BaseSchema):
    """Review screen data for a staged batch."""
    batch: BatchInfo
    summary: PreviewSummary
    samples: PreviewSamples


# ===================
# IMAGE MAPPINGS
# ===================

class ImageMappingIn(BaseSchema):
    """Confirmed association of an image with a supplier SKU."""
    provider_sku: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)
    is_primary: bool = False
    sort: int = Field(1, ge=1)


class SaveImageMappingsRequest(BaseSchema):
    mappings: list[ImageMappingIn]


class SaveImageMappingsResponse(BaseSchema):
    success: bool = True
    mappings_saved: int


class ImageMatchResponse(BaseSchema):
    """One fuzzy suggestion."""
    provider_sku: str
    file_name: str
    url: str
    score: float = Field(..., ge=0.0, le=1.0, description="0 is a perfect match")
    confidence: MatchConfidence


class ImageSuggestionsResponse(BaseSchema):
    batch_id: str
    matches: list[ImageMatchResponse]


# ===================
# PROVIDER DETECTION
# ===================

class DetectProviderRequest(BaseSchema):
    headers: list[str]


class DetectProviderResponse(BaseSchema):
    provider_code: Optional[ProviderCode] = None
