"""
Provider adapter contract.

An adapter turns one raw supplier row (header -> cell) into a StagedItem.
Suppliers rename and re-punctuate headers between exports, so keys are
lower-cased and trimmed first and every logical field is looked up through a
list of known aliases.
"""

import math
import re
import unicodedata
from abc import ABC, abstractmethod
from typing import Any, Optional
import structlog

from models.imports import ProviderCode, StagedItem
from parsers.validators import RowValidation, validate_staged_item

logger = structlog.get_logger(__name__)

_STOCK_DROP = re.compile(r"[^\d-]")
_LEADING_INT = re.compile(r"^-?\d+")


def cell_to_text(value: Any) -> str:
    """Cell value as trimmed text; None and NaN become ""."""
    if value is None:
        return ""
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
    return str(value).strip()


def normalize_row(row: dict) -> dict[str, str]:
    """Lower-case, trim and NFC-normalize keys; stringify values."""
    normalized = {}
    for key, value in row.items():
        normalized_key = unicodedata.normalize("NFC", str(key)).lower().strip()
        normalized[normalized_key] = cell_to_text(value)
    return normalized


def parse_stock(text: str) -> Optional[int]:
    """
    Read a stock count from a cell.

    Everything but digits and minus signs is dropped first:
    "1,250 pzas" → 1250, "" → None.
    """
    if not text:
        return None
    match = _LEADING_INT.match(_STOCK_DROP.sub("", text))
    return int(match.group(0)) if match else None


class ProviderAdapter(ABC):
    """
    Base class for supplier adapters.

    Subclasses set provider_code and FIELD_ALIASES and implement build_item().
    """

    provider_code: ProviderCode
    # Logical field -> header aliases, already lower-case
    FIELD_ALIASES: dict[str, tuple[str, ...]] = {}
    # Settings attribute holding the number of non-data rows above the data
    skip_rows_setting: Optional[str] = None
    # Name given to rows that carry a SKU but no description
    NAME_PLACEHOLDER = "Sin nombre"

    def parse_row(self, row: dict, row_index: int) -> Optional[StagedItem]:
        """
        Parse one raw row.

        Args:
            row: Header -> cell mapping as read from the file
            row_index: Position of the row in the file's data rows

        Returns:
            StagedItem, or None for blank or unreadable rows. Never raises.
        """
        try:
            return self.build_item(normalize_row(row), row_index)
        except Exception as e:
            logger.warning(
                "import_row_parse_failed",
                provider=self.provider_code.value,
                row_index=row_index,
                error=str(e),
                error_type=type(e).__name__
            )
            return None

    @abstractmethod
    def build_item(self, row: dict[str, str], row_index: int) -> Optional[StagedItem]:
        """Build a StagedItem from a normalized row, or None for a blank row."""

    def validate_row(self, staged: StagedItem) -> RowValidation:
        """Validate with the shared row rules."""
        return validate_staged_item(staged)

    def pick(self, row: dict[str, str], field: str) -> str:
        """First non-empty value among the aliases of a field."""
        for alias in self.FIELD_ALIASES.get(field, ()):
            value = row.get(alias)
            if value:
                return value
        return ""

    def skip_rows(self, settings) -> int:
        """Non-data rows to drop before the first adapter row."""
        if not self.skip_rows_setting:
            return 0
        return getattr(settings, self.skip_rows_setting)

    @staticmethod
    def placeholder_sku(row_index: int) -> str:
        return f"UNKNOWN-{row_index}"
