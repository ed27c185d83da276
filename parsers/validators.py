"""
Row validation for staged supplier items.

Every rule is checked independently so a reviewer sees all problems of a row
at once. Validation never raises.
"""

import math
from dataclasses import dataclass, field
from numbers import Real
from enum import Enum
from typing import Any, Optional

from models.imports import StagedItem, SUPPORTED_CURRENCIES

OPTIONAL_TEXT_FIELDS = (
    ("description", "Description"),
    ("brand", "Brand"),
    ("model", "Model"),
    ("category", "Category"),
    ("unit", "Unit"),
    ("warehouse", "Warehouse"),
)


@dataclass
class RowValidation:
    """Outcome of validating one staged item."""
    errors: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        """True if no rule failed."""
        return len(self.errors) == 0

    @property
    def error_text(self) -> Optional[str]:
        """Errors joined for import_item.error_text, None when valid."""
        return "; ".join(self.errors) if self.errors else None

    def to_dict(self) -> dict:
        return {"valid": self.valid, "errors": list(self.errors)}


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def _is_finite_number(value: Any) -> bool:
    return _is_number(value) and math.isfinite(value)


def _is_blank(value: Any) -> bool:
    return not isinstance(value, str) or value.strip() == ""


def validate_staged_item(item: StagedItem) -> RowValidation:
    """
    Validate a staged item.

    Rules:
        - provider_sku and name are required (non-blank)
        - price is null or a finite number
        - stock is null or a non-negative integer
        - currency is a supported currency
        - optional text fields are strings when present
        - price_discounted and msrp are null or finite numbers
        - image_hints is a list when present

    Args:
        item: Staged item produced by an adapter

    Returns:
        RowValidation with every failed rule
    """
    errors: list[str] = []

    # Required fields
    if _is_blank(getattr(item, "provider_sku", None)):
        errors.append("Provider SKU is required")

    if _is_blank(getattr(item, "name", None)):
        errors.append("Name is required")

    # Price may be missing for some suppliers, but must be numeric when present
    price = getattr(item, "price", None)
    if price is not None and not _is_finite_number(price):
        errors.append("Price must be a valid number or null")

    stock = getattr(item, "stock", None)
    if stock is not None:
        is_integer = _is_number(stock) and math.isfinite(stock) and float(stock).is_integer()
        if not is_integer:
            errors.append("Stock must be an integer when provided")
        if _is_number(stock) and stock < 0:
            errors.append("Stock cannot be negative")

    currency = getattr(item, "currency", None)
    if isinstance(currency, Enum):
        currency = currency.value
    allowed_currencies = sorted(c.value for c in SUPPORTED_CURRENCIES)
    if currency not in allowed_currencies:
        allowed = ", ".join(allowed_currencies)
        errors.append(f"Currency must be {allowed}")

    for attr, label in OPTIONAL_TEXT_FIELDS:
        value = getattr(item, attr, None)
        if value is not None and not isinstance(value, str):
            errors.append(f"{label} must be a string")

    price_discounted = getattr(item, "price_discounted", None)
    if price_discounted is not None and not _is_finite_number(price_discounted):
        errors.append("Price discounted must be a valid number or null")

    msrp = getattr(item, "msrp", None)
    if msrp is not None and not _is_finite_number(msrp):
        errors.append("MSRP must be a valid number or null")

    image_hints = getattr(item, "image_hints", None)
    if image_hints is not None and not isinstance(image_hints, (list, tuple)):
        errors.append("Image hints must be an array")

    return RowValidation(errors=errors)
