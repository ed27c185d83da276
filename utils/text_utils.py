"""
Text utilities for supplier data.

Price strings, slugs and catalog SKUs. Supplier files are Spanish, so accent
handling lives here too.
"""

import math
import re
import unicodedata
from typing import Optional, Sequence, TypeVar

T = TypeVar("T")

_PRICE_NOISE = re.compile(r"[$,\s]")
_LEADING_NUMBER = re.compile(r"^[-+]?(\d+(\.\d*)?|\.\d+)([eE][-+]?\d+)?")
_SLUG_DROP = re.compile(r"[^\w\s-]", re.ASCII)
_SLUG_SEPARATORS = re.compile(r"[\s_-]+")
_SKU_DROP = re.compile(r"[^\w-]", re.ASCII)

SKU_NAME_PART_LENGTH = 20
SKU_MAX_LENGTH = 100


def sanitize_price(value) -> Optional[float]:
    """
    Convert a supplier price cell to a number.

    - "$1,234.56" → 1234.56
    - "$ 2,500.00" → 2500.0
    - "1234.56" → 1234.56
    - "", "abc", "$" → None

    Args:
        value: Raw cell value (normally a string)

    Returns:
        Parsed float, or None when no number can be read
    """
    if isinstance(value, bool) or value is None:
        return None

    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None

    if not isinstance(value, str):
        return None

    cleaned = _PRICE_NOISE.sub("", value).strip()
    if not cleaned:
        return None

    # Leading numeric prefix, like JavaScript parseFloat
    match = _LEADING_NUMBER.match(cleaned)
    if not match:
        return None

    parsed = float(match.group(0))
    return parsed if math.isfinite(parsed) else None


def strip_accents(text: Optional[str]) -> str:
    """
    Remove diacritics, keeping base letters.

    "Descripción Batería" → "Descripcion Bateria"
    """
    if not text:
        return ""

    # NFD decomposition separates base chars from accents
    normalized = unicodedata.normalize("NFD", text)
    return "".join(c for c in normalized if unicodedata.category(c) != "Mn")


def slugify(text: Optional[str]) -> str:
    """
    URL slug: lowercase, ASCII word characters and single hyphens.

    "Test & Product!" → "test-product"
    "Test    Product" → "test-product"

    Non-ASCII letters are dropped, not transliterated; use product_slug()
    for names that may carry accents.
    """
    if not text:
        return ""

    slug = text.lower().strip()
    slug = _SLUG_DROP.sub("", slug)
    slug = _SLUG_SEPARATORS.sub("-", slug)
    return slug.strip("-")


def product_slug(name: Optional[str]) -> str:
    """Slug for a catalog product name, accents folded first."""
    return slugify(strip_accents(name))


def generate_sku(provider_sku: str, name: str) -> str:
    """
    Deterministic catalog SKU for a supplier row.

    Uppercased supplier SKU (anything but letters, digits, underscore and
    hyphen becomes a hyphen) joined to the first 20 characters of the name
    slug, capped at 100 characters.

    "PROV@123", "Test & Product" → "PROV-123-test-product"

    The commit phase looks products up by this value, so it must stay stable
    for the same inputs.

    Raises:
        ValueError: Neither input has a usable character
    """
    sku_part = _SKU_DROP.sub("-", (provider_sku or "").strip().upper()).strip("-")
    name_part = slugify(name)[:SKU_NAME_PART_LENGTH].strip("-")

    sku = "-".join(part for part in (sku_part, name_part) if part)
    sku = sku[:SKU_MAX_LENGTH].strip("-")
    if not sku:
        raise ValueError(f"Cannot derive a SKU from {provider_sku!r} and {name!r}")
    return sku


def chunked(items: Sequence[T], size: int) -> list[list[T]]:
    """Split a sequence into consecutive lists of at most `size` items."""
    if size < 1:
        raise ValueError("size must be positive")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]
