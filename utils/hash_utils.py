"""
Content hashes used by the import pipeline.

Row hashes fingerprint the catalog-relevant content of a staged row so an
unchanged row can be recognized on a later import. URL hashes key Media rows.
"""

import hashlib
import json
from enum import Enum
from typing import Any, Optional

from models.imports import StagedItem


def sha256_hex(text: str) -> str:
    """SHA-256 of a UTF-8 string, hex encoded (64 chars)."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def _text(value: Any) -> str:
    if value is None:
        return ""
    return value.value if isinstance(value, Enum) else value


def _number(value: Any) -> Optional[float]:
    # 1500 and 1500.0 must hash the same
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return float(value)
    return value


def _integer(value: Any) -> Optional[int]:
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def canonical_row(item: StagedItem) -> dict:
    """
    Fields that define a row's identity for change detection.

    Missing optional text becomes "" and missing numbers become None, so two
    rows with the same content always serialize the same way.
    """
    return {
        "providerCode": _text(item.provider_code),
        "providerSku": item.provider_sku or "",
        "name": item.name or "",
        "brand": _text(item.brand),
        "model": _text(item.model),
        "category": _text(item.category),
        "price": _number(item.price),
        "priceDiscounted": _number(item.price_discounted),
        "msrp": _number(item.msrp),
        "stock": _integer(item.stock),
        "unit": _text(item.unit),
        "warehouse": _text(item.warehouse),
    }


def compute_row_hash(item: StagedItem) -> str:
    """
    Deterministic 64-char hex fingerprint of a staged row.

    Keys are serialized in sorted order; description, currency, extra and
    image hints are not part of the fingerprint.
    """
    serialized = json.dumps(
        canonical_row(item),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )
    return sha256_hex(serialized)
