"""
Guess the supplier from a file's header row.

Assistive only: the caller always states the provider explicitly, and the
staging path never consults this.
"""

from typing import Optional
import structlog

from models.imports import ProviderCode

logger = structlog.get_logger(__name__)

MIN_INDICATOR_MATCHES = 3

# Checked in this order
PROVIDER_INDICATORS: tuple[tuple[ProviderCode, tuple[str, ...]], ...] = (
    (
        ProviderCode.MOTOS_Y_EQUIPOS,
        ("cod. com", "descrip.", "marca", "almacen", "disp.", "precio."),
    ),
    (
        ProviderCode.MRM,
        ("código", "descripción", "moto", "modelo", "unidad", "línea", "precio"),
    ),
)


def count_indicator_matches(headers: list[str], indicators: tuple[str, ...]) -> int:
    """Number of indicators contained in at least one header."""
    normalized = [str(h).lower().strip() for h in headers]
    return sum(
        1 for indicator in indicators
        if any(indicator in header for header in normalized)
    )


def detect_provider(headers: list[str]) -> Optional[ProviderCode]:
    """
    Detect the supplier layout from header names.

    Args:
        headers: Header row as read from the file

    Returns:
        ProviderCode when at least 3 indicators of a provider match, else None
    """
    for provider_code, indicators in PROVIDER_INDICATORS:
        matches = count_indicator_matches(headers, indicators)
        if matches >= MIN_INDICATOR_MATCHES:
            logger.debug("provider_detected", provider=provider_code.value, matches=matches)
            return provider_code

    logger.debug("provider_not_detected", header_count=len(headers))
    return None
