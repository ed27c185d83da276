"""
Fuzzy matching of uploaded image file names to staged rows.

Suppliers send photos named after the product ("casco-integral-k3-rojo.jpg")
rather than by SKU, so each file name is compared against a search string
built from the row's name, model, brand and SKU.

Scores run from 0 (perfect) to 1 (nothing in common).
"""

from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Optional, Sequence
import re
import structlog
from rapidfuzz import fuzz

from config import settings
from models.imports import MatchConfidence, StagedItem
from utils.text_utils import strip_accents

logger = structlog.get_logger(__name__)

HIGH_CONFIDENCE_BELOW = 0.2
MEDIUM_CONFIDENCE_BELOW = 0.4
SKU_SUGGESTION_THRESHOLD = 0.5
MIN_QUERY_LENGTH = 3

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


@dataclass
class ImageFile:
    """Image uploaded alongside a data file."""
    file_name: str
    url: str


@dataclass
class ImageMatch:
    """Best staged row for one image file."""
    provider_sku: str
    file_name: str
    url: str
    score: float
    confidence: MatchConfidence

    def to_dict(self) -> dict:
        return {
            "provider_sku": self.provider_sku,
            "file_name": self.file_name,
            "url": self.url,
            "score": self.score,
            "confidence": self.confidence.value,
        }


# ===================
# SCORING
# ===================

def normalize_for_match(text: str) -> str:
    """Lower-case, accent-free, punctuation replaced by single spaces."""
    return _NON_ALNUM.sub(" ", strip_accents(text).lower()).strip()


def build_search_string(item: StagedItem) -> str:
    """Name, model, brand and SKU of a row, absent fields skipped."""
    parts = [item.name, item.model, item.brand, item.provider_sku]
    return normalize_for_match(" ".join(p for p in parts if p))


def file_stem(file_name: str) -> str:
    """File name without directories or extension."""
    return PurePosixPath(file_name.replace("\\", "/")).stem


def similarity(query: str, target: str) -> float:
    """
    Best-window similarity in [0, 1].

    The shorter string is aligned against every window of the longer one.
    A file name that appears whole inside a longer search string scores 1.0.
    """
    if not query or not target:
        return 0.0
    return fuzz.partial_ratio(query, target) / 100.0


def match_score(query: str, target: str) -> float:
    """Distance score, 0 = identical."""
    return round(1.0 - similarity(query, target), 4)


def confidence_for(score: float) -> MatchConfidence:
    if score < HIGH_CONFIDENCE_BELOW:
        return MatchConfidence.HIGH
    if score < MEDIUM_CONFIDENCE_BELOW:
        return MatchConfidence.MEDIUM
    return MatchConfidence.LOW


# ===================
# MATCHING
# ===================

def fuzzy_match_images(
    staged_items: Sequence[StagedItem],
    image_files: Sequence[ImageFile],
    threshold: Optional[float] = None
) -> list[ImageMatch]:
    """
    Suggest one staged row per image file.

    Args:
        staged_items: Rows of the batch
        image_files: Uploaded images
        threshold: Largest score returned (defaults to settings)

    Returns:
        Matches sorted best first. Images with no row within the
        threshold are left out.
    """
    if threshold is None:
        threshold = settings.fuzzy_match_threshold

    if not staged_items or not image_files:
        return []

    corpus = [(item, build_search_string(item)) for item in staged_items]

    matches = []
    for image in image_files:
        query = normalize_for_match(file_stem(image.file_name))
        if len(query) < MIN_QUERY_LENGTH:
            continue

        best_item = None
        best_score = 1.0
        for item, search_string in corpus:
            score = match_score(query, search_string)
            if best_item is None or score < best_score:
                best_item, best_score = item, score

        if best_item is None or best_score > threshold:
            continue

        matches.append(ImageMatch(
            provider_sku=best_item.provider_sku,
            file_name=image.file_name,
            url=image.url,
            score=best_score,
            confidence=confidence_for(best_score),
        ))

    matches.sort(key=lambda m: m.score)

    logger.debug(
        "image_matches_computed",
        images=len(image_files),
        items=len(staged_items),
        matches=len(matches),
        threshold=threshold
    )

    return matches


def get_suggested_matches_for_sku(
    provider_sku: str,
    image_files: Sequence[ImageFile],
    staged_items: Sequence[StagedItem]
) -> list[ImageMatch]:
    """
    Rank image files for one row.

    Returns:
        Images scoring below 0.5, best first. Unknown SKU → [].
    """
    item = next((i for i in staged_items if i.provider_sku == provider_sku), None)
    if item is None:
        return []

    search_string = build_search_string(item)

    matches = []
    for image in image_files:
        query = normalize_for_match(file_stem(image.file_name))
        if len(query) < MIN_QUERY_LENGTH:
            continue

        score = match_score(query, search_string)
        if score < SKU_SUGGESTION_THRESHOLD:
            matches.append(ImageMatch(
                provider_sku=provider_sku,
                file_name=image.file_name,
                url=image.url,
                score=score,
                confidence=confidence_for(score),
            ))

    matches.sort(key=lambda m: m.score)
    return matches
