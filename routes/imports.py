"""
Import API routes.

Stage supplier files, review them, map images and commit into the catalog.
"""

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
from typing import Optional
import structlog

from models.imports import (
    BatchListResponse,
    BatchStatus,
    CommitResponse,
    DetectProviderRequest,
    DetectProviderResponse,
    ImageMatchResponse,
    ImageSuggestionsResponse,
    PreviewResponse,
    SaveImageMappingsRequest,
    SaveImageMappingsResponse,
    StageImportRequest,
    StageImportResponse,
)
from parsers import detect_provider
from services.import_service import (
    NO_ROWS_ERROR,
    PERSIST_ERROR,
    PROCESSING_ERROR,
    get_import_service,
)
from services.commit_service import get_commit_service
from exceptions import AppError

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/imports", tags=["Imports"])

# Batch-level stage failure -> HTTP status
STAGE_ERROR_STATUS = {
    "FILE_DOWNLOAD_ERROR": 502,
    "IMPORT_FILE_PARSE_ERROR": 422,
    NO_ROWS_ERROR: 422,
    PERSIST_ERROR: 500,
    PROCESSING_ERROR: 500,
}


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


def _match_responses(matches) -> list[ImageMatchResponse]:
    return [ImageMatchResponse(**m.to_dict()) for m in matches]


# ===================
# STAGE / LIST
# ===================

@router.post("", response_model=StageImportResponse)
def stage_import(request: StageImportRequest):
    """
    Stage a supplier file.

    Downloads the file, parses it with the provider's adapter and stores
    one import item per row. Returns 200 when every row failed validation
    too; the batch status then reads "failed".

    Plain def: FastAPI runs it in the threadpool while the download and
    inserts block.
    """
    try:
        service = get_import_service()
        result = service.stage_import(request)

        if result.error_code:
            return JSONResponse(
                status_code=STAGE_ERROR_STATUS.get(result.error_code, 500),
                content=result.model_dump(mode="json")
            )
        return result

    except Exception as e:
        return handle_error(e)


@router.get("", response_model=BatchListResponse)
async def list_batches(
    limit: int = Query(20, ge=1, le=100, description="Max batches returned"),
    status: Optional[BatchStatus] = Query(None, description="Filter by batch status"),
):
    """List recent import batches, newest first."""
    try:
        service = get_import_service()
        return service.list_batches(limit=limit, status=status)
    except Exception as e:
        return handle_error(e)


@router.post("/detect-provider", response_model=DetectProviderResponse)
async def detect_provider_from_headers(request: DetectProviderRequest):
    """
    Guess the provider from a header row.

    Assistive only; staging always uses the provider given by the caller.
    """
    return DetectProviderResponse(provider_code=detect_provider(request.headers))


# ===================
# BATCH ROUTES
# ===================

@router.get("/{batch_id}/preview", response_model=PreviewResponse)
async def preview_import(batch_id: str):
    """Row counts plus up to 10 valid and 20 failed sample rows."""
    try:
        service = get_import_service()
        return service.preview_import(batch_id)
    except Exception as e:
        return handle_error(e)


@router.post("/{batch_id}/commit", response_model=CommitResponse)
def commit_import(batch_id: str):
    """
    Commit staged rows into products, variants and media.

    Plain def so the row loop runs in the threadpool.

    Raises:
        404: Batch not found
        409: Batch already committed or commit in progress
        422: No valid items to commit
    """
    try:
        service = get_commit_service()
        return service.commit_import(batch_id)
    except Exception as e:
        return handle_error(e)


@router.put("/{batch_id}/image-map", response_model=SaveImageMappingsResponse)
async def save_image_mappings(batch_id: str, request: SaveImageMappingsRequest):
    """Replace the batch's image mappings for the SKUs in the request."""
    try:
        service = get_import_service()
        saved = service.save_image_mappings(batch_id, request.mappings)
        return SaveImageMappingsResponse(mappings_saved=saved)
    except Exception as e:
        return handle_error(e)


@router.get("/{batch_id}/image-suggestions", response_model=ImageSuggestionsResponse)
async def suggest_image_matches(
    batch_id: str,
    threshold: Optional[float] = Query(None, ge=0.0, le=1.0, description="Largest score returned"),
):
    """Best row for each unmapped image of the batch."""
    try:
        service = get_import_service()
        matches = service.suggest_image_matches(batch_id, threshold=threshold)
        return ImageSuggestionsResponse(batch_id=batch_id, matches=_match_responses(matches))
    except Exception as e:
        return handle_error(e)


@router.get(
    "/{batch_id}/image-suggestions/{provider_sku}",
    response_model=ImageSuggestionsResponse
)
async def suggest_images_for_sku(batch_id: str, provider_sku: str):
    """Unmapped images ranked for one row."""
    try:
        service = get_import_service()
        matches = service.suggest_images_for_sku(batch_id, provider_sku)
        return ImageSuggestionsResponse(batch_id=batch_id, matches=_match_responses(matches))
    except Exception as e:
        return handle_error(e)
