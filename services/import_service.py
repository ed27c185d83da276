"""
Import service: staging, preview and image mappings.

Staging flow (one synchronous call per uploaded file):
1. Create import_batch (status=uploaded)
2. Download the file and detect CSV vs spreadsheet
3. Parse rows with the adapter of the declared provider
4. Validate and hash every parsed row
5. Insert import_item rows in chunks
6. Store uploaded images as unmapped image_map rows
7. Mark the batch staged, or failed when no row is valid

Batch-level failures do not raise: the batch is marked failed and the
returned StageImportResponse carries error_code and error.
"""

from dataclasses import dataclass, field
from typing import Optional
import structlog

from config import get_supabase_client, settings
from exceptions import (
    DatabaseError,
    FileDownloadError,
    FileParseError,
    ImportBatchNotFoundError,
)
from integrations.file_download import download_file
from models.imports import (
    BatchInfo,
    BatchListResponse,
    BatchStatus,
    FailedRowSample,
    ImageMappingIn,
    ItemStage,
    PreviewResponse,
    PreviewSamples,
    PreviewSummary,
    StagedItem,
    StageImportRequest,
    StageImportResponse,
    ValidRowSample,
)
from parsers import get_adapter
from parsers.file_reader import detect_file_format, read_rows
from services.fuzzy_match_service import (
    ImageFile,
    ImageMatch,
    fuzzy_match_images,
    get_suggested_matches_for_sku,
)
from utils.hash_utils import compute_row_hash
from utils.text_utils import chunked

logger = structlog.get_logger(__name__)

BATCH_TABLE = "import_batch"
ITEM_TABLE = "import_item"
IMAGE_MAP_TABLE = "image_map"

PREVIEW_VALID_SAMPLES = 10
PREVIEW_FAILED_SAMPLES = 20
MAX_BATCH_LIST_LIMIT = 100

NO_ROWS_ERROR = "IMPORT_NO_ROWS"
PERSIST_ERROR = "DATABASE_ERROR"
PROCESSING_ERROR = "IMPORT_PROCESSING_ERROR"


class StageAborted(Exception):
    """Batch-level failure inside stage_import."""

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(message)


@dataclass
class StageCounts:
    total: int = 0
    valid: int = 0
    failed: int = 0
    items: list[dict] = field(default_factory=list)


class ImportService:
    """
    Stage supplier files into import batches.

    Preview, batch listing and image mapping work on batches already staged.
    """

    def __init__(self, db=None):
        self.db = db or get_supabase_client()

    # ===================
    # STAGE
    # ===================

    def stage_import(self, request: StageImportRequest) -> StageImportResponse:
        """
        Stage a supplier file.

        Args:
            request: Provider, file URL and optional uploaded images

        Returns:
            StageImportResponse with row counts and final batch status

        Raises:
            UnknownProviderError: Provider has no adapter
            DatabaseError: The batch row itself could not be created
        """
        adapter = get_adapter(request.provider_code)
        batch_id = self._create_batch(request)

        logger.info(
            "import_batch_created",
            batch_id=batch_id,
            provider=adapter.provider_code.value,
            file_url=request.file_url[:120]
        )

        try:
            counts = self._stage_rows(batch_id, adapter, request.file_url)
            self._persist_items(batch_id, counts.items)
        except StageAborted as e:
            self._fail_batch(batch_id)
            logger.error("import_stage_failed", batch_id=batch_id, code=e.code, error=e.message)
            return StageImportResponse(
                batch_id=batch_id,
                status=BatchStatus.FAILED,
                error_code=e.code,
                error=e.message,
            )
        except Exception as e:
            self._fail_batch(batch_id)
            logger.error(
                "import_stage_crashed",
                batch_id=batch_id,
                error=str(e),
                error_type=type(e).__name__
            )
            return StageImportResponse(
                batch_id=batch_id,
                status=BatchStatus.FAILED,
                error_code=PROCESSING_ERROR,
                error="Import processing failed",
            )

        if request.image_files:
            self._store_unmapped_images(batch_id, request.image_files)

        status = BatchStatus.FAILED if counts.valid == 0 else BatchStatus.STAGED
        self._set_batch_status(batch_id, status)

        logger.info(
            "import_batch_staged",
            batch_id=batch_id,
            status=status.value,
            total_rows=counts.total,
            valid_rows=counts.valid,
            failed_rows=counts.failed
        )

        return StageImportResponse(
            batch_id=batch_id,
            total_rows=counts.total,
            valid_rows=counts.valid,
            failed_rows=counts.failed,
            status=status,
        )

    def _create_batch(self, request: StageImportRequest) -> str:
        try:
            result = (
                self.db.table(BATCH_TABLE)
                .insert({
                    "provider_code": request.provider_code.value,
                    "status": BatchStatus.UPLOADED.value,
                    "created_by": request.created_by,
                })
                .execute()
            )
        except Exception as e:
            logger.error("create_import_batch_failed", error=str(e))
            raise DatabaseError("insert", str(e))

        if not result.data:
            raise DatabaseError("insert", "No batch row returned")
        return result.data[0]["id"]

    def _stage_rows(self, batch_id: str, adapter, file_url: str) -> StageCounts:
        """Download, parse, validate and hash every row of the file."""
        try:
            downloaded = download_file(file_url)
        except FileDownloadError as e:
            raise StageAborted(e.code, e.message)

        file_format = detect_file_format(file_url, downloaded.content)

        try:
            rows = read_rows(downloaded.content, file_format)
        except FileParseError as e:
            raise StageAborted(e.code, e.message)

        # Title rows above the data only exist in spreadsheet exports
        skip = adapter.skip_rows(settings) if file_format.is_spreadsheet else 0
        rows = rows[skip:]

        staged_items = []
        for index, row in enumerate(rows):
            staged = adapter.parse_row(row, index + skip)
            if staged is not None:
                staged_items.append(staged)

        logger.info(
            "import_file_parsed",
            batch_id=batch_id,
            format=file_format.value,
            rows=len(rows),
            staged_items=len(staged_items),
            skipped_rows=skip
        )

        if not staged_items:
            raise StageAborted(NO_ROWS_ERROR, "No valid rows found in file")

        counts = StageCounts(total=len(staged_items))
        for staged in staged_items:
            validation = adapter.validate_row(staged)
            if validation.valid:
                counts.valid += 1
            else:
                counts.failed += 1

            counts.items.append({
                "batch_id": batch_id,
                "provider_sku": staged.provider_sku,
                "staged_json": staged.to_dict(),
                "stage": (ItemStage.STAGED if validation.valid else ItemStage.FAILED).value,
                "error_text": validation.error_text,
                "row_hash": compute_row_hash(staged),
            })

        return counts

    def _persist_items(self, batch_id: str, items: list[dict]) -> None:
        """Insert items in chunks; on any chunk failure remove what was written."""
        chunk_size = settings.import_stage_chunk_size

        for chunk_index, chunk in enumerate(chunked(items, chunk_size)):
            try:
                self.db.table(ITEM_TABLE).insert(chunk).execute()
            except Exception as e:
                logger.error(
                    "import_items_insert_failed",
                    batch_id=batch_id,
                    chunk=chunk_index,
                    chunk_size=len(chunk),
                    error=str(e)
                )
                self._delete_items(batch_id)
                raise StageAborted(PERSIST_ERROR, "Failed to insert import items")

        logger.debug("import_items_inserted", batch_id=batch_id, count=len(items))

    def _delete_items(self, batch_id: str) -> None:
        try:
            self.db.table(ITEM_TABLE).delete().eq("batch_id", batch_id).execute()
        except Exception as e:
            logger.warning("import_items_cleanup_failed", batch_id=batch_id, error=str(e))

    def _store_unmapped_images(self, batch_id: str, image_files: list) -> None:
        """Image rows with a blank SKU, matched to rows later."""
        rows = [
            {
                "batch_id": batch_id,
                "provider_sku": "",
                "uploadthing_filename": image.file_name,
                "url": image.url,
            }
            for image in image_files
        ]

        for chunk in chunked(rows, settings.import_stage_chunk_size):
            try:
                self.db.table(IMAGE_MAP_TABLE).insert(chunk).execute()
            except Exception as e:
                logger.warning(
                    "unmapped_images_insert_failed",
                    batch_id=batch_id,
                    count=len(chunk),
                    error=str(e)
                )

    def _set_batch_status(self, batch_id: str, status: BatchStatus) -> None:
        try:
            self.db.table(BATCH_TABLE).update({"status": status.value}).eq("id", batch_id).execute()
        except Exception as e:
            logger.error("update_batch_status_failed", batch_id=batch_id, status=status.value, error=str(e))
            raise DatabaseError("update", str(e))

    def _fail_batch(self, batch_id: str) -> None:
        try:
            self._set_batch_status(batch_id, BatchStatus.FAILED)
        except DatabaseError:
            # Already logged; the caller still gets the failed response
            pass

    # ===================
    # BATCHES
    # ===================

    def get_batch(self, batch_id: str) -> dict:
        """
        Get one batch row.

        Raises:
            ImportBatchNotFoundError: No such batch
            DatabaseError: Query failed
        """
        try:
            result = (
                self.db.table(BATCH_TABLE)
                .select("*")
                .eq("id", batch_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error("get_import_batch_failed", batch_id=batch_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            raise ImportBatchNotFoundError(batch_id)
        return result.data[0]

    def list_batches(
        self,
        limit: int = 20,
        status: Optional[BatchStatus] = None
    ) -> BatchListResponse:
        """Most recent batches first."""
        limit = max(1, min(limit, MAX_BATCH_LIST_LIMIT))

        try:
            query = self.db.table(BATCH_TABLE).select("*", count="exact")
            if status:
                query = query.eq("status", status.value)
            result = query.order("created_at", desc=True).limit(limit).execute()
        except Exception as e:
            logger.error("list_import_batches_failed", error=str(e))
            raise DatabaseError("select", str(e))

        batches = [self._batch_info(row) for row in result.data]
        total = result.count if result.count is not None else len(batches)
        return BatchListResponse(data=batches, total=total)

    def _batch_info(self, row: dict) -> BatchInfo:
        return BatchInfo(
            id=row["id"],
            provider_code=row["provider_code"],
            status=row["status"],
            created_at=row.get("created_at"),
            created_by=row.get("created_by"),
        )

    # ===================
    # PREVIEW
    # ===================

    def preview_import(self, batch_id: str) -> PreviewResponse:
        """
        Summary and row samples of a batch for review before commit.

        Valid samples are capped at 10, failed samples at 20.
        """
        batch = self.get_batch(batch_id)
        items = self._get_items(batch_id, columns="provider_sku, staged_json, stage, error_text")

        valid_items = [i for i in items if i["stage"] == ItemStage.STAGED.value]
        failed_items = [i for i in items if i["stage"] == ItemStage.FAILED.value]

        valid_samples = []
        for item in valid_items[:PREVIEW_VALID_SAMPLES]:
            staged = item.get("staged_json") or {}
            valid_samples.append(ValidRowSample(
                provider_sku=item["provider_sku"],
                name=staged.get("name") or "N/A",
                price=staged.get("price"),
                stock=staged.get("stock"),
            ))

        failed_samples = []
        for item in failed_items[:PREVIEW_FAILED_SAMPLES]:
            staged = item.get("staged_json") or {}
            error_text = item.get("error_text")
            failed_samples.append(FailedRowSample(
                provider_sku=item["provider_sku"],
                name=staged.get("name") or "N/A",
                errors=error_text.split("; ") if error_text else [],
            ))

        return PreviewResponse(
            batch=self._batch_info(batch),
            summary=PreviewSummary(
                total_rows=len(items),
                valid_rows=len(valid_items),
                failed_rows=len(failed_items),
            ),
            samples=PreviewSamples(valid=valid_samples, failed=failed_samples),
        )

    def _get_items(
        self,
        batch_id: str,
        columns: str = "*",
        stage: Optional[ItemStage] = None
    ) -> list[dict]:
        try:
            query = self.db.table(ITEM_TABLE).select(columns).eq("batch_id", batch_id)
            if stage:
                query = query.eq("stage", stage.value)
            result = query.execute()
        except Exception as e:
            logger.error("get_import_items_failed", batch_id=batch_id, error=str(e))
            raise DatabaseError("select", str(e))
        return result.data or []

    # ===================
    # IMAGE MAPPINGS
    # ===================

    def save_image_mappings(self, batch_id: str, mappings: list[ImageMappingIn]) -> int:
        """
        Replace the batch's mappings for the given SKUs.

        Returns:
            Number of mappings saved
        """
        self.get_batch(batch_id)

        if not mappings:
            return 0

        provider_skus = sorted({m.provider_sku for m in mappings})
        rows = [
            {
                "batch_id": batch_id,
                "provider_sku": m.provider_sku,
                "url": m.url,
                "is_primary": m.is_primary,
                "sort": m.sort,
            }
            for m in mappings
        ]

        try:
            (
                self.db.table(IMAGE_MAP_TABLE)
                .delete()
                .eq("batch_id", batch_id)
                .in_("provider_sku", provider_skus)
                .execute()
            )
            self.db.table(IMAGE_MAP_TABLE).insert(rows).execute()
        except Exception as e:
            logger.error("save_image_mappings_failed", batch_id=batch_id, error=str(e))
            raise DatabaseError("insert", str(e))

        logger.info("image_mappings_saved", batch_id=batch_id, count=len(rows), skus=len(provider_skus))
        return len(rows)

    def get_unmapped_images(self, batch_id: str) -> list[ImageFile]:
        """Uploaded images whose URL is not yet mapped to any row."""
        try:
            result = self.db.table(IMAGE_MAP_TABLE).select("*").eq("batch_id", batch_id).execute()
        except Exception as e:
            logger.error("get_image_map_failed", batch_id=batch_id, error=str(e))
            raise DatabaseError("select", str(e))

        rows = result.data or []
        mapped_urls = {r["url"] for r in rows if r.get("provider_sku")}

        return [
            ImageFile(file_name=r.get("uploadthing_filename") or r["url"], url=r["url"])
            for r in rows
            if not r.get("provider_sku") and r["url"] not in mapped_urls
        ]

    def _staged_items(self, batch_id: str) -> list[StagedItem]:
        items = self._get_items(batch_id, columns="staged_json", stage=ItemStage.STAGED)
        return [StagedItem.from_dict(i["staged_json"]) for i in items if i.get("staged_json")]

    def suggest_image_matches(
        self,
        batch_id: str,
        threshold: Optional[float] = None
    ) -> list[ImageMatch]:
        """Best row per unmapped image of the batch."""
        self.get_batch(batch_id)
        return fuzzy_match_images(
            self._staged_items(batch_id),
            self.get_unmapped_images(batch_id),
            threshold=threshold
        )

    def suggest_images_for_sku(self, batch_id: str, provider_sku: str) -> list[ImageMatch]:
        """Ranked unmapped images for one row."""
        self.get_batch(batch_id)
        return get_suggested_matches_for_sku(
            provider_sku,
            self.get_unmapped_images(batch_id),
            self._staged_items(batch_id)
        )


# Singleton instance
_import_service: Optional[ImportService] = None


def get_import_service() -> ImportService:
    """Get or create ImportService instance."""
    global _import_service
    if _import_service is None:
        _import_service = ImportService()
    return _import_service
