"""
Commit service: publish a staged batch into the product catalog.

Flow:
1. Claim the batch (status -> committing) with a conditional update
2. For each staged item: upsert the product by derived SKU, then the
   single stock variant; mark the item committed or failed
3. Attach confirmed image mappings as media
4. Mark the batch committed

A row failure never stops the loop. Variant and image failures are logged
and counted as warnings.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional
import structlog

from config import get_supabase_client, settings
from exceptions import (
    BatchAlreadyCommittedError,
    BatchCommitInProgressError,
    DatabaseError,
    ImportBatchNotFoundError,
    NoStagedItemsError,
)
from models.imports import (
    BatchStatus,
    CommitResponse,
    CommitSummary,
    ItemStage,
    StagedItem,
)
from utils.hash_utils import sha256_hex
from utils.text_utils import chunked, generate_sku, product_slug

logger = structlog.get_logger(__name__)

BATCH_TABLE = "import_batch"
ITEM_TABLE = "import_item"
IMAGE_MAP_TABLE = "image_map"
PRODUCTS_TABLE = "products"
VARIANT_TABLE = "product_variant"
MEDIA_TABLE = "media"

VARIANT_SKU_SUFFIX = "-VAR"
MEDIA_SOURCE = "uploadthing"


class RowOutcome:
    INSERTED = "inserted"
    UPDATED = "updated"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class CommitTally:
    """Counts and per-row outcomes threaded through the row loop."""
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    warnings: int = 0
    images_attached: int = 0
    outcomes: list[tuple[str, str]] = field(default_factory=list)

    def record(self, provider_sku: str, outcome: str) -> None:
        setattr(self, outcome, getattr(self, outcome) + 1)
        self.outcomes.append((provider_sku, outcome))

    def to_summary(self, total: int) -> CommitSummary:
        return CommitSummary(
            inserted=self.inserted,
            updated=self.updated,
            skipped=self.skipped,
            failed=self.failed,
            total=total,
            warnings=self.warnings,
            images_attached=self.images_attached,
        )


def variant_sku_for(product_sku: str) -> str:
    return f"{product_sku}{VARIANT_SKU_SUFFIX}"


def build_product_data(staged: StagedItem, sku: str, slug: str) -> dict:
    """Product columns written on insert and update."""
    return {
        "name": staged.name,
        "slug": slug,
        "sku": sku,
        "description": staged.description or None,
        "brand": staged.brand or None,
        "motorcycle_brand": staged.brand or None,
        "motorcycle_model": staged.model or None,
        "price": staged.price if staged.price is not None else 0,
        "compare_at_price": staged.price_discounted or staged.msrp or None,
        "status": "active",
        "updated_at": datetime.now(timezone.utc).isoformat(),
    }


class CommitService:
    """Commits import batches into products, variants and media."""

    def __init__(self, db=None):
        self.db = db or get_supabase_client()

    def commit_import(self, batch_id: str) -> CommitResponse:
        """
        Commit every staged item of a batch.

        Args:
            batch_id: Import batch ID

        Returns:
            CommitResponse with the per-batch summary

        Raises:
            ImportBatchNotFoundError: No such batch
            BatchAlreadyCommittedError: Batch was committed before
            BatchCommitInProgressError: Another commit holds the batch
            NoStagedItemsError: Nothing in stage=staged
            DatabaseError: Batch-level query failed
        """
        batch = self._get_batch(batch_id)
        prior_status = batch["status"]

        if prior_status == BatchStatus.COMMITTED.value:
            raise BatchAlreadyCommittedError(batch_id)
        if prior_status == BatchStatus.COMMITTING.value:
            raise BatchCommitInProgressError(batch_id)

        self._claim_batch(batch_id)

        try:
            items = self._get_staged_items(batch_id)
            if not items:
                raise NoStagedItemsError(batch_id)

            logger.info("import_commit_started", batch_id=batch_id, items=len(items))

            tally = CommitTally()
            for chunk in chunked(items, settings.import_commit_chunk_size):
                for item in chunk:
                    self._commit_row(item, tally)

            self._attach_images(batch_id, tally)
            self._set_status(batch_id, BatchStatus.COMMITTED)
        except Exception:
            self._release_batch(batch_id, prior_status)
            raise

        summary = tally.to_summary(total=len(items))

        logger.info(
            "import_commit_completed",
            batch_id=batch_id,
            **summary.model_dump()
        )

        return CommitResponse(batch_id=batch_id, summary=summary)

    # ===================
    # BATCH STATE
    # ===================

    def _get_batch(self, batch_id: str) -> dict:
        try:
            result = (
                self.db.table(BATCH_TABLE)
                .select("id, status")
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

    def _claim_batch(self, batch_id: str) -> None:
        """Move the batch to committing unless another caller got there first."""
        try:
            result = (
                self.db.table(BATCH_TABLE)
                .update({"status": BatchStatus.COMMITTING.value})
                .eq("id", batch_id)
                .neq("status", BatchStatus.COMMITTED.value)
                .neq("status", BatchStatus.COMMITTING.value)
                .execute()
            )
        except Exception as e:
            logger.error("claim_import_batch_failed", batch_id=batch_id, error=str(e))
            raise DatabaseError("update", str(e))

        if result.data:
            return

        current = self._get_batch(batch_id)
        logger.warning("import_batch_claim_lost", batch_id=batch_id, status=current["status"])
        if current["status"] == BatchStatus.COMMITTED.value:
            raise BatchAlreadyCommittedError(batch_id)
        raise BatchCommitInProgressError(batch_id)

    def _release_batch(self, batch_id: str, prior_status: str) -> None:
        try:
            self.db.table(BATCH_TABLE).update({"status": prior_status}).eq("id", batch_id).execute()
            logger.info("import_batch_claim_released", batch_id=batch_id, status=prior_status)
        except Exception as e:
            logger.error("release_import_batch_failed", batch_id=batch_id, error=str(e))

    def _set_status(self, batch_id: str, status: BatchStatus) -> None:
        try:
            self.db.table(BATCH_TABLE).update({"status": status.value}).eq("id", batch_id).execute()
        except Exception as e:
            logger.error("update_batch_status_failed", batch_id=batch_id, status=status.value, error=str(e))
            raise DatabaseError("update", str(e))

    def _get_staged_items(self, batch_id: str) -> list[dict]:
        try:
            result = (
                self.db.table(ITEM_TABLE)
                .select("*")
                .eq("batch_id", batch_id)
                .eq("stage", ItemStage.STAGED.value)
                .execute()
            )
        except Exception as e:
            logger.error("get_staged_items_failed", batch_id=batch_id, error=str(e))
            raise DatabaseError("select", str(e))
        return result.data or []

    # ===================
    # ROWS
    # ===================

    def _commit_row(self, item: dict, tally: CommitTally) -> None:
        """Commit one item; failures are recorded on the item, never raised."""
        provider_sku = item.get("provider_sku") or ""

        try:
            staged = StagedItem.from_dict(item["staged_json"])
            sku = generate_sku(staged.provider_sku, staged.name)
            row_hash = item.get("row_hash")
            track_hash = settings.import_skip_unchanged_rows

            existing = self._find_product(sku, with_row_hash=track_hash)

            if (
                existing
                and track_hash
                and row_hash
                and existing.get("import_row_hash") == row_hash
            ):
                outcome = RowOutcome.SKIPPED
            else:
                product_data = build_product_data(staged, sku, product_slug(staged.name))
                if track_hash:
                    product_data["import_row_hash"] = row_hash

                if existing:
                    self.db.table(PRODUCTS_TABLE).update(product_data).eq("id", existing["id"]).execute()
                    product_id = existing["id"]
                    outcome = RowOutcome.UPDATED
                else:
                    result = self.db.table(PRODUCTS_TABLE).insert(product_data).execute()
                    if not result.data:
                        raise DatabaseError("insert", f"No product row returned for {sku}")
                    product_id = result.data[0]["id"]
                    outcome = RowOutcome.INSERTED

                if staged.stock is not None:
                    self._upsert_variant(product_id, sku, staged, tally)

            self._set_item_stage(item["id"], ItemStage.COMMITTED)
            tally.record(provider_sku, outcome)

            logger.debug("commit_row_done", provider_sku=provider_sku, sku=sku, outcome=outcome)

        except Exception as e:
            tally.record(provider_sku, RowOutcome.FAILED)
            logger.warning(
                "commit_row_failed",
                item_id=item.get("id"),
                provider_sku=provider_sku,
                error=str(e),
                error_type=type(e).__name__
            )
            try:
                self._set_item_stage(item["id"], ItemStage.FAILED, error_text=str(e) or "Unknown error")
            except Exception as mark_error:
                logger.error(
                    "mark_item_failed_failed",
                    item_id=item.get("id"),
                    error=str(mark_error)
                )

    def _find_product(self, sku: str, with_row_hash: bool = False) -> Optional[dict]:
        # products.import_row_hash only exists once scripts/sql/add_import_row_hash.sql ran
        columns = "id, sku, import_row_hash" if with_row_hash else "id, sku"
        result = (
            self.db.table(PRODUCTS_TABLE)
            .select(columns)
            .eq("sku", sku)
            .limit(1)
            .execute()
        )
        return result.data[0] if result.data else None

    def _upsert_variant(
        self,
        product_id: str,
        sku: str,
        staged: StagedItem,
        tally: CommitTally
    ) -> None:
        """Single variant per product carrying price, stock and warehouse/unit."""
        variant_sku = variant_sku_for(sku)
        variant_data = {
            "product_id": product_id,
            "variant_sku": variant_sku,
            "price": staged.price,
            "stock": staged.stock,
            "attrs": {
                "warehouse": staged.warehouse,
                "unit": staged.unit,
            },
        }

        try:
            result = (
                self.db.table(VARIANT_TABLE)
                .select("id")
                .eq("variant_sku", variant_sku)
                .limit(1)
                .execute()
            )
            if result.data:
                self.db.table(VARIANT_TABLE).update(variant_data).eq("id", result.data[0]["id"]).execute()
            else:
                self.db.table(VARIANT_TABLE).insert(variant_data).execute()
        except Exception as e:
            tally.warnings += 1
            logger.warning("variant_upsert_failed", variant_sku=variant_sku, error=str(e))

    def _set_item_stage(
        self,
        item_id: str,
        stage: ItemStage,
        error_text: Optional[str] = None
    ) -> None:
        data = {"stage": stage.value}
        if stage == ItemStage.FAILED:
            data["error_text"] = error_text
        self.db.table(ITEM_TABLE).update(data).eq("id", item_id).execute()

    # ===================
    # IMAGES
    # ===================

    def _attach_images(self, batch_id: str, tally: CommitTally) -> None:
        """Turn confirmed image mappings into media rows."""
        try:
            result = (
                self.db.table(IMAGE_MAP_TABLE)
                .select("*")
                .eq("batch_id", batch_id)
                .neq("provider_sku", "")
                .execute()
            )
        except Exception as e:
            tally.warnings += 1
            logger.warning("image_map_fetch_failed", batch_id=batch_id, error=str(e))
            return

        mappings = [m for m in (result.data or []) if m.get("provider_sku")]
        if not mappings:
            return

        for mapping in mappings:
            try:
                if self._attach_image(batch_id, mapping):
                    tally.images_attached += 1
            except Exception as e:
                tally.warnings += 1
                logger.warning(
                    "image_attach_failed",
                    batch_id=batch_id,
                    provider_sku=mapping.get("provider_sku"),
                    url=str(mapping.get("url"))[:120],
                    error=str(e)
                )

        logger.info(
            "images_attached",
            batch_id=batch_id,
            mappings=len(mappings),
            attached=tally.images_attached
        )

    def _attach_image(self, batch_id: str, mapping: dict) -> bool:
        """
        Attach one mapped image.

        Returns:
            True if a media row was inserted, False if the row was not
            committed, the product is missing or the URL is already attached
        """
        result = (
            self.db.table(ITEM_TABLE)
            .select("staged_json")
            .eq("batch_id", batch_id)
            .eq("provider_sku", mapping["provider_sku"])
            .eq("stage", ItemStage.COMMITTED.value)
            .limit(1)
            .execute()
        )
        if not result.data:
            return False

        staged = StagedItem.from_dict(result.data[0]["staged_json"])
        product = self._find_product(generate_sku(staged.provider_sku, staged.name))
        if not product:
            return False

        url_hash = sha256_hex(mapping["url"])
        existing = (
            self.db.table(MEDIA_TABLE)
            .select("id")
            .eq("sha256", url_hash)
            .limit(1)
            .execute()
        )
        if existing.data:
            return False

        last = (
            self.db.table(MEDIA_TABLE)
            .select("sort")
            .eq("product_id", product["id"])
            .order("sort", desc=True)
            .limit(1)
            .execute()
        )
        sort = ((last.data[0].get("sort") or 0) if last.data else 0) + 1

        self.db.table(MEDIA_TABLE).insert({
            "product_id": product["id"],
            "url": mapping["url"],
            "is_primary": bool(mapping.get("is_primary")) or sort == 1,
            "sort": sort,
            "sha256": url_hash,
            "source": MEDIA_SOURCE,
        }).execute()

        logger.debug("image_attached", product_id=product["id"], sort=sort)
        return True


# Singleton instance
_commit_service: Optional[CommitService] = None


def get_commit_service() -> CommitService:
    """Get or create CommitService instance."""
    global _commit_service
    if _commit_service is None:
        _commit_service = CommitService()
    return _commit_service
