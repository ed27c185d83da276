"""
Unit tests for ImportService.

Run: pytest tests/unit/test_import_service.py -v
"""

from io import BytesIO

import pytest
from openpyxl import Workbook

from config import settings
from exceptions import DatabaseError, FileDownloadError, ImportBatchNotFoundError
from integrations.file_download import DownloadedFile
from models.imports import (
    BatchStatus,
    ImageFileIn,
    ImageMappingIn,
    ProviderCode,
    StageImportRequest,
)
from services.import_service import ImportService, get_import_service
from tests.factories import ImportBatchFactory, ImportItemFactory, StagedItemFactory


CSV_URL = "https://files.example.com/Disp_cte_admin.csv"
XLSX_URL = "https://files.example.com/Precios_OCT2026_A.xlsx"


def _request(provider=ProviderCode.MOTOS_Y_EQUIPOS, url=CSV_URL, **kwargs) -> StageImportRequest:
    return StageImportRequest(provider_code=provider, file_url=url, **kwargs)


def _batch_status(mock_supabase, batch_id: str) -> str:
    return next(b for b in mock_supabase.rows("import_batch") if b["id"] == batch_id)["status"]


class TestStageImport:
    """Tests for ImportService.stage_import()"""

    def test_three_row_file(self, mock_supabase, mock_download, motos_csv):
        """Valid row staged, invalid row failed, blank row dropped."""
        # Arrange
        mock_download.return_value = DownloadedFile(url=CSV_URL, content=motos_csv)
        service = ImportService(db=mock_supabase)

        # Act
        result = service.stage_import(_request(created_by="ops@example.com"))

        # Assert
        assert result.total_rows == 2
        assert result.valid_rows == 1
        assert result.failed_rows == 1
        assert result.status == BatchStatus.STAGED
        assert result.error_code is None
        assert _batch_status(mock_supabase, result.batch_id) == "staged"

        items = {i["provider_sku"]: i for i in mock_supabase.rows("import_item")}
        assert items["MY-100"]["stage"] == "staged"
        assert items["MY-100"]["error_text"] is None
        assert items["MY-100"]["staged_json"]["price"] == 1234.56
        assert len(items["MY-100"]["row_hash"]) == 64
        assert items["MY-200"]["stage"] == "failed"
        assert items["MY-200"]["error_text"] == "Stock cannot be negative"

        batch = mock_supabase.rows("import_batch")[0]
        assert batch["provider_code"] == "motos_y_equipos"
        assert batch["created_by"] == "ops@example.com"

    def test_download_failure_fails_batch(self, mock_supabase, mock_download):
        mock_download.side_effect = FileDownloadError(CSV_URL, "Failed to download file: 404 Not Found", status=404)
        service = ImportService(db=mock_supabase)

        result = service.stage_import(_request())

        assert result.status == BatchStatus.FAILED
        assert result.error_code == "FILE_DOWNLOAD_ERROR"
        assert _batch_status(mock_supabase, result.batch_id) == "failed"
        assert mock_supabase.rows("import_item") == []

    def test_file_without_rows_fails_batch(self, mock_supabase, mock_download):
        mock_download.return_value = DownloadedFile(url=CSV_URL, content=b"Cod. com,Descrip.\n,\n")
        service = ImportService(db=mock_supabase)

        result = service.stage_import(_request())

        assert result.status == BatchStatus.FAILED
        assert result.error_code == "IMPORT_NO_ROWS"
        assert result.total_rows == 0

    def test_unreadable_spreadsheet_fails_batch(self, mock_supabase, mock_download):
        mock_download.return_value = DownloadedFile(url=XLSX_URL, content=b"garbage")
        service = ImportService(db=mock_supabase)

        result = service.stage_import(_request(provider=ProviderCode.MRM, url=XLSX_URL))

        assert result.status == BatchStatus.FAILED
        assert result.error_code == "IMPORT_FILE_PARSE_ERROR"

    def test_all_rows_invalid_marks_batch_failed(self, mock_supabase, mock_download):
        """Every row failing validation is a failed batch, not an error."""
        content = b"Cod. com,Descrip.,Disp.\nA1,Faro,-1\nA2,Espejo,-4\n"
        mock_download.return_value = DownloadedFile(url=CSV_URL, content=content)
        service = ImportService(db=mock_supabase)

        result = service.stage_import(_request())

        assert result.status == BatchStatus.FAILED
        assert result.error_code is None
        assert result.failed_rows == 2
        assert len(mock_supabase.rows("import_item")) == 2

    def test_row_without_name_is_staged(self, mock_supabase, mock_download):
        content = b"Cod. com,Descrip.,Precio.\nA1,,$10\n"
        mock_download.return_value = DownloadedFile(url=CSV_URL, content=content)
        service = ImportService(db=mock_supabase)

        result = service.stage_import(_request())

        assert result.valid_rows == 1
        item = mock_supabase.rows("import_item")[0]
        assert item["stage"] == "staged"
        assert item["staged_json"]["name"] == "Sin nombre"

    def test_chunk_failure_removes_written_items(self, mock_supabase, mock_download, monkeypatch):
        # Arrange
        monkeypatch.setattr(settings, "import_stage_chunk_size", 1)
        content = b"Cod. com,Descrip.\nA1,Uno\nA2,Dos\nA3,Tres\n"
        mock_download.return_value = DownloadedFile(url=CSV_URL, content=content)
        mock_supabase.fail_on(
            "import_item", "insert",
            when=lambda q: q.rows[0]["provider_sku"] == "A2"
        )
        service = ImportService(db=mock_supabase)

        # Act
        result = service.stage_import(_request())

        # Assert
        assert result.status == BatchStatus.FAILED
        assert result.error_code == "DATABASE_ERROR"
        assert mock_supabase.rows("import_item") == []
        assert _batch_status(mock_supabase, result.batch_id) == "failed"

    def test_items_inserted_in_chunks(self, mock_supabase, mock_download, monkeypatch):
        monkeypatch.setattr(settings, "import_stage_chunk_size", 2)
        content = b"Cod. com,Descrip.\nA1,Uno\nA2,Dos\nA3,Tres\n"
        mock_download.return_value = DownloadedFile(url=CSV_URL, content=content)
        service = ImportService(db=mock_supabase)

        service.stage_import(_request())

        inserts = [q for q in mock_supabase.calls if q.table == "import_item" and q.operation == "insert"]
        assert [len(q.rows) for q in inserts] == [2, 1]

    def test_uploaded_images_stored_unmapped(self, mock_supabase, mock_download, motos_csv):
        mock_download.return_value = DownloadedFile(url=CSV_URL, content=motos_csv)
        service = ImportService(db=mock_supabase)
        images = [ImageFileIn(file_name="casco-k3.jpg", url="https://cdn.example.com/casco-k3.jpg")]

        result = service.stage_import(_request(image_files=images))

        rows = mock_supabase.rows("image_map")
        assert rows == [{
            "id": rows[0]["id"],
            "created_at": rows[0]["created_at"],
            "batch_id": result.batch_id,
            "provider_sku": "",
            "uploadthing_filename": "casco-k3.jpg",
            "url": "https://cdn.example.com/casco-k3.jpg",
        }]

    def test_image_insert_failure_does_not_fail_batch(self, mock_supabase, mock_download, motos_csv):
        mock_download.return_value = DownloadedFile(url=CSV_URL, content=motos_csv)
        mock_supabase.fail_on("image_map", "insert")
        service = ImportService(db=mock_supabase)
        images = [ImageFileIn(file_name="a.jpg", url="https://cdn.example.com/a.jpg")]

        result = service.stage_import(_request(image_files=images))

        assert result.status == BatchStatus.STAGED

    def test_mrm_spreadsheet_skips_title_rows(self, mock_supabase, mock_download):
        # Arrange
        workbook = Workbook()
        sheet = workbook.active
        sheet.append(["CÓDIGO", "DESCRIPCIÓN", "MOTO", "PRECIO"])
        for n in range(settings.mrm_skip_rows):
            sheet.append(["", f"LISTA DE PRECIOS {n}", "", ""])
        sheet.append(["M-1", "Faro", "Italika", 350])
        sheet.append(["M-2", "Espejo", "Italika", 120.5])
        buffer = BytesIO()
        workbook.save(buffer)
        mock_download.return_value = DownloadedFile(url=XLSX_URL, content=buffer.getvalue())
        service = ImportService(db=mock_supabase)

        # Act
        result = service.stage_import(_request(provider=ProviderCode.MRM, url=XLSX_URL))

        # Assert
        assert result.total_rows == 2
        assert result.valid_rows == 2
        skus = sorted(i["provider_sku"] for i in mock_supabase.rows("import_item"))
        assert skus == ["M-1", "M-2"]

    def test_batch_insert_failure_raises(self, mock_supabase, mock_download):
        mock_supabase.fail_on("import_batch", "insert")
        service = ImportService(db=mock_supabase)

        with pytest.raises(DatabaseError):
            service.stage_import(_request())

        mock_download.assert_not_called()


class TestPreviewImport:
    """Tests for ImportService.preview_import()"""

    def test_counts_and_samples(self, mock_supabase):
        # Arrange
        batch = ImportBatchFactory.create()
        valid = StagedItemFactory.create(provider_sku="V-1", name="Faro", price=350.0, stock=4)
        invalid = StagedItemFactory.create(provider_sku="F-1", name="", price="abc")
        mock_supabase.set_table_data("import_batch", [batch])
        mock_supabase.set_table_data("import_item", [
            ImportItemFactory.create(batch["id"], valid),
            ImportItemFactory.create(batch["id"], invalid),
        ])
        service = ImportService(db=mock_supabase)

        # Act
        preview = service.preview_import(batch["id"])

        # Assert
        assert preview.batch.id == batch["id"]
        assert preview.summary.total_rows == 2
        assert preview.summary.valid_rows == 1
        assert preview.summary.failed_rows == 1
        assert preview.samples.valid[0].provider_sku == "V-1"
        assert preview.samples.valid[0].price == 350.0
        assert preview.samples.valid[0].stock == 4
        assert preview.samples.failed[0].name == "N/A"
        assert preview.samples.failed[0].errors == [
            "Name is required",
            "Price must be a valid number or null",
        ]

    def test_samples_are_capped(self, mock_supabase):
        batch = ImportBatchFactory.create()
        items = [ImportItemFactory.create(batch["id"]) for _ in range(12)]
        items += [
            ImportItemFactory.create(batch["id"], StagedItemFactory.create(name=""))
            for _ in range(25)
        ]
        mock_supabase.set_table_data("import_batch", [batch])
        mock_supabase.set_table_data("import_item", items)
        service = ImportService(db=mock_supabase)

        preview = service.preview_import(batch["id"])

        assert preview.summary.total_rows == 37
        assert len(preview.samples.valid) == 10
        assert len(preview.samples.failed) == 20

    def test_unknown_batch(self, mock_supabase):
        service = ImportService(db=mock_supabase)

        with pytest.raises(ImportBatchNotFoundError):
            service.preview_import("missing")


class TestListBatches:
    """Tests for ImportService.list_batches()"""

    def test_newest_first_with_status_filter(self, mock_supabase):
        mock_supabase.set_table_data("import_batch", [
            ImportBatchFactory.create(id="b1", status="staged", created_at="2026-01-01T00:00:00Z"),
            ImportBatchFactory.create(id="b2", status="failed", created_at="2026-01-02T00:00:00Z"),
            ImportBatchFactory.create(id="b3", status="staged", created_at="2026-01-03T00:00:00Z"),
        ])
        service = ImportService(db=mock_supabase)

        result = service.list_batches(status=BatchStatus.STAGED)

        assert [b.id for b in result.data] == ["b3", "b1"]
        assert result.total == 2

    def test_limit_is_capped(self, mock_supabase):
        mock_supabase.set_table_data("import_batch", [
            ImportBatchFactory.create(created_at=f"2026-01-01T00:{n:02d}:00Z") for n in range(5)
        ])
        service = ImportService(db=mock_supabase)

        result = service.list_batches(limit=2)

        assert len(result.data) == 2
        assert result.total == 5


class TestImageMappings:
    """Tests for image mapping persistence and suggestions"""

    def test_save_replaces_mappings_of_given_skus(self, mock_supabase):
        # Arrange
        batch = ImportBatchFactory.create()
        mock_supabase.set_table_data("import_batch", [batch])
        mock_supabase.set_table_data("image_map", [
            {"id": "m1", "batch_id": batch["id"], "provider_sku": "A", "url": "https://cdn/old-a.jpg"},
            {"id": "m2", "batch_id": batch["id"], "provider_sku": "B", "url": "https://cdn/b.jpg"},
        ])
        service = ImportService(db=mock_supabase)

        # Act
        saved = service.save_image_mappings(batch["id"], [
            ImageMappingIn(provider_sku="A", url="https://cdn/a1.jpg", is_primary=True),
            ImageMappingIn(provider_sku="A", url="https://cdn/a2.jpg", sort=2),
        ])

        # Assert
        assert saved == 2
        urls = sorted(m["url"] for m in mock_supabase.rows("image_map"))
        assert urls == ["https://cdn/a1.jpg", "https://cdn/a2.jpg", "https://cdn/b.jpg"]

    def test_save_unknown_batch(self, mock_supabase):
        service = ImportService(db=mock_supabase)

        with pytest.raises(ImportBatchNotFoundError):
            service.save_image_mappings("missing", [ImageMappingIn(provider_sku="A", url="u")])

    def test_suggestions_use_unmapped_images(self, mock_supabase):
        # Arrange
        batch = ImportBatchFactory.create()
        staged = StagedItemFactory.create(provider_sku="C-1", name="Casco Integral K3 Rojo")
        mock_supabase.set_table_data("import_batch", [batch])
        mock_supabase.set_table_data("import_item", [ImportItemFactory.create(batch["id"], staged)])
        mock_supabase.set_table_data("image_map", [
            {"batch_id": batch["id"], "provider_sku": "", "uploadthing_filename": "casco-integral-k3-rojo.jpg",
             "url": "https://cdn/casco.jpg"},
            {"batch_id": batch["id"], "provider_sku": "", "uploadthing_filename": "casco-integral-k3.jpg",
             "url": "https://cdn/mapped.jpg"},
            {"batch_id": batch["id"], "provider_sku": "C-1", "url": "https://cdn/mapped.jpg"},
        ])
        service = ImportService(db=mock_supabase)

        # Act
        matches = service.suggest_image_matches(batch["id"])
        sku_matches = service.suggest_images_for_sku(batch["id"], "C-1")

        # Assert
        assert [m.url for m in matches] == ["https://cdn/casco.jpg"]
        assert matches[0].provider_sku == "C-1"
        assert [m.url for m in sku_matches] == ["https://cdn/casco.jpg"]


class TestGetImportService:
    """Tests for the singleton getter"""

    def test_returns_same_instance(self, mock_db):
        import services.import_service as module
        module._import_service = None

        first = get_import_service()
        second = get_import_service()

        assert first is second
        assert first.db is mock_db
        module._import_service = None
