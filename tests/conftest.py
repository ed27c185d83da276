"""
Shared test fixtures.

The Supabase mock keeps rows per table in memory and applies eq/neq/in_
filters, ordering and limits, so services can be exercised end to end.
"""

import os
import sys
from pathlib import Path

# Add project root to Python path
project_dir = Path(__file__).parent.parent
sys.path.insert(0, str(project_dir))

# Settings are loaded on import; tests never talk to a real project
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")

import pytest
from copy import deepcopy
from datetime import datetime, timedelta
from typing import Callable, Generator, Optional
from unittest.mock import patch
from uuid import uuid4

# ===================
# MOCK SUPABASE CLIENT
# ===================

class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data=None, count: int = None):
        self.data = data if data is not None else []
        self.count = count


class MockSupabaseQuery:
    """Chainable query builder evaluated against the client's tables."""

    def __init__(self, client: "MockSupabaseClient", table: str):
        self._client = client
        self.table = table
        self.operation = "select"
        self.columns = "*"
        self.payload = None
        self.filters: list[tuple[str, str, object]] = []
        self._order: Optional[tuple[str, bool]] = None
        self._limit: Optional[int] = None
        self._range: Optional[tuple[int, int]] = None
        self._is_single = False
        self._count = None

    @property
    def rows(self) -> list[dict]:
        """Insert/update payload as a list of dicts."""
        if self.payload is None:
            return []
        return self.payload if isinstance(self.payload, list) else [self.payload]

    def filter_value(self, column: str):
        """Value of the first eq filter on a column."""
        for op, col, value in self.filters:
            if op == "eq" and col == column:
                return value
        return None

    def select(self, *args, count: str = None, **kwargs):
        self.columns = args[0] if args else "*"
        self._count = count
        return self

    def insert(self, data):
        self.operation = "insert"
        self.payload = deepcopy(data)
        return self

    def update(self, data):
        self.operation = "update"
        self.payload = deepcopy(data)
        return self

    def delete(self):
        self.operation = "delete"
        return self

    def eq(self, column, value):
        self.filters.append(("eq", column, value))
        return self

    def neq(self, column, value):
        self.filters.append(("neq", column, value))
        return self

    def in_(self, column, values):
        self.filters.append(("in", column, list(values)))
        return self

    def order(self, column, desc: bool = False, **kwargs):
        self._order = (column, desc)
        return self

    def limit(self, count):
        self._limit = count
        return self

    def range(self, start, end):
        self._range = (start, end)
        return self

    def single(self):
        self._is_single = True
        return self

    def _matches(self, row: dict) -> bool:
        for op, column, value in self.filters:
            current = row.get(column)
            if op == "eq" and current != value:
                return False
            if op == "neq" and current == value:
                return False
            if op == "in" and current not in value:
                return False
        return True

    def execute(self) -> MockSupabaseResponse:
        self._client.calls.append(self)
        self._client.raise_if_failing(self)

        table = self._client.tables.setdefault(self.table, [])

        if self.operation == "insert":
            inserted = []
            for row in self.rows:
                stored = {"id": str(uuid4()), "created_at": self._client.next_timestamp(), **row}
                table.append(stored)
                inserted.append(deepcopy(stored))
            return MockSupabaseResponse(data=inserted, count=len(inserted))

        matching = [row for row in table if self._matches(row)]

        if self.operation == "update":
            for row in matching:
                row.update(deepcopy(self.payload))
            return MockSupabaseResponse(data=deepcopy(matching), count=len(matching))

        if self.operation == "delete":
            self._client.tables[self.table] = [row for row in table if not self._matches(row)]
            return MockSupabaseResponse(data=deepcopy(matching), count=len(matching))

        data = deepcopy(matching)
        if self._order:
            column, desc = self._order
            data.sort(key=lambda r: (r.get(column) is None, r.get(column)), reverse=desc)
        total = len(data)
        if self._range:
            start, end = self._range
            data = data[start:end + 1]
        if self._limit is not None:
            data = data[:self._limit]
        if self._is_single:
            return MockSupabaseResponse(data=data[0] if data else None, count=total)
        return MockSupabaseResponse(data=data, count=total if self._count else None)


class MockSupabaseClient:
    """
    In-memory Supabase client.

    Usage:
        mock_supabase.set_table_data("products", [{"id": "p1", "sku": "X"}])
        mock_supabase.fail_on("import_item", "insert")
    """

    def __init__(self):
        self.tables: dict[str, list[dict]] = {}
        self.calls: list[MockSupabaseQuery] = []
        self._failures: list[tuple[str, str, Optional[Callable]]] = []
        self._clock = datetime(2026, 1, 1, 12, 0, 0)

    def set_table_data(self, table_name: str, data: list):
        """Replace the rows of a table."""
        self.tables[table_name] = deepcopy(data)

    def rows(self, table_name: str) -> list[dict]:
        """Current rows of a table."""
        return self.tables.get(table_name, [])

    def fail_on(self, table_name: str, operation: str, when: Optional[Callable] = None):
        """Make matching queries raise; `when` receives the query."""
        self._failures.append((table_name, operation, when))

    def raise_if_failing(self, query: MockSupabaseQuery):
        for table_name, operation, when in self._failures:
            if table_name == query.table and operation == query.operation:
                if when is None or when(query):
                    raise Exception(f"Simulated {operation} failure on {table_name}")

    def next_timestamp(self) -> str:
        self._clock += timedelta(seconds=1)
        return self._clock.isoformat() + "Z"

    def table(self, name: str) -> MockSupabaseQuery:
        return MockSupabaseQuery(self, name)


# ===================
# FIXTURES
# ===================

@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create an in-memory Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("products", [...])
            service = CommitService(db=mock_supabase)
    """
    return MockSupabaseClient()


@pytest.fixture
def mock_db(mock_supabase) -> Generator:
    """
    Patch the database client with the mock.

    Usage:
        def test_something(mock_db):
            service = ImportService()  # uses mock_db
    """
    with patch("config.database.get_supabase_client", return_value=mock_supabase):
        with patch("services.import_service.get_supabase_client", return_value=mock_supabase):
            with patch("services.commit_service.get_supabase_client", return_value=mock_supabase):
                yield mock_supabase


@pytest.fixture
def mock_download():
    """
    Patch the file download used by staging.

    Usage:
        def test_stage(mock_download):
            mock_download.return_value = DownloadedFile(url=..., content=b"...")
    """
    with patch("services.import_service.download_file") as mocked:
        yield mocked


@pytest.fixture
def motos_csv() -> bytes:
    """Three-row Motos y Equipos export: valid, negative stock without price, blank."""
    return (
        "Cod. com,Descrip.,Marca,Almacen,Disp.,Precio.,Fec. Rec.\n"
        "MY-100,Casco Integral K3 Rojo,AGV,CDMX,12,\"$1,234.56\",01/10/2026\n"
        "MY-200,Casco Abierto,AGV,CDMX,-3,,\n"
        ",,,,,,\n"
    ).encode("utf-8")


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client_with_mock_db(mock_supabase):
    """
    FastAPI test client whose services use the in-memory database.

    Usage:
        def test_endpoint(test_client_with_mock_db, mock_supabase):
            mock_supabase.set_table_data("import_batch", [...])
            response = test_client_with_mock_db.get("/api/imports")
    """
    from fastapi.testclient import TestClient
    from main import app
    from services.import_service import ImportService
    from services.commit_service import CommitService

    with patch("routes.imports.get_import_service", return_value=ImportService(db=mock_supabase)):
        with patch("routes.imports.get_commit_service", return_value=CommitService(db=mock_supabase)):
            yield TestClient(app)
