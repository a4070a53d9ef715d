"""
Shared test fixtures.

The Supabase mock keeps table rows in memory and applies filters, inserts
and updates, so services can be exercised end to end without a database.
"""

import os
import sys
from pathlib import Path

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# Settings require these; tests never reach a real project
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")

import re
import pytest
from contextlib import ExitStack
from unittest.mock import patch
from datetime import datetime
from typing import Any, Callable, Generator, Optional

# ===================
# MOCK SUPABASE CLIENT
# ===================

# Services that hold their own client reference
SERVICE_MODULES = [
    "services.customer_service",
    "services.validator_service",
    "services.freight_service",
    "services.mapping_config_service",
    "services.operation_log_service",
]

# Singletons rebuilt for every API test
SERVICE_SINGLETONS = [
    ("services.customer_service", "_customer_service"),
    ("services.validator_service", "_validator_service"),
    ("services.freight_service", "_freight_service"),
    ("services.mapping_config_service", "_mapping_config_service"),
    ("services.operation_log_service", "_service"),
    ("services.import_service", "_import_service"),
    ("services.reconciliation_service", "_reconciliation_service"),
    ("services.export_service", "_export_service"),
]

_JOIN_PATTERN = re.compile(r"(\w+)\(([^)]*)\)")


class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data: Any = None, count: int = None):
        self.data = data if data is not None else []
        self.count = count if count is not None else (len(self.data) if isinstance(self.data, list) else 1)


class MockSupabaseQuery:
    """Mock Supabase query builder with chainable methods."""

    def __init__(self, client: "MockSupabaseClient", table: str, operation: str, payload: Any = None):
        self._client = client
        self._table = table
        self._operation = operation
        self._payload = payload
        self._columns = "*"
        self._filters: list[Callable[[dict], bool]] = []
        self._order: list[tuple[str, bool]] = []
        self._limit: Optional[int] = None
        self._offset = 0
        self._is_single = False

    def select(self, columns: str = "*", count: Optional[str] = None):
        self._columns = columns
        return self

    def eq(self, column, value):
        self._filters.append(lambda row: row.get(column) == value)
        return self

    def neq(self, column, value):
        self._filters.append(lambda row: row.get(column) != value)
        return self

    def ilike(self, column, pattern):
        # Postgres LIKE: % and _ are wildcards, backslash escapes the next char
        parts = []
        chars = iter(pattern)
        for char in chars:
            if char == "\\":
                parts.append(re.escape(next(chars, "\\")))
            elif char == "%":
                parts.append(".*")
            elif char == "_":
                parts.append(".")
            else:
                parts.append(re.escape(char))
        regex = re.compile("^" + "".join(parts) + "$", re.IGNORECASE | re.DOTALL)
        self._filters.append(lambda row: row.get(column) is not None and bool(regex.match(str(row[column]))))
        return self

    def in_(self, column, values):
        allowed = list(values)
        self._filters.append(lambda row: row.get(column) in allowed)
        return self

    def gte(self, column, value):
        self._filters.append(lambda row: row.get(column) is not None and str(row[column]) >= str(value))
        return self

    def lte(self, column, value):
        self._filters.append(lambda row: row.get(column) is not None and str(row[column]) <= str(value))
        return self

    def single(self):
        self._is_single = True
        return self

    def order(self, column, desc: bool = False, **kwargs):
        self._order.append((column, desc))
        return self

    def range(self, start, end):
        self._offset = start
        self._limit = end - start + 1
        return self

    def limit(self, count):
        self._limit = count
        return self

    def _matches(self, row: dict) -> bool:
        return all(check(row) for check in self._filters)

    def execute(self) -> MockSupabaseResponse:
        self._client._check_failure(self._table, self._operation, self._payload)
        rows = self._client._tables.setdefault(self._table, [])

        if self._operation == "insert":
            items = self._payload if isinstance(self._payload, list) else [self._payload]
            inserted = [self._client._insert_row(self._table, item) for item in items]
            return MockSupabaseResponse(data=[dict(row) for row in inserted])

        if self._operation == "update":
            updated = []
            for row in rows:
                if self._matches(row):
                    row.update(self._payload)
                    updated.append(dict(row))
            return MockSupabaseResponse(data=updated)

        if self._operation == "delete":
            removed = [row for row in rows if self._matches(row)]
            self._client._tables[self._table] = [row for row in rows if not self._matches(row)]
            return MockSupabaseResponse(data=[dict(row) for row in removed])

        selected = [dict(row) for row in rows if self._matches(row)]
        for column, desc in reversed(self._order):
            selected.sort(
                key=lambda row: (row.get(column) is None, row.get(column) if row.get(column) is not None else 0),
                reverse=desc
            )
        total = len(selected)

        end = None if self._limit is None else self._offset + self._limit
        selected = selected[self._offset:end]
        selected = [self._client._join(row, self._columns) for row in selected]

        if self._is_single:
            data = selected[0] if selected else None
            return MockSupabaseResponse(data=data, count=1 if data else 0)

        return MockSupabaseResponse(data=selected, count=total)


class MockSupabaseTable:
    """Entry point for one table's queries."""

    def __init__(self, client: "MockSupabaseClient", name: str):
        self._client = client
        self._name = name

    def select(self, *args, **kwargs):
        return MockSupabaseQuery(self._client, self._name, "select").select(*args, **kwargs)

    def insert(self, data):
        return MockSupabaseQuery(self._client, self._name, "insert", data)

    def update(self, data):
        return MockSupabaseQuery(self._client, self._name, "update", data)

    def delete(self):
        return MockSupabaseQuery(self._client, self._name, "delete")


class MockSupabaseClient:
    """In-memory Supabase client."""

    def __init__(self):
        self._tables: dict[str, list[dict]] = {}
        self._failures: list[tuple[str, str, Optional[Callable[[Any], bool]]]] = []

    def set_table_data(self, table_name: str, data: list, count: int = None):
        """Replace the rows of a table."""
        self._tables[table_name] = [dict(row) for row in data]

    def rows(self, table_name: str) -> list[dict]:
        """Current rows of a table."""
        return self._tables.get(table_name, [])

    def fail_on(self, table_name: str, operation: str, when: Optional[Callable[[Any], bool]] = None):
        """Make matching operations raise, optionally only for some payloads."""
        self._failures.append((table_name, operation, when))

    def table(self, name: str) -> MockSupabaseTable:
        return MockSupabaseTable(self, name)

    def _check_failure(self, table_name: str, operation: str, payload: Any):
        for failing_table, failing_operation, when in self._failures:
            if failing_table == table_name and failing_operation == operation:
                if when is None or when(payload):
                    raise Exception(f"simulated {operation} failure on {table_name}")

    def _insert_row(self, table_name: str, item: dict) -> dict:
        rows = self._tables.setdefault(table_name, [])
        now = datetime.utcnow().isoformat() + "Z"
        row = dict(item)
        row.setdefault("id", max((r.get("id") or 0 for r in rows), default=0) + 1)
        row.setdefault("created_at", now)
        row.setdefault("updated_at", now)
        rows.append(row)
        return row

    def _join(self, row: dict, columns: str) -> dict:
        """Resolve embedded selects like 'clientes(nombre)' through '<singular>_id'."""
        for related, fields in _JOIN_PATTERN.findall(columns or ""):
            foreign_key = f"{related[:-1]}_id" if related.endswith("s") else f"{related}_id"
            target = next(
                (r for r in self.rows(related) if r.get("id") == row.get(foreign_key)),
                None
            )
            if target is None:
                row[related] = None
            else:
                wanted = [f.strip() for f in fields.split(",") if f.strip()]
                row[related] = {f: target.get(f) for f in wanted}
        return row


# ===================
# FIXTURES
# ===================

@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("fletes", [
                FreightFactory.create(folio="F-00001")
            ])
    """
    return MockSupabaseClient()


@pytest.fixture
def mock_db(mock_supabase) -> Generator:
    """
    Patch the database client of every service with the mock.

    Usage:
        def test_something(mock_db):
            mock_db.set_table_data("clientes", [...])
            # Services created inside the test use the mock
    """
    with ExitStack() as stack:
        stack.enter_context(patch("config.database.get_supabase_client", return_value=mock_supabase))
        for module in SERVICE_MODULES:
            stack.enter_context(patch(f"{module}.get_supabase_client", return_value=mock_supabase))
        yield mock_supabase


def _reset_singletons():
    import importlib
    for module_name, attribute in SERVICE_SINGLETONS:
        setattr(importlib.import_module(module_name), attribute, None)


@pytest.fixture
def test_client_with_mock_db(mock_db):
    """
    Create FastAPI test client with mocked database.

    Usage:
        def test_endpoint(test_client_with_mock_db, mock_db):
            mock_db.set_table_data("configuraciones_mapeo", [...])
            response = test_client_with_mock_db.get("/api/integrations/mappings",
                                                    headers={"X-Empresa-Id": "1"})
    """
    from fastapi.testclient import TestClient
    from main import app

    _reset_singletons()
    yield TestClient(app)
    _reset_singletons()


@pytest.fixture
def tenant_id() -> int:
    return 1
