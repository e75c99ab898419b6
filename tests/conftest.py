"""Shared test fixtures.

Provides a ``test_client`` for FastAPI with a mock Apify client injected,
chainable Supabase table mocks, and a small in-memory Supabase stand-in
that honours unique keys for ledger and review tests.
"""

import os

os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-key")

from collections.abc import AsyncIterator, Generator, Iterable
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

CHAIN_METHODS = (
    "select", "insert", "upsert", "update", "delete", "eq", "in_",
    "gte", "lte", "order", "range", "limit",
)


def chainable_table_mock() -> MagicMock:
    """Return a mock that supports fluent chaining up to ``execute()``."""
    m = MagicMock()
    for method in CHAIN_METHODS:
        getattr(m, method).return_value = m
    m.execute.return_value = MagicMock(data=[])
    return m


def make_table_dispatch(**table_mocks: MagicMock) -> MagicMock:
    """Return a Supabase mock whose ``.table(name)`` dispatches to per-table mocks."""
    sb = MagicMock()

    def _table_side_effect(name: str) -> MagicMock:
        return table_mocks.get(name, chainable_table_mock())

    sb.table.side_effect = _table_side_effect
    return sb


async def aiter_items(items: Iterable[Any]) -> AsyncIterator[Any]:
    for item in items:
        yield item


def apify_run(run_id: str, status: str, **extra: Any) -> dict[str, Any]:
    """Return a realistic Apify run object."""
    return {"id": run_id, "status": status, **extra}


# ---------------------------------------------------------------------------
# In-memory Supabase
# ---------------------------------------------------------------------------

class FakeTable:
    """Just enough of the PostgREST builder for insert/select/delete by equality."""

    def __init__(self, unique_on: tuple[str, ...] = ()) -> None:
        self.rows: list[dict[str, Any]] = []
        self.unique_on = unique_on
        self._op: tuple[str, Any] | None = None
        self._filters: list[tuple[str, Any]] = []

    def upsert(self, row: dict[str, Any], on_conflict: str = "", ignore_duplicates: bool = False) -> "FakeTable":
        self._op = ("upsert", row)
        return self

    def select(self, *_: Any) -> "FakeTable":
        self._op = ("select", None)
        return self

    def delete(self) -> "FakeTable":
        self._op = ("delete", None)
        return self

    def eq(self, column: str, value: Any) -> "FakeTable":
        self._filters.append((column, value))
        return self

    def execute(self) -> MagicMock:
        op, payload = self._op or ("select", None)
        filters = self._filters
        self._op, self._filters = None, []

        if op == "upsert":
            key = tuple(payload[c] for c in self.unique_on)
            if self.unique_on and any(tuple(r[c] for c in self.unique_on) == key for r in self.rows):
                return MagicMock(data=[])
            stored = {"id": len(self.rows) + 1, **payload}
            self.rows.append(stored)
            return MagicMock(data=[stored])

        matched = [r for r in self.rows if all(r.get(c) == v for c, v in filters)]
        if op == "delete":
            self.rows = [r for r in self.rows if r not in matched]
        return MagicMock(data=matched)


class FakeSupabase:
    def __init__(self) -> None:
        self.tables: dict[str, FakeTable] = {
            "scraper_runs": FakeTable(unique_on=("run_id",)),
            "trustpilot_reviews": FakeTable(unique_on=("company_id", "trustpilot_id")),
            "scrapers": FakeTable(),
        }

    def table(self, name: str) -> FakeTable:
        return self.tables.setdefault(name, FakeTable())


@pytest.fixture()
def fake_db() -> Generator[FakeSupabase, None, None]:
    """Patch ``get_supabase`` in the ledger, backfill and review services."""
    db = FakeSupabase()
    with patch("app.services.ledger.get_supabase", return_value=db), \
            patch("app.services.backfill.get_supabase", return_value=db), \
            patch("app.services.reviews.get_supabase", return_value=db):
        yield db


# ---------------------------------------------------------------------------
# Apify / FastAPI
# ---------------------------------------------------------------------------

@pytest.fixture()
def mock_apify() -> MagicMock:
    """Provide a mock async Apify client."""
    client = MagicMock()
    client.run.return_value.get = AsyncMock(return_value=None)
    return client


@pytest.fixture()
def test_client(mock_apify: MagicMock) -> Generator[TestClient, None, None]:
    """Provide a FastAPI TestClient whose Apify dependency is ``mock_apify``."""
    from app.clients.apify import get_apify_client
    from app.main import app

    app.dependency_overrides[get_apify_client] = lambda: mock_apify
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


AUTH_HEADERS = {"X-User-Id": "1"}
