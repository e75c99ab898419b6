"""Pydantic models for the ``scraper_runs`` ledger table."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from app.models.enums import LedgerErrorKind, LedgerWriteStatus, ScraperRunSource


class ScraperRunCreate(BaseModel):
    """Run descriptor handed to the ledger writer."""
    run_id: str
    scraper_id: int | None = None
    user_id: int
    source: ScraperRunSource
    collection_id: int | None = None
    lead_id: int | None = None
    company_id: int | None = None
    item_count: int = Field(default=0, ge=0)
    status: str
    started_at: datetime | None = None
    finished_at: datetime | None = None
    # Known cost; skips the Apify lookup when provided
    cost_usd: float | None = None
    usage_details: dict[str, Any] | None = None


class LedgerWriteResult(BaseModel):
    """Result of ``record_scraper_run``; failures are values, not exceptions."""
    status: LedgerWriteStatus
    run_id: str
    cost_usd: float | None = None
    error_kind: LedgerErrorKind | None = None
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.status != LedgerWriteStatus.failed


class ScraperRunListItem(BaseModel):
    """Row of ``GET /scraper-runs``."""
    id: int
    run_id: str
    scraper_id: int | None = None
    scraper_name: str | None = None
    source: str | None = None
    collection_id: int | None = None
    lead_id: int | None = None
    company_id: int | None = None
    cost_usd: float | None = None
    item_count: int | None = None
    status: str
    created_at: datetime | None = None


class SpendSummary(BaseModel):
    """Aggregated spending over a set of ledger rows."""
    total_cost_usd: float = 0.0
    total_runs: int = 0
    period_from: datetime | None = None
    period_to: datetime | None = None


class ScraperRunListResponse(BaseModel):
    runs: list[ScraperRunListItem]
    summary: SpendSummary


class BackfillResult(BaseModel):
    """Aggregate counts of a backfill pass."""
    processed: int = 0
    imported: int = 0
    skipped: int = 0
    errors: int = 0


class BackfillResponse(BaseModel):
    success: bool = True
    message: str
    result: BackfillResult
    reset_count: int = 0
