"""Pydantic models for Trustpilot review ingestion.

Covers the ``trustpilot_reviews`` table and the scrape endpoint payloads.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from app.core.config import settings
from app.models.enums import TrustpilotMode


class TrustpilotReviewData(BaseModel):
    """A review item accepted from the Apify dataset."""
    id: str
    rating: float
    published_date: str | None = None
    title: str | None = None
    body: str | None = None


class TrustpilotReviewUpsert(BaseModel):
    """Payload for inserting a review (conflict on company_id + trustpilot_id)."""
    company_id: int
    trustpilot_id: str
    rating: int
    published_date: datetime | None = None
    title: str | None = None
    body: str | None = None
    updated_at: datetime


class MapReviewsResult(BaseModel):
    """Per-batch mapper counts; they always add up to the batch size."""
    created: int = 0
    skipped: int = 0
    errors: int = 0


class TrustpilotScrapeRequest(BaseModel):
    mode: TrustpilotMode
    company_id: int | None = None
    lead_id: int | None = None
    collection_id: int | None = None
    max_items: int = Field(
        default_factory=lambda: settings.TRUSTPILOT_MAX_ITEMS, ge=1, le=5000
    )


class TrustpilotTarget(BaseModel):
    company_id: int
    domain: str


class TrustpilotScrapeMetrics(BaseModel):
    scraped: int = 0
    created: int = 0
    skipped: int = 0
    without_domain: int = 0
    errors: int = 0


class TrustpilotScrapeResponse(BaseModel):
    success: bool = True
    metrics: TrustpilotScrapeMetrics
    run_ids: list[str] = Field(default_factory=list)
    warning: str | None = None
