"""Pydantic models for lead email verification and generic scraper runs."""

from typing import Any

from pydantic import BaseModel, Field


class EmailValidatorResult(BaseModel):
    """One row of the easy-bulk-email-validator dataset."""
    email: str | None = None
    email_quality: str | None = None
    email_result: str | None = None
    subresult: str | None = None
    free: bool | None = None


class MappingResult(BaseModel):
    """Counts produced when applying actor results to leads."""
    created: int = 0
    enriched: int = 0
    skipped: int = 0
    errors: int = 0


class EmailVerificationResult(BaseModel):
    """Outcome of ``verify_lead_email``.

    On failure ``error`` holds a human-readable reason and ``run_id`` the
    Apify run to correlate with platform-side diagnostics.
    """
    success: bool
    run_id: str | None = None
    status: str | None = None
    error: str | None = None
    result: str | None = None
    email_certainty: str | None = None
    metrics: MappingResult = Field(default_factory=MappingResult)
    duration_seconds: int = 0


class ScrapingRequest(BaseModel):
    scraper_id: int
    input: dict[str, Any] = Field(default_factory=dict)
    collection_id: int | None = None


class ScrapingResponse(BaseModel):
    success: bool
    run_id: str
    status: str
    error: str | None = None
    dataset_id: str | None = None
    item_count: int = 0


class CollectionEmailVerificationRequest(BaseModel):
    # Re-verify emails that already carry a verdict
    force: bool = False


class CollectionEmailVerificationMetrics(BaseModel):
    total: int = 0
    processed: int = 0
    enriched: int = 0
    skipped: int = 0
    errors: int = 0
    estimated_cost_usd: float = 0.0


class CollectionEmailVerificationResult(BaseModel):
    """Outcome of ``verify_collection_emails``; shaped like ``EmailVerificationResult``."""
    success: bool
    run_id: str | None = None
    status: str | None = None
    error: str | None = None
    message: str | None = None
    metrics: CollectionEmailVerificationMetrics = Field(
        default_factory=CollectionEmailVerificationMetrics
    )
    duration_seconds: int = 0
