"""Scraper run ledger endpoints.

GET  /            -- paginated ledger with cost totals
GET  /summary     -- spending over a period (day, week, month, all)
POST /backfill    -- import Apify run history into the ledger
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from apify_client import ApifyClientAsync
from fastapi import APIRouter, Depends, Query

from app.clients.apify import get_apify_client
from app.core.auth import get_current_user_id
from app.core.config import settings
from app.core.constants import SCRAPER_RUNS_DEFAULT_LIMIT
from app.models.enums import SummaryPeriod
from app.models.scraper_run import BackfillResponse, ScraperRunListResponse, SpendSummary
from app.services.backfill import backfill_scraper_runs, reset_imported_scraper_runs
from app.services.ledger import list_scraper_runs, summarize_spend

logger = logging.getLogger(__name__)

router = APIRouter()


def _parse_date(raw: str | None) -> datetime | None:
    """Lenient ISO parsing; invalid values are ignored."""
    if not raw:
        return None
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def clamp_days(days: int | None) -> int:
    """Backfill window in days, defaulting and clamping to ``1..BACKFILL_MAX_DAYS``."""
    if not days:
        return settings.BACKFILL_DEFAULT_DAYS
    return min(max(days, 1), settings.BACKFILL_MAX_DAYS)


@router.get("", response_model=ScraperRunListResponse)
async def get_scraper_runs(
    user_id: int = Depends(get_current_user_id),
    date_from: str | None = Query(default=None, alias="from", description="ISO start (created_at)"),
    date_to: str | None = Query(default=None, alias="to", description="ISO end (created_at)"),
    scraper_id: int | None = Query(default=None),
    source: str | None = Query(default=None),
    limit: int = Query(default=SCRAPER_RUNS_DEFAULT_LIMIT),
    offset: int = Query(default=0),
) -> ScraperRunListResponse:
    """List the user's scraper runs, newest first, with total spend."""
    return list_scraper_runs(
        user_id,
        date_from=_parse_date(date_from),
        date_to=_parse_date(date_to),
        scraper_id=scraper_id,
        source=source,
        limit=limit,
        offset=offset,
    )


@router.get("/summary", response_model=SpendSummary)
async def get_scraper_runs_summary(
    user_id: int = Depends(get_current_user_id),
    period: str = Query(default="month", description="day | week | month | all"),
) -> SpendSummary:
    """Total spend and run count over *period* (unknown values mean month)."""
    try:
        summary_period = SummaryPeriod(period)
    except ValueError:
        summary_period = SummaryPeriod.month
    return summarize_spend(user_id, summary_period)


@router.post("/backfill", response_model=BackfillResponse)
async def post_backfill(
    user_id: int = Depends(get_current_user_id),
    apify: ApifyClientAsync = Depends(get_apify_client),
    days: int | None = Query(default=None, description="Days to look back (1-365, default 90)"),
    reset: str | None = Query(default=None, description="'1' deletes imported runs first"),
) -> BackfillResponse:
    """Import the user's Apify runs into the ledger."""
    days_back = clamp_days(days)

    reset_count = 0
    if reset == "1":
        reset_count = reset_imported_scraper_runs(user_id)

    result = await backfill_scraper_runs(apify, user_id, days_back)

    message = (
        f"Backfill complete: {result.imported} imported, "
        f"{result.skipped} already present, {result.errors} errors."
    )
    if reset_count:
        message += f" {reset_count} previous run(s) deleted."

    return BackfillResponse(message=message, result=result, reset_count=reset_count)
