"""Scraper run ledger (``scraper_runs``).

One immutable row per Apify run, used for cost and usage tracking.  Writes
are best-effort: ``record_scraper_run`` never raises and reports failures
in its ``LedgerWriteResult``.
Reads back the ledger for the listing and spending-summary endpoints.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
from apify_client import ApifyClientAsync
from postgrest.exceptions import APIError

from app.core.constants import SCRAPER_RUNS_MAX_LIMIT, SUMMARY_PERIOD_DAYS
from app.db.supabase import get_supabase, is_unique_violation
from app.models.enums import (
    LedgerErrorKind,
    LedgerWriteStatus,
    ScraperRunSource,
    SummaryPeriod,
)
from app.models.scraper_run import (
    LedgerWriteResult,
    ScraperRunCreate,
    ScraperRunListItem,
    ScraperRunListResponse,
    SpendSummary,
)
from app.services.cost import get_apify_run_cost

logger = logging.getLogger(__name__)

TABLE = "scraper_runs"


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def insert_ledger_row(row: dict[str, Any]) -> bool:
    """Insert *row* unless its ``run_id`` is already recorded.

    Returns True when a row was written, False on a duplicate ``run_id``.
    Any other database error propagates.
    """
    client = get_supabase()
    try:
        result = (
            client.table(TABLE)
            .upsert(row, on_conflict="run_id", ignore_duplicates=True)
            .execute()
        )
    except Exception as exc:
        if is_unique_violation(exc):
            return False
        raise
    return bool(result.data)


async def record_scraper_run(
    run: ScraperRunCreate,
    *,
    apify: ApifyClientAsync | None = None,
    fetch_cost_from_apify: bool = False,
) -> LedgerWriteResult:
    """Record one ledger row for *run*.

    A ``cost_usd`` supplied on *run* is used as-is.  Otherwise, when
    *fetch_cost_from_apify* is set, the cost (and the usage breakdown and
    timestamps) are looked up on Apify; a failed lookup leaves them null.
    Caller-supplied ``usage_details`` take precedence over Apify's.
    """
    cost_usd = run.cost_usd
    usage_details = run.usage_details
    started_at = run.started_at
    finished_at = run.finished_at

    try:
        if cost_usd is None and fetch_cost_from_apify and apify is not None:
            cost = await get_apify_run_cost(apify, run.run_id)
            if cost is not None:
                cost_usd = cost.cost_usd
                if usage_details is None:
                    usage_details = cost.usage_usd
                started_at = cost.started_at or started_at
                finished_at = cost.finished_at or finished_at

        row: dict[str, Any] = {
            "run_id": run.run_id,
            "scraper_id": run.scraper_id,
            "user_id": run.user_id,
            "source": run.source.value,
            "collection_id": run.collection_id,
            "lead_id": run.lead_id,
            "company_id": run.company_id,
            "cost_usd": cost_usd,
            "usage_details": usage_details,
            "item_count": run.item_count,
            "status": run.status,
            "started_at": _isoformat(started_at),
            "finished_at": _isoformat(finished_at),
        }
        inserted = insert_ledger_row(row)
    except Exception as exc:
        logger.error(
            "record_scraper_run_failed",
            extra={
                "apify_run_id": run.run_id,
                "source": run.source.value,
                "error_message": str(exc),
            },
        )
        return LedgerWriteResult(
            status=LedgerWriteStatus.failed,
            run_id=run.run_id,
            cost_usd=cost_usd,
            error_kind=_classify_error(exc),
            message=str(exc),
        )

    if not inserted:
        logger.info(
            "record_scraper_run_duplicate",
            extra={"apify_run_id": run.run_id},
        )
        return LedgerWriteResult(
            status=LedgerWriteStatus.duplicate,
            run_id=run.run_id,
            cost_usd=cost_usd,
        )

    logger.info(
        "record_scraper_run_recorded",
        extra={
            "apify_run_id": run.run_id,
            "source": run.source.value,
            "cost_usd": cost_usd,
            "item_count": run.item_count,
        },
    )
    return LedgerWriteResult(
        status=LedgerWriteStatus.recorded,
        run_id=run.run_id,
        cost_usd=cost_usd,
    )


def _classify_error(exc: Exception) -> LedgerErrorKind:
    if isinstance(exc, (APIError, httpx.HTTPError, OSError)):
        return LedgerErrorKind.database
    return LedgerErrorKind.unknown


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def _apply_filters(
    query: Any,
    user_id: int,
    date_from: datetime | None,
    date_to: datetime | None,
    scraper_id: int | None,
    source: str | None,
) -> Any:
    query = query.eq("user_id", user_id)
    if date_from is not None:
        query = query.gte("created_at", date_from.isoformat())
    if date_to is not None:
        query = query.lte("created_at", date_to.isoformat())
    if scraper_id is not None:
        query = query.eq("scraper_id", scraper_id)
    if source and source.strip():
        query = query.eq("source", source.strip())
    return query


def _sum_costs(rows: list[dict[str, Any]]) -> float:
    return round(sum(float(r["cost_usd"]) for r in rows if r.get("cost_usd") is not None), 6)


def list_scraper_runs(
    user_id: int,
    *,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    scraper_id: int | None = None,
    source: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> ScraperRunListResponse:
    """Return a page of the user's ledger, newest first, plus totals."""
    limit = max(1, min(limit, SCRAPER_RUNS_MAX_LIMIT))
    offset = max(0, offset)
    client = get_supabase()

    runs_query = client.table(TABLE).select(
        "id, run_id, scraper_id, source, collection_id, lead_id, company_id, "
        "cost_usd, item_count, status, created_at, scrapers(name)"
    )
    runs_query = _apply_filters(runs_query, user_id, date_from, date_to, scraper_id, source)
    runs_result = (
        runs_query.order("created_at", desc=True)
        .range(offset, offset + limit - 1)
        .execute()
    )

    totals_query = client.table(TABLE).select("cost_usd")
    totals_query = _apply_filters(totals_query, user_id, date_from, date_to, scraper_id, source)
    totals_rows: list[dict[str, Any]] = totals_query.execute().data or []

    runs: list[ScraperRunListItem] = []
    for row in runs_result.data or []:
        scraper = row.get("scrapers") or {}
        scraper_name = scraper.get("name") if isinstance(scraper, dict) else None
        if scraper_name is None and row.get("source") == ScraperRunSource.trustpilot.value:
            scraper_name = "Trustpilot"
        runs.append(ScraperRunListItem(**{**row, "scraper_name": scraper_name}))

    return ScraperRunListResponse(
        runs=runs,
        summary=SpendSummary(
            total_cost_usd=_sum_costs(totals_rows),
            total_runs=len(totals_rows),
            period_from=date_from,
            period_to=date_to,
        ),
    )


def period_start(period: SummaryPeriod, now: datetime | None = None) -> datetime | None:
    """Start of the summary window: midnight *N* days ago, or None for ``all``."""
    if period == SummaryPeriod.all:
        return None
    now = now or datetime.now(timezone.utc)
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight - timedelta(days=SUMMARY_PERIOD_DAYS[period.value])


def summarize_spend(
    user_id: int,
    period: SummaryPeriod = SummaryPeriod.month,
    now: datetime | None = None,
) -> SpendSummary:
    """Total cost and run count of the user's ledger over *period*."""
    start = period_start(period, now)
    client = get_supabase()
    query = _apply_filters(
        client.table(TABLE).select("cost_usd"), user_id, start, None, None, None
    )
    rows: list[dict[str, Any]] = query.execute().data or []
    return SpendSummary(
        total_cost_usd=_sum_costs(rows),
        total_runs=len(rows),
        period_from=start,
    )
