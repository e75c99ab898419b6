"""Backfill of the scraper run ledger from the Apify run history.

Imports runs that were never recorded live (or were recorded before the
ledger existed) as ``source = "import"`` rows.  Safe to re-run: runs already
in the ledger are counted as skipped, and a failure on one run never aborts
the batch.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime, timedelta, timezone
from typing import Any

from apify_client import ApifyClientAsync

from app.core.config import settings
from app.core.constants import BACKFILL_RUN_STATUSES
from app.db.supabase import get_supabase
from app.models.enums import ScraperRunSource
from app.models.scraper_run import BackfillResult
from app.services.apify_runs import get_run_snapshot, iterate_runs
from app.services.ledger import TABLE, insert_ledger_row

logger = logging.getLogger(__name__)


def reset_imported_scraper_runs(user_id: int) -> int:
    """Delete the user's imported ledger rows and return how many were removed."""
    client = get_supabase()
    result = (
        client.table(TABLE)
        .delete()
        .eq("user_id", user_id)
        .eq("source", ScraperRunSource.import_.value)
        .execute()
    )
    removed = len(result.data or [])
    logger.info(
        "backfill_reset",
        extra={"user_id": user_id, "removed": removed},
    )
    return removed


def build_actor_scraper_map(aliases: Mapping[str, str] | None = None) -> dict[str, int]:
    """Map Apify actor ids to ``scrapers.id``.

    Each scraper is keyed by the ``actorId`` of its provider config and by
    every short id that *aliases* maps to that actor.
    """
    aliases = settings.APIFY_ACTOR_ALIASES if aliases is None else aliases
    client = get_supabase()
    result = client.table("scrapers").select("id, provider_config").execute()

    mapping: dict[str, int] = {}
    for scraper in result.data or []:
        config = scraper.get("provider_config") or {}
        actor_id = config.get("actorId") if isinstance(config, dict) else None
        if not isinstance(actor_id, str) or not actor_id.strip():
            continue
        actor_id = actor_id.strip()
        mapping[actor_id] = scraper["id"]
        for short_id, full_id in aliases.items():
            if full_id == actor_id:
                mapping[short_id] = scraper["id"]
    return mapping


def backfill_start(days_back: int, now: datetime | None = None) -> datetime:
    """Midnight (UTC) *days_back* days before *now*."""
    now = now or datetime.now(timezone.utc)
    start = now - timedelta(days=days_back)
    return start.replace(hour=0, minute=0, second=0, microsecond=0)


async def backfill_scraper_runs(
    apify: ApifyClientAsync,
    user_id: int,
    days_back: int = 30,
    *,
    aliases: Mapping[str, str] | None = None,
    now: datetime | None = None,
) -> BackfillResult:
    """Import the Apify runs of the last *days_back* days into the ledger.

    Every run is fetched in full to get its cost, attributed to a scraper
    through its actor id when possible, and inserted with ``item_count = 0``.
    """
    result = BackfillResult()
    actor_to_scraper = build_actor_scraper_map(aliases)
    started_after = backfill_start(days_back, now)

    run_ids: list[str] = []
    async for summary in iterate_runs(
        apify,
        started_after=started_after,
        statuses=BACKFILL_RUN_STATUSES,
        limit=settings.BACKFILL_LIST_LIMIT,
    ):
        run_ids.append(summary.id)

    logger.info(
        "backfill_started",
        extra={
            "user_id": user_id,
            "days_back": days_back,
            "started_after": started_after.isoformat(),
            "runs_found": len(run_ids),
        },
    )

    for run_id in run_ids:
        result.processed += 1
        try:
            run = await get_run_snapshot(apify, run_id)
            if run is None:
                result.errors += 1
                logger.warning("backfill_run_missing", extra={"apify_run_id": run_id})
                continue

            row: dict[str, Any] = {
                "run_id": run.id,
                "scraper_id": actor_to_scraper.get(run.act_id) if run.act_id else None,
                "user_id": user_id,
                "source": ScraperRunSource.import_.value,
                "collection_id": None,
                "lead_id": None,
                "company_id": None,
                "cost_usd": run.usage_total_usd,
                "usage_details": run.usage_usd,
                "item_count": 0,
                "status": run.status,
                "started_at": run.started_at.isoformat() if run.started_at else None,
                "finished_at": run.finished_at.isoformat() if run.finished_at else None,
            }
            if insert_ledger_row(row):
                result.imported += 1
            else:
                result.skipped += 1
        except Exception as exc:
            result.errors += 1
            logger.error(
                "backfill_run_failed",
                extra={"apify_run_id": run_id, "error_message": str(exc)},
            )

    logger.info(
        "backfill_completed",
        extra={"user_id": user_id, **result.model_dump()},
    )
    return result
