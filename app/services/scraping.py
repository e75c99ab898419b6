"""Generic scraper execution.

Runs the Apify actor configured on a ``scrapers`` row with caller-supplied
input and records the run in the ledger.  Mapping the dataset into leads is
left to the mapper of each scraper type; this service only reports where
the results are.
"""

from __future__ import annotations

import logging
from typing import Any

from apify_client import ApifyClientAsync

from app.core.errors import InvalidRequestError, NotFoundError
from app.db.supabase import get_supabase
from app.models.apify import RunSnapshot
from app.models.enums import ScraperRunSource
from app.models.lead import ScrapingRequest, ScrapingResponse
from app.models.scraper_run import ScraperRunCreate
from app.services.actor_runs import run_actor_to_completion
from app.services.apify_runs import get_run_snapshot
from app.services.ledger import record_scraper_run

logger = logging.getLogger(__name__)


def _get_active_scraper(scraper_id: int) -> dict[str, Any]:
    client = get_supabase()
    result = (
        client.table("scrapers")
        .select("id, name, provider, provider_config, is_active")
        .eq("id", scraper_id)
        .eq("is_active", True)
        .limit(1)
        .execute()
    )
    if not result.data:
        raise NotFoundError(f"Scraper not found: {scraper_id}")
    return result.data[0]


def _check_collection_owner(user_id: int, collection_id: int) -> None:
    client = get_supabase()
    result = (
        client.table("collections")
        .select("id")
        .eq("id", collection_id)
        .eq("user_id", user_id)
        .limit(1)
        .execute()
    )
    if not result.data:
        raise NotFoundError("Collection not found or access denied")


async def run_scraper(
    apify: ApifyClientAsync,
    user_id: int,
    request: ScrapingRequest,
) -> ScrapingResponse:
    """Run the scraper of *request* to completion and record it in the ledger."""
    scraper = _get_active_scraper(request.scraper_id)
    if scraper.get("provider") != "apify":
        raise InvalidRequestError(f"Unsupported provider: {scraper.get('provider')}")

    config = scraper.get("provider_config") or {}
    actor_id = config.get("actorId") if isinstance(config, dict) else None
    if not actor_id:
        raise InvalidRequestError("Scraper has no Apify actor configured")

    if request.collection_id is not None:
        _check_collection_owner(user_id, request.collection_id)

    logger.info(
        "run_scraper_started",
        extra={"scraper_id": scraper["id"], "actor_id": actor_id, "user_id": user_id},
    )
    run = await run_actor_to_completion(apify, actor_id, request.input)

    await record_scraper_run(
        ScraperRunCreate(
            run_id=run.run_id,
            scraper_id=scraper["id"],
            user_id=user_id,
            source=ScraperRunSource.scraping,
            collection_id=request.collection_id,
            item_count=len(run.items),
            status=run.platform_status,
            started_at=run.started_at,
            finished_at=run.finished_at,
        ),
        apify=apify,
        fetch_cost_from_apify=True,
    )

    return ScrapingResponse(
        success=run.succeeded,
        run_id=run.run_id,
        status=run.status,
        error=run.error,
        dataset_id=run.snapshot.default_dataset_id if run.snapshot else None,
        item_count=len(run.items),
    )


async def get_run_status(apify: ApifyClientAsync, run_id: str) -> RunSnapshot:
    """Current state of an Apify run; raises ``NotFoundError`` if unknown."""
    snapshot = await get_run_snapshot(apify, run_id)
    if snapshot is None:
        raise NotFoundError("Run not found")
    return snapshot
