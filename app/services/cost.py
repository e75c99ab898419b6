"""Cost lookup for finished Apify runs.

The lookup is raced against a timeout so a slow Apify API can only add a
bounded delay to the request that triggered it.
"""

from __future__ import annotations

import asyncio
import logging

from apify_client import ApifyClientAsync

from app.core.config import settings
from app.models.apify import RunCost
from app.services.apify_runs import get_run_snapshot

logger = logging.getLogger(__name__)


async def get_apify_run_cost(
    apify: ApifyClientAsync,
    run_id: str,
    timeout_seconds: float | None = None,
) -> RunCost | None:
    """Return the billed cost of *run_id*, or ``None`` on timeout or error."""
    timeout = settings.APIFY_COST_TIMEOUT_SECONDS if timeout_seconds is None else timeout_seconds
    try:
        snapshot = await asyncio.wait_for(get_run_snapshot(apify, run_id), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(
            "apify_cost_timeout",
            extra={"apify_run_id": run_id, "timeout_seconds": timeout},
        )
        return None
    except Exception as exc:
        logger.warning(
            "apify_cost_failed",
            extra={"apify_run_id": run_id, "error_message": str(exc)},
        )
        return None

    if snapshot is None:
        return None

    return RunCost(
        cost_usd=snapshot.usage_total_usd,
        usage_usd=snapshot.usage_usd,
        started_at=snapshot.started_at,
        finished_at=snapshot.finished_at,
    )
