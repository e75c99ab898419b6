"""Thin async gateway over the Apify REST API.

Every function takes the ``ApifyClientAsync`` explicitly and returns
pydantic models instead of raw Apify dicts.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Collection
from datetime import datetime, timezone
from typing import Any

from apify_client import ApifyClientAsync

from app.core.constants import APIFY_RUNS_PAGE_SIZE
from app.models.apify import RunSnapshot

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Apify -> Pydantic mappers
# ---------------------------------------------------------------------------

def _parse_timestamp(raw: Any) -> datetime | None:
    """Accept datetimes (apify-client parses them) or ISO strings."""
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return raw if raw.tzinfo else raw.replace(tzinfo=timezone.utc)
    if isinstance(raw, str) and raw:
        try:
            parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


def to_run_snapshot(run: dict[str, Any]) -> RunSnapshot:
    """Map an Apify run object to a ``RunSnapshot``."""
    usage_total = run.get("usageTotalUsd")
    usage_usd = run.get("usageUsd")
    return RunSnapshot(
        id=str(run["id"]),
        status=str(run.get("status") or "UNKNOWN"),
        act_id=run.get("actId"),
        started_at=_parse_timestamp(run.get("startedAt")),
        finished_at=_parse_timestamp(run.get("finishedAt")),
        default_dataset_id=run.get("defaultDatasetId"),
        usage_total_usd=float(usage_total) if usage_total is not None else None,
        usage_usd=dict(usage_usd) if isinstance(usage_usd, dict) else None,
    )


# ---------------------------------------------------------------------------
# Runs
# ---------------------------------------------------------------------------

async def start_actor_run(
    apify: ApifyClientAsync,
    actor_id: str,
    run_input: dict[str, Any],
) -> RunSnapshot:
    """Start *actor_id* without waiting for it and return the new run."""
    run = await apify.actor(actor_id).start(run_input=run_input)
    snapshot = to_run_snapshot(run)
    logger.info(
        "apify_run_started",
        extra={"actor_id": actor_id, "apify_run_id": snapshot.id, "status": snapshot.status},
    )
    return snapshot


async def get_run_snapshot(apify: ApifyClientAsync, run_id: str) -> RunSnapshot | None:
    """Return the current state of *run_id*, or ``None`` if Apify has no such run."""
    run = await apify.run(run_id).get()
    if not run:
        return None
    return to_run_snapshot(run)


async def iterate_runs(
    apify: ApifyClientAsync,
    *,
    started_after: datetime,
    statuses: Collection[str],
    limit: int,
) -> AsyncIterator[RunSnapshot]:
    """Yield runs started at or after *started_after*, newest first.

    Walks ``GET /actor-runs`` page by page in descending order and stops
    at the first run older than *started_after* or after *limit* matches.
    """
    offset = 0
    yielded = 0
    while yielded < limit:
        page = await apify.runs().list(
            limit=APIFY_RUNS_PAGE_SIZE,
            offset=offset,
            desc=True,
        )
        items: list[dict[str, Any]] = list(page.items or [])
        if not items:
            return
        for raw in items:
            snapshot = to_run_snapshot(raw)
            if snapshot.started_at is not None and snapshot.started_at < started_after:
                return
            if snapshot.status not in statuses:
                continue
            yield snapshot
            yielded += 1
            if yielded >= limit:
                return
        offset += len(items)


# ---------------------------------------------------------------------------
# Datasets
# ---------------------------------------------------------------------------

async def list_dataset_items(apify: ApifyClientAsync, dataset_id: str) -> list[dict[str, Any]]:
    """Return every item stored in *dataset_id*."""
    items: list[dict[str, Any]] = []
    async for item in apify.dataset(dataset_id).iterate_items():
        items.append(item)
    return items
