"""Start an Apify actor, wait for it to finish and collect its dataset.

Shared by every call site that runs an actor synchronously within a
request (email verification, Trustpilot reviews, generic scraping).
"""

from __future__ import annotations

import logging
from typing import Any

from apify_client import ApifyClientAsync

from app.core.config import settings
from app.core.constants import (
    DATASET_FETCH_FAILED_MESSAGE,
    RUN_FAILURE_DEFAULT_MESSAGE,
    RUN_FAILURE_MESSAGES,
)
from app.models.apify import ActorRunResult
from app.models.enums import RunStatus
from app.services.apify_runs import get_run_snapshot, list_dataset_items, start_actor_run
from app.services.polling import Sleeper, poll_until_terminal

logger = logging.getLogger(__name__)


def failure_message(status: str) -> str:
    """Human-readable reason for a run that did not succeed."""
    return RUN_FAILURE_MESSAGES.get(status, RUN_FAILURE_DEFAULT_MESSAGE)


async def run_actor_to_completion(
    apify: ApifyClientAsync,
    actor_id: str,
    run_input: dict[str, Any],
    *,
    interval_seconds: float | None = None,
    max_wait_seconds: float | None = None,
    sleep: Sleeper | None = None,
) -> ActorRunResult:
    """Run *actor_id* with *run_input* and wait for a terminal state.

    Failures of the run itself (FAILED, ABORTED, TIMED-OUT or the local
    poll budget running out) and a failed dataset fetch after SUCCEEDED are
    returned as an unsuccessful ``ActorRunResult`` carrying the run id; only
    errors starting the run propagate.
    """
    started = await start_actor_run(apify, actor_id, run_input)

    async def _fetch():
        return await get_run_snapshot(apify, started.id)

    poll_kwargs: dict[str, Any] = {
        "interval_seconds": interval_seconds or settings.APIFY_POLL_INTERVAL_SECONDS,
        "max_wait_seconds": max_wait_seconds or settings.APIFY_MAX_WAIT_SECONDS,
    }
    if sleep is not None:
        poll_kwargs["sleep"] = sleep
    outcome = await poll_until_terminal(_fetch, **poll_kwargs)

    snapshot = outcome.snapshot or started
    if outcome.timed_out:
        status = RunStatus.timed_out.value
    else:
        status = snapshot.status

    result = ActorRunResult(
        run_id=started.id,
        status=status,
        timed_out=outcome.timed_out,
        started_at=snapshot.started_at,
        finished_at=snapshot.finished_at,
        snapshot=snapshot,
    )

    if status != RunStatus.succeeded.value:
        result.error = failure_message(status)
        logger.warning(
            "actor_run_unsuccessful",
            extra={
                "actor_id": actor_id,
                "apify_run_id": started.id,
                "status": status,
                "timed_out": outcome.timed_out,
            },
        )
        return result

    if not snapshot.default_dataset_id:
        result.error = "No dataset found for this run"
        return result

    try:
        items = await list_dataset_items(apify, snapshot.default_dataset_id)
    except Exception as exc:
        result.error = DATASET_FETCH_FAILED_MESSAGE
        logger.error(
            "actor_run_results_fetch_failed",
            extra={
                "actor_id": actor_id,
                "apify_run_id": started.id,
                "dataset_id": snapshot.default_dataset_id,
                "error_message": str(exc),
            },
        )
        return result

    result.items = items
    result.succeeded = True
    logger.info(
        "actor_run_succeeded",
        extra={
            "actor_id": actor_id,
            "apify_run_id": started.id,
            "item_count": len(result.items),
        },
    )
    return result
