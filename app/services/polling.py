"""Poll an Apify run until it reaches a terminal state.

One reusable loop parameterized by the status-fetch function, the interval
and the wall-clock budget.  The loop never raises for "not yet terminal":
it returns a tagged ``PollOutcome`` so callers can still record the run for
billing when it failed or timed out.
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Awaitable, Callable

from app.models.apify import PollOutcome, RunSnapshot
from app.models.enums import PollOutcomeKind

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS: float = 5.0
DEFAULT_MAX_WAIT_SECONDS: float = 30 * 60

StatusFetcher = Callable[[], Awaitable[RunSnapshot | None]]
Sleeper = Callable[[float], Awaitable[object]]


def max_poll_attempts(max_wait_seconds: float, interval_seconds: float) -> int:
    """Attempt budget: ``ceil(max_wait / interval)``, at least one."""
    if interval_seconds <= 0:
        raise ValueError("interval_seconds must be positive")
    return max(1, math.ceil(max_wait_seconds / interval_seconds))


async def poll_until_terminal(
    fetch_status: StatusFetcher,
    *,
    interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
    max_wait_seconds: float = DEFAULT_MAX_WAIT_SECONDS,
    sleep: Sleeper = asyncio.sleep,
) -> PollOutcome:
    """Fetch the run status every *interval_seconds* until it is terminal.

    Each attempt performs exactly one fetch.  A fetch that raises or returns
    ``None`` counts as a non-terminal observation and the previous snapshot
    is kept.  When the budget runs out the last snapshot is returned with
    ``kind = timed_out``; callers treat that the same as ``TIMED-OUT``.
    """
    attempts_budget = max_poll_attempts(max_wait_seconds, interval_seconds)
    last: RunSnapshot | None = None

    for attempt in range(1, attempts_budget + 1):
        try:
            snapshot = await fetch_status()
        except Exception as exc:
            logger.warning(
                "poll_status_fetch_failed",
                extra={"attempt": attempt, "error_message": str(exc)},
            )
            snapshot = None

        if snapshot is not None:
            last = snapshot
            if snapshot.is_terminal:
                return PollOutcome(
                    kind=PollOutcomeKind.terminal,
                    snapshot=snapshot,
                    attempts=attempt,
                )

        if attempt < attempts_budget:
            await sleep(interval_seconds)

    logger.warning(
        "poll_budget_exhausted",
        extra={
            "attempts": attempts_budget,
            "apify_run_id": last.id if last else None,
            "last_status": last.status if last else None,
        },
    )
    return PollOutcome(
        kind=PollOutcomeKind.timed_out,
        snapshot=last,
        attempts=attempts_budget,
    )
