"""Pydantic models describing Apify runs as seen by this service."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from app.core.constants import TERMINAL_RUN_STATUSES
from app.models.enums import PollOutcomeKind


class RunSnapshot(BaseModel):
    """Normalized view of ``GET /actor-runs/{id}``."""
    id: str
    status: str
    act_id: str | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None
    default_dataset_id: str | None = None
    usage_total_usd: float | None = None
    usage_usd: dict[str, Any] | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_RUN_STATUSES


class RunCost(BaseModel):
    """Billed cost of a finished run."""
    cost_usd: float | None = None
    usage_usd: dict[str, Any] | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None


class PollOutcome(BaseModel):
    """Tagged result of ``poll_until_terminal``.

    ``snapshot`` is the last status observed; it is ``None`` only when every
    status fetch failed.
    """
    kind: PollOutcomeKind
    snapshot: RunSnapshot | None = None
    attempts: int = 0

    @property
    def timed_out(self) -> bool:
        return self.kind == PollOutcomeKind.timed_out


class ActorRunResult(BaseModel):
    """Outcome of starting an actor and waiting for it to finish."""
    run_id: str
    status: str
    succeeded: bool = False
    timed_out: bool = False
    error: str | None = None
    items: list[dict[str, Any]] = Field(default_factory=list)
    started_at: datetime | None = None
    finished_at: datetime | None = None
    snapshot: RunSnapshot | None = None

    @property
    def platform_status(self) -> str:
        """Status last reported by Apify (``RUNNING`` after a local timeout)."""
        return self.snapshot.status if self.snapshot else self.status
