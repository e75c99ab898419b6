"""Health check endpoint.

Returns service status including database connectivity, whether an Apify
token is configured, and the timestamp of the latest recorded run.
"""

import logging
from typing import Any

from fastapi import APIRouter
from starlette.responses import JSONResponse

from app.core.config import settings
from app.db.supabase import get_supabase

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check() -> Any:
    """Return 200 when Supabase is reachable, 503 otherwise."""
    db_status = "disconnected"
    last_run: str | None = None

    try:
        client = get_supabase()
        result = (
            client.table("scraper_runs")
            .select("created_at")
            .order("created_at", desc=True)
            .limit(1)
            .execute()
        )
        if result is not None:
            db_status = "connected"
            if result.data:
                last_run = result.data[0].get("created_at")
    except Exception:
        logger.warning("Health check: Supabase connection failed", exc_info=True)

    payload: dict[str, str | None] = {
        "status": "ok" if db_status == "connected" else "degraded",
        "database": db_status,
        "apify": "configured" if settings.APIFY_TOKEN else "missing_token",
        "last_run": last_run,
    }

    if db_status != "connected":
        return JSONResponse(status_code=503, content=payload)

    return payload
