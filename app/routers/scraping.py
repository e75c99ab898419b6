"""Scraping endpoints.

POST /                  -- run a configured scraper to completion
GET  /status/{run_id}   -- current state of an Apify run
"""

from __future__ import annotations

import logging
from typing import Any

from apify_client import ApifyClientAsync
from fastapi import APIRouter, Depends, HTTPException
from starlette.responses import JSONResponse

from app.clients.apify import get_apify_client
from app.core.auth import get_current_user_id
from app.core.errors import InvalidRequestError, NotFoundError
from app.models.lead import ScrapingRequest, ScrapingResponse
from app.services.scraping import get_run_status, run_scraper

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=ScrapingResponse)
async def trigger_scraping(
    payload: ScrapingRequest,
    user_id: int = Depends(get_current_user_id),
    apify: ApifyClientAsync = Depends(get_apify_client),
) -> Any:
    """Run a scraper and wait for it; returns 500 with the run id if it fails."""
    try:
        response = await run_scraper(apify, user_id, payload)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except InvalidRequestError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    if not response.success:
        return JSONResponse(status_code=500, content=response.model_dump(mode="json"))
    return response


@router.get("/status/{run_id}")
async def scraping_status(
    run_id: str,
    user_id: int = Depends(get_current_user_id),
    apify: ApifyClientAsync = Depends(get_apify_client),
) -> dict[str, Any]:
    """Return the Apify status of *run_id*."""
    try:
        snapshot = await get_run_status(apify, run_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc

    return {
        "id": snapshot.id,
        "status": snapshot.status,
        "started_at": snapshot.started_at.isoformat() if snapshot.started_at else None,
        "finished_at": snapshot.finished_at.isoformat() if snapshot.finished_at else None,
        "default_dataset_id": snapshot.default_dataset_id,
    }
