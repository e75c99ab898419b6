"""Trustpilot review scraping endpoint.

POST /scrape -- scrape reviews for one company or every company of a collection.
"""

from __future__ import annotations

import logging

from apify_client import ApifyClientAsync
from fastapi import APIRouter, Depends, HTTPException

from app.clients.apify import get_apify_client
from app.core.auth import get_current_user_id
from app.core.errors import InvalidRequestError, NotFoundError
from app.models.review import TrustpilotScrapeRequest, TrustpilotScrapeResponse
from app.services.trustpilot import scrape_trustpilot_reviews

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/scrape", response_model=TrustpilotScrapeResponse)
async def scrape_reviews(
    payload: TrustpilotScrapeRequest,
    user_id: int = Depends(get_current_user_id),
    apify: ApifyClientAsync = Depends(get_apify_client),
) -> TrustpilotScrapeResponse:
    """Scrape Trustpilot reviews; per-company failures are reported in metrics."""
    try:
        return await scrape_trustpilot_reviews(apify, user_id, payload)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except InvalidRequestError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
