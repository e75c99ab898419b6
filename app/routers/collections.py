"""Collection enrichment endpoints.

POST /{collection_id}/verify-emails-apify -- verify a collection's emails via Apify.
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
from app.models.lead import CollectionEmailVerificationRequest, CollectionEmailVerificationResult
from app.services.email_verification import verify_collection_emails

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/{collection_id}/verify-emails-apify",
    response_model=CollectionEmailVerificationResult,
)
async def verify_emails_apify(
    collection_id: int,
    payload: CollectionEmailVerificationRequest | None = None,
    user_id: int = Depends(get_current_user_id),
    apify: ApifyClientAsync = Depends(get_apify_client),
) -> Any:
    """Verify the collection's pending emails in one run (at most 1000)."""
    force = payload.force if payload is not None else False
    try:
        result = await verify_collection_emails(apify, user_id, collection_id, force)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except InvalidRequestError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    if not result.success:
        return JSONResponse(status_code=500, content=result.model_dump(mode="json"))
    return result
