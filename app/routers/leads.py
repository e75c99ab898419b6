"""Lead enrichment endpoints.

POST /{lead_id}/verify-email-apify -- verify a lead's email via Apify.
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
from app.models.lead import EmailVerificationResult
from app.services.email_verification import verify_lead_email

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/{lead_id}/verify-email-apify", response_model=EmailVerificationResult)
async def verify_email_apify(
    lead_id: int,
    user_id: int = Depends(get_current_user_id),
    apify: ApifyClientAsync = Depends(get_apify_client),
) -> Any:
    """Verify the lead's email; a failed run returns 500 with its run id."""
    try:
        result = await verify_lead_email(apify, user_id, lead_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except InvalidRequestError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    if not result.success:
        return JSONResponse(status_code=500, content=result.model_dump(mode="json"))
    return result
