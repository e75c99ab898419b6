"""Lead email verification through the Easy Bulk Email Validator actor.

Verifies one lead's email, or every pending email of a collection in a
single run, and stores the verdicts on the leads.  The Apify run is
recorded in the ledger whether or not it succeeded.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any

from apify_client import ApifyClientAsync

from app.core.constants import (
    EMAIL_RESULT_TO_EMAILLIST,
    EMAIL_VALIDATOR_DEFAULT_ACTOR_ID,
    EMAIL_VALIDATOR_DEFAULT_COST_PER_EMAIL,
    EMAIL_VALIDATOR_MAPPER_TYPE,
    EMAIL_VALIDATOR_MAX_EMAILS,
)
from app.core.errors import InvalidRequestError, NotFoundError
from app.db.supabase import get_supabase
from app.models.enums import ScraperRunSource
from app.models.lead import (
    CollectionEmailVerificationMetrics,
    CollectionEmailVerificationResult,
    EmailValidatorResult,
    EmailVerificationResult,
    MappingResult,
)
from app.models.scraper_run import ScraperRunCreate
from app.services.actor_runs import run_actor_to_completion
from app.services.ledger import record_scraper_run

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Validator results -> leads
# ---------------------------------------------------------------------------

def email_result_to_emaillist(email_result: str | None) -> str:
    """Translate the validator verdict to the lead's ``email_verify_emaillist`` value."""
    if not email_result:
        return "unknown"
    lowered = email_result.lower()
    return EMAIL_RESULT_TO_EMAILLIST.get(lowered, lowered)


def map_validator_results_to_leads(
    results: list[dict[str, Any]],
    email_to_lead_id: dict[str, int],
) -> MappingResult:
    """Apply validator rows to the leads whose email they describe.

    Rows without an email or for an unknown email are skipped; a failed
    update is counted as an error and the batch continues.
    """
    mapping = MappingResult()
    client = get_supabase()
    now = datetime.now(timezone.utc).isoformat()

    for raw in results:
        try:
            row = EmailValidatorResult.model_validate(raw)
            email = (row.email or "").strip().lower()
            lead_id = email_to_lead_id.get(email) if email else None
            if lead_id is None:
                mapping.skipped += 1
                continue

            update_data: dict[str, Any] = {
                "email_verify_emaillist": email_result_to_emaillist(row.email_result),
                "email_verify_emaillist_at": now,
                "updated_at": now,
            }
            if (row.email_result or "").lower() == "valid":
                update_data["email_certainty"] = "sure"

            client.table("leads").update(update_data).eq("id", lead_id).execute()
            mapping.enriched += 1
        except Exception as exc:
            mapping.errors += 1
            logger.error(
                "email_validator_mapping_failed",
                extra={"row": raw, "error_message": str(exc)},
            )

    return mapping


# ---------------------------------------------------------------------------
# Verification flow
# ---------------------------------------------------------------------------

def _get_lead(user_id: int, lead_id: int) -> dict[str, Any]:
    client = get_supabase()
    result = (
        client.table("leads")
        .select("id, email")
        .eq("id", lead_id)
        .eq("user_id", user_id)
        .limit(1)
        .execute()
    )
    if not result.data:
        raise NotFoundError("Lead not found or access denied")
    return result.data[0]


def _get_validator_scraper() -> dict[str, Any]:
    client = get_supabase()
    result = (
        client.table("scrapers")
        .select("id, provider_config, cost_per_lead")
        .eq("mapper_type", EMAIL_VALIDATOR_MAPPER_TYPE)
        .eq("is_active", True)
        .limit(1)
        .execute()
    )
    if not result.data:
        raise NotFoundError("Easy Bulk Email Validator scraper not found")
    return result.data[0]


async def verify_lead_email(
    apify: ApifyClientAsync,
    user_id: int,
    lead_id: int,
) -> EmailVerificationResult:
    """Verify the email of *lead_id* and store the verdict on the lead.

    Raises ``NotFoundError`` for an unknown lead or missing validator
    scraper and ``InvalidRequestError`` when the lead has no email.  A run
    that does not succeed is returned as ``success=False`` with its run id.
    """
    start_time = time.time()
    lead = _get_lead(user_id, lead_id)
    email = (lead.get("email") or "").strip()
    if not email:
        raise InvalidRequestError("This lead has no email to verify")

    scraper = _get_validator_scraper()
    config = scraper.get("provider_config") or {}
    actor_id = config.get("actorId") or EMAIL_VALIDATOR_DEFAULT_ACTOR_ID

    run = await run_actor_to_completion(apify, actor_id, {"emails": [email]})

    await record_scraper_run(
        ScraperRunCreate(
            run_id=run.run_id,
            scraper_id=scraper["id"],
            user_id=user_id,
            source=ScraperRunSource.verify_email_apify,
            lead_id=lead_id,
            item_count=len(run.items),
            status=run.platform_status,
            started_at=run.started_at,
            finished_at=run.finished_at,
        ),
        apify=apify,
        fetch_cost_from_apify=True,
    )

    if not run.succeeded:
        return EmailVerificationResult(
            success=False,
            run_id=run.run_id,
            status=run.status,
            error=run.error,
            duration_seconds=round(time.time() - start_time),
        )

    mapping = map_validator_results_to_leads(run.items, {email.lower(): lead_id})

    client = get_supabase()
    updated = (
        client.table("leads")
        .select("email_verify_emaillist, email_certainty")
        .eq("id", lead_id)
        .limit(1)
        .execute()
    )
    updated_row = updated.data[0] if updated.data else {}

    logger.info(
        "verify_lead_email_completed",
        extra={
            "lead_id": lead_id,
            "apify_run_id": run.run_id,
            "enriched": mapping.enriched,
        },
    )

    return EmailVerificationResult(
        success=True,
        run_id=run.run_id,
        status=run.status,
        result=updated_row.get("email_verify_emaillist"),
        email_certainty=updated_row.get("email_certainty"),
        metrics=mapping,
        duration_seconds=round(time.time() - start_time),
    )


# ---------------------------------------------------------------------------
# Collection batch
# ---------------------------------------------------------------------------

def _get_collection_leads(user_id: int, collection_id: int) -> list[dict[str, Any]]:
    """Leads of the user's collection that have an email column set."""
    client = get_supabase()
    collection = (
        client.table("collections")
        .select("id")
        .eq("id", collection_id)
        .eq("user_id", user_id)
        .limit(1)
        .execute()
    )
    if not collection.data:
        raise NotFoundError("Collection not found or access denied")

    links = (
        client.table("lead_collections")
        .select("lead_id")
        .eq("collection_id", collection_id)
        .execute()
    )
    lead_ids = [row["lead_id"] for row in links.data or []]
    if not lead_ids:
        return []

    leads = (
        client.table("leads")
        .select("id, email, email_verify_emaillist")
        .in_("id", lead_ids)
        .eq("user_id", user_id)
        .execute()
    )
    return [row for row in leads.data or [] if row.get("email") is not None]


def collect_emails_to_verify(
    leads: list[dict[str, Any]],
    force: bool = False,
) -> dict[str, int]:
    """Map each distinct lower-cased email to the lead it will update.

    Leads with a blank email are ignored, as are leads already verified
    unless *force* is set.
    """
    email_to_lead_id: dict[str, int] = {}
    for lead in leads:
        email = (lead.get("email") or "").strip().lower()
        if not email:
            continue
        if not force and lead.get("email_verify_emaillist"):
            continue
        if force or email not in email_to_lead_id:
            email_to_lead_id[email] = lead["id"]
    return email_to_lead_id


async def verify_collection_emails(
    apify: ApifyClientAsync,
    user_id: int,
    collection_id: int,
    force: bool = False,
) -> CollectionEmailVerificationResult:
    """Verify every pending email of a collection in one validator run.

    Raises ``NotFoundError`` for an unknown collection or missing validator
    scraper and ``InvalidRequestError`` above ``EMAIL_VALIDATOR_MAX_EMAILS``
    emails.  The run is recorded in the ledger whether or not it succeeds.
    """
    start_time = time.time()
    leads = _get_collection_leads(user_id, collection_id)
    email_to_lead_id = collect_emails_to_verify(leads, force)
    emails = list(email_to_lead_id)

    if not emails:
        return CollectionEmailVerificationResult(
            success=True,
            message="No email to verify in this collection",
        )

    if len(emails) > EMAIL_VALIDATOR_MAX_EMAILS:
        raise InvalidRequestError(
            f"Maximum {EMAIL_VALIDATOR_MAX_EMAILS} emails per run. "
            f"{len(emails)} emails requested. Split them into several batches."
        )

    scraper = _get_validator_scraper()
    config = scraper.get("provider_config") or {}
    actor_id = config.get("actorId") or EMAIL_VALIDATOR_DEFAULT_ACTOR_ID
    cost_per_email = scraper.get("cost_per_lead")
    if cost_per_email is None:
        cost_per_email = EMAIL_VALIDATOR_DEFAULT_COST_PER_EMAIL
    metrics = CollectionEmailVerificationMetrics(
        total=len(leads),
        processed=len(emails),
        estimated_cost_usd=round(len(emails) * float(cost_per_email), 4),
    )

    logger.info(
        "verify_collection_emails_started",
        extra={"user_id": user_id, "collection_id": collection_id, "email_count": len(emails)},
    )
    run = await run_actor_to_completion(apify, actor_id, {"emails": emails})

    await record_scraper_run(
        ScraperRunCreate(
            run_id=run.run_id,
            scraper_id=scraper["id"],
            user_id=user_id,
            source=ScraperRunSource.verify_emails_collection_apify,
            collection_id=collection_id,
            item_count=len(run.items),
            status=run.platform_status,
            started_at=run.started_at,
            finished_at=run.finished_at,
        ),
        apify=apify,
        fetch_cost_from_apify=True,
    )

    if not run.succeeded:
        return CollectionEmailVerificationResult(
            success=False,
            run_id=run.run_id,
            status=run.status,
            error=run.error,
            metrics=metrics,
            duration_seconds=round(time.time() - start_time),
        )

    mapping = map_validator_results_to_leads(run.items, email_to_lead_id)
    metrics.enriched = mapping.enriched
    metrics.skipped = mapping.skipped
    metrics.errors = mapping.errors

    logger.info(
        "verify_collection_emails_completed",
        extra={
            "collection_id": collection_id,
            "apify_run_id": run.run_id,
            "enriched": mapping.enriched,
        },
    )

    return CollectionEmailVerificationResult(
        success=True,
        run_id=run.run_id,
        status=run.status,
        metrics=metrics,
        duration_seconds=round(time.time() - start_time),
    )
