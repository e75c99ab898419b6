"""Trustpilot review scraping for one company or a whole collection.

Resolves the target companies' domains, runs the Trustpilot actor once per
domain, stores the reviews and records every run in the ledger.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any
from urllib.parse import urlparse

from apify_client import ApifyClientAsync

from app.core.config import settings
from app.core.constants import TRUSTPILOT_REVIEW_BASE_URL
from app.core.errors import InvalidRequestError, NotFoundError
from app.db.supabase import get_supabase
from app.models.enums import ScraperRunSource, TrustpilotMode
from app.models.review import (
    TrustpilotScrapeMetrics,
    TrustpilotScrapeRequest,
    TrustpilotScrapeResponse,
    TrustpilotTarget,
)
from app.models.scraper_run import ScraperRunCreate
from app.services.actor_runs import run_actor_to_completion
from app.services.ledger import record_scraper_run
from app.services.polling import Sleeper
from app.services.reviews import map_trustpilot_reviews_to_db

logger = logging.getLogger(__name__)

NO_DOMAIN_MESSAGE = (
    "This company has no domain (website). Add a website or a domain "
    "to scrape its Trustpilot reviews."
)

_DOMAIN_RE = re.compile(r"(?:https?://)?(?:www\.)?([^/]+)")


def extract_domain(url_or_domain: str | None) -> str | None:
    """Return the bare host of a URL, or *url_or_domain* if already a domain."""
    if not url_or_domain or not url_or_domain.strip():
        return None
    cleaned = url_or_domain.strip()
    if "://" not in cleaned and not cleaned.startswith("www."):
        return cleaned

    host = urlparse(cleaned if cleaned.startswith("http") else f"https://{cleaned}").hostname
    if host:
        return host[4:] if host.startswith("www.") else host
    match = _DOMAIN_RE.match(cleaned)
    return match.group(1) if match else cleaned


def company_domain(domain: str | None, website: str | None) -> str | None:
    if domain and domain.strip():
        return extract_domain(domain) or domain.strip()
    if website and website.strip():
        return extract_domain(website)
    return None


# ---------------------------------------------------------------------------
# Target resolution
# ---------------------------------------------------------------------------

def _fetch_company(company_id: int) -> dict[str, Any]:
    client = get_supabase()
    result = (
        client.table("companies")
        .select("id, domain, website")
        .eq("id", company_id)
        .limit(1)
        .execute()
    )
    if not result.data:
        raise NotFoundError("Company not found")
    return result.data[0]


def _resolve_single_target(user_id: int, request: TrustpilotScrapeRequest) -> TrustpilotTarget:
    if request.company_id is not None:
        company = _fetch_company(request.company_id)
    elif request.lead_id is not None:
        client = get_supabase()
        lead = (
            client.table("leads")
            .select("id, company_id")
            .eq("id", request.lead_id)
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )
        if not lead.data:
            raise NotFoundError("Lead not found or access denied")
        if not lead.data[0].get("company_id"):
            raise InvalidRequestError("This lead has no associated company")
        company = _fetch_company(lead.data[0]["company_id"])
    else:
        raise InvalidRequestError("In single mode, provide company_id or lead_id")

    domain = company_domain(company.get("domain"), company.get("website"))
    if not domain:
        raise InvalidRequestError(NO_DOMAIN_MESSAGE)
    return TrustpilotTarget(company_id=company["id"], domain=domain)


def _resolve_collection_targets(
    user_id: int,
    collection_id: int,
) -> tuple[list[TrustpilotTarget], int]:
    """Return one target per distinct domain and the count of companies without one."""
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
        return [], 0

    leads = (
        client.table("leads")
        .select("company_id")
        .in_("id", lead_ids)
        .eq("user_id", user_id)
        .execute()
    )
    company_ids = list(dict.fromkeys(
        row["company_id"] for row in leads.data or [] if row.get("company_id")
    ))
    if not company_ids:
        return [], 0

    companies = (
        client.table("companies")
        .select("id, domain, website")
        .in_("id", company_ids)
        .execute()
    )

    by_domain: dict[str, TrustpilotTarget] = {}
    without_domain = 0
    for company in companies.data or []:
        domain = company_domain(company.get("domain"), company.get("website"))
        if not domain:
            without_domain += 1
            continue
        by_domain.setdefault(domain, TrustpilotTarget(company_id=company["id"], domain=domain))
    return list(by_domain.values()), without_domain


def resolve_targets(
    user_id: int,
    request: TrustpilotScrapeRequest,
) -> tuple[list[TrustpilotTarget], int]:
    """Companies to scrape for *request* and how many were skipped for lack of a domain."""
    if request.mode == TrustpilotMode.single:
        return [_resolve_single_target(user_id, request)], 0

    if request.collection_id is None:
        raise InvalidRequestError("collection_id is required in collection mode")
    targets, without_domain = _resolve_collection_targets(user_id, request.collection_id)
    if not targets:
        raise InvalidRequestError("No company with a valid domain in this collection")
    return targets, without_domain


# ---------------------------------------------------------------------------
# Scraping
# ---------------------------------------------------------------------------

async def scrape_trustpilot_reviews(
    apify: ApifyClientAsync,
    user_id: int,
    request: TrustpilotScrapeRequest,
    *,
    sleep: Sleeper = asyncio.sleep,
) -> TrustpilotScrapeResponse:
    """Scrape and store Trustpilot reviews for the companies of *request*.

    Raises ``NotFoundError`` / ``InvalidRequestError`` when no target can be
    resolved.  Failures on one company are counted and the loop continues.
    """
    targets, without_domain = resolve_targets(user_id, request)
    metrics = TrustpilotScrapeMetrics(without_domain=without_domain)
    run_ids: list[str] = []

    for index, target in enumerate(targets):
        if index > 0:
            await sleep(settings.TRUSTPILOT_DELAY_SECONDS)

        start_url = f"{TRUSTPILOT_REVIEW_BASE_URL}{target.domain}"
        try:
            run = await run_actor_to_completion(
                apify,
                settings.TRUSTPILOT_ACTOR_ID,
                {"startUrls": [start_url], "maxItems": request.max_items},
            )
        except Exception as exc:
            metrics.errors += 1
            logger.error(
                "trustpilot_run_errored",
                extra={"company_id": target.company_id, "error_message": str(exc)},
            )
            continue

        run_ids.append(run.run_id)
        snapshot = run.snapshot
        await record_scraper_run(
            ScraperRunCreate(
                run_id=run.run_id,
                user_id=user_id,
                source=ScraperRunSource.trustpilot,
                company_id=target.company_id,
                item_count=len(run.items),
                status=run.platform_status,
                started_at=run.started_at,
                finished_at=run.finished_at,
                cost_usd=snapshot.usage_total_usd if snapshot else None,
                usage_details=snapshot.usage_usd if snapshot else None,
            ),
            apify=apify,
            fetch_cost_from_apify=True,
        )

        if not run.succeeded:
            metrics.errors += 1
            logger.warning(
                "trustpilot_run_failed",
                extra={
                    "company_id": target.company_id,
                    "apify_run_id": run.run_id,
                    "status": run.status,
                },
            )
            continue

        mapped = map_trustpilot_reviews_to_db(run.items, target.company_id)
        metrics.created += mapped.created
        metrics.skipped += mapped.skipped
        metrics.errors += mapped.errors
        metrics.scraped += 1

    warning = None
    if without_domain:
        warning = f"{without_domain} company(ies) ignored: no domain (website)"

    return TrustpilotScrapeResponse(metrics=metrics, run_ids=run_ids, warning=warning)
