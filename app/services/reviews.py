"""Trustpilot review ingestion.

Maps raw Apify review items into ``trustpilot_reviews`` rows.  Each item is
handled on its own: a malformed item or a failed insert is counted and the
batch continues.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from app.db.supabase import get_supabase
from app.models.review import MapReviewsResult, TrustpilotReviewData, TrustpilotReviewUpsert

logger = logging.getLogger(__name__)


def parse_review_item(item: Any) -> TrustpilotReviewData | None:
    """Return the review fields of *item*, or None if it is unusable.

    An item needs a non-empty string ``id`` and a numeric ``rating``.
    """
    if not isinstance(item, dict):
        return None
    review_id = item.get("id")
    rating = item.get("rating")
    if not review_id or not isinstance(review_id, str):
        return None
    if rating is None or isinstance(rating, bool) or not isinstance(rating, (int, float)):
        return None

    published = item.get("publishedDate")
    title = item.get("title")
    body = item.get("body")
    return TrustpilotReviewData(
        id=review_id,
        rating=rating,
        published_date=published if isinstance(published, str) else None,
        title=title if isinstance(title, str) else None,
        body=body if isinstance(body, str) else None,
    )


def parse_published_date(value: str | None) -> datetime | None:
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def map_trustpilot_reviews_to_db(
    items: list[Any],
    company_id: int,
) -> MapReviewsResult:
    """Insert the reviews of *items* for *company_id*, skipping known ones."""
    result = MapReviewsResult()
    client = get_supabase()

    for item in items:
        parsed = parse_review_item(item)
        if parsed is None:
            result.errors += 1
            continue

        try:
            payload = TrustpilotReviewUpsert(
                company_id=company_id,
                trustpilot_id=parsed.id,
                rating=int(round(parsed.rating)),
                published_date=parse_published_date(parsed.published_date),
                title=parsed.title,
                body=parsed.body,
                updated_at=datetime.now(timezone.utc),
            )
            inserted = (
                client.table("trustpilot_reviews")
                .upsert(
                    payload.model_dump(mode="json"),
                    on_conflict="company_id,trustpilot_id",
                    ignore_duplicates=True,
                )
                .execute()
            )
        except Exception as exc:
            result.errors += 1
            logger.error(
                "trustpilot_review_insert_failed",
                extra={
                    "company_id": company_id,
                    "trustpilot_id": parsed.id,
                    "error_message": str(exc),
                },
            )
            continue

        if inserted.data:
            result.created += 1
        else:
            result.skipped += 1

    logger.info(
        "trustpilot_reviews_mapped",
        extra={
            "company_id": company_id,
            "reviews_created": result.created,
            "reviews_skipped": result.skipped,
            "reviews_errors": result.errors,
        },
    )
    return result
