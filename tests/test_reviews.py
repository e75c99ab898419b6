"""Unit tests for Trustpilot review mapping and the Trustpilot scraping flow."""

from __future__ import annotations

import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.core.errors import InvalidRequestError, NotFoundError
from app.models.apify import ActorRunResult, RunSnapshot
from app.models.enums import ScraperRunSource, TrustpilotMode
from app.models.review import MapReviewsResult, TrustpilotScrapeRequest
from app.services.reviews import map_trustpilot_reviews_to_db, parse_review_item
from app.services.trustpilot import extract_domain, scrape_trustpilot_reviews
from conftest import FakeSupabase, chainable_table_mock, make_table_dispatch


class TestParseReviewItem:

    def test_valid_item(self) -> None:
        parsed = parse_review_item({
            "id": "r1",
            "rating": 4,
            "title": "Good",
            "body": "Fast delivery",
            "publishedDate": "2026-09-30T08:00:00.000Z",
        })

        assert parsed is not None
        assert parsed.id == "r1"
        assert parsed.rating == 4
        assert parsed.title == "Good"
        assert parsed.published_date == "2026-09-30T08:00:00.000Z"

    @pytest.mark.parametrize("item", [
        {"rating": 5},
        {"id": "", "rating": 5},
        {"id": 123, "rating": 5},
        {"id": "r1"},
        {"id": "r1", "rating": "5"},
        {"id": "r1", "rating": True},
        "not-a-dict",
        None,
    ])
    def test_rejects_malformed_items(self, item) -> None:
        assert parse_review_item(item) is None


class TestMapTrustpilotReviews:

    def test_second_upsert_is_skipped(self, fake_db: FakeSupabase) -> None:
        item = {"id": "r1", "rating": 4, "title": "Good"}

        first = map_trustpilot_reviews_to_db([item], company_id=8)
        second = map_trustpilot_reviews_to_db([item], company_id=8)

        assert first == MapReviewsResult(created=1, skipped=0, errors=0)
        assert second == MapReviewsResult(created=0, skipped=1, errors=0)
        assert len(fake_db.tables["trustpilot_reviews"].rows) == 1

    def test_same_review_for_other_company_is_created(self, fake_db: FakeSupabase) -> None:
        item = {"id": "r1", "rating": 4}

        map_trustpilot_reviews_to_db([item], company_id=8)
        result = map_trustpilot_reviews_to_db([item], company_id=9)

        assert result.created == 1

    def test_counts_add_up_to_batch_size(self, fake_db: FakeSupabase) -> None:
        items = [
            {"id": "r1", "rating": 5, "publishedDate": "not a date"},
            {"id": "r1", "rating": 5},
            {"id": "r2", "rating": 2.6, "body": "Slow"},
            {"id": "r3"},
            {"rating": 1},
            42,
        ]

        result = map_trustpilot_reviews_to_db(items, company_id=8)

        assert result.created == 2
        assert result.skipped == 1
        assert result.errors == 3
        assert result.created + result.skipped + result.errors == len(items)
        stored = {r["trustpilot_id"]: r for r in fake_db.tables["trustpilot_reviews"].rows}
        assert stored["r1"]["published_date"] is None
        assert stored["r2"]["rating"] == 3

    @patch("app.services.reviews.get_supabase")
    def test_insert_failure_counts_as_error(self, mock_get_supabase: MagicMock) -> None:
        table = chainable_table_mock()
        table.execute.side_effect = [RuntimeError("timeout"), MagicMock(data=[{"id": 1}])]
        mock_get_supabase.return_value.table.return_value = table

        result = map_trustpilot_reviews_to_db(
            [{"id": "a", "rating": 3}, {"id": "b", "rating": 4}], company_id=8
        )

        assert result == MapReviewsResult(created=1, skipped=0, errors=1)


class TestExtractDomain:

    @pytest.mark.parametrize("raw, expected", [
        ("example.com", "example.com"),
        ("https://www.example.com/about", "example.com"),
        ("http://shop.example.co.uk", "shop.example.co.uk"),
        ("www.example.com", "example.com"),
        ("  ", None),
        (None, None),
    ])
    def test_extract_domain(self, raw, expected) -> None:
        assert extract_domain(raw) == expected


def _succeeded_run(run_id: str, items: list[dict]) -> ActorRunResult:
    return ActorRunResult(
        run_id=run_id,
        status="SUCCEEDED",
        succeeded=True,
        items=items,
        snapshot=RunSnapshot(
            id=run_id,
            status="SUCCEEDED",
            usage_total_usd=0.05,
            usage_usd={"ACTOR_COMPUTE_UNITS": 0.05},
        ),
    )


class TestScrapeTrustpilotReviews:

    @pytest.mark.asyncio
    @patch("app.services.trustpilot.map_trustpilot_reviews_to_db")
    @patch("app.services.trustpilot.record_scraper_run", new_callable=AsyncMock)
    @patch("app.services.trustpilot.run_actor_to_completion", new_callable=AsyncMock)
    @patch("app.services.trustpilot.get_supabase")
    async def test_single_company(
        self,
        mock_get_supabase: MagicMock,
        mock_run: AsyncMock,
        mock_record: AsyncMock,
        mock_map: MagicMock,
    ) -> None:
        companies = chainable_table_mock()
        companies.execute.return_value = MagicMock(
            data=[{"id": 3, "domain": None, "website": "https://www.acme.com/about"}]
        )
        mock_get_supabase.return_value = make_table_dispatch(companies=companies)
        mock_run.return_value = _succeeded_run("run-tp", [{"id": "r1", "rating": 5}])
        mock_map.return_value = MapReviewsResult(created=1)
        apify = MagicMock()

        response = await scrape_trustpilot_reviews(
            apify, 1, TrustpilotScrapeRequest(mode=TrustpilotMode.single, company_id=3)
        )

        assert response.metrics.scraped == 1
        assert response.metrics.created == 1
        assert response.run_ids == ["run-tp"]
        mock_run.assert_awaited_once_with(
            apify,
            "thewolves/trustpilot-reviews-scraper",
            {"startUrls": ["https://www.trustpilot.com/review/acme.com"], "maxItems": 100},
        )
        ledger_row = mock_record.await_args.args[0]
        assert ledger_row.source == ScraperRunSource.trustpilot
        assert ledger_row.company_id == 3
        assert ledger_row.cost_usd == 0.05
        assert ledger_row.item_count == 1
        mock_map.assert_called_once_with([{"id": "r1", "rating": 5}], 3)

    @pytest.mark.asyncio
    @patch("app.services.trustpilot.get_supabase")
    async def test_company_without_domain_is_rejected(self, mock_get_supabase: MagicMock) -> None:
        companies = chainable_table_mock()
        companies.execute.return_value = MagicMock(data=[{"id": 3, "domain": "", "website": None}])
        mock_get_supabase.return_value = make_table_dispatch(companies=companies)

        with pytest.raises(InvalidRequestError):
            await scrape_trustpilot_reviews(
                MagicMock(), 1, TrustpilotScrapeRequest(mode=TrustpilotMode.single, company_id=3)
            )

    @pytest.mark.asyncio
    @patch("app.services.trustpilot.get_supabase")
    async def test_unknown_lead_is_not_found(self, mock_get_supabase: MagicMock) -> None:
        mock_get_supabase.return_value = make_table_dispatch(leads=chainable_table_mock())

        with pytest.raises(NotFoundError):
            await scrape_trustpilot_reviews(
                MagicMock(), 1, TrustpilotScrapeRequest(mode=TrustpilotMode.single, lead_id=77)
            )

    @pytest.mark.asyncio
    @patch("app.services.trustpilot.map_trustpilot_reviews_to_db")
    @patch("app.services.trustpilot.record_scraper_run", new_callable=AsyncMock)
    @patch("app.services.trustpilot.run_actor_to_completion", new_callable=AsyncMock)
    @patch("app.services.trustpilot.get_supabase")
    async def test_collection_with_failed_run(
        self,
        mock_get_supabase: MagicMock,
        mock_run: AsyncMock,
        mock_record: AsyncMock,
        mock_map: MagicMock,
    ) -> None:
        """One company per domain; a failed run is recorded and counted, the batch continues."""
        collections = chainable_table_mock()
        collections.execute.return_value = MagicMock(data=[{"id": 9}])
        links = chainable_table_mock()
        links.execute.return_value = MagicMock(data=[{"lead_id": 1}, {"lead_id": 2}, {"lead_id": 3}])
        leads = chainable_table_mock()
        leads.execute.return_value = MagicMock(
            data=[{"company_id": 3}, {"company_id": 4}, {"company_id": 5}, {"company_id": None}]
        )
        companies = chainable_table_mock()
        companies.execute.return_value = MagicMock(data=[
            {"id": 3, "domain": "acme.com", "website": None},
            {"id": 4, "domain": None, "website": None},
            {"id": 5, "domain": None, "website": "http://globex.io"},
        ])
        mock_get_supabase.return_value = make_table_dispatch(
            collections=collections,
            lead_collections=links,
            leads=leads,
            companies=companies,
        )
        mock_run.side_effect = [
            ActorRunResult(
                run_id="run-a", status="FAILED", error="The run failed",
                snapshot=RunSnapshot(id="run-a", status="FAILED"),
            ),
            _succeeded_run("run-b", [{"id": "r9", "rating": 3}]),
        ]
        mock_map.return_value = MapReviewsResult(created=0, skipped=1)
        sleep = AsyncMock()

        response = await scrape_trustpilot_reviews(
            MagicMock(),
            1,
            TrustpilotScrapeRequest(mode=TrustpilotMode.collection, collection_id=9),
            sleep=sleep,
        )

        assert response.metrics.scraped == 1
        assert response.metrics.errors == 1
        assert response.metrics.skipped == 1
        assert response.metrics.without_domain == 1
        assert response.warning is not None
        assert response.run_ids == ["run-a", "run-b"]
        assert mock_record.await_count == 2
        sleep.assert_awaited_once_with(1.5)
        mock_map.assert_called_once_with([{"id": "r9", "rating": 3}], 5)

    @pytest.mark.asyncio
    async def test_collection_mode_requires_collection_id(self) -> None:
        with pytest.raises(InvalidRequestError):
            await scrape_trustpilot_reviews(
                MagicMock(), 1, TrustpilotScrapeRequest(mode=TrustpilotMode.collection)
            )


class TestTrustpilotFlowStoresReviews:

    @pytest.mark.asyncio
    @patch("app.services.trustpilot.record_scraper_run", new_callable=AsyncMock)
    @patch("app.services.trustpilot.run_actor_to_completion", new_callable=AsyncMock)
    @patch("app.services.trustpilot.get_supabase")
    async def test_reviews_stored_once_across_two_scrapes(
        self,
        mock_get_supabase: MagicMock,
        mock_run: AsyncMock,
        mock_record: AsyncMock,
        fake_db: FakeSupabase,
    ) -> None:
        companies = chainable_table_mock()
        companies.execute.return_value = MagicMock(
            data=[{"id": 3, "domain": "acme.com", "website": None}]
        )
        mock_get_supabase.return_value = make_table_dispatch(companies=companies)
        items = [{"id": "r1", "rating": 5}, {"id": "r2", "rating": 1}, {"rating": 4}]
        mock_run.side_effect = [_succeeded_run("run-1", items), _succeeded_run("run-2", items)]
        request = TrustpilotScrapeRequest(mode=TrustpilotMode.single, company_id=3)

        first = await scrape_trustpilot_reviews(MagicMock(), 1, request)
        second = await scrape_trustpilot_reviews(MagicMock(), 1, request)

        assert (first.metrics.created, first.metrics.skipped, first.metrics.errors) == (2, 0, 1)
        assert (second.metrics.created, second.metrics.skipped, second.metrics.errors) == (0, 2, 1)
        assert len(fake_db.tables["trustpilot_reviews"].rows) == 2

    def test_default_max_items_comes_from_settings(self) -> None:
        with patch("app.models.review.settings") as mock_settings:
            mock_settings.TRUSTPILOT_MAX_ITEMS = 250
            request = TrustpilotScrapeRequest(mode=TrustpilotMode.single, company_id=3)

        assert request.max_items == 250

    @pytest.mark.asyncio
    @patch("app.services.trustpilot.record_scraper_run", new_callable=AsyncMock)
    @patch("app.services.trustpilot.run_actor_to_completion", new_callable=AsyncMock)
    @patch("app.services.trustpilot.get_supabase")
    async def test_run_that_cannot_start_is_counted_and_logged(
        self,
        mock_get_supabase: MagicMock,
        mock_run: AsyncMock,
        mock_record: AsyncMock,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        companies = chainable_table_mock()
        companies.execute.return_value = MagicMock(
            data=[{"id": 3, "domain": "acme.com", "website": None}]
        )
        mock_get_supabase.return_value = make_table_dispatch(companies=companies)
        mock_run.side_effect = RuntimeError("actor not found")

        with caplog.at_level(logging.ERROR, logger="app.services.trustpilot"):
            response = await scrape_trustpilot_reviews(
                MagicMock(), 1, TrustpilotScrapeRequest(mode=TrustpilotMode.single, company_id=3)
            )

        assert response.metrics.errors == 1
        assert response.run_ids == []
        mock_record.assert_not_awaited()
        assert [r.getMessage() for r in caplog.records] == ["trustpilot_run_errored"]
