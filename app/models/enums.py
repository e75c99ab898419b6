"""Enum types mirroring Apify run states and ledger column values."""

from enum import Enum


class RunStatus(str, Enum):
    """Lifecycle status of an Apify actor run."""
    ready = "READY"
    running = "RUNNING"
    succeeded = "SUCCEEDED"
    failed = "FAILED"
    aborted = "ABORTED"
    timed_out = "TIMED-OUT"


class ScraperRunSource(str, Enum):
    """Why a scraper run happened (``scraper_runs.source``)."""
    scraping = "scraping"
    enrich_collection = "enrich_collection"
    enrich_lead = "enrich_lead"
    enrich_company = "enrich_company"
    enrich_emails_collection = "enrich_emails_collection"
    enrich_emails_company = "enrich_emails_company"
    find_email = "find_email"
    verify_email_apify = "verify_email_apify"
    verify_emails_collection_apify = "verify_emails_collection_apify"
    trustpilot = "trustpilot"
    seo_local_ranking = "seo_local_ranking"
    import_ = "import"


class LedgerWriteStatus(str, Enum):
    """Outcome of a single ledger insert attempt."""
    recorded = "recorded"
    duplicate = "duplicate"
    failed = "failed"


class LedgerErrorKind(str, Enum):
    """Failure category of a ledger insert attempt."""
    database = "database"
    unknown = "unknown"


class PollOutcomeKind(str, Enum):
    """How the poll loop ended."""
    terminal = "terminal"
    timed_out = "timed_out"


class SummaryPeriod(str, Enum):
    """Window used by the spending summary."""
    day = "day"
    week = "week"
    month = "month"
    all = "all"


class TrustpilotMode(str, Enum):
    """Target selection for Trustpilot scraping."""
    single = "single"
    collection = "collection"
