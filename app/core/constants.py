"""Application constants.

Contains Apify run states, ledger defaults, and mapper lookup tables.
"""

# ---------------------------------------------------------------------------
# Apify run states
# ---------------------------------------------------------------------------
TERMINAL_RUN_STATUSES: frozenset[str] = frozenset(
    {"SUCCEEDED", "FAILED", "ABORTED", "TIMED-OUT"}
)

# Statuses imported by the backfill (terminal runs plus in-flight ones)
BACKFILL_RUN_STATUSES: frozenset[str] = TERMINAL_RUN_STATUSES | {"RUNNING"}

# Page size used when walking the Apify run history
APIFY_RUNS_PAGE_SIZE: int = 250

# ---------------------------------------------------------------------------
# Actor identifiers
# Apify reports some runs with the short actor id while the scrapers table
# stores the fully-qualified name.
# ---------------------------------------------------------------------------
DEFAULT_ACTOR_ALIASES: dict[str, str] = {
    "QM5YJIYftbZQiNpgN": (
        "xmiso_scrapers/easy-bulk-email-validator---verify-emails-from-1-7-1000-rows"
    ),
}

EMAIL_VALIDATOR_MAPPER_TYPE: str = "easy-bulk-email-validator"
EMAIL_VALIDATOR_DEFAULT_ACTOR_ID: str = (
    "xmiso_scrapers/easy-bulk-email-validator---verify-emails-from-1-7-1000-rows"
)
EMAIL_VALIDATOR_MAX_EMAILS: int = 1000
# Fallback price per email when the scraper row has no cost_per_lead
EMAIL_VALIDATOR_DEFAULT_COST_PER_EMAIL: float = 0.001

TRUSTPILOT_REVIEW_BASE_URL: str = "https://www.trustpilot.com/review/"

# ---------------------------------------------------------------------------
# Email validator result -> lead ``email_verify_emaillist`` value
# ---------------------------------------------------------------------------
EMAIL_RESULT_TO_EMAILLIST: dict[str, str] = {
    "valid": "ok",
    "invalid": "invalid",
    "catch_all": "ok_for_all",
    "accept_all": "ok_for_all",
}

# ---------------------------------------------------------------------------
# Human-readable reasons for unsuccessful runs
# ---------------------------------------------------------------------------
RUN_FAILURE_MESSAGES: dict[str, str] = {
    "FAILED": "The run failed",
    "TIMED-OUT": "The run exceeded the time limit",
    "ABORTED": "The run was aborted",
}
RUN_FAILURE_DEFAULT_MESSAGE: str = "The run ended with an error"
DATASET_FETCH_FAILED_MESSAGE: str = "Failed to fetch run results"

# ---------------------------------------------------------------------------
# Ledger listing
# ---------------------------------------------------------------------------
SCRAPER_RUNS_DEFAULT_LIMIT: int = 50
SCRAPER_RUNS_MAX_LIMIT: int = 100

# Days covered by each spending summary period ("day" starts at midnight)
SUMMARY_PERIOD_DAYS: dict[str, int] = {
    "day": 0,
    "week": 7,
    "month": 30,
}
