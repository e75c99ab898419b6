"""FastAPI application entry point.

Configures CORS, structured logging, lifespan events (including the Apify
client shared by all requests), and router registration.
"""

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.clients.apify import build_apify_client
from app.core.config import settings
from app.core.logging import setup_logging
from app.routers import collections, health, leads, scraper_runs, scraping, trustpilot

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: build the Apify client once per process."""
    setup_logging()
    application.state.apify = build_apify_client()
    logger.info("Application starting up")
    yield
    logger.info("Application shutting down")


app = FastAPI(
    title="Scraper Run Accounting API",
    description="Apify scraper runs, enrichment call sites and their cost ledger",
    version="0.1.0",
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# CORS Configuration
# ---------------------------------------------------------------------------
_raw_origins = settings.ALLOWED_ORIGINS.strip()
if _raw_origins == "*":
    _allowed_origins: list[str] = ["*"]
else:
    _allowed_origins = [o.strip() for o in _raw_origins.split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Router Registration
# ---------------------------------------------------------------------------
app.include_router(health.router, tags=["Health"])
app.include_router(scraper_runs.router, prefix="/api/v1/scraper-runs", tags=["Scraper Runs"])
app.include_router(scraping.router, prefix="/api/v1/scraping", tags=["Scraping"])
app.include_router(leads.router, prefix="/api/v1/leads", tags=["Leads"])
app.include_router(collections.router, prefix="/api/v1/collections", tags=["Collections"])
app.include_router(trustpilot.router, prefix="/api/v1/trustpilot-reviews", tags=["Trustpilot"])
