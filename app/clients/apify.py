"""Apify client construction.

The client is built once in the FastAPI lifespan and handed to services
explicitly; routers obtain it through ``get_apify_client``.
"""

from apify_client import ApifyClientAsync
from fastapi import Request

from app.core.config import settings


def build_apify_client(token: str | None = None) -> ApifyClientAsync:
    """Return a configured async Apify client."""
    return ApifyClientAsync(token if token is not None else settings.APIFY_TOKEN)


def get_apify_client(request: Request) -> ApifyClientAsync:
    """FastAPI dependency returning the application's Apify client."""
    return request.app.state.apify
