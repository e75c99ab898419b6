"""Supabase client singleton.

Provides ``get_supabase()`` which returns a lazily-initialized, process-wide
Supabase client using credentials from ``settings``, and a helper that
recognises unique-constraint violations coming back from PostgREST.
"""

from postgrest.exceptions import APIError
from supabase import Client, create_client

from app.core.config import settings

# PostgreSQL SQLSTATE for unique_violation
UNIQUE_VIOLATION_CODE = "23505"

_client: Client | None = None


def get_supabase() -> Client:
    """Return the singleton Supabase client, creating it on first call."""
    global _client
    if _client is None:
        _client = create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)
    return _client


def is_unique_violation(exc: BaseException) -> bool:
    """Return True when *exc* reports a duplicate-key conflict."""
    if isinstance(exc, APIError) and exc.code == UNIQUE_VIOLATION_CODE:
        return True
    message = str(exc).lower()
    return "duplicate key" in message or "unique constraint" in message
