"""Supabase client initialization."""

from functools import lru_cache

from supabase import Client, create_client

from dossier.core.config import get_settings


class StoreError(Exception):
    """Raised when a persistence operation fails."""


UNIQUE_VIOLATION = "23505"


@lru_cache(maxsize=1)
def get_supabase() -> Client:
    """
    Get Supabase client instance (cached singleton).

    Returns:
        Supabase client configured with the service role key

    Raises:
        StoreError: If Supabase is not configured or client initialization fails
    """
    settings = get_settings()
    if not settings.supabase_configured:
        raise StoreError("Supabase is not configured")

    try:
        return create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
    except Exception as e:
        raise StoreError(f"Failed to initialize Supabase client: {e}") from e


def is_unique_violation(error: Exception) -> bool:
    """True for a Postgres unique-constraint violation surfaced by postgrest."""
    return getattr(error, "code", None) == UNIQUE_VIOLATION
