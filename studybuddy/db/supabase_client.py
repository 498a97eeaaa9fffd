"""Supabase client initialization."""

from functools import lru_cache

from supabase import Client, create_client

from studybuddy.core.config import Settings, get_settings


def create_supabase(settings: Settings) -> Client:
    """
    Build a Supabase client for the given settings.

    Args:
        settings: Application settings carrying the project URL and service key

    Returns:
        Supabase client configured with service role key

    Raises:
        RuntimeError: If client initialization fails
    """
    try:
        return create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
    except Exception as e:
        raise RuntimeError(f"Failed to initialize Supabase client: {e}") from e


@lru_cache(maxsize=1)
def get_supabase() -> Client:
    """Get the process-wide Supabase client (cached singleton)."""
    return create_supabase(get_settings())
