"""Supabase client initialization."""

from functools import lru_cache

from supabase import Client, create_client

from context_engine.core.config import get_settings


@lru_cache(maxsize=1)
def get_supabase() -> Client:
    """
    Get the default Supabase client (cached).

    Operations accept an explicit client; this is only the fallback used
    when a caller does not pass one.

    Raises:
        RuntimeError: If client initialization fails
    """
    try:
        settings = get_settings()
        return create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
    except Exception as e:
        raise RuntimeError(f"Failed to initialize Supabase client: {e}") from e
