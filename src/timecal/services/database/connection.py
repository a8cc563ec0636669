"""Supabase database connection management."""

from functools import lru_cache

from supabase import Client, create_client

from timecal.config import settings


@lru_cache(maxsize=1)
def get_supabase_client() -> Client:
    """
    Get Supabase client instance with anon key (singleton pattern).

    Respects row-level security. Server-side handlers that authorize
    requests themselves (via the signed auth token) use the admin client.

    Returns:
        Configured Supabase client with anon key
    """
    return create_client(settings.supabase_url, settings.supabase_anon_key)


@lru_cache(maxsize=1)
def get_supabase_admin_client() -> Client:
    """
    Get Supabase admin client with service role key (singleton pattern).

    Bypasses row-level security. Every query made through it must filter by
    the authenticated user's id.

    Returns:
        Configured Supabase client with service role key
    """
    return create_client(settings.supabase_url, settings.supabase_service_role_key)
