"""Database connection, query helpers and lookup outcomes."""

from timecal.services.database.connection import get_supabase_admin_client, get_supabase_client
from timecal.services.database.result import Lookup, LookupStatus
from timecal.services.database.utils import SupabaseQueryBuilder, get_query_builder

__all__ = [
    "get_supabase_client",
    "get_supabase_admin_client",
    "SupabaseQueryBuilder",
    "get_query_builder",
    "Lookup",
    "LookupStatus",
]
