"""Generic database utility functions for Supabase interactions."""

import logging
from typing import Any
from uuid import UUID

from supabase import Client

from timecal.services.database.connection import get_supabase_admin_client, get_supabase_client

logger = logging.getLogger(__name__)


class SupabaseQueryBuilder:
    """Helper class for building and executing Supabase queries."""

    def __init__(self, client: Client | None = None) -> None:
        """
        Initialize query builder.

        Args:
            client: Supabase client instance (uses default if None)
        """
        self.client = client or get_supabase_client()

    def get_by_id(
        self, table: str, record_id: UUID | str, columns: str = "*"
    ) -> dict[str, Any] | None:
        """
        Fetch a single record by ID.

        Args:
            table: Table name
            record_id: Record UUID or ID
            columns: Columns to select (default: "*")

        Returns:
            Record dictionary or None if not found

        Example:
            >>> builder = SupabaseQueryBuilder()
            >>> profile = builder.get_by_id("profiles", user_id)
        """
        response = self.client.table(table).select(columns).eq("id", str(record_id)).execute()
        return response.data[0] if response.data else None

    def get_by_field(
        self, table: str, field: str, value: Any, columns: str = "*"
    ) -> dict[str, Any] | None:
        """
        Fetch a single record by field value.

        Args:
            table: Table name
            field: Field name to filter by
            value: Field value
            columns: Columns to select (default: "*")

        Returns:
            First matching record or None

        Example:
            >>> builder = SupabaseQueryBuilder()
            >>> profile = builder.get_by_field("profiles", "github_id", 583231)
        """
        response = self.client.table(table).select(columns).eq(field, value).execute()
        return response.data[0] if response.data else None

    def count_records(self, table: str, filters: dict[str, Any] | None = None) -> int:
        """
        Count records with optional filtering.

        Args:
            table: Table name
            filters: Dictionary of field:value pairs for filtering

        Returns:
            Total count of matching records

        Example:
            >>> builder = SupabaseQueryBuilder()
            >>> count = builder.count_records("goals", {"user_id": user_id, "is_active": True})
        """
        query = self.client.table(table).select("*", count="exact")

        if filters:
            for field, value in filters.items():
                query = query.eq(field, value)

        response = query.execute()
        return response.count or 0

    def insert_record(self, table: str, data: dict[str, Any]) -> dict[str, Any] | None:
        """
        Insert a single record.

        Args:
            table: Table name
            data: Record data dictionary

        Returns:
            Inserted record dictionary or None if failed

        Raises:
            Exception: If insert operation fails

        Example:
            >>> builder = SupabaseQueryBuilder()
            >>> profile = builder.insert_record(
            ...     "profiles",
            ...     {"id": user_id, "github_id": 583231, "auth_provider": "github"}
            ... )
        """
        response = self.client.table(table).insert(data).execute()
        return response.data[0] if response.data else None

    def upsert_record(
        self, table: str, record: dict[str, Any], conflict_columns: list[str]
    ) -> dict[str, Any]:
        """
        Insert or update a record atomically using PostgreSQL UPSERT.

        Args:
            table: Name of the table
            record: Record data to insert/update
            conflict_columns: Column(s) to check for conflicts (e.g., ["user_id"])

        Returns:
            The inserted or updated record

        Raises:
            Exception: If the operation fails

        Example:
            >>> builder = SupabaseQueryBuilder()
            >>> builder.upsert_record(
            ...     "user_preferences",
            ...     {"user_id": "123", "theme": "dark"},
            ...     conflict_columns=["user_id"]
            ... )
        """
        try:
            result = (
                self.client.table(table)
                .upsert(record, on_conflict=",".join(conflict_columns))
                .execute()
            )
            return result.data[0]
        except Exception as e:
            logger.error(f"Failed to upsert record in {table}: {e}")
            raise

    def update_record(
        self, table: str, record_id: UUID | str, data: dict[str, Any]
    ) -> dict[str, Any] | None:
        """
        Update a record by ID.

        Args:
            table: Table name
            record_id: Record UUID or ID
            data: Fields to update

        Returns:
            Updated record dictionary or None if not found

        Example:
            >>> builder = SupabaseQueryBuilder()
            >>> updated = builder.update_record("profiles", user_id, {"timezone": "Europe/Paris"})
        """
        response = self.client.table(table).update(data).eq("id", str(record_id)).execute()
        return response.data[0] if response.data else None


def get_query_builder(client: Client | None = None, use_admin: bool = True) -> SupabaseQueryBuilder:
    """
    Get instance of SupabaseQueryBuilder.

    Args:
        client: Optional Supabase client (uses default if None)
        use_admin: If True (default), uses admin client that bypasses RLS.
                   Set to False for operations that should respect RLS policies.

    Returns:
        SupabaseQueryBuilder instance

    Example:
        >>> db = get_query_builder()  # Uses admin client (bypasses RLS)
        >>> profile = db.get_by_id("profiles", user_id)
    """
    if client is None:
        client = get_supabase_admin_client() if use_admin else get_supabase_client()
    return SupabaseQueryBuilder(client)
