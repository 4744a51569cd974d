"""Supabase (PostgREST) backend for the primary transaction store."""

from typing import Any

from fastapi.encoders import jsonable_encoder
from supabase import Client, create_client

from openfinance.core.errors import StorageError
from openfinance.core.settings import Settings
from openfinance.services.backends.base import PrimaryBackend


class SupabaseBackend(PrimaryBackend):
    """Primary backend over a Supabase table; ids and column defaults come from the database."""

    name = "supabase"

    def __init__(self, client: Client, table: str = "transactions") -> None:
        """Initialize the backend with a Supabase client and the table name."""
        self.client = client
        self.table = table

    @classmethod
    def from_settings(cls, settings: Settings) -> "SupabaseBackend":
        """Build a service-role client from the configured URL and key."""
        if not settings.supabase_url or not settings.supabase_service_role_key:
            msg = "SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set to use the supabase backend"
            raise StorageError(msg)
        client = create_client(settings.supabase_url, settings.supabase_service_role_key)
        return cls(client, settings.supabase_table)

    def ping(self) -> None:
        """Fetch at most one id from the table."""
        self.client.table(self.table).select("id").limit(1).execute()

    def insert(self, values: dict[str, Any]) -> dict[str, Any]:
        """Insert a row and return the representation echoed back by PostgREST."""
        response = self.client.table(self.table).insert(jsonable_encoder(values)).execute()
        if not response.data:
            raise StorageError("Insert returned no row")
        return response.data[0]

    def select(self, conditions: dict[str, Any], limit: int | None = None, offset: int = 0) -> list[dict[str, Any]]:
        """Return rows matching every equality condition, newest first."""
        query = self.client.table(self.table).select("*")
        for column, value in conditions.items():
            query = query.eq(column, value)
        query = query.order("created_at", desc=True)
        if limit is not None:
            query = query.range(offset, offset + limit - 1)
        elif offset:
            query = query.offset(offset)
        return query.execute().data or []

    def get(self, row_id: str) -> dict[str, Any] | None:
        """Return the row with the given id, or None."""
        response = self.client.table(self.table).select("*").eq("id", row_id).limit(1).execute()
        return response.data[0] if response.data else None

    def update(self, row_id: str, values: dict[str, Any]) -> dict[str, Any] | None:
        """Apply the given column values; PostgREST returns the updated rows."""
        response = self.client.table(self.table).update(jsonable_encoder(values)).eq("id", row_id).execute()
        return response.data[0] if response.data else None

    def delete(self, row_id: str) -> None:
        """Delete the row if present."""
        self.client.table(self.table).delete().eq("id", row_id).execute()
