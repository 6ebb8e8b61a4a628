"""
Database helper functions for the artifact store.

Defines the record-level store contract the persistence adapter writes
through (insert / query / update) and its Supabase implementation.
"""

from typing import Any, Dict, Iterable, List, Optional

from postgrest.exceptions import APIError
from supabase import Client

from wrapstudio.core.errors import StoreError
from wrapstudio.core.logger import logger
from wrapstudio.core.supabase_client import get_supabase


class ArtifactStore:
    """
    Record CRUD with filtering.

    Implementations are synchronous; callers on the event loop run them in
    an executor. Every method raises StoreError when the backing store
    rejects the operation.
    """

    def insert(self, table: str, record: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    def query(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        contains: Optional[Dict[str, Iterable[Any]]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def update(self, table: str, record_id: str, partial: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError


class SupabaseStore(ArtifactStore):
    """Handles all table operations against Supabase (PostgREST)."""

    def __init__(self, client: Optional[Client] = None):
        self._client = client

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = get_supabase()
        return self._client

    def insert(self, table: str, record: Dict[str, Any]) -> Dict[str, Any]:
        """
        Insert a single record.

        Returns:
            The stored row, including server-generated columns (id, created_at)
        """
        try:
            response = self.client.table(table).insert(record).execute()
        except APIError as e:
            logger.error(f"Insert into {table} rejected: {e.message}")
            raise StoreError(f"Insert into {table} rejected: {e.message}") from e

        if not response.data:
            raise StoreError(f"Insert into {table} returned no row")

        row = response.data[0]
        logger.info(f"Inserted {table} record {row.get('id')}")
        return row

    def query(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        contains: Optional[Dict[str, Iterable[Any]]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Select rows matching every filter.

        Args:
            filters: column -> value equality filters (JSON paths such as
                "subject_attributes->>make" are passed through to PostgREST)
            contains: array column -> values that must all be present
            order_by: column to sort by
            descending: sort direction
            limit: maximum number of rows
        """
        request = self.client.table(table).select("*")

        for column, value in (filters or {}).items():
            request = request.eq(column, value)
        for column, values in (contains or {}).items():
            request = request.contains(column, list(values))
        if order_by:
            request = request.order(order_by, desc=descending)
        if limit is not None:
            request = request.limit(limit)

        try:
            response = request.execute()
        except APIError as e:
            logger.error(f"Query on {table} failed: {e.message}")
            raise StoreError(f"Query on {table} failed: {e.message}") from e

        return response.data or []

    def update(self, table: str, record_id: str, partial: Dict[str, Any]) -> Dict[str, Any]:
        """Update one record by id and return the new row."""
        try:
            response = self.client.table(table).update(partial).eq("id", record_id).execute()
        except APIError as e:
            logger.error(f"Update of {table} record {record_id} rejected: {e.message}")
            raise StoreError(f"Update of {table} record {record_id} rejected: {e.message}") from e

        if not response.data:
            raise StoreError(f"{table} record {record_id} not found")

        logger.info(f"Updated {table} record {record_id}")
        return response.data[0]
