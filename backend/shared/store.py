"""
Store capability used by the digest pipeline.

The pipeline only needs a handful of operations from persistence: point
lookup, indexed equality/range scans, insert, patch and delete. `Store`
describes them; `SupabaseStore` implements them on top of the Supabase
(PostgREST) client.

Filters are plain dicts:
- a scalar value means equality
- a list/tuple/set means "column in values"
- None means "column is null"
"""

from datetime import datetime
from typing import Any, Protocol

from supabase import Client


class StoreError(Exception):
    """A store read or write failed (network, PostgREST, constraint...)."""


class DuplicateKeyError(StoreError):
    """An insert collided with a unique constraint."""


Record = dict[str, Any]
Filters = dict[str, Any]
Bound = tuple[str, Any]


class Store(Protocol):
    """Persistence operations required by the pipeline."""

    def get(self, table: str, record_id: str) -> Record | None: ...

    def find(
        self,
        table: str,
        filters: Filters | None = None,
        *,
        lt: Bound | None = None,
        lte: Bound | None = None,
    ) -> list[Record]: ...

    def count(self, table: str, filters: Filters | None = None) -> int: ...

    def insert(self, table: str, record: Record) -> Record: ...

    def patch(
        self,
        table: str,
        record_id: str,
        fields: Record,
        expected: Filters | None = None,
    ) -> Record | None: ...

    def delete(self, table: str, record_id: str) -> bool: ...


def _serialize(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _is_duplicate_error(error: Exception) -> bool:
    # Postgres unique_violation
    if getattr(error, "code", None) == "23505":
        return True
    message = str(error).lower()
    return "duplicate" in message or "unique" in message


def _has_empty_in_filter(filters: Filters | None) -> bool:
    if not filters:
        return False
    return any(
        isinstance(value, (list, tuple, set)) and not value
        for value in filters.values()
    )


class SupabaseStore:
    """Store implementation backed by a Supabase client."""

    def __init__(self, client: Client):
        self.client = client

    def _apply_filters(self, query: Any, filters: Filters | None) -> Any:
        for column, value in (filters or {}).items():
            if value is None:
                query = query.is_(column, "null")
            elif isinstance(value, (list, tuple, set)):
                query = query.in_(column, [_serialize(v) for v in value])
            else:
                query = query.eq(column, _serialize(value))
        return query

    def _execute(self, query: Any, action: str) -> Any:
        try:
            return query.execute()
        except Exception as e:
            if _is_duplicate_error(e):
                raise DuplicateKeyError(f"{action}: {e}") from e
            raise StoreError(f"{action} failed: {e}") from e

    def get(self, table: str, record_id: str) -> Record | None:
        query = self.client.table(table).select("*").eq("id", record_id).limit(1)
        response = self._execute(query, f"get {table}/{record_id}")
        if not response.data:
            return None
        return response.data[0]

    def find(
        self,
        table: str,
        filters: Filters | None = None,
        *,
        lt: Bound | None = None,
        lte: Bound | None = None,
    ) -> list[Record]:
        if _has_empty_in_filter(filters):
            return []

        query = self._apply_filters(self.client.table(table).select("*"), filters)
        if lt is not None:
            query = query.lt(lt[0], _serialize(lt[1]))
        if lte is not None:
            query = query.lte(lte[0], _serialize(lte[1]))

        response = self._execute(query, f"find {table}")
        return list(response.data or [])

    def count(self, table: str, filters: Filters | None = None) -> int:
        if _has_empty_in_filter(filters):
            return 0

        query = self._apply_filters(
            self.client.table(table).select("id", count="exact"), filters
        )
        response = self._execute(query, f"count {table}")
        return response.count or 0

    def insert(self, table: str, record: Record) -> Record:
        payload = {key: _serialize(value) for key, value in record.items()}
        response = self._execute(
            self.client.table(table).insert(payload), f"insert into {table}"
        )
        if response.data:
            return response.data[0]
        return payload

    def patch(
        self,
        table: str,
        record_id: str,
        fields: Record,
        expected: Filters | None = None,
    ) -> Record | None:
        """
        Update fields of one record.

        When `expected` is given the update only applies if the stored
        values still match (compare-and-set). Returns the updated record, or
        None if the record is missing or no longer matches.
        """
        payload = {key: _serialize(value) for key, value in fields.items()}
        query = self.client.table(table).update(payload).eq("id", record_id)
        query = self._apply_filters(query, expected)

        response = self._execute(query, f"patch {table}/{record_id}")
        if not response.data:
            return None
        return response.data[0]

    def delete(self, table: str, record_id: str) -> bool:
        query = self.client.table(table).delete().eq("id", record_id)
        response = self._execute(query, f"delete {table}/{record_id}")
        return bool(response.data)
