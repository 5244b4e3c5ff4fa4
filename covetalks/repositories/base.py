"""
Supabase Repository Base

Thin table gateway over the Supabase (PostgREST) client. Every repository is
constructed with the client of the current request; nothing here is cached
between requests.
"""

from typing import Any, Dict, List, Optional, Tuple

from postgrest.exceptions import APIError
from supabase import Client

from covetalks.utils.exceptions import StorageError, UniqueViolation
from covetalks.utils.logging_config import get_logger

logger = get_logger(__name__)

# Postgres SQLSTATE for unique_violation
UNIQUE_VIOLATION_CODE = "23505"

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def quote_filter_value(value: Any) -> str:
    """
    Double-quote a value for use inside a PostgREST or=/and= filter.

    Reserved characters are literal inside quotes, so a quoted value cannot
    add clauses of its own. Embedded quotes and backslashes are escaped.
    """
    escaped = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def ilike_any(columns: Tuple[str, ...], text: str) -> str:
    """or= filter matching ``text`` case-insensitively in any of ``columns``"""
    pattern = quote_filter_value(f"%{text}%")
    return ",".join(f"{column}.ilike.{pattern}" for column in columns)


def page_bounds(page: int, page_size: int) -> Tuple[int, int, int, int]:
    """
    Clamp paging input and compute the inclusive row range.

    Returns:
        (page, page_size, first_row, last_row)
    """
    page = max(page, 1)
    page_size = min(max(page_size, 1), MAX_PAGE_SIZE)
    start = (page - 1) * page_size
    return page, page_size, start, start + page_size - 1


class SupabaseRepository:
    """Base class for table repositories"""

    table_name: str = ""

    def __init__(self, client: Client):
        self.client = client

    def _table(self):
        return self.client.table(self.table_name)

    def _execute(self, query, operation: str, **context: Any):
        """
        Execute a PostgREST query, translating errors.

        Raises:
            UniqueViolation: If a unique constraint rejected the write
            StorageError: For any other PostgREST failure
        """
        try:
            return query.execute()
        except APIError as e:
            details = {"table": self.table_name, "operation": operation, **context}
            if str(e.code) == UNIQUE_VIOLATION_CODE:
                logger.info(
                    f"Unique constraint rejected {operation} on {self.table_name}",
                    extra=details,
                )
                raise UniqueViolation(e.message or "duplicate key value", details=details) from e

            logger.error(
                f"Supabase {operation} on {self.table_name} failed: {e.message}",
                extra={**details, "code": e.code},
            )
            raise StorageError(
                f"Failed to {operation} {self.table_name}",
                details={**details, "error": e.message},
            ) from e

    @staticmethod
    def _first(response) -> Optional[Dict[str, Any]]:
        data = response.data or []
        return data[0] if data else None

    def get(self, record_id: str) -> Optional[Dict[str, Any]]:
        response = self._execute(
            self._table().select("*").eq("id", record_id).limit(1),
            "get",
            record_id=record_id,
        )
        return self._first(response)

    def insert(self, data: Dict[str, Any]) -> Dict[str, Any]:
        response = self._execute(self._table().insert(data), "insert")
        record = self._first(response)
        if record is None:
            raise StorageError(f"Insert into {self.table_name} returned no data")
        return record

    def update(self, record_id: str, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        response = self._execute(
            self._table().update(data).eq("id", record_id),
            "update",
            record_id=record_id,
        )
        return self._first(response)

    def _paginated(self, query, page: int, page_size: int) -> Tuple[List[Dict[str, Any]], int]:
        """Apply the page range to a query built with count="exact" and run it"""
        _, _, start, end = page_bounds(page, page_size)
        response = self._execute(query.range(start, end), "list")
        rows = response.data or []
        total = response.count if response.count is not None else len(rows)
        return rows, total
