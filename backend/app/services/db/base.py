"""
Base database service with unified patterns.

Provides:
- Course scoping via _query()
- Unified single/multiple record fetching
- Consistent datetime handling
- Standardized error detection

Usage:
    class ResourceService(BaseDbService):
        table_name = "resources"

        def _row_to_dict(self, row: dict) -> Resource:
            return Resource(id=row["id"], ...)

        def get_resource(self, resource_id: int) -> Optional[Resource]:
            return self._get_one({"id": resource_id})
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from supabase import Client

logger = logging.getLogger(__name__)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a PostgREST timestamp (ISO 8601, possibly with 'Z')."""
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        logger.warning(f"Unparseable timestamp: {value!r}")
        return None


class BaseDbService:
    """
    Base class for all database services.

    Subclasses should:
    - Set `table_name` class attribute
    - Set `scope_field` when rows are scoped by a column other than course_id
    - Override `_row_to_dict()` for custom row conversion
    """

    table_name: str = ""  # Subclass must override
    scope_field: Optional[str] = "course_id"

    def __init__(self, supabase: Client, course_id: Optional[int] = None):
        self.supabase = supabase
        self.course_id = course_id

    # =========================================================================
    # Query Builders (course scoping)
    # =========================================================================

    def _table(self):
        """Get table reference."""
        return self.supabase.table(self.table_name)

    def _query(self, select: str = "*"):
        """Start a SELECT query, scoped to the course when one is set."""
        query = self._table().select(select)
        if self.scope_field and self.course_id is not None:
            query = query.eq(self.scope_field, self.course_id)
        return query

    # =========================================================================
    # Unified Record Fetching
    # =========================================================================

    def _get_one(
        self,
        filters: Dict[str, Any],
        select: str = "*",
        not_found_ok: bool = True,
    ):
        """
        Get a single record with unified error handling.

        Uses .limit(1) instead of .single() to avoid exceptions on empty results.

        Args:
            filters: Additional filters beyond the course scope (e.g., {"id": 1})
            select: Fields to select
            not_found_ok: If True, return None when not found; if False, raise

        Returns:
            Converted row or None
        """
        try:
            query = self._query(select)
            for key, value in filters.items():
                query = query.eq(key, value)

            response = query.limit(1).execute()

            if response.data and len(response.data) > 0:
                return self._row_to_dict(response.data[0])

            if not not_found_ok:
                raise ValueError(f"{self.table_name} not found: {filters}")
            return None

        except ValueError:
            raise
        except Exception as e:
            if not_found_ok and self._is_not_found_error(e):
                return None
            logger.error(
                f"Error fetching {self.table_name}",
                extra={"course_id": self.course_id, "error": str(e)},
            )
            raise

    def _get_many(
        self,
        filters: Optional[Dict[str, Any]] = None,
        select: str = "*",
        order_by: Optional[str] = None,
        order_desc: bool = False,
        limit: Optional[int] = None,
    ) -> List[Any]:
        """
        Get multiple records with optional filtering and ordering.

        Args:
            filters: Additional filters beyond the course scope
            select: Fields to select
            order_by: Field to order by
            order_desc: If True, order descending
            limit: Max records to return

        Returns:
            List of converted rows
        """
        query = self._query(select)

        if filters:
            for key, value in filters.items():
                query = query.eq(key, value)

        if order_by:
            query = query.order(order_by, desc=order_desc)

        if limit:
            query = query.limit(limit)

        response = query.execute()
        return [self._row_to_dict(row) for row in response.data or []]

    # =========================================================================
    # Write Helpers
    # =========================================================================

    def _update_one(
        self, record_id: Any, updates: Dict[str, Any], id_field: str = "id"
    ) -> bool:
        """
        Update a single record by ID.

        Args:
            record_id: The record's ID
            updates: Fields to update
            id_field: Name of the ID field (default "id")

        Returns:
            True if update succeeded
        """
        if not updates:
            return True  # Nothing to update

        response = (
            self._table()
            .update(self._dict_to_row(updates))
            .eq(id_field, record_id)
            .execute()
        )

        return bool(response.data)

    def _insert_one(self, data: Dict[str, Any]) -> Optional[dict]:
        """Insert a row and return the stored row (or None)."""
        response = self._table().insert(self._dict_to_row(data)).execute()
        if response.data:
            return response.data[0]
        return None

    # =========================================================================
    # Row Conversion (subclass should override)
    # =========================================================================

    def _row_to_dict(self, row: dict):
        """
        Convert database row to output value.

        Default implementation returns row as-is.
        """
        return row

    @staticmethod
    def _dict_to_row(data: dict) -> dict:
        """Convert input dict to a database row (datetimes to ISO strings)."""
        row = {}
        for key, value in data.items():
            if isinstance(value, datetime):
                value = value.isoformat()
            row[key] = value
        return row

    # =========================================================================
    # Error Detection
    # =========================================================================

    @staticmethod
    def _is_not_found_error(e: Exception) -> bool:
        """Check if exception is a 'not found' error (PGRST116)."""
        return "PGRST116" in str(e)
