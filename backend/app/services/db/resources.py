"""
Course resource database service.

Uploaded documents, their extracted text and their document-search
readiness flag (indexed_in_file_search).
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from app.services.forum_qa.models import Resource
from .base import BaseDbService, parse_timestamp

logger = logging.getLogger(__name__)

RESOURCE_COLUMNS = (
    "id,course_id,title,original_filename,content_type,size_bytes,uploaded_at,"
    "extracted_text,indexed_in_file_search,storage_path,file_search_operation_name"
)


class ResourceService(BaseDbService):
    """Course resources, newest upload first."""

    table_name = "resources"

    def _row_to_dict(self, row: dict) -> Resource:
        return Resource(
            id=row["id"],
            course_id=row.get("course_id"),
            title=row.get("title"),
            original_filename=row.get("original_filename"),
            extracted_text=row.get("extracted_text"),
            indexed=bool(row.get("indexed_in_file_search")),
            content_type=row.get("content_type"),
            uploaded_at=parse_timestamp(row.get("uploaded_at")),
            storage_path=row.get("storage_path"),
            file_id=row.get("file_search_operation_name"),
        )

    def list_resources(self, course_id: int) -> List[Resource]:
        return self._get_many(
            filters={"course_id": course_id},
            select=RESOURCE_COLUMNS,
            order_by="uploaded_at",
            order_desc=True,
        )

    def get_resource(self, resource_id: int) -> Optional[Resource]:
        return self._get_one({"id": resource_id}, select=RESOURCE_COLUMNS)

    def count_pending(self, course_id: int) -> int:
        """Resources not yet searchable."""
        response = (
            self._query("id")
            .eq("course_id", course_id)
            .eq("indexed_in_file_search", False)
            .execute()
        )
        return len(response.data or [])

    def readiness(self, course_id: int) -> dict:
        """{"indexed", "pending", "total"} for the course."""
        response = self._query("id,indexed_in_file_search").eq("course_id", course_id).execute()
        rows = response.data or []
        pending = sum(1 for r in rows if not r.get("indexed_in_file_search"))
        return {"indexed": pending == 0, "pending": pending, "total": len(rows)}

    def create_resource(
        self,
        course_id: int,
        title: Optional[str],
        original_filename: str,
        content_type: Optional[str],
        size_bytes: int,
        extracted_text: Optional[str],
        storage_path: str,
        uploaded_by: Optional[str] = None,
    ) -> Resource:
        row = self._insert_one(
            {
                "course_id": course_id,
                "title": title,
                "original_filename": original_filename,
                "content_type": content_type,
                "size_bytes": size_bytes,
                "extracted_text": extracted_text,
                "storage_path": storage_path,
                "uploaded_by": uploaded_by,
                "uploaded_at": datetime.now(timezone.utc),
                "indexed_in_file_search": False,
            }
        )
        if row is None:
            raise ValueError(f"Failed to create resource {original_filename}")

        logger.info(
            f"Created resource {row['id']} ({original_filename})",
            extra={"course_id": course_id},
        )
        return self._row_to_dict(row)

    def save_file_id(self, resource_id: int, file_id: Optional[str]) -> bool:
        """Record (or clear) the vector-store file of a resource still being indexed."""
        return self._update_one(resource_id, {"file_search_operation_name": file_id})

    def mark_indexed(self, resource_id: int, file_id: Optional[str] = None) -> bool:
        updated = self._update_one(
            resource_id,
            {
                "indexed_in_file_search": True,
                "file_search_operation_name": file_id,
            },
        )
        logger.info(f"Resource {resource_id} indexed in document search")
        return updated
