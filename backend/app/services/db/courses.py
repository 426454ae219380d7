"""Course lookups and document-search store bookkeeping."""

import logging
from typing import Optional

from app.exceptions import NotFoundError
from .base import BaseDbService

logger = logging.getLogger(__name__)


class CourseService(BaseDbService):
    """Reads the courses table. Rows are returned as plain dicts."""

    table_name = "courses"
    scope_field = None

    def get_course(self, course_id: int) -> dict:
        """
        Get a course by id.

        Raises:
            NotFoundError: unknown course
        """
        course = self._get_one({"id": course_id}, select="id,code,name,file_search_store_id")
        if course is None:
            raise NotFoundError("Course")
        return course

    def find_course(self, course_id: int) -> Optional[dict]:
        return self._get_one({"id": course_id}, select="id,code,name,file_search_store_id")

    def set_store_id(self, course_id: int, store_id: str) -> bool:
        """Remember the vector store created for the course."""
        updated = self._update_one(course_id, {"file_search_store_id": store_id})
        logger.info(
            f"Saved document-search store {store_id} for course {course_id}",
            extra={"course_id": course_id},
        )
        return updated

    @staticmethod
    def display_name(course: dict) -> Optional[str]:
        """'CODE - Name' when both exist, otherwise whichever does."""
        code = (course.get("code") or "").strip()
        name = (course.get("name") or "").strip()
        if code and name:
            return f"{code} - {name}"
        return code or name or None
