"""
Forum thread database service.

Reads posts with their nested replies and maps them into immutable Thread
values, and writes model-generated replies back to a thread.
"""

import logging
from typing import Iterable, List, Optional

from app.services.forum_qa.models import Reply, Thread
from .base import BaseDbService, parse_timestamp

logger = logging.getLogger(__name__)

# Account roles treated as course instructors
INSTRUCTOR_ROLES = frozenset({"admin", "instructor"})

THREAD_SELECT = (
    "id,title,body,created_at,course_id,author_id,"
    "author:profiles(role),"
    "course:courses(code,name),"
    "replies(id,body,author_id,from_instructor,llm_generated,endorsed,created_at)"
)


def is_instructor_role(role: Optional[str]) -> bool:
    return (role or "").strip().lower() in INSTRUCTOR_ROLES


def search_filter(terms: Iterable[str]) -> str:
    """PostgREST or-filter matching any term in the title or body."""
    clauses = []
    for term in terms:
        clauses.append(f"title.ilike.%{term}%")
        clauses.append(f"body.ilike.%{term}%")
    return ",".join(clauses)


def _embedded(row: dict, key: str) -> dict:
    """PostgREST returns to-one embeds as a dict (sometimes a one-item list)."""
    value = row.get(key)
    if isinstance(value, list):
        return value[0] if value else {}
    return value or {}


def row_to_reply(row: dict) -> Reply:
    return Reply(
        id=row["id"],
        body=row.get("body") or "",
        author_id=row.get("author_id"),
        from_instructor=bool(row.get("from_instructor")),
        model_generated=bool(row.get("llm_generated")),
        endorsed=bool(row.get("endorsed")),
        created_at=parse_timestamp(row.get("created_at")),
    )


def _sorted_replies(rows: Iterable[dict]) -> tuple:
    """Replies in chronological order; ties and missing timestamps keep id order."""
    replies = [row_to_reply(r) for r in rows or []]
    replies.sort(key=lambda r: (r.created_at is None, r.created_at.timestamp() if r.created_at else 0, r.id))
    return tuple(replies)


def row_to_thread(row: dict) -> Thread:
    author = _embedded(row, "author")
    course = _embedded(row, "course")
    return Thread(
        id=row["id"],
        title=row.get("title") or "",
        body=row.get("body") or "",
        created_at=parse_timestamp(row.get("created_at")),
        course_id=row.get("course_id"),
        author_id=row.get("author_id"),
        author_is_instructor=row.get("author_id") is not None and is_instructor_role(author.get("role")),
        replies=_sorted_replies(row.get("replies")),
        course_code=course.get("code"),
        course_name=course.get("name"),
    )


class ThreadService(BaseDbService):
    """
    Thread store backed by the posts and replies tables.

    Implements the ThreadStore read interface used by the ranker.
    """

    table_name = "posts"

    def list_threads(
        self,
        course_id: int,
        limit: Optional[int] = None,
        search_terms: Optional[Iterable[str]] = None,
    ) -> List[Thread]:
        """
        Threads of a course, most recent first.

        search_terms restricts the result to threads whose title or body
        contains any of the terms (ilike). Terms are expected to be plain
        alphanumeric tokens.
        """
        query = (
            self._table()
            .select(THREAD_SELECT)
            .eq("course_id", course_id)
        )
        terms = [t for t in (search_terms or []) if t]
        if terms:
            query = query.or_(search_filter(terms))
        query = query.order("created_at", desc=True)
        if limit:
            query = query.limit(limit)

        response = query.execute()
        threads = [row_to_thread(row) for row in response.data or []]
        logger.debug(
            f"Loaded {len(threads)} threads for course {course_id}",
            extra={"course_id": course_id},
        )
        return threads

    def get_thread(self, post_id: int) -> Optional[Thread]:
        return self._get_one({"id": post_id}, select=THREAD_SELECT)

    def _row_to_dict(self, row: dict) -> Thread:
        return row_to_thread(row)

    def insert_llm_reply(self, post_id: int, body: str) -> dict:
        """
        Store a model-generated reply awaiting instructor review.

        The reply has no author and is never marked as an instructor reply.
        """
        row = (
            self.supabase.table("replies")
            .insert(
                {
                    "post_id": post_id,
                    "body": body,
                    "author_id": None,
                    "from_instructor": False,
                    "llm_generated": True,
                    "reviewed": False,
                }
            )
            .execute()
        )
        stored = row.data[0] if row.data else {}
        logger.info(
            f"Saved model-generated reply for post {post_id}",
            extra={"course_id": self.course_id},
        )
        return stored

