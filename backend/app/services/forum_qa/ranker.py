"""
Forum context ranking.

Two independent, read-only queries over a course's threads:
- keyword-relevant answered threads (question text match)
- authority threads (instructor-authored or instructor-answered)

The keyword query pushes a term filter down to the store and covers the whole
course; the authority query reads a bounded window of recent threads. Both
re-read the store on every call and return [] when nothing matches.
"""

import logging
import math
import re
from typing import Iterable, List, Optional, Protocol, Set

from .models import Thread

logger = logging.getLogger(__name__)

DEFAULT_SIMILAR_LIMIT = 10
DEFAULT_AUTHORITY_LIMIT = 5
DEFAULT_SCAN_LIMIT = 200
DEFAULT_MIN_TERM_OVERLAP = 0.5

_TOKEN_RE = re.compile(r"[a-z0-9]+")

STOPWORDS = frozenset({
    "a", "an", "and", "are", "about", "any", "can", "could", "does", "for",
    "from", "have", "how", "into", "is", "it", "its", "the", "that", "this",
    "there", "what", "when", "where", "which", "who", "why", "will", "with",
    "would", "you", "your", "our", "was", "were", "be", "been", "do", "did",
    "of", "on", "in", "to", "or", "not", "but", "if", "so", "we", "i", "me",
    "my", "anyone", "know", "please", "thanks", "hi", "hello",
})


class ThreadStore(Protocol):
    """Read interface the ranker needs from the thread collection."""

    def list_threads(
        self,
        course_id: int,
        limit: Optional[int] = None,
        search_terms: Optional[Iterable[str]] = None,
    ) -> List[Thread]:
        """
        Threads of a course, most recent first, replies included.

        With search_terms, only threads whose title or body contains at least
        one of the terms (case-insensitive) are returned.
        """
        ...


def significant_terms(text: str) -> Set[str]:
    """Lowercased tokens of 3+ characters, minus stopwords."""
    return {
        t for t in _TOKEN_RE.findall((text or "").lower())
        if len(t) >= 3 and t not in STOPWORDS
    }


def matches_query(
    thread: Thread,
    query: str,
    min_term_overlap: float = DEFAULT_MIN_TERM_OVERLAP,
) -> bool:
    """
    Case-insensitive relevance test.

    A thread matches when its title or body contains the whole query, or when
    it shares at least ``min_term_overlap`` of the query's significant terms.
    """
    needle = (query or "").strip().lower()
    if not needle:
        return False

    title = (thread.title or "").lower()
    body = (thread.body or "").lower()
    if needle in title or needle in body:
        return True

    query_terms = significant_terms(needle)
    if not query_terms:
        return False

    required = max(1, math.ceil(len(query_terms) * min_term_overlap))
    shared = query_terms & significant_terms(f"{title} {body}")
    return len(shared) >= required


def is_authority_thread(thread: Thread) -> bool:
    """Instructor-authored, or answered by an instructor."""
    return thread.author_is_instructor or thread.has_instructor_reply


def search_terms_for(query: str) -> Set[str]:
    """
    Terms sent to the store for the keyword query.

    A thread containing the whole query also contains each of its tokens, so
    filtering on the significant terms never loses a substring match. Queries
    made only of short or common words fall back to all of their tokens.
    """
    terms = significant_terms(query)
    if terms:
        return terms
    return set(_TOKEN_RE.findall((query or "").lower()))


def find_relevant_threads(
    store: ThreadStore,
    course_id: int,
    query: str,
    limit: int = DEFAULT_SIMILAR_LIMIT,
    min_term_overlap: float = DEFAULT_MIN_TERM_OVERLAP,
    exclude_thread_id: Optional[int] = None,
) -> List[Thread]:
    """
    Answered threads matching the question, most recent first.

    Every thread of the course is a candidate, however old. The store narrows
    them to threads sharing at least one term with the question; the
    substring or term-overlap test then decides relevance.

    Args:
        exclude_thread_id: Thread the question was taken from, never reported
            as its own match
    """
    if limit <= 0:
        return []

    terms = search_terms_for(query)
    if not terms:
        return []

    threads = store.list_threads(course_id, search_terms=sorted(terms))
    relevant = [
        t for t in threads
        if t.id != exclude_thread_id
        and t.has_replies
        and matches_query(t, query, min_term_overlap)
    ]
    return relevant[:limit]


def find_authority_threads(
    store: ThreadStore,
    course_id: int,
    limit: int = DEFAULT_AUTHORITY_LIMIT,
    scan_limit: int = DEFAULT_SCAN_LIMIT,
    exclude_thread_id: Optional[int] = None,
) -> List[Thread]:
    """Most recent threads with instructor involvement, within the scan window."""
    if limit <= 0:
        return []

    threads = store.list_threads(course_id, limit=scan_limit)
    return [
        t for t in threads
        if t.id != exclude_thread_id and is_authority_thread(t)
    ][:limit]
