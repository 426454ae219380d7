"""
Forum Q&A domain models.

Immutable value objects built by the db services from Supabase rows and
consumed by the question-answering pipeline. Nothing here is persisted.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class Reply:
    """A reply inside a thread. Ordering is owned by the thread."""

    id: int
    body: str = ""
    author_id: Optional[str] = None  # None for model-generated replies
    from_instructor: bool = False
    model_generated: bool = False
    endorsed: bool = False
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class Thread:
    """A forum question plus its replies (chronological)."""

    id: int
    title: str = ""
    body: str = ""
    created_at: Optional[datetime] = None
    course_id: Optional[int] = None
    author_id: Optional[str] = None
    author_is_instructor: bool = False
    replies: Tuple[Reply, ...] = ()
    course_code: Optional[str] = None
    course_name: Optional[str] = None

    @property
    def has_replies(self) -> bool:
        return len(self.replies) > 0

    @property
    def has_instructor_reply(self) -> bool:
        return any(r.from_instructor for r in self.replies)


@dataclass(frozen=True)
class Resource:
    """An uploaded course document."""

    id: int
    course_id: Optional[int] = None
    title: Optional[str] = None
    original_filename: Optional[str] = None
    extracted_text: Optional[str] = None
    indexed: bool = False
    content_type: Optional[str] = None
    uploaded_at: Optional[datetime] = None
    storage_path: Optional[str] = None
    # Vector-store file id, set once the upload was accepted
    file_id: Optional[str] = None

    @property
    def display_name(self) -> str:
        if self.title and self.title.strip():
            return self.title
        return self.original_filename or f"Resource {self.id}"


@dataclass(frozen=True)
class ThreadDocument:
    """Rendered text of one thread, ready for the prompt."""

    thread_id: int
    text: str
    has_instructor_reply: bool


@dataclass(frozen=True)
class GroundingFragment:
    """Snippet the model reports as retrieved evidence for one response."""

    text: str
    filename: Optional[str] = None


@dataclass(frozen=True)
class GenerationResult:
    text: str
    grounding_fragments: Tuple[GroundingFragment, ...] = ()


@dataclass(frozen=True)
class AttributedAnswer:
    """Final answer plus the attribution metadata used to build it."""

    text: str
    citations: List[str] = field(default_factory=list)
    context_thread_ids: List[int] = field(default_factory=list)
    duplicate_of: Optional[int] = None
