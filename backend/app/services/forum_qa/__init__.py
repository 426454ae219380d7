"""
Course forum question answering.

Pure pipeline stages live in their own modules; the orchestrating
QuestionAnsweringService is imported from app.services.forum_qa.service.
"""

from .models import (
    AttributedAnswer,
    GenerationResult,
    GroundingFragment,
    Reply,
    Resource,
    Thread,
    ThreadDocument,
)
from .thread_renderer import pick_best_answer, render_thread
from .ranker import find_authority_threads, find_relevant_threads
from .context import duplicate_notice, merge_context
from .prompts import PromptMode, build_instructions, build_question
from .citations import attribute_answer, resolve_citations

__all__ = [
    "AttributedAnswer",
    "GenerationResult",
    "GroundingFragment",
    "Reply",
    "Resource",
    "Thread",
    "ThreadDocument",
    "pick_best_answer",
    "render_thread",
    "find_authority_threads",
    "find_relevant_threads",
    "duplicate_notice",
    "merge_context",
    "PromptMode",
    "build_instructions",
    "build_question",
    "attribute_answer",
    "resolve_citations",
]
