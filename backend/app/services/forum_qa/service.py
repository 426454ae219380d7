"""
Course question answering.

Pipeline for one question:
    rank forum threads -> merge -> duplicate notice -> render threads
    -> assemble prompt -> generate (document search + retry) -> resolve citations

The service holds no per-request state; every call re-reads the stores.
"""

import asyncio
import logging
from functools import partial
from typing import Any, Callable, List, Optional, Protocol, TypeVar

from app.services.ai.clients import GenerationClient
from app.services.ai.config import GenerationSettings

from .citations import attribute_answer, resolve_citations
from .context import duplicate_notice, duplicate_of, merge_context
from .models import AttributedAnswer, Resource, Thread
from .prompts import PromptMode, build_instructions, build_question
from .ranker import (
    DEFAULT_AUTHORITY_LIMIT,
    DEFAULT_SCAN_LIMIT,
    DEFAULT_SIMILAR_LIMIT,
    ThreadStore,
    find_authority_threads,
    find_relevant_threads,
)
from .thread_renderer import render_thread

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ResourceStore(Protocol):
    """Read interface for a course's uploaded documents."""

    def list_resources(self, course_id: int) -> List[Resource]:
        """Resources of the course, newest upload first."""
        ...

    def count_pending(self, course_id: int) -> int:
        """Resources not yet searchable."""
        ...


class QuestionAnsweringService:
    """
    Answers student questions for a course.

    Usage:
        service = QuestionAnsweringService.from_settings(
            settings, ThreadService(supabase), ResourceService(supabase)
        )
        text = await service.answer(course_id, "CS 101", store_id, "When is the midterm?")
    """

    def __init__(
        self,
        thread_store: ThreadStore,
        resource_store: ResourceStore,
        generation_client: GenerationClient,
        prompt_mode: PromptMode = PromptMode.FALLBACK,
        similar_limit: int = DEFAULT_SIMILAR_LIMIT,
        authority_limit: int = DEFAULT_AUTHORITY_LIMIT,
        scan_limit: int = DEFAULT_SCAN_LIMIT,
    ):
        self.thread_store = thread_store
        self.resource_store = resource_store
        self.generation_client = generation_client
        self.prompt_mode = prompt_mode
        self.similar_limit = similar_limit
        self.authority_limit = authority_limit
        self.scan_limit = scan_limit

    @classmethod
    def from_settings(
        cls,
        settings: GenerationSettings,
        thread_store: ThreadStore,
        resource_store: ResourceStore,
        generation_client: Optional[GenerationClient] = None,
    ) -> "QuestionAnsweringService":
        return cls(
            thread_store=thread_store,
            resource_store=resource_store,
            generation_client=generation_client or GenerationClient.from_settings(settings),
            prompt_mode=settings.prompt_mode,
            similar_limit=settings.similar_limit,
            authority_limit=settings.authority_limit,
        )

    @staticmethod
    async def _run_sync(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run a blocking store call in the default executor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(func, *args, **kwargs))

    async def _warn_if_not_ready(self, course_id: int, log_tag: str) -> None:
        try:
            pending = await self._run_sync(self.resource_store.count_pending, course_id)
        except Exception as e:
            logger.warning(
                f"Could not check resource readiness for {log_tag}: {e}",
                extra={"course_id": course_id, "error": str(e)},
            )
            return

        if pending > 0:
            logger.warning(
                f"{pending} resource(s) still being indexed for {log_tag}; "
                f"answers may miss recent uploads",
                extra={"course_id": course_id},
            )

    async def _load_forum_context(
        self,
        course_id: int,
        question: str,
        log_tag: str,
        exclude_thread_id: Optional[int] = None,
    ) -> tuple:
        """(keyword, authority) thread lists; both empty when the store fails."""
        try:
            keyword = await self._run_sync(
                find_relevant_threads,
                self.thread_store,
                course_id,
                question,
                limit=self.similar_limit,
                exclude_thread_id=exclude_thread_id,
            )
            authority = await self._run_sync(
                find_authority_threads,
                self.thread_store,
                course_id,
                limit=self.authority_limit,
                scan_limit=self.scan_limit,
                exclude_thread_id=exclude_thread_id,
            )
        except Exception as e:
            logger.error(
                f"Failed to load forum context for {log_tag}, answering without it: {e}",
                extra={"course_id": course_id, "error": str(e)},
            )
            return [], []

        logger.info(
            f"Forum context for {log_tag}: {len(keyword)} similar, {len(authority)} authority",
            extra={"course_id": course_id},
        )
        return keyword, authority

    async def answer_detailed(
        self,
        course_id: int,
        course_name: Optional[str],
        search_handle: Optional[str],
        question: str,
        log_tag: Optional[str] = None,
        exclude_thread_id: Optional[int] = None,
    ) -> AttributedAnswer:
        """
        Answer a question and report how the answer was attributed.

        exclude_thread_id names the thread the question came from; it is left
        out of the forum context so a post is never its own duplicate.

        Raises:
            GenerationServiceError: fatal generation failure
            RetryExhaustedError: generation kept failing transiently
        """
        log_tag = log_tag or f"course {course_id}"

        await self._warn_if_not_ready(course_id, log_tag)

        keyword, authority = await self._load_forum_context(
            course_id, question, log_tag, exclude_thread_id=exclude_thread_id
        )
        merged: List[Thread] = list(merge_context(authority, keyword))
        notice = duplicate_notice(keyword)
        duplicate = duplicate_of(keyword)

        documents = [render_thread(t) for t in merged]
        instructions = build_instructions(course_name, self.prompt_mode)
        prompt = build_question(question, documents, self.prompt_mode)

        result = await self.generation_client.generate(
            instructions, prompt, search_handle=search_handle, log_tag=log_tag
        )

        names: List[str] = []
        if result.grounding_fragments:
            resources = await self._run_sync(self.resource_store.list_resources, course_id)
            names = resolve_citations(result.grounding_fragments, resources)

        text = attribute_answer(result.text, names, has_forum_context=bool(merged), notice=notice)

        logger.info(
            f"Answered question for {log_tag}: {len(names)} citation(s), "
            f"{len(merged)} thread(s) in context",
            extra={"course_id": course_id},
        )
        return AttributedAnswer(
            text=text,
            citations=names,
            context_thread_ids=[t.id for t in merged],
            duplicate_of=duplicate.id if duplicate else None,
        )

    async def answer(
        self,
        course_id: int,
        course_name: Optional[str],
        search_handle: Optional[str],
        question: str,
        log_tag: Optional[str] = None,
        exclude_thread_id: Optional[int] = None,
    ) -> str:
        """Attributed answer text for a student question."""
        result = await self.answer_detailed(
            course_id,
            course_name,
            search_handle,
            question,
            log_tag=log_tag,
            exclude_thread_id=exclude_thread_id,
        )
        return result.text
