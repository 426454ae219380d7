"""
Document-search store management (OpenAI vector stores).

One vector store per course. Uploads are fire-and-forget from the caller's
point of view: the Celery indexing task uploads, waits for the store to
finish processing and then flips the resource's readiness flag.
"""

import asyncio
import logging
import re
from typing import Any, Optional

from openai import (
    AsyncOpenAI,
    APIStatusError,
    APIConnectionError,
    APITimeoutError,
)

from app.services.ai.clients import DEFAULT_TIMEOUT
from app.services.ai.config import GenerationSettings
from app.services.errors import FileSearchServiceError, handle_openai_error

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 2.0  # seconds
DEFAULT_POLL_TIMEOUT = 300.0  # seconds

TERMINAL_FILE_STATUSES = frozenset({"completed", "failed", "cancelled"})

_NAME_SANITIZE_RE = re.compile(r"[^A-Za-z0-9._-]+")


def store_name_for_course(course: dict) -> str:
    """course-<id>-<name>, with the name reduced to a safe slug."""
    name = _NAME_SANITIZE_RE.sub("-", (course.get("name") or "").strip()).strip("-")
    return f"course-{course['id']}-{name}" if name else f"course-{course['id']}"


class FileSearchStoreService:
    """
    Vector store operations for course documents.

    Usage:
        service = FileSearchStoreService.from_settings(settings, course_service)
        store_id = await service.ensure_store_for_course(course)
        file_id = await service.upload(store_id, data, "Syllabus.pdf", "application/pdf")
        status = await service.wait_until_processed(store_id, file_id)
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        course_service: Any = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        poll_timeout: float = DEFAULT_POLL_TIMEOUT,
    ):
        self._client = client
        self.course_service = course_service
        self.poll_interval = poll_interval
        self.poll_timeout = poll_timeout

    @classmethod
    def from_settings(
        cls, settings: GenerationSettings, course_service: Any = None
    ) -> "FileSearchStoreService":
        client = AsyncOpenAI(
            api_key=settings.api_key,
            base_url=settings.base_url,
            timeout=DEFAULT_TIMEOUT,
        )
        return cls(client, course_service)

    async def close(self) -> None:
        await self._client.close()

    async def ensure_store_for_course(self, course: dict) -> str:
        """
        Return the course's vector store id, creating the store on first use.

        The new id is saved on the course row through the course service.
        """
        existing = course.get("file_search_store_id")
        if existing:
            return existing

        name = store_name_for_course(course)
        try:
            store = await self._client.vector_stores.create(name=name)
        except (APIStatusError, APIConnectionError, APITimeoutError) as e:
            raise handle_openai_error(
                e, "vector store creation", FileSearchServiceError,
                context={"course_id": course.get("id")}
            ) from e

        logger.info(
            f"Created document-search store {store.id} ({name})",
            extra={"course_id": course.get("id")},
        )

        if self.course_service is not None:
            await asyncio.get_running_loop().run_in_executor(
                None, self.course_service.set_store_id, course["id"], store.id
            )
        return store.id

    async def upload(
        self,
        store_id: str,
        data: bytes,
        display_name: str,
        mime_type: Optional[str] = None,
    ) -> str:
        """
        Upload a document to the store.

        Returns:
            Vector-store file id; processing continues asynchronously on the
            remote side (see wait_until_processed).
        """
        if not data:
            raise FileSearchServiceError(f"Empty document: {display_name}")

        try:
            file_obj = await self._client.files.create(
                file=(display_name, data, mime_type or "application/octet-stream"),
                purpose="assistants",
            )
            store_file = await self._client.vector_stores.files.create(
                vector_store_id=store_id,
                file_id=file_obj.id,
            )
        except (APIStatusError, APIConnectionError, APITimeoutError) as e:
            raise handle_openai_error(
                e, "document upload", FileSearchServiceError,
                context={"store_id": store_id, "display_name": display_name}
            ) from e

        logger.info(f"Uploaded {display_name} to store {store_id} as {store_file.id}")
        return store_file.id

    async def get_file_status(self, store_id: str, file_id: str) -> str:
        try:
            store_file = await self._client.vector_stores.files.retrieve(
                file_id, vector_store_id=store_id
            )
        except (APIStatusError, APIConnectionError, APITimeoutError) as e:
            raise handle_openai_error(
                e, "document status", FileSearchServiceError,
                context={"store_id": store_id, "file_id": file_id}
            ) from e
        return store_file.status

    async def wait_until_processed(self, store_id: str, file_id: str) -> str:
        """
        Poll until the file reaches a terminal status or the timeout elapses.

        Returns:
            Final status ("completed", "failed", "cancelled") or "in_progress"
            when the timeout elapsed first.
        """
        waited = 0.0
        while True:
            status = await self.get_file_status(store_id, file_id)
            if status in TERMINAL_FILE_STATUSES:
                return status
            if waited >= self.poll_timeout:
                logger.warning(f"Timed out waiting for {file_id} in store {store_id} ({status})")
                return status
            await asyncio.sleep(self.poll_interval)
            waited += self.poll_interval
