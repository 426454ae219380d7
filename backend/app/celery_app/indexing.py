"""
Document-search indexing Celery task.

Uploads a stored course resource to the course's vector store, waits for the
store to finish processing it and then marks the resource as indexed.

The vector-store file id is saved as soon as the upload is accepted. A retry
of a resource that was already uploaded polls that file instead of uploading
the document again.

Core logic is decoupled from Celery (do_index_resource) for testing.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from celery.exceptions import Reject

from app.services.ai.config import ConfigError, get_generation_settings
from app.services.ai.file_search import FileSearchStoreService
from app.services.db.resources import ResourceService
from app.services.errors import FileSearchServiceError
from app.services.storage import download_resource_file
from app.supabase_client import get_service_client

from .celery import app
from .task_lock import get_task_lock
from .task_utils import (
    NonRetryableIndexingError,
    RetryableError,
    NonRetryableError,
    RetryableIndexingError,
    acquire_task_lock,
    build_task_result,
    is_retryable_message,
    task_context,
)

logger = logging.getLogger(__name__)

LOCK_TTL = 600  # Longer than the hard time limit

REJECTED_STATUSES = ("failed", "cancelled")


def lock_key_for(resource_id: int) -> str:
    return f"resource-index:{resource_id}"


async def upload_and_wait(
    service: FileSearchStoreService,
    store_id: str,
    data: bytes,
    display_name: str,
    mime_type: Optional[str],
    on_uploaded: Optional[Callable[[str], Any]] = None,
) -> Dict[str, str]:
    file_id = await service.upload(store_id, data, display_name, mime_type)
    if on_uploaded is not None:
        on_uploaded(file_id)
    return await wait_for_file(service, store_id, file_id)


async def wait_for_file(
    service: FileSearchStoreService, store_id: str, file_id: str
) -> Dict[str, str]:
    status = await service.wait_until_processed(store_id, file_id)
    return {"file_id": file_id, "status": status}


async def _run_store_job(
    job: Awaitable[Dict[str, str]],
    service: FileSearchStoreService,
    close_service: bool,
) -> Dict[str, str]:
    try:
        return await job
    finally:
        # The client's connection pool belongs to this event loop
        if close_service:
            await service.close()


def _download(supabase, resource) -> bytes:
    try:
        return download_resource_file(supabase, resource.storage_path)
    except Exception as e:
        if is_retryable_message(str(e)):
            raise RetryableIndexingError(f"Storage download failed: {e}") from e
        raise NonRetryableIndexingError(f"Storage download failed: {e}") from e


def do_index_resource(
    resource_id: int,
    store_id: str,
    display_name: str,
    mime_type: Optional[str],
    supabase=None,
    store_service: Optional[FileSearchStoreService] = None,
) -> Dict[str, Any]:
    """
    Index one resource.

    Flow:
    1. Load the resource row (skip when already indexed)
    2. Download its bytes from Storage, unless a previous attempt uploaded it
    3. Upload to the vector store, saving the file id, and wait for processing
    4. Mark the resource indexed once the store reports completion

    Returns:
        {"status": str, "file_id": Optional[str]}

    Raises:
        RetryableIndexingError: temporary failure (network, rate limit), or the
            store is still processing the file
        NonRetryableIndexingError: missing resource, bad config, rejected file
    """
    supabase = supabase or get_service_client()
    resources = ResourceService(supabase)

    resource = resources.get_resource(resource_id)
    if resource is None:
        raise NonRetryableIndexingError(f"Resource {resource_id} not found")
    if resource.indexed:
        return {"status": "already_indexed", "file_id": None}

    data = None
    if resource.file_id:
        logger.info(
            f"Resource {resource_id} already uploaded as {resource.file_id}; polling it",
            extra={"course_id": resource.course_id},
        )
    elif not resource.storage_path:
        raise NonRetryableIndexingError(f"Resource {resource_id} has no stored file")
    else:
        data = _download(supabase, resource)

    close_service = store_service is None
    if store_service is None:
        try:
            store_service = FileSearchStoreService.from_settings(get_generation_settings())
        except ConfigError as e:
            raise NonRetryableIndexingError(str(e)) from e

    if resource.file_id:
        job = wait_for_file(store_service, store_id, resource.file_id)
    else:
        job = upload_and_wait(
            store_service,
            store_id,
            data,
            display_name,
            mime_type,
            on_uploaded=lambda file_id: resources.save_file_id(resource_id, file_id),
        )

    try:
        result = asyncio.run(_run_store_job(job, store_service, close_service))
    except FileSearchServiceError as e:
        if e.transient:
            raise RetryableIndexingError(str(e)) from e
        if resource.file_id:
            # The saved file is unusable; the next run uploads from Storage
            resources.save_file_id(resource_id, None)
        raise NonRetryableIndexingError(str(e)) from e

    status = result["status"]
    if status == "completed":
        resources.mark_indexed(resource_id, result["file_id"])
        return result

    if status in REJECTED_STATUSES:
        resources.save_file_id(resource_id, None)
        raise NonRetryableIndexingError(
            f"Vector store rejected resource {resource_id}: {status}"
        )

    raise RetryableIndexingError(
        f"Resource {resource_id} still processing ({status}) as {result['file_id']}"
    )


@app.task(
    bind=True,
    name="index_course_resource",
    max_retries=5,
    default_retry_delay=30,
    retry_backoff=True,
    retry_backoff_max=300,
    retry_jitter=True,
    acks_late=True,
    reject_on_worker_lost=True,
    time_limit=420,       # Hard timeout 7 minutes
    soft_time_limit=390,
)
def index_course_resource(
    self,
    resource_id: int,
    store_id: str,
    display_name: str,
    mime_type: Optional[str] = None,
    skip_lock: bool = False,  # Skip lock check on retry
):
    """
    Index an uploaded resource in the course's document search.

    Args:
        resource_id: Resource id
        store_id: Vector store id of the course
        display_name: Name shown for the file in the store
        mime_type: Corrected MIME type
        skip_lock: Skip lock check (used during retries)
    """
    with task_context(self, resource_id=resource_id) as ctx:
        ctx.log_start("Indexing resource")

        task_lock = get_task_lock()
        lock_key = lock_key_for(resource_id)
        if not acquire_task_lock(ctx, task_lock, lock_key, LOCK_TTL, skip_lock):
            raise Reject(f"Resource {resource_id} is locked", requeue=False)

        retrying = False
        try:
            result = do_index_resource(resource_id, store_id, display_name, mime_type)
            ctx.log_success(status=result["status"])
            return build_task_result(ctx, success=True, resource_id=resource_id, **result)

        except RetryableError as e:
            ctx.log_error(e)
            retrying = self.request.retries < self.max_retries
            # Retry with skip_lock=True since we still hold the lock
            raise self.retry(exc=e, kwargs={**self.request.kwargs, "skip_lock": True})

        except NonRetryableError as e:
            ctx.log_error(e)
            return build_task_result(ctx, success=False, error=str(e), resource_id=resource_id)

        except Exception as e:
            ctx.log_exception(e)
            return build_task_result(ctx, success=False, error=str(e), resource_id=resource_id)

        finally:
            if not retrying:
                task_lock.release(lock_key, ctx.task_id)
