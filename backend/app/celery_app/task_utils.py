"""
Shared helpers for the indexing task.

- Retryable / non-retryable indexing errors
- Per-run context (task id, attempt, timing) for structured logs
- Result dict and Redis lock acquisition with logging
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Generator, Optional

logger = logging.getLogger(__name__)


class TaskError(Exception):
    pass


class RetryableError(TaskError):
    """The task is retried with backoff."""


class NonRetryableError(TaskError):
    """The task ends with a failed result and no retry."""


class IndexingError(TaskError):
    """Document-search indexing errors."""


class RetryableIndexingError(IndexingError, RetryableError):
    """Storage or vector store briefly unavailable, or the file is still processing."""


class NonRetryableIndexingError(IndexingError, NonRetryableError):
    """Missing resource, missing configuration or a document the store rejected."""


def is_retryable(error: Exception) -> bool:
    return isinstance(error, RetryableError)


# Substrings of Storage client errors that point at a transient condition
RETRYABLE_MESSAGE_MARKERS = (
    "timeout", "timed out", "temporarily unavailable", "connection reset",
    "connection refused", "connecterror", "econnreset", "etimedout",
    "429", "502", "503", "504",
)


def is_retryable_message(error_msg: str) -> bool:
    """Whether an error from a library without typed errors looks transient."""
    lowered = (error_msg or "").lower()
    return any(marker in lowered for marker in RETRYABLE_MESSAGE_MARKERS)


@dataclass
class TaskContext:
    """
    One run of a bound Celery task, for consistent log records.

    Usage:
        with task_context(self, resource_id=resource_id) as ctx:
            ctx.log_start("Indexing resource")
            ...
            return build_task_result(ctx, success=True, **result)
    """
    task_id: str
    task_name: str
    attempt: int
    max_attempts: int
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_celery_task(cls, task, **extra) -> "TaskContext":
        return cls(
            task_id=task.request.id or "unknown",
            task_name=task.name or "unknown",
            attempt=task.request.retries + 1,
            max_attempts=task.max_retries + 1,
            extra=extra,
        )

    @property
    def duration_ms(self) -> int:
        return int((datetime.now(timezone.utc) - self.started_at).total_seconds() * 1000)

    def log_extra(self, **kwargs) -> Dict[str, Any]:
        return {
            "task_id": self.task_id,
            "task_name": self.task_name,
            "attempt": self.attempt,
            "max_attempts": self.max_attempts,
            **self.extra,
            **kwargs,
        }

    def log_start(self, message: Optional[str] = None):
        logger.info(
            f"{message or self.task_name}: attempt={self.attempt}/{self.max_attempts}",
            extra=self.log_extra(),
        )

    def log_success(self, message: Optional[str] = None, **kwargs):
        logger.info(
            message or f"Completed {self.task_name}",
            extra=self.log_extra(success=True, duration_ms=self.duration_ms, **kwargs),
        )

    def log_error(self, error: Exception, **kwargs):
        """Expected failure: warning when it will be retried, error otherwise."""
        retryable = is_retryable(error)
        log = logger.warning if retryable else logger.error
        log(
            f"{self.task_name} failed: {error}",
            extra=self.log_extra(
                success=False,
                error=str(error),
                error_type=type(error).__name__,
                retryable=retryable,
                duration_ms=self.duration_ms,
                **kwargs,
            ),
        )

    def log_exception(self, error: Exception, **kwargs):
        logger.exception(
            f"Unexpected error in {self.task_name}: {error}",
            extra=self.log_extra(
                success=False,
                error=str(error),
                error_type=type(error).__name__,
                duration_ms=self.duration_ms,
                **kwargs,
            ),
        )


@contextmanager
def task_context(task, **extra) -> Generator[TaskContext, None, None]:
    yield TaskContext.from_celery_task(task, **extra)


def build_task_result(
    ctx: TaskContext, success: bool, error: Optional[str] = None, **kwargs
) -> Dict[str, Any]:
    """{"success", "duration_ms", ...kwargs} plus "error" on failure."""
    result = {"success": success, "duration_ms": ctx.duration_ms, **kwargs}
    if error:
        result["error"] = error
    return result


def acquire_task_lock(
    ctx: TaskContext,
    task_lock,
    lock_key: str,
    lock_ttl: int,
    skip_lock: bool = False,
) -> bool:
    """
    Take the per-resource lock for this run.

    Retries pass skip_lock, as the first attempt still holds the lock.
    Returns False when another task holds it.
    """
    if skip_lock or task_lock.acquire(lock_key, lock_ttl, ctx.task_id):
        return True

    remaining = task_lock.get_ttl(lock_key)
    logger.info(
        f"Resource lock {lock_key} held by another task, expires in {remaining}s",
        extra=ctx.log_extra(lock_key=lock_key, remaining_ttl=remaining),
    )
    return False
