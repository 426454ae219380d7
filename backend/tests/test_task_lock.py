from types import SimpleNamespace

import pytest

from app.celery_app import indexing
from app.celery_app.task_lock import TaskLock
from app.celery_app.task_utils import (
    NonRetryableIndexingError,
    TaskContext,
    acquire_task_lock,
    is_retryable_message,
)


class FakeRedis:
    """The handful of Redis commands TaskLock uses."""

    def __init__(self):
        self.values = {}

    def set(self, key, value, nx=False, ex=None):
        if nx and key in self.values:
            return None
        self.values[key] = value
        return True

    def get(self, key):
        return self.values.get(key)

    def delete(self, key):
        return 1 if self.values.pop(key, None) is not None else 0

    def ttl(self, key):
        return 120 if key in self.values else -2


@pytest.fixture
def task_lock():
    lock = TaskLock("redis://localhost:6379/15")
    lock.redis = FakeRedis()
    return lock


def make_ctx(task_id="task-1"):
    return TaskContext(task_id=task_id, task_name="index_course_resource", attempt=1, max_attempts=3)


def test_lock_is_exclusive_until_released(task_lock):
    assert task_lock.acquire("resource-index:1", 60, "task-1")
    assert not task_lock.acquire("resource-index:1", 60, "task-2")
    assert task_lock.get_ttl("resource-index:1") == 120

    assert not task_lock.release("resource-index:1", "task-2")
    assert task_lock.release("resource-index:1", "task-1")
    assert task_lock.get_ttl("resource-index:1") == 0


def test_acquire_task_lock_skips_on_retry(task_lock):
    task_lock.acquire("resource-index:1", 60, "task-1")

    assert not acquire_task_lock(make_ctx("task-2"), task_lock, "resource-index:1", 60)
    assert acquire_task_lock(make_ctx("task-2"), task_lock, "resource-index:1", 60, skip_lock=True)


def test_retryable_messages():
    assert is_retryable_message("HTTP 503 Service Unavailable")
    assert is_retryable_message("Read timeout")
    assert not is_retryable_message("Object not found: 1/abc/x.pdf")


TASK_KWARGS = {
    "resource_id": 1,
    "store_id": "vs_1",
    "display_name": "Syllabus",
    "mime_type": "application/pdf",
}


def test_task_reports_success_and_releases_lock(task_lock, monkeypatch):
    monkeypatch.setattr(indexing, "get_task_lock", lambda: task_lock)
    monkeypatch.setattr(
        indexing,
        "do_index_resource",
        lambda *args, **kwargs: {"status": "completed", "file_id": "file_1"},
    )

    result = indexing.index_course_resource.apply(kwargs=TASK_KWARGS).get()

    assert result["success"] is True
    assert result["status"] == "completed"
    assert result["resource_id"] == 1
    assert task_lock.redis.values == {}


def test_task_reports_permanent_failure_without_retry(task_lock, monkeypatch):
    def rejected(*args, **kwargs):
        raise NonRetryableIndexingError("Vector store rejected resource 1: failed")

    monkeypatch.setattr(indexing, "get_task_lock", lambda: task_lock)
    monkeypatch.setattr(indexing, "do_index_resource", rejected)

    result = indexing.index_course_resource.apply(kwargs=TASK_KWARGS).get()

    assert result == {
        "success": False,
        "duration_ms": result["duration_ms"],
        "error": "Vector store rejected resource 1: failed",
        "resource_id": 1,
    }
    assert task_lock.redis.values == {}


def test_task_ctx_counts_attempts():
    task = SimpleNamespace(
        request=SimpleNamespace(id="abc", retries=1), name="index_course_resource", max_retries=2
    )
    ctx = TaskContext.from_celery_task(task, resource_id=3)

    assert (ctx.attempt, ctx.max_attempts) == (2, 3)
    assert ctx.log_extra()["resource_id"] == 3
