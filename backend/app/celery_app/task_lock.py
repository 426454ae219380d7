"""
Redis lock that keeps one indexing run per resource.

Celery task ids are unique per request, so repeated indexing requests for the
same resource are deduplicated by a key on the resource instead.
"""

import logging
import os
from typing import Optional

import redis

logger = logging.getLogger(__name__)


class TaskLock:
    """SET NX EX lock whose value is the holding task id."""

    KEY_PREFIX = "tasklock:"

    def __init__(self, redis_url: Optional[str] = None):
        self.redis = redis.from_url(
            redis_url or os.environ.get("REDIS_URL", "redis://localhost:6379/0"),
            decode_responses=True,
        )

    def _key(self, lock_key: str) -> str:
        return f"{self.KEY_PREFIX}{lock_key}"

    def acquire(self, lock_key: str, ttl_seconds: int = 300, task_id: Optional[str] = None) -> bool:
        """True when the lock was free; it expires after ttl_seconds regardless."""
        acquired = self.redis.set(self._key(lock_key), task_id or "1", nx=True, ex=ttl_seconds)
        if not acquired:
            logger.debug(f"Lock {lock_key} held by {self.redis.get(self._key(lock_key))}")
        return bool(acquired)

    def release(self, lock_key: str, task_id: Optional[str] = None) -> bool:
        """
        Drop the lock.

        With task_id, only the holding task may release it.
        """
        key = self._key(lock_key)
        if task_id:
            holder = self.redis.get(key)
            if holder != task_id:
                logger.warning(f"Lock {lock_key} not released by {task_id}; held by {holder}")
                return False
        return bool(self.redis.delete(key))

    def get_ttl(self, lock_key: str) -> int:
        """Seconds left on the lock, 0 when it is not held."""
        return max(0, self.redis.ttl(self._key(lock_key)))


_task_lock: Optional[TaskLock] = None


def get_task_lock() -> TaskLock:
    global _task_lock
    if _task_lock is None:
        _task_lock = TaskLock()
    return _task_lock
