"""
Health check endpoints.

Provides health status for the API and the Celery indexing queue.
"""

import logging
import os
from datetime import datetime, timezone

import redis
from fastapi import APIRouter

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

QUEUE_NAMES = ("indexing", "default")
MAX_HEALTHY_PENDING = 1000


@router.get("/queue-health")
async def queue_health():
    """
    Queue health check.

    Doesn't use inspect broadcast, directly checks Redis.

    Returns:
        Health status including Redis connectivity and queue lengths.
    """
    redis_url = os.environ.get("REDIS_URL", "redis://localhost:6379/0")
    r = redis.from_url(redis_url, decode_responses=True)

    queues = {name: 0 for name in QUEUE_NAMES}
    try:
        r.ping()
        # Celery queue format: list with queue name
        for name in QUEUE_NAMES:
            queues[name] = r.llen(name) or 0
        redis_ok = True
    except redis.RedisError as e:
        logger.warning(f"Redis health check failed: {e}")
        redis_ok = False

    total_pending = sum(queues.values())
    is_healthy = redis_ok and total_pending < MAX_HEALTHY_PENDING

    return {
        "status": "healthy" if is_healthy else "degraded",
        "redis_connected": redis_ok,
        "queues": queues,
        "total_pending": total_pending,
        "checked_at": datetime.now(timezone.utc).isoformat()
    }
