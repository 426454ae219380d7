"""
Celery application configuration.

Configures the Celery app with Redis broker, JSON serialization and UTC
timezone. Runs document-search indexing off the request path.
"""

import os
from celery import Celery
from celery.signals import after_setup_logger, after_setup_task_logger
from dotenv import load_dotenv

load_dotenv()


@after_setup_logger.connect
@after_setup_task_logger.connect
def setup_celery_logging(logger, *args, **kwargs):
    """Configure Celery worker logging via signal."""
    from app.core.logging_config import setup_logging
    setup_logging()

REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/0")

app = Celery(
    "forum_qa",
    broker=REDIS_URL,
    backend=REDIS_URL,
    include=[
        "app.celery_app.indexing",
    ]
)

app.conf.update(
    # Serialization
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",

    # Timezone - use UTC for consistency
    timezone="UTC",
    enable_utc=True,

    # Worker configuration
    worker_prefetch_multiplier=1,  # Fair scheduling
    worker_concurrency=4,
    worker_hijack_root_logger=False,  # Don't hijack root logger

    # Task configuration
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_track_started=True,  # Track STARTED state

    # Result expiration
    result_expires=86400,  # 24h

    task_default_queue="default",
    task_queues={
        "indexing": {},
        "default": {},
    },
    task_routes={
        "index_course_resource": {"queue": "indexing"},
    },
)
