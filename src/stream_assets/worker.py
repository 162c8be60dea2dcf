"""Celery worker configuration."""

from celery import Celery

from stream_assets.config import settings
from stream_assets.logging import setup_logging

# Setup logging before anything else
setup_logging()

# Create Celery app
celery_app = Celery(
    "stream_assets",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)

# Celery configuration
celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    # Task execution; transcodes can run long, the guard TTL bounds them
    task_acks_late=False,
    task_track_started=True,
    task_time_limit=settings.conversion_lock_ttl_seconds,
    # Worker settings
    worker_prefetch_multiplier=1,
    worker_concurrency=2,
    # Result backend
    result_expires=86400,  # 24 hours
    # Task routing
    task_routes={
        "conversion.run_conversion": {"queue": "conversion"},
    },
)

# Auto-discover tasks
celery_app.autodiscover_tasks(["stream_assets.jobs"])
