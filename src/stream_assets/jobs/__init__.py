"""Celery job definitions."""

from stream_assets.jobs.conversion_tasks import run_conversion_task

__all__ = ["run_conversion_task"]
