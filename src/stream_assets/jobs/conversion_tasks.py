"""Asynchronous conversion task.

The task wraps the same orchestrator the synchronous API uses, in its own
database session. Reportable failures are returned as the structured error
payload rather than raised, so the result backend always holds a dict.
"""

from dataclasses import asdict
from typing import Any

from stream_assets.adapters.remote_exec import get_remote_executor
from stream_assets.config import settings
from stream_assets.db.session import get_session_context
from stream_assets.domain.errors import AssetServiceError
from stream_assets.domain.models import ConversionRequest
from stream_assets.logging import get_logger
from stream_assets.presets.quality import QUALITY_PRESETS
from stream_assets.services.assets import AssetService
from stream_assets.services.conversion import ConversionOrchestrator
from stream_assets.services.policy import MediaPolicy
from stream_assets.utils import run_async
from stream_assets.worker import celery_app

logger = get_logger(__name__)


def execute_conversion(
    account_id: int,
    asset_id: int,
    quality: str | None = None,
    custom_bitrate: int | None = None,
    custom_resolution: str | None = None,
) -> dict[str, Any]:
    """Run one conversion to completion and describe the outcome as a dict."""
    request = ConversionRequest(
        asset_id=asset_id,
        quality=quality,
        custom_bitrate=custom_bitrate,
        custom_resolution=custom_resolution,
    )
    policy = MediaPolicy.from_settings(settings)
    executor = get_remote_executor()

    with get_session_context() as session:
        try:
            account = AssetService(session, executor, policy).load_account(account_id)
            orchestrator = ConversionOrchestrator(
                session, executor, presets=QUALITY_PRESETS, policy=policy
            )
            summary = run_async(orchestrator.request_conversion(account, request))
        except AssetServiceError as e:
            return e.to_payload()

    return {"success": True, "converted": asdict(summary)}


@celery_app.task(
    bind=True,
    name="conversion.run_conversion",
    max_retries=0,
)
def run_conversion_task(
    self: Any,
    account_id: int,
    asset_id: int,
    quality: str | None = None,
    custom_bitrate: int | None = None,
    custom_resolution: str | None = None,
) -> dict[str, Any]:
    """Convert an asset in the background.

    Not retried: a second attempt would re-run the transcode and the guard
    reports the first one as still in progress until it finishes.
    """
    task_id = self.request.id
    logger.info(
        "conversion_task_started",
        task_id=task_id,
        account_id=account_id,
        asset_id=asset_id,
        quality=quality or "custom",
    )

    result = execute_conversion(
        account_id,
        asset_id,
        quality=quality,
        custom_bitrate=custom_bitrate,
        custom_resolution=custom_resolution,
    )

    logger.info(
        "conversion_task_finished",
        task_id=task_id,
        asset_id=asset_id,
        success=result["success"],
        error=result.get("error"),
    )
    return result
