"""Conversion endpoints."""

from dataclasses import asdict
from datetime import datetime
from typing import Any

from celery.result import AsyncResult
from fastapi import APIRouter, Query, status
from pydantic import BaseModel, Field

from stream_assets.api.deps import CurrentAccountDep, OrchestratorDep
from stream_assets.domain.enums import ConversionStatus
from stream_assets.domain.models import ConversionRequest
from stream_assets.jobs.conversion_tasks import run_conversion_task
from stream_assets.logging import get_logger
from stream_assets.worker import celery_app

router = APIRouter(prefix="/conversion", tags=["Conversion"])
logger = get_logger(__name__)


class ConvertRequest(BaseModel):
    """Request to convert a video to a preset or custom target."""

    video_id: int | None = Field(None, description="Asset to convert")
    quality: str | None = Field(None, description="Preset name, or 'custom'")
    custom_bitrate: int | None = Field(None, description="Target bitrate in kbps")
    custom_resolution: str | None = Field(None, description="Target size as WIDTHxHEIGHT")

    def to_domain(self) -> ConversionRequest:
        return ConversionRequest(
            asset_id=self.video_id,
            quality=self.quality,
            custom_bitrate=self.custom_bitrate,
            custom_resolution=self.custom_resolution,
        )


class QualityOptionResponse(BaseModel):
    """A preset and whether the caller's plan allows it."""

    quality: str
    bitrate: int
    resolution: str
    can_convert: bool
    reason: str | None = None

    model_config = {"from_attributes": True}


class ConvertibleVideoResponse(BaseModel):
    """A video annotated for the conversion screen."""

    id: int
    name: str
    path: str
    bucket: str
    size_bytes: int
    duration: int
    bitrate: int
    container_format: str | None
    codec: str | None
    width: int
    height: int
    is_normalized_container: bool
    compatible: bool
    needs_conversion: bool
    incompatibility_reasons: list[str]
    user_bitrate_limit: int
    available_qualities: list[QualityOptionResponse]
    conversion_status: ConversionStatus
    source_asset_id: int | None = None
    applied_quality: str | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class UserLimits(BaseModel):
    bitrate: int
    storage: int


class PresetResponse(BaseModel):
    bitrate: int
    resolution: str
    crf: int


class ConvertibleVideosResponse(BaseModel):
    """Listing of videos with the caller's limits and the preset table."""

    success: bool = True
    videos: list[ConvertibleVideoResponse]
    user_limits: UserLimits
    quality_presets: dict[str, PresetResponse]


class ConvertedVideo(BaseModel):
    id: int
    source_asset_id: int
    path: str
    relative_path: str
    size_bytes: int
    bitrate: int
    duration: int
    quality: str
    probed: bool


class ConvertResponse(BaseModel):
    """Outcome of a synchronous conversion."""

    success: bool = True
    message: str
    converted_video: ConvertedVideo


class ConversionStatusBody(BaseModel):
    id: int
    name: str
    status: ConversionStatus
    bitrate: int
    converted_at: datetime | None
    original_format: str | None
    applied_quality: str | None = None


class ConversionStatusResponse(BaseModel):
    success: bool = True
    conversion_status: ConversionStatusBody


class QualitiesResponse(BaseModel):
    """Presets available to the caller."""

    success: bool = True
    qualities: list[QualityOptionResponse]
    user_limit: int
    custom_allowed: bool = True


class RemoveResponse(BaseModel):
    success: bool = True
    message: str
    freed_mb: int


class JobResponse(BaseModel):
    """Response when a conversion job is enqueued."""

    task_id: str
    status: str
    message: str


class JobStatusResponse(BaseModel):
    """Response with conversion job status details."""

    task_id: str
    status: str
    result: dict[str, Any] | None = None
    error: str | None = None


@router.get(
    "/videos",
    response_model=ConvertibleVideosResponse,
    summary="List convertible videos",
    description="List the caller's videos with compatibility and available qualities.",
)
async def list_convertible_videos(
    account: CurrentAccountDep,
    orchestrator: OrchestratorDep,
    folder_id: int | None = Query(default=None, description="Restrict to one folder"),
) -> ConvertibleVideosResponse:
    """List videos for the conversion screen."""
    views = orchestrator.list_convertible_assets(account, folder_id)
    return ConvertibleVideosResponse(
        videos=[ConvertibleVideoResponse.model_validate(view) for view in views],
        user_limits=UserLimits(
            bitrate=account.bitrate_limit_kbps, storage=account.storage_limit_mb
        ),
        quality_presets={
            name: PresetResponse(
                bitrate=preset.bitrate_kbps, resolution=preset.resolution, crf=preset.crf
            )
            for name, preset in orchestrator.presets.items()
        },
    )


@router.post(
    "/convert",
    response_model=ConvertResponse,
    summary="Convert video",
    description="Convert a video synchronously and register the result.",
)
async def convert_video(
    request: ConvertRequest,
    account: CurrentAccountDep,
    orchestrator: OrchestratorDep,
) -> ConvertResponse:
    """Run a conversion and wait for it."""
    logger.info(
        "convert_requested",
        account_id=account.id,
        video_id=request.video_id,
        quality=request.quality,
    )
    summary = await orchestrator.request_conversion(account, request.to_domain())
    return ConvertResponse(
        message=f"Video converted to quality {summary.quality}",
        converted_video=ConvertedVideo(**asdict(summary)),
    )


@router.post(
    "/jobs",
    response_model=JobResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Enqueue conversion",
    description="Validate a conversion request and run it on a worker.",
)
async def enqueue_conversion(
    request: ConvertRequest,
    account: CurrentAccountDep,
    orchestrator: OrchestratorDep,
) -> JobResponse:
    """Enqueue a conversion job."""
    # Reject bad requests here instead of in the worker
    orchestrator.resolve_preset(account, request.to_domain())

    task = run_conversion_task.delay(
        account.id,
        request.video_id,
        quality=request.quality,
        custom_bitrate=request.custom_bitrate,
        custom_resolution=request.custom_resolution,
    )
    logger.info("conversion_enqueued", task_id=task.id, video_id=request.video_id)

    return JobResponse(
        task_id=task.id,
        status="queued",
        message="Conversion job enqueued successfully",
    )


@router.get(
    "/jobs/{task_id}",
    response_model=JobStatusResponse,
    summary="Get conversion job status",
    description="Get the status of an enqueued conversion.",
)
async def get_conversion_job(task_id: str) -> JobStatusResponse:
    """Get conversion job status by task ID."""
    result = AsyncResult(task_id, app=celery_app)

    if result.state == "PENDING":
        return JobStatusResponse(task_id=task_id, status="pending")
    elif result.state == "STARTED":
        return JobStatusResponse(task_id=task_id, status="running")
    elif result.state == "SUCCESS":
        payload = result.result or {}
        return JobStatusResponse(
            task_id=task_id,
            status="completed" if payload.get("success") else "failed",
            result=payload,
            error=payload.get("message"),
        )
    elif result.state == "FAILURE":
        return JobStatusResponse(task_id=task_id, status="failed", error=str(result.result))
    else:
        return JobStatusResponse(task_id=task_id, status=result.state.lower())


@router.get(
    "/status/{asset_id}",
    response_model=ConversionStatusResponse,
    summary="Conversion status",
    description="Conversion state of one video.",
)
async def get_conversion_status(
    asset_id: int,
    account: CurrentAccountDep,
    orchestrator: OrchestratorDep,
) -> ConversionStatusResponse:
    view = orchestrator.get_conversion_status(account, asset_id)
    return ConversionStatusResponse(conversion_status=ConversionStatusBody(**asdict(view)))


@router.get(
    "/qualities",
    response_model=QualitiesResponse,
    summary="Available qualities",
    description="Presets with whether the caller's plan allows each.",
)
async def get_qualities(
    account: CurrentAccountDep, orchestrator: OrchestratorDep
) -> QualitiesResponse:
    return QualitiesResponse(
        qualities=[
            QualityOptionResponse(**asdict(option))
            for option in orchestrator.quality_options(account)
        ],
        user_limit=account.bitrate_limit_kbps,
    )


@router.delete(
    "/{asset_id}",
    response_model=RemoveResponse,
    summary="Remove converted video",
    description="Delete a video produced by a conversion.",
)
async def remove_converted_video(
    asset_id: int,
    account: CurrentAccountDep,
    orchestrator: OrchestratorDep,
) -> RemoveResponse:
    freed_mb = await orchestrator.remove_converted_asset(account, asset_id)
    return RemoveResponse(message="Conversion removed successfully", freed_mb=freed_mb)
