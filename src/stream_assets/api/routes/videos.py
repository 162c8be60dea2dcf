"""Video library endpoints."""

from datetime import datetime

from fastapi import APIRouter, Query
from pydantic import BaseModel

from stream_assets.api.deps import AssetServiceDep, CurrentAccountDep
from stream_assets.logging import get_logger
from stream_assets.services.assets import BucketAssetView
from stream_assets.services.catalog import as_utc

router = APIRouter(prefix="/videos", tags=["Videos"])
logger = get_logger(__name__)


class VideoResponse(BaseModel):
    """A stored video with compatibility computed for the caller's plan."""

    id: int
    name: str
    path: str
    duration: int
    size_bytes: int
    bitrate: int
    container_format: str | None
    width: int
    height: int
    codec: str | None
    is_normalized_container: bool
    compatible: bool
    stored_reasons: list[str]
    created_at: datetime | None
    folder: str
    user: str
    can_use_in_playlist: bool
    needs_conversion: bool
    compatibility_reasons: list[str]


class RemoteFileResponse(BaseModel):
    """Whether a video's file is present on the media host."""

    success: bool
    exists: bool
    path: str
    size_bytes: int
    url: str


class DeleteResponse(BaseModel):
    success: bool = True
    message: str
    freed_mb: int


def _to_response(view: BucketAssetView, login: str) -> VideoResponse:
    asset = view.asset
    return VideoResponse(
        id=asset.id,
        name=asset.name,
        path=asset.path,
        duration=asset.duration_seconds or 0,
        size_bytes=asset.size_bytes or 0,
        bitrate=asset.bitrate_kbps or 0,
        container_format=asset.container_format,
        width=asset.width or 0,
        height=asset.height or 0,
        codec=asset.codec,
        is_normalized_container=asset.is_normalized_container,
        compatible=asset.compatible,
        stored_reasons=view.stored_reasons,
        created_at=as_utc(asset.created_at),
        folder=asset.bucket,
        user=login,
        can_use_in_playlist=view.compatibility.compatible,
        needs_conversion=view.compatibility.needs_conversion,
        compatibility_reasons=view.compatibility.messages,
    )


@router.get(
    "",
    response_model=list[VideoResponse],
    summary="List videos",
    description="List the videos of one folder with compatibility information.",
)
async def list_videos(
    account: CurrentAccountDep,
    service: AssetServiceDep,
    folder_id: int = Query(..., description="Folder to list"),
) -> list[VideoResponse]:
    views = service.list_bucket_assets(account, folder_id)
    return [_to_response(view, account.login) for view in views]


@router.get(
    "/{asset_id}/remote",
    response_model=RemoteFileResponse,
    summary="Check remote file",
    description="Check that a video's file exists on the media host.",
)
async def check_remote_file(
    asset_id: int,
    account: CurrentAccountDep,
    service: AssetServiceDep,
) -> RemoteFileResponse:
    remote_path, stat = await service.check_remote_file(account, asset_id)
    asset_path = remote_path.removeprefix(service.policy.content_root.rstrip("/"))
    return RemoteFileResponse(
        success=stat.exists,
        exists=stat.exists,
        path=remote_path,
        size_bytes=stat.size_bytes,
        url=f"/content{asset_path}",
    )


@router.delete(
    "/{asset_id}",
    response_model=DeleteResponse,
    summary="Delete video",
    description="Delete a video from the media host, the catalog and every playlist.",
)
async def delete_video(
    asset_id: int,
    account: CurrentAccountDep,
    service: AssetServiceDep,
) -> DeleteResponse:
    logger.info("delete_video_requested", account_id=account.id, asset_id=asset_id)
    freed_mb = await service.delete_asset(account, asset_id)
    return DeleteResponse(message="Video removed successfully", freed_mb=freed_mb)
