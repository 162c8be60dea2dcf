"""Immutable media-handling policy built once from settings.

Services receive this object instead of reading the global settings, so the
rules in force for a request are fixed when the service is constructed.
"""

from dataclasses import dataclass, field
from pathlib import PurePosixPath

from stream_assets.config import Settings
from stream_assets.services.commands import TranscodeOptions

ACCEPTED_UPLOAD_EXTENSIONS = (
    ".mp4", ".avi", ".mov", ".wmv", ".flv", ".webm", ".mkv",
    ".3gp", ".3g2", ".ts", ".mpg", ".mpeg", ".ogv", ".m4v", ".asf",
)  # fmt: skip


@dataclass(frozen=True)
class MediaPolicy:
    """Paths, formats and limits shared by ingestion, conversion and deletion."""

    content_root: str = "/usr/local/WowzaStreamingEngine/content"
    canonical_container: str = "mp4"
    canonical_codec: str = "h264"
    custom_crf: int = 23
    transcode: TranscodeOptions = field(default_factory=TranscodeOptions)
    ffprobe_binary: str = "ffprobe"
    command_timeout: float | None = 120
    lock_ttl_seconds: int = 6 * 3600
    default_bitrate_limit_kbps: int = 2500
    default_storage_limit_mb: int = 1000
    strict_quota: bool = False
    accepted_extensions: tuple[str, ...] = ACCEPTED_UPLOAD_EXTENSIONS

    @classmethod
    def from_settings(cls, settings: Settings) -> "MediaPolicy":
        return cls(
            content_root=settings.content_root,
            canonical_container=settings.canonical_container,
            canonical_codec=settings.canonical_codec,
            custom_crf=settings.custom_crf,
            transcode=TranscodeOptions(
                ffmpeg_binary=settings.ffmpeg_binary,
                encoder_preset=settings.ffmpeg_preset,
                audio_codec=settings.audio_codec,
                audio_bitrate_kbps=settings.audio_bitrate_kbps,
            ),
            ffprobe_binary=settings.ffprobe_binary,
            command_timeout=settings.remote_command_timeout,
            lock_ttl_seconds=settings.conversion_lock_ttl_seconds,
            default_bitrate_limit_kbps=settings.default_bitrate_limit_kbps,
            default_storage_limit_mb=settings.default_storage_limit_mb,
            strict_quota=settings.quota_strict_reservation,
        )

    def remote_path(self, relative_path: str) -> str:
        """Absolute path on the media host for a stored relative path."""
        return f"{self.content_root.rstrip('/')}/{relative_path.lstrip('/')}"

    def converted_relative_path(self, relative_path: str, suffix: str) -> str:
        """Sibling of ``relative_path`` named ``<stem><suffix>.<canonical>``."""
        source = PurePosixPath(relative_path)
        name = f"{source.stem}{suffix}.{self.canonical_container}"
        parent = str(source.parent)
        return name if parent in ("", ".") else f"{parent}/{name}"
