"""Domain models - pure Python classes independent of database."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from stream_assets.domain.enums import ConversionStatus, JobState, ReasonKind


@dataclass(frozen=True)
class AccountContext:
    """The caller on whose behalf an operation runs."""

    id: int
    login: str
    bitrate_limit_kbps: int
    storage_limit_mb: int = 0


@dataclass(frozen=True)
class IncompatibilityReason:
    """One reason an asset needs conversion before playback."""

    kind: ReasonKind
    limit_kbps: int | None = None

    @property
    def message(self) -> str:
        if self.kind == ReasonKind.CONTAINER_NOT_NORMALIZED:
            return "container is not normalized format"
        return f"bitrate exceeds plan limit of {self.limit_kbps} kbps"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"kind": str(self.kind)}
        if self.limit_kbps is not None:
            data["limit_kbps"] = self.limit_kbps
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "IncompatibilityReason":
        return cls(kind=ReasonKind(data["kind"]), limit_kbps=data.get("limit_kbps"))


@dataclass(frozen=True)
class CompatibilityResult:
    """Outcome of classifying an asset against the playback rules."""

    compatible: bool
    needs_conversion: bool
    reasons: tuple[IncompatibilityReason, ...] = ()

    @property
    def messages(self) -> list[str]:
        return [reason.message for reason in self.reasons]


@dataclass(frozen=True)
class QualityOption:
    """A preset annotated with whether the account may convert to it."""

    quality: str
    bitrate: int
    resolution: str
    can_convert: bool
    reason: str | None = None


@dataclass
class ConversionRequest:
    """A caller's conversion request, before validation."""

    asset_id: int | None
    quality: str | None = None
    custom_bitrate: int | None = None
    custom_resolution: str | None = None


@dataclass
class ConversionJob:
    """One in-flight transcode attempt. Not persisted as its own row."""

    source_asset_id: int
    quality: str
    bitrate_kbps: int
    resolution: str
    crf: int
    input_path: str
    output_path: str
    output_relative_path: str
    state: JobState = JobState.VALIDATED
    history: list[JobState] = field(default_factory=lambda: [JobState.REQUESTED])

    def advance(self, state: JobState) -> None:
        """Move the job to ``state``, refusing transitions out of terminal states."""
        if self.state in (JobState.COMMITTED, JobState.FAILED):
            raise RuntimeError(f"Conversion job already {self.state}, cannot move to {state}")
        self.history.append(self.state)
        self.state = state


@dataclass(frozen=True)
class ConvertedAssetSummary:
    """What a successful conversion returns to the caller."""

    id: int
    source_asset_id: int
    path: str
    relative_path: str
    size_bytes: int
    bitrate: int
    duration: int
    quality: str
    probed: bool


@dataclass(frozen=True)
class ConversionStatusView:
    """Conversion state of one asset as reported to callers."""

    id: int
    name: str
    status: ConversionStatus
    bitrate: int
    converted_at: datetime | None
    original_format: str | None
    applied_quality: str | None = None


@dataclass
class AssetView:
    """An asset annotated for the conversion screen."""

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
    available_qualities: list[QualityOption]
    conversion_status: ConversionStatus
    source_asset_id: int | None = None
    applied_quality: str | None = None
    created_at: datetime | None = None
