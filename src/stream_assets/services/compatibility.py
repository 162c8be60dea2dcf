"""Playback compatibility classification.

An asset plays as-is only when it is stored in the canonical container and its
bitrate fits the account's plan. Everything else needs conversion.
"""

from pathlib import PurePosixPath

from stream_assets.domain.enums import ReasonKind
from stream_assets.domain.models import CompatibilityResult, IncompatibilityReason

CANONICAL_CONTAINER = "mp4"


def normalize_extension(container: str | None) -> str:
    """Lower-case extension without the leading dot (``".AVI"`` -> ``"avi"``)."""
    if not container:
        return ""
    return container.strip().lower().lstrip(".")


def container_from_path(path: str) -> str:
    """Container extension of a stored file name or relative path."""
    return normalize_extension(PurePosixPath(path).suffix)


def classify(
    container_extension: str | None,
    bitrate_kbps: int,
    bitrate_limit_kbps: int,
    canonical_container: str = CANONICAL_CONTAINER,
) -> CompatibilityResult:
    """Decide whether an asset can be played without conversion.

    A bitrate of 0 means "unknown": the asset is still reported compatible when
    no rule is broken, but it is flagged as needing conversion so it gets
    verified.
    """
    reasons: list[IncompatibilityReason] = []

    if normalize_extension(container_extension) != normalize_extension(canonical_container):
        reasons.append(IncompatibilityReason(ReasonKind.CONTAINER_NOT_NORMALIZED))

    if bitrate_kbps > bitrate_limit_kbps:
        reasons.append(
            IncompatibilityReason(ReasonKind.BITRATE_EXCEEDS_LIMIT, limit_kbps=bitrate_limit_kbps)
        )

    compatible = not reasons
    return CompatibilityResult(
        compatible=compatible,
        needs_conversion=not compatible or bitrate_kbps == 0,
        reasons=tuple(reasons),
    )
