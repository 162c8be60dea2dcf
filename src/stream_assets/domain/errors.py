"""Error taxonomy surfaced to callers of the asset and conversion services.

Every failure a caller can observe is one of these. Collaborator exceptions
(database, remote transport) are translated into them at the service boundary.
"""

from typing import Any

from stream_assets.domain.enums import ErrorKind


class AssetServiceError(Exception):
    """Base class for reportable asset/conversion failures."""

    kind: ErrorKind = ErrorKind.VALIDATION
    status_code: int = 400

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_payload(self) -> dict[str, Any]:
        """Structured result distinguishing the error kind from its message."""
        payload: dict[str, Any] = {
            "success": False,
            "error": str(self.kind),
            "message": self.message,
        }
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(AssetServiceError):
    """Missing or contradictory request fields, or a bitrate over the plan."""

    kind = ErrorKind.VALIDATION
    status_code = 400


class NotFoundError(AssetServiceError):
    """Asset or bucket missing, or not owned by the caller."""

    kind = ErrorKind.NOT_FOUND
    status_code = 404


class QuotaExceededError(AssetServiceError):
    """Not enough free space in the target bucket."""

    kind = ErrorKind.QUOTA_EXCEEDED
    status_code = 400

    def __init__(self, required_mb: int, available_mb: int, total_mb: int, used_mb: int) -> None:
        percentage = round(used_mb / total_mb * 100) if total_mb else 100
        super().__init__(
            f"Insufficient space. Required: {required_mb}MB, available: {available_mb}MB",
            details={
                "required": required_mb,
                "available": available_mb,
                "total": total_mb,
                "used": used_mb,
                "percentage": percentage,
            },
        )
        self.required_mb = required_mb
        self.available_mb = available_mb


class ConversionInProgressError(AssetServiceError):
    """Another conversion of the same source asset holds the guard."""

    kind = ErrorKind.CONVERSION_IN_PROGRESS
    status_code = 409


class ConversionFailedError(AssetServiceError):
    """The remote transcode reported failure."""

    kind = ErrorKind.CONVERSION_FAILED
    status_code = 500


class RemoteExecutionError(ConversionFailedError):
    """The gateway raised or returned output that could not be interpreted."""

    kind = ErrorKind.REMOTE_EXECUTION
    status_code = 502
