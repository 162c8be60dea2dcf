"""Domain enumerations."""

from enum import StrEnum


class ConversionStatus(StrEnum):
    """Conversion state recorded on an asset."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class JobState(StrEnum):
    """States of a single conversion attempt."""

    REQUESTED = "requested"
    VALIDATED = "validated"
    RUNNING = "running"
    PROBED = "probed"
    COMMITTED = "committed"
    FAILED = "failed"


class ReasonKind(StrEnum):
    """Why an asset cannot be played as-is."""

    CONTAINER_NOT_NORMALIZED = "container_not_normalized"
    BITRATE_EXCEEDS_LIMIT = "bitrate_exceeds_limit"


class ErrorKind(StrEnum):
    """Externally reported failure categories."""

    VALIDATION = "validation_error"
    NOT_FOUND = "not_found"
    QUOTA_EXCEEDED = "quota_exceeded"
    CONVERSION_IN_PROGRESS = "conversion_in_progress"
    CONVERSION_FAILED = "conversion_failed"
    REMOTE_EXECUTION = "remote_execution_error"


class TranscodeOutcome(StrEnum):
    """Interpretation of the transcode command's sentinel output."""

    SUCCESS = "success"
    FAILURE = "failure"
    UNRECOGNIZED = "unrecognized"
