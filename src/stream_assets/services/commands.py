"""Shell commands issued to the media host, and interpretation of their output.

The remote transport does not reliably report exit codes, so every command
that matters ends by echoing a sentinel token that the caller looks for in
stdout.
"""

import json
import math
import shlex
from dataclasses import dataclass
from typing import Any

from stream_assets.domain.enums import TranscodeOutcome
from stream_assets.presets.quality import QualityPreset

CONVERSION_SUCCESS = "CONVERSION_SUCCESS"
CONVERSION_ERROR = "CONVERSION_ERROR"
NO_PROBE = "NO_PROBE"
NOT_FOUND = "NOT_FOUND"
DELETED = "DELETED"
DIR_READY = "DIR_READY"


@dataclass(frozen=True)
class TranscodeOptions:
    """Encoder settings that do not vary per preset."""

    ffmpeg_binary: str = "ffmpeg"
    video_codec: str = "libx264"
    encoder_preset: str = "medium"
    audio_codec: str = "aac"
    audio_bitrate_kbps: int = 128


@dataclass(frozen=True)
class ProbeResult:
    """Metadata read back from a produced (or uploaded) media file."""

    duration: int
    bitrate: int
    width: int = 0
    height: int = 0
    codec: str | None = None
    format_name: str | None = None


def build_transcode_command(
    input_path: str,
    output_path: str,
    preset: QualityPreset,
    options: TranscodeOptions | None = None,
) -> str:
    """Composite command converting ``input_path`` into the canonical container."""
    options = options or TranscodeOptions()
    bitrate = preset.bitrate_kbps
    args = [
        options.ffmpeg_binary,
        "-i", input_path,
        "-c:v", options.video_codec,
        "-preset", options.encoder_preset,
        "-crf", str(preset.crf),
        "-b:v", f"{bitrate}k",
        "-maxrate", f"{bitrate}k",
        "-bufsize", f"{bitrate * 2}k",
        "-vf", f"scale={preset.resolution.replace('x', ':')}",
        "-c:a", options.audio_codec,
        "-b:a", f"{options.audio_bitrate_kbps}k",
        "-movflags", "+faststart",
        output_path,
        "-y",
    ]  # fmt: skip
    quoted = " ".join(shlex.quote(arg) for arg in args)
    return f"{quoted} 2>/dev/null && echo {CONVERSION_SUCCESS} || echo {CONVERSION_ERROR}"


def build_probe_command(path: str, ffprobe_binary: str = "ffprobe") -> str:
    """Structured (JSON) description of a media file, or the NO_PROBE marker."""
    args = [
        ffprobe_binary,
        "-v", "quiet",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        path,
    ]  # fmt: skip
    quoted = " ".join(shlex.quote(arg) for arg in args)
    return f"{quoted} 2>/dev/null || echo {NO_PROBE}"


def build_stat_command(path: str) -> str:
    return f"stat -c%s {shlex.quote(path)} 2>/dev/null || echo {NOT_FOUND}"


def build_delete_command(path: str) -> str:
    quoted = shlex.quote(path)
    return f"[ -e {quoted} ] && rm -f {quoted} && echo {DELETED} || echo {NOT_FOUND}"


def build_mkdir_command(path: str) -> str:
    return f"mkdir -p {shlex.quote(path)} && echo {DIR_READY}"


def interpret_transcode_output(stdout: str) -> TranscodeOutcome:
    """Map the transcode command's stdout onto success / failure."""
    has_success = CONVERSION_SUCCESS in stdout
    has_error = CONVERSION_ERROR in stdout
    if has_success and not has_error:
        return TranscodeOutcome.SUCCESS
    if has_error and not has_success:
        return TranscodeOutcome.FAILURE
    return TranscodeOutcome.UNRECOGNIZED


def parse_stat_output(stdout: str) -> int | None:
    """Byte size printed by ``stat``, or None when the file is missing."""
    text = stdout.strip()
    if not text or NOT_FOUND in text:
        return None
    try:
        return int(text.splitlines()[-1].strip())
    except ValueError:
        return None


def _whole(value: Any, scale: int = 1) -> int:
    """Non-negative integer from an ffprobe field, 0 when absent or unparsable."""
    try:
        number = float(value or 0) / scale
        return max(math.floor(number), 0)
    except (TypeError, ValueError, OverflowError):
        return 0


def parse_probe_payload(data: dict[str, Any]) -> ProbeResult | None:
    """Extract duration/bitrate/dimensions from ffprobe's JSON document.

    Fields ffprobe reports as ``N/A`` or leaves out come back as 0.
    """
    fmt = data.get("format")
    if not isinstance(fmt, dict):
        return None

    streams = data.get("streams")
    video_stream = next(
        (
            s
            for s in (streams if isinstance(streams, list) else [])
            if isinstance(s, dict) and s.get("codec_type") == "video"
        ),
        {},
    )
    codec = video_stream.get("codec_name")
    format_name = fmt.get("format_name")
    return ProbeResult(
        duration=_whole(fmt.get("duration")),
        bitrate=_whole(fmt.get("bit_rate"), scale=1000),
        width=_whole(video_stream.get("width")),
        height=_whole(video_stream.get("height")),
        codec=codec if isinstance(codec, str) else None,
        format_name=format_name if isinstance(format_name, str) else None,
    )


def parse_probe_output(stdout: str) -> ProbeResult | None:
    """Parse the probe command's stdout.

    Returns None when the probe is unavailable: the NO_PROBE marker, output
    that is not JSON, or a document without a ``format`` section.
    """
    text = stdout.strip()
    if not text or text.splitlines()[-1].strip() == NO_PROBE:
        return None
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None
    return parse_probe_payload(data)
