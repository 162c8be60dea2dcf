"""Local media inspection with ffprobe, used when registering uploads."""

import json
import subprocess
from pathlib import Path

from stream_assets.logging import get_logger
from stream_assets.services.commands import ProbeResult, parse_probe_payload

logger = get_logger(__name__)

UNKNOWN_MEDIA = ProbeResult(
    duration=0, bitrate=0, width=0, height=0, codec="unknown", format_name="unknown"
)


def probe_local_file(
    file_path: Path, ffprobe_binary: str = "ffprobe", timeout: int = 120
) -> ProbeResult:
    """Read duration, bitrate, dimensions and codec of a local file.

    Never raises: a missing binary, a non-media file or malformed output all
    yield ``UNKNOWN_MEDIA`` so the upload can still be registered.
    """
    cmd = [
        ffprobe_binary,
        "-v", "quiet",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        str(file_path),
    ]  # fmt: skip

    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            check=True,
            timeout=timeout,
        )
        data = json.loads(result.stdout)
    except (
        FileNotFoundError,
        subprocess.CalledProcessError,
        subprocess.TimeoutExpired,
        UnicodeDecodeError,
        json.JSONDecodeError,
    ) as e:
        logger.warning("local_probe_failed", file_path=str(file_path), error=str(e))
        return UNKNOWN_MEDIA

    probed = parse_probe_payload(data) if isinstance(data, dict) else None
    if probed is None:
        logger.warning("local_probe_unparsable", file_path=str(file_path))
        return UNKNOWN_MEDIA

    logger.debug(
        "local_probe_success",
        file_path=str(file_path),
        duration=probed.duration,
        bitrate=probed.bitrate,
    )
    return ProbeResult(
        duration=probed.duration,
        bitrate=probed.bitrate,
        width=probed.width,
        height=probed.height,
        codec=probed.codec or "unknown",
        format_name=probed.format_name or "unknown",
    )
