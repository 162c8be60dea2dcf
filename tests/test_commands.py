"""Tests for media host commands and their output parsing."""

import json
import shlex

import pytest

from stream_assets.domain.enums import TranscodeOutcome
from stream_assets.presets import build_custom_preset, get_quality_preset
from stream_assets.services.commands import (
    CONVERSION_ERROR,
    CONVERSION_SUCCESS,
    NO_PROBE,
    NOT_FOUND,
    TranscodeOptions,
    build_delete_command,
    build_mkdir_command,
    build_probe_command,
    build_stat_command,
    build_transcode_command,
    interpret_transcode_output,
    parse_probe_output,
    parse_stat_output,
)

PROBE_JSON = {
    "format": {
        "format_name": "mov,mp4,m4a,3gp,3g2,mj2",
        "duration": "120.64",
        "bit_rate": "1480999",
    },
    "streams": [
        {"codec_type": "audio", "codec_name": "aac"},
        {"codec_type": "video", "codec_name": "h264", "width": 1280, "height": 720},
    ],
}


class TestTranscodeCommand:
    """Test the composite transcode command."""

    def test_encoder_arguments(self) -> None:
        preset = get_quality_preset("media")
        assert preset is not None

        command = build_transcode_command("/content/a/in.avi", "/content/a/in_media.mp4", preset)
        tokens = shlex.split(command.split(" 2>/dev/null")[0])

        assert tokens[0] == "ffmpeg"
        assert tokens[tokens.index("-i") + 1] == "/content/a/in.avi"
        assert tokens[tokens.index("-b:v") + 1] == "1500k"
        assert tokens[tokens.index("-maxrate") + 1] == "1500k"
        assert tokens[tokens.index("-bufsize") + 1] == "3000k"
        assert tokens[tokens.index("-vf") + 1] == "scale=1280:720"
        assert tokens[tokens.index("-crf") + 1] == "25"
        assert tokens[tokens.index("-c:a") + 1] == "aac"
        assert tokens[tokens.index("-b:a") + 1] == "128k"
        assert tokens[tokens.index("-movflags") + 1] == "+faststart"
        assert tokens[-2:] == ["/content/a/in_media.mp4", "-y"]

    def test_sentinels_are_echoed(self) -> None:
        command = build_transcode_command("in.avi", "out.mp4", build_custom_preset(900, "640x360"))

        assert command.endswith(f"&& echo {CONVERSION_SUCCESS} || echo {CONVERSION_ERROR}")

    def test_paths_are_quoted(self) -> None:
        command = build_transcode_command(
            "/content/my clip.avi",
            "/content/my clip_baixa.mp4",
            build_custom_preset(800, "854x480"),
        )

        assert "'/content/my clip.avi'" in command

    def test_options_override(self) -> None:
        options = TranscodeOptions(ffmpeg_binary="/opt/ffmpeg", encoder_preset="fast")
        command = build_transcode_command("a", "b", build_custom_preset(500, "320x240"), options)

        assert command.startswith("/opt/ffmpeg ")
        assert "-preset fast" in command


class TestTranscodeOutcome:
    def test_success(self) -> None:
        assert interpret_transcode_output(f"{CONVERSION_SUCCESS}\n") == TranscodeOutcome.SUCCESS

    def test_failure(self) -> None:
        assert interpret_transcode_output(CONVERSION_ERROR) == TranscodeOutcome.FAILURE

    def test_unrecognized(self) -> None:
        assert interpret_transcode_output("") == TranscodeOutcome.UNRECOGNIZED
        assert (
            interpret_transcode_output(f"{CONVERSION_SUCCESS} {CONVERSION_ERROR}")
            == TranscodeOutcome.UNRECOGNIZED
        )


class TestProbeParsing:
    """Test parsing of the probe command output."""

    def test_parse_payload(self) -> None:
        probe = parse_probe_output(json.dumps(PROBE_JSON))

        assert probe is not None
        assert probe.duration == 120
        assert probe.bitrate == 1480
        assert (probe.width, probe.height) == (1280, 720)
        assert probe.codec == "h264"

    def test_no_probe_marker(self) -> None:
        assert parse_probe_output(f"{NO_PROBE}\n") is None

    def test_invalid_json(self) -> None:
        assert parse_probe_output("{not json") is None

    def test_missing_format(self) -> None:
        assert parse_probe_output(json.dumps({"streams": []})) is None

    def test_missing_numbers_default_to_zero(self) -> None:
        probe = parse_probe_output(json.dumps({"format": {"duration": "N/A"}}))

        assert probe is not None
        assert probe.duration == 0
        assert probe.bitrate == 0
        assert probe.width == 0

    @pytest.mark.parametrize(
        "payload",
        [
            {"format": {"duration": "inf", "bit_rate": "1480000"}},
            {"format": {"duration": "120"}, "streams": ["x", None]},
            {
                "format": {"duration": "120", "bit_rate": "1480000"},
                "streams": [{"codec_type": "video", "width": "N/A", "height": 720}],
            },
            {"format": {"duration": [1], "bit_rate": {"x": 1}}, "streams": {"0": {}}},
        ],
    )
    def test_malformed_fields_are_zeroed(self, payload) -> None:
        probe = parse_probe_output(json.dumps(payload))

        assert probe is not None
        assert probe.width == 0
        assert probe.duration in (0, 120)

    def test_marker_inside_document_is_not_a_failure(self) -> None:
        payload = dict(PROBE_JSON, format={**PROBE_JSON["format"], "filename": "a_NO_PROBE.mp4"})

        probe = parse_probe_output(json.dumps(payload))

        assert probe is not None
        assert probe.bitrate == 1480

    def test_marker_after_partial_output(self) -> None:
        assert parse_probe_output(f'{{"format":\n{NO_PROBE}\n') is None


class TestHelperCommands:
    def test_probe_command(self) -> None:
        command = build_probe_command("/content/out.mp4")

        assert command.startswith("ffprobe -v quiet -print_format json -show_format -show_streams")
        assert command.endswith(f"|| echo {NO_PROBE}")

    def test_stat_output(self) -> None:
        assert build_stat_command("/x y").startswith("stat -c%s '/x y'")
        assert parse_stat_output("5000000\n") == 5_000_000
        assert parse_stat_output(NOT_FOUND) is None
        assert parse_stat_output("") is None

    def test_delete_and_mkdir(self) -> None:
        assert "rm -f /content/a.mp4" in build_delete_command("/content/a.mp4")
        assert build_mkdir_command("/content/alice") == "mkdir -p /content/alice && echo DIR_READY"
