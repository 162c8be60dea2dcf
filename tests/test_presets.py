"""Tests for quality presets."""

import pytest

from stream_assets.domain.errors import ValidationError
from stream_assets.presets import (
    CUSTOM_QUALITY,
    QUALITY_PRESETS,
    build_custom_preset,
    get_quality_preset,
    get_quality_preset_names,
    parse_resolution,
    quality_options,
)


def test_preset_table() -> None:
    """Test the canonical preset values."""
    assert get_quality_preset_names() == ["baixa", "media", "alta", "fullhd"]

    media = get_quality_preset("media")
    assert media is not None
    assert media.bitrate_kbps == 1500
    assert media.resolution == "1280x720"
    assert media.crf == 25
    assert (media.width, media.height) == (1280, 720)


def test_preset_table_is_read_only() -> None:
    with pytest.raises(TypeError):
        QUALITY_PRESETS["ultra"] = QUALITY_PRESETS["alta"]  # type: ignore[index]


def test_unknown_preset() -> None:
    assert get_quality_preset("ultra") is None


def test_build_custom_preset() -> None:
    preset = build_custom_preset(1200, "960x540")

    assert preset.name == CUSTOM_QUALITY
    assert preset.is_custom is True
    assert preset.bitrate_kbps == 1200
    assert preset.crf == 23


@pytest.mark.parametrize("resolution", ["", "1280", "1280x", "x720", "axb", "1280*720"])
def test_invalid_resolution(resolution: str) -> None:
    with pytest.raises(ValidationError):
        parse_resolution(resolution)


def test_invalid_custom_bitrate() -> None:
    with pytest.raises(ValidationError):
        build_custom_preset(0, "1280x720")


def test_quality_options_against_limit() -> None:
    """Presets above the plan limit are listed but not convertible."""
    options = {option.quality: option for option in quality_options(2500)}

    assert options["alta"].can_convert is True
    assert options["alta"].reason is None
    assert options["fullhd"].can_convert is False
    assert options["fullhd"].reason == "Exceeds plan limit (2500 kbps)"
    assert [o.quality for o in quality_options(800) if o.can_convert] == ["baixa"]
