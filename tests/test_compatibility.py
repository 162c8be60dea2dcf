"""Tests for playback compatibility classification."""

import pytest

from stream_assets.domain.enums import ReasonKind
from stream_assets.services.compatibility import classify, container_from_path, normalize_extension


class TestClassify:
    """Test the compatibility classifier."""

    def test_canonical_container_within_limit(self) -> None:
        result = classify("mp4", 1800, 2500)

        assert result.compatible is True
        assert result.needs_conversion is False
        assert result.reasons == ()

    def test_bitrate_equal_to_limit_is_compatible(self) -> None:
        result = classify("mp4", 2500, 2500)

        assert result.compatible is True
        assert result.needs_conversion is False

    def test_bitrate_one_over_limit_is_incompatible(self) -> None:
        result = classify("mp4", 2501, 2500)

        assert result.compatible is False
        assert result.needs_conversion is True
        assert [r.kind for r in result.reasons] == [ReasonKind.BITRATE_EXCEEDS_LIMIT]
        assert result.messages == ["bitrate exceeds plan limit of 2500 kbps"]

    def test_non_canonical_container(self) -> None:
        result = classify("avi", 1000, 2500)

        assert result.compatible is False
        assert result.messages == ["container is not normalized format"]

    def test_reasons_keep_order(self) -> None:
        result = classify(".MKV", 4000, 2500)

        assert [r.kind for r in result.reasons] == [
            ReasonKind.CONTAINER_NOT_NORMALIZED,
            ReasonKind.BITRATE_EXCEEDS_LIMIT,
        ]

    def test_unknown_bitrate_needs_verification(self) -> None:
        """Bitrate 0 breaks no rule but still asks for conversion."""
        result = classify("mp4", 0, 2500)

        assert result.compatible is True
        assert result.needs_conversion is True

    def test_extension_normalization(self) -> None:
        assert classify(".MP4", 100, 2500).compatible is True
        assert classify(None, 100, 2500).compatible is False

    def test_custom_canonical_container(self) -> None:
        assert classify("webm", 100, 2500, canonical_container="webm").compatible is True
        assert classify("mp4", 100, 2500, canonical_container="webm").compatible is False

    @pytest.mark.parametrize(
        ("container", "bitrate", "limit"),
        [("mp4", 2500, 2500), ("avi", 3000, 2500), ("mov", 0, 800)],
    )
    def test_classify_is_pure(self, container: str, bitrate: int, limit: int) -> None:
        assert classify(container, bitrate, limit) == classify(container, bitrate, limit)


def test_normalize_extension() -> None:
    assert normalize_extension(".AVI") == "avi"
    assert normalize_extension(" mp4 ") == "mp4"
    assert normalize_extension("") == ""


def test_container_from_path() -> None:
    assert container_from_path("alice/videos/1700000000000_clip.MOV") == "mov"
    assert container_from_path("no_extension") == ""
