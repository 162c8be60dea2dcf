"""Quality presets for conversions."""

from stream_assets.presets.quality import (
    CUSTOM_QUALITY,
    QUALITY_PRESETS,
    QualityPreset,
    build_custom_preset,
    get_quality_preset,
    get_quality_preset_names,
    parse_resolution,
    quality_options,
)

__all__ = [
    "CUSTOM_QUALITY",
    "QUALITY_PRESETS",
    "QualityPreset",
    "build_custom_preset",
    "get_quality_preset",
    "get_quality_preset_names",
    "parse_resolution",
    "quality_options",
]
