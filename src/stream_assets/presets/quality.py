"""Quality preset definitions for conversions.

Each preset fixes the target video bitrate, the output frame size and the
x264 constant-quality factor used when converting an asset.
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType

from stream_assets.domain.errors import ValidationError
from stream_assets.domain.models import QualityOption

CUSTOM_QUALITY = "custom"
DEFAULT_CUSTOM_CRF = 23

_RESOLUTION_RE = re.compile(r"^(\d{2,5})x(\d{2,5})$")


@dataclass(frozen=True)
class QualityPreset:
    """A named conversion target.

    Attributes:
        name: Preset identifier, also used as the output file suffix
        bitrate_kbps: Target (and maximum) video bitrate
        resolution: Output frame size as ``WxH``
        crf: x264 constant rate factor
    """

    name: str
    bitrate_kbps: int
    resolution: str
    crf: int

    @property
    def width(self) -> int:
        return parse_resolution(self.resolution)[0]

    @property
    def height(self) -> int:
        return parse_resolution(self.resolution)[1]

    @property
    def is_custom(self) -> bool:
        return self.name == CUSTOM_QUALITY


# =============================================================================
# PRESET DEFINITIONS
# =============================================================================

BAIXA = QualityPreset(name="baixa", bitrate_kbps=800, resolution="854x480", crf=28)
MEDIA = QualityPreset(name="media", bitrate_kbps=1500, resolution="1280x720", crf=25)
ALTA = QualityPreset(name="alta", bitrate_kbps=2500, resolution="1920x1080", crf=23)
FULLHD = QualityPreset(name="fullhd", bitrate_kbps=4000, resolution="1920x1080", crf=21)

# Ordered low to high; read-only so it can be shared across requests
QUALITY_PRESETS: Mapping[str, QualityPreset] = MappingProxyType(
    {preset.name: preset for preset in (BAIXA, MEDIA, ALTA, FULLHD)}
)


def parse_resolution(resolution: str) -> tuple[int, int]:
    """Split ``WxH`` into integers.

    Raises:
        ValidationError: If the value is not two positive integers joined by ``x``.
    """
    match = _RESOLUTION_RE.match(resolution.strip().lower()) if resolution else None
    if not match:
        raise ValidationError(f"Invalid resolution '{resolution}', expected WIDTHxHEIGHT")
    width, height = int(match.group(1)), int(match.group(2))
    if width <= 0 or height <= 0:
        raise ValidationError(f"Invalid resolution '{resolution}'")
    return width, height


def get_quality_preset(
    name: str, presets: Mapping[str, QualityPreset] = QUALITY_PRESETS
) -> QualityPreset | None:
    """Look up a preset by name."""
    return presets.get(name)


def get_quality_preset_names(presets: Mapping[str, QualityPreset] = QUALITY_PRESETS) -> list[str]:
    """Preset names in table order."""
    return list(presets.keys())


def build_custom_preset(
    bitrate_kbps: int, resolution: str, crf: int = DEFAULT_CUSTOM_CRF
) -> QualityPreset:
    """Build the ad-hoc preset for a caller-supplied bitrate and resolution."""
    if bitrate_kbps <= 0:
        raise ValidationError(f"Invalid bitrate {bitrate_kbps}, must be positive")
    width, height = parse_resolution(resolution)
    return QualityPreset(
        name=CUSTOM_QUALITY,
        bitrate_kbps=bitrate_kbps,
        resolution=f"{width}x{height}",
        crf=crf,
    )


def quality_options(
    bitrate_limit_kbps: int, presets: Mapping[str, QualityPreset] = QUALITY_PRESETS
) -> list[QualityOption]:
    """Annotate every preset with whether the plan limit allows it."""
    options = []
    for preset in presets.values():
        allowed = preset.bitrate_kbps <= bitrate_limit_kbps
        options.append(
            QualityOption(
                quality=preset.name,
                bitrate=preset.bitrate_kbps,
                resolution=preset.resolution,
                can_convert=allowed,
                reason=None if allowed else f"Exceeds plan limit ({bitrate_limit_kbps} kbps)",
            )
        )
    return options
