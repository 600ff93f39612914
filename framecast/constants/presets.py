"""Export presets for common publishing targets.

A preset fixes the frame rate, orientation and frame quality for a platform
and carries ExportConfig overrides. ``resolve_preset`` layers caller
overrides on top of a preset and returns one ExportConfig.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

from framecast.constants.layout import Orientation
from framecast.schemas.export_config import ExportConfig, merge_export_config

AspectRatio = Literal["16:9", "9:16", "1:1", "4:5"]
Quality = Literal["draft", "standard", "high"]

# Frame JPEG quality per preset quality
FRAME_QUALITY: dict[str, int] = {
    "draft": 70,
    "standard": 85,
    "high": 92,
}


@dataclass(frozen=True)
class ExportPreset:
    """Export settings tuned for one platform or use case."""

    id: str
    name: str
    description: str
    platform: str
    aspect_ratio: AspectRatio
    orientation: Orientation
    fps: int
    quality: Quality
    # ExportConfig overrides, keyed by attribute name
    config: Mapping[str, Any] = field(default_factory=dict)
    min_duration: float | None = None
    max_duration: float | None = None

    @property
    def summary(self) -> str:
        return f"{self.name} ({self.aspect_ratio}, {self.quality} quality)"

    def fits_duration(self, duration: float) -> bool:
        if self.min_duration and duration < self.min_duration:
            return False
        if self.max_duration and duration > self.max_duration:
            return False
        return True

    def to_config(self) -> ExportConfig:
        return merge_export_config({
            **self.config,
            "orientation": self.orientation,
            "fps": self.fps,
            "jpeg_quality": FRAME_QUALITY[self.quality],
        })


def _story(transition_seconds: float, modern: bool = True) -> dict[str, Any]:
    return {
        "use_modern_effects": modern,
        "transition": {"duration_seconds": transition_seconds},
        "content_mode": "story",
    }


EXPORT_PRESETS: dict[str, ExportPreset] = {
    preset.id: preset
    for preset in (
        ExportPreset(
            id="youtube-landscape",
            name="YouTube (Landscape)",
            description="Standard YouTube video format, optimized for desktop viewing",
            platform="YouTube",
            aspect_ratio="16:9",
            orientation="landscape",
            fps=24,
            quality="high",
            config=_story(1.5),
            min_duration=60,
        ),
        ExportPreset(
            id="youtube-shorts",
            name="YouTube Shorts",
            description="Vertical video format for YouTube Shorts",
            platform="YouTube Shorts",
            aspect_ratio="9:16",
            orientation="portrait",
            fps=30,
            quality="high",
            config=_story(0.8),
            min_duration=15,
            max_duration=60,
        ),
        ExportPreset(
            id="tiktok",
            name="TikTok",
            description="Optimized for TikTok's vertical format",
            platform="TikTok",
            aspect_ratio="9:16",
            orientation="portrait",
            fps=30,
            quality="standard",
            config=_story(0.5),
            min_duration=15,
            max_duration=180,
        ),
        ExportPreset(
            id="instagram-feed",
            name="Instagram Feed",
            description="Square format for Instagram feed posts",
            platform="Instagram",
            aspect_ratio="1:1",
            # Square posts render with the landscape layout
            orientation="landscape",
            fps=30,
            quality="standard",
            config=_story(1.0),
            max_duration=60,
        ),
        ExportPreset(
            id="instagram-reels",
            name="Instagram Reels",
            description="Vertical video for Instagram Reels",
            platform="Instagram Reels",
            aspect_ratio="9:16",
            orientation="portrait",
            fps=30,
            quality="high",
            config=_story(0.7),
            min_duration=15,
            max_duration=90,
        ),
        ExportPreset(
            id="instagram-story",
            name="Instagram Story",
            description="Full-screen vertical format for Instagram Stories",
            platform="Instagram Stories",
            aspect_ratio="9:16",
            orientation="portrait",
            fps=30,
            quality="standard",
            config=_story(0.5),
            max_duration=15,
        ),
        ExportPreset(
            id="twitter",
            name="Twitter/X",
            description="Landscape video for Twitter/X posts",
            platform="Twitter/X",
            aspect_ratio="16:9",
            orientation="landscape",
            fps=30,
            quality="standard",
            config=_story(1.0),
            max_duration=140,
        ),
        ExportPreset(
            id="linkedin",
            name="LinkedIn",
            description="Professional video format for LinkedIn",
            platform="LinkedIn",
            aspect_ratio="16:9",
            orientation="landscape",
            fps=24,
            quality="high",
            config=_story(1.5),
            min_duration=30,
            max_duration=600,
        ),
        ExportPreset(
            id="draft-preview",
            name="Draft Preview",
            description="Fast, low-quality preview for quick iterations",
            platform="Preview",
            aspect_ratio="16:9",
            orientation="landscape",
            fps=15,
            quality="draft",
            config=_story(0.3, modern=False),
        ),
        ExportPreset(
            id="high-quality",
            name="High Quality",
            description="Maximum quality for archival or professional use",
            platform="General",
            aspect_ratio="16:9",
            orientation="landscape",
            fps=30,
            quality="high",
            config=_story(2.0),
        ),
        ExportPreset(
            id="podcast-video",
            name="Podcast Video",
            description="Long-form content optimized for podcast clips",
            platform="Podcast",
            aspect_ratio="16:9",
            orientation="landscape",
            fps=24,
            quality="standard",
            config=_story(1.0, modern=False),
            min_duration=120,
        ),
    )
}


def get_export_preset(preset_id: str) -> ExportPreset:
    try:
        return EXPORT_PRESETS[preset_id]
    except KeyError:
        raise ValueError(
            f"Unknown export preset '{preset_id}' (expected one of: {', '.join(EXPORT_PRESETS)})"
        ) from None


def presets_for_platform(platform: str) -> list[ExportPreset]:
    """Presets whose platform name contains ``platform`` (case-insensitive)."""
    needle = platform.lower()
    return [p for p in EXPORT_PRESETS.values() if needle in p.platform.lower()]


def presets_for_aspect_ratio(aspect_ratio: str) -> list[ExportPreset]:
    return [p for p in EXPORT_PRESETS.values() if p.aspect_ratio == aspect_ratio]


def recommended_preset(duration: float, orientation: Orientation = "landscape") -> ExportPreset:
    """Pick a preset for a composition of ``duration`` seconds.

    Among presets for the orientation whose duration range fits, the first
    high-quality one wins, then the first fitting one. With no fit the
    YouTube preset for the orientation is returned.
    """
    fitting = [
        p for p in EXPORT_PRESETS.values()
        if p.orientation == orientation and p.fits_duration(duration)
    ]
    if fitting:
        return next((p for p in fitting if p.quality == "high"), fitting[0])
    return EXPORT_PRESETS["youtube-shorts" if orientation == "portrait" else "youtube-landscape"]


def resolve_preset(
    preset_id: str,
    overrides: Mapping[str, Any] | ExportConfig | None = None,
) -> ExportConfig:
    """ExportConfig for ``preset_id`` with caller ``overrides`` merged on top."""
    return merge_export_config(overrides, base=get_export_preset(preset_id).to_config())
