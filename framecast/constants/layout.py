"""Frame layout presets.

Zones are stored as fractions of the frame so one preset serves any output
size. Within an orientation the zones are stacked top to bottom and never
overlap: the visualizer sits above the subtitle-safe text zone, and the
translation line sits below it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

Orientation = Literal["landscape", "portrait"]


@dataclass(frozen=True)
class Zone:
    """Rectangular frame sub-region in relative units (0..1)."""

    x: float
    y: float
    width: float
    height: float

    def to_pixels(self, frame_width: int, frame_height: int) -> tuple[int, int, int, int]:
        """Return (x, y, width, height) in whole pixels."""
        left = round(self.x * frame_width)
        top = round(self.y * frame_height)
        right = round((self.x + self.width) * frame_width)
        bottom = round((self.y + self.height) * frame_height)
        return left, top, right - left, bottom - top

    def overlaps(self, other: Zone) -> bool:
        return not (
            self.x + self.width <= other.x
            or other.x + other.width <= self.x
            or self.y + self.height <= other.y
            or other.y + other.height <= self.y
        )


@dataclass(frozen=True)
class LayoutPreset:
    visualizer: Zone
    text: Zone
    translation: Zone
    # Subtitle font size at a 1080px short edge
    font_size: int
    # Horizontal room reserved around wrapped subtitle lines, at 1080p
    text_margin: int


LAYOUT_PRESETS: dict[str, LayoutPreset] = {
    "landscape": LayoutPreset(
        visualizer=Zone(x=0.0, y=0.52, width=1.0, height=0.20),
        text=Zone(x=0.05, y=0.74, width=0.90, height=0.16),
        translation=Zone(x=0.05, y=0.905, width=0.90, height=0.075),
        font_size=42,
        text_margin=140,
    ),
    "portrait": LayoutPreset(
        visualizer=Zone(x=0.0, y=0.50, width=1.0, height=0.16),
        text=Zone(x=0.05, y=0.68, width=0.90, height=0.14),
        translation=Zone(x=0.05, y=0.83, width=0.90, height=0.08),
        font_size=36,
        text_margin=80,
    ),
}


def get_layout(orientation: str) -> LayoutPreset:
    return LAYOUT_PRESETS.get(orientation, LAYOUT_PRESETS["landscape"])
