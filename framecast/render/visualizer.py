"""Mirrored frequency-bar spectrum drawn into the visualizer zone."""

from collections.abc import Sequence

import numpy as np
from PIL import Image, ImageDraw, ImageFilter

from framecast.render.media_cache import MediaCache
from framecast.schemas.export_config import VisualizerConfig

# (position from baseline 0..1, (r, g, b), relative alpha)
COLOR_SCHEMES: dict[str, list[tuple[float, tuple[int, int, int], float]]] = {
    "dual-tone": [
        (0.0, (34, 211, 238), 0.5),
        (0.5, (34, 211, 238), 0.8),
        (1.0, (167, 139, 250), 1.0),
    ],
    "full-spectrum": [
        (0.0, (255, 0, 0), 1.0),
        (0.2, (255, 165, 0), 1.0),
        (0.4, (255, 255, 0), 1.0),
        (0.6, (0, 255, 0), 1.0),
        (0.8, (0, 0, 255), 1.0),
        (1.0, (128, 0, 128), 1.0),
    ],
    "monochrome": [
        (0.0, (255, 255, 255), 0.3),
        (1.0, (255, 255, 255), 1.0),
    ],
}

GLOW_COLOR = (34, 211, 238)
GLOW_ALPHA = 0.3
GLOW_RADIUS = 4


def smooth_frequencies(current: Sequence[int], previous: Sequence[int] | None) -> np.ndarray:
    values = np.asarray(current, dtype=np.float64)
    if previous is None:
        return values
    prev = np.asarray(previous, dtype=np.float64)
    n = min(len(values), len(prev))
    smoothed = values.copy()
    smoothed[:n] = (values[:n] + prev[:n]) / 2
    return smoothed


def bar_heights(
    current: Sequence[int],
    previous: Sequence[int] | None,
    zone_height: int,
    canvas_height: int,
    max_height_ratio: float,
) -> np.ndarray:
    max_height = min(zone_height, canvas_height * max_height_ratio)
    return smooth_frequencies(current, previous) / 255 * max_height


def _gradient(scheme: str, width: int, height: int, max_height: float, opacity: float) -> np.ndarray:
    """RGBA float array (height, width, 4); row 0 is the top of the zone."""
    stops = COLOR_SCHEMES.get(scheme, COLOR_SCHEMES["dual-tone"])
    positions = [s[0] for s in stops]
    distance = height - np.arange(height, dtype=np.float64) - 0.5
    pos = np.clip(distance / max_height if max_height > 0 else 0.0, 0.0, 1.0)

    column = np.empty((height, 4), dtype=np.float64)
    for channel in range(3):
        column[:, channel] = np.interp(pos, positions, [s[1][channel] for s in stops])
    column[:, 3] = np.interp(pos, positions, [s[2] for s in stops]) * opacity
    return np.broadcast_to(column[:, None, :], (height, width, 4))


def render_visualizer_layer(
    surface: Image.Image,
    zone: tuple[int, int, int, int],
    frequency: Sequence[int] | None,
    previous_frequency: Sequence[int] | None,
    config: VisualizerConfig,
    modern: bool,
    cache: MediaCache | None = None,
) -> None:
    """Draw the spectrum into ``zone`` (x, y, width, height), hard-clipped to it."""
    if frequency is None or len(frequency) == 0:
        return
    zx, zy, zw, zh = zone
    if zw <= 0 or zh <= 0:
        return

    heights = bar_heights(frequency, previous_frequency, zh, surface.height, config.max_height_ratio)
    if not np.any(heights > 0):
        return

    mask = Image.new("L", (zw, zh), 0)
    draw = ImageDraw.Draw(mask)
    center = zw / 2
    bar_w = config.bar_width
    radius = bar_w / 2 if modern else 0
    for i, bar_h in enumerate(heights):
        if bar_h <= 0:
            continue
        offset = i * (bar_w + config.bar_gap)
        top = zh - bar_h
        for left in (center + offset, center - offset - bar_w):
            box = [(round(left), round(top)), (round(left + bar_w) - 1, zh - 1)]
            if box[1][0] < box[0][0] or box[1][1] < box[0][1]:
                continue
            if radius >= 1:
                draw.rounded_rectangle(box, radius=radius, fill=255, corners=(True, True, False, False))
            else:
                draw.rectangle(box, fill=255)

    max_height = min(zh, surface.height * config.max_height_ratio)
    key = ("visualizer-gradient", config.color_scheme, zw, zh, max_height, config.opacity)
    if cache is not None:
        gradient = cache.style(key, lambda: _gradient(config.color_scheme, zw, zh, max_height, config.opacity))
    else:
        gradient = _gradient(config.color_scheme, zw, zh, max_height, config.opacity)

    coverage = np.asarray(mask, dtype=np.float64) / 255
    rgba = np.empty((zh, zw, 4), dtype=np.float64)
    rgba[..., :3] = gradient[..., :3]
    rgba[..., 3] = gradient[..., 3] * coverage * 255
    layer = Image.fromarray(np.rint(rgba).astype(np.uint8), "RGBA")

    if modern:
        halo = mask.filter(ImageFilter.GaussianBlur(radius=GLOW_RADIUS))
        halo = halo.point(lambda v: round(v * GLOW_ALPHA * config.opacity))
        glow = Image.new("RGBA", (zw, zh), GLOW_COLOR + (0,))
        glow.putalpha(halo)
        glow.alpha_composite(layer)
        layer = glow

    surface.paste(layer, (zx, zy), layer)
