"""Asset placement, Ken Burns motion and scene transitions.

All drawing goes onto an RGB surface. A placement is the float rectangle an
asset would cover on an infinite canvas; only its visible part is resampled
so large zooms stay cheap.
"""

import math
from dataclasses import dataclass

from PIL import Image

from framecast.schemas.composition import CompositionAsset

KEN_BURNS_MOVEMENTS = [
    "zoom_in",
    "zoom_out",
    "pan_left",
    "pan_right",
    "pan_up",
    "pan_down",
    "zoom_in_pan_left",
    "zoom_in_pan_right",
    "zoom_out_pan_up",
    "zoom_out_pan_down",
]

KEN_BURNS_INTENSITY = 0.18
KEN_BURNS_PAN_SCALE = 1.15
# Pan distance at a 1080px frame height
KEN_BURNS_PAN_PX = 80


@dataclass
class Placement:
    x: float
    y: float
    width: float
    height: float

    def transformed(self, frame_width: int, frame_height: int, zoom: float = 1.0, offset_x: float = 0.0) -> "Placement":
        """Scale about the frame center, then shift horizontally."""
        cx, cy = frame_width / 2, frame_height / 2
        return Placement(
            x=cx + (self.x - cx) * zoom + offset_x,
            y=cy + (self.y - cy) * zoom,
            width=self.width * zoom,
            height=self.height * zoom,
        )


def ease_in_out_cubic(t: float) -> float:
    return 4 * t * t * t if t < 0.5 else 1 - math.pow(-2 * t + 2, 3) / 2


def ken_burns_movement(asset_time: float) -> str:
    """Deterministic movement for an asset, spread across start times."""
    return KEN_BURNS_MOVEMENTS[math.floor(asset_time * 7.3) % len(KEN_BURNS_MOVEMENTS)]


def compute_placement(
    frame_width: int,
    frame_height: int,
    source_width: int,
    source_height: int,
    fit: str = "cover",
    progress: float = 0.0,
    modern: bool = False,
    asset_time: float = 0.0,
) -> Placement:
    if fit == "contain":
        scale = min(frame_width / source_width, frame_height / source_height)
        w, h = source_width * scale, source_height * scale
        return Placement((frame_width - w) / 2, (frame_height - h) / 2, w, h)

    base = max(frame_width / source_width, frame_height / source_height)
    if not modern:
        w, h = source_width * base, source_height * base
        return Placement((frame_width - w) / 2, (frame_height - h) / 2, w, h)

    movement = ken_burns_movement(asset_time)
    p = ease_in_out_cubic(min(1.0, max(0.0, progress)))
    pan = KEN_BURNS_PAN_PX * frame_height / 1080
    dx = dy = 0.0

    if movement.startswith("zoom_in"):
        scale = base * (1.0 + p * KEN_BURNS_INTENSITY)
    elif movement.startswith("zoom_out"):
        scale = base * (1.0 + KEN_BURNS_INTENSITY - p * KEN_BURNS_INTENSITY)
    else:
        scale = base * KEN_BURNS_PAN_SCALE

    if movement.startswith("zoom") and "pan" in movement:
        pan *= 0.6
    if movement.endswith("pan_left"):
        dx = -p * pan
    elif movement.endswith("pan_right"):
        dx = p * pan
    elif movement.endswith("pan_up"):
        dy = -p * pan
    elif movement.endswith("pan_down"):
        dy = p * pan

    w, h = source_width * scale, source_height * scale
    return Placement((frame_width - w) / 2 + dx, (frame_height - h) / 2 + dy, w, h)


def draw_image(surface: Image.Image, image: Image.Image, placement: Placement, opacity: float = 1.0) -> None:
    """Resample the visible part of ``image`` into ``surface``."""
    if opacity <= 0 or placement.width <= 0 or placement.height <= 0:
        return
    frame_width, frame_height = surface.size
    left = max(0, round(placement.x))
    top = max(0, round(placement.y))
    right = min(frame_width, round(placement.x + placement.width))
    bottom = min(frame_height, round(placement.y + placement.height))
    if right <= left or bottom <= top:
        return

    sx = image.width / placement.width
    sy = image.height / placement.height
    box = (
        max(0.0, (left - placement.x) * sx),
        max(0.0, (top - placement.y) * sy),
        min(float(image.width), (right - placement.x) * sx),
        min(float(image.height), (bottom - placement.y) * sy),
    )
    if box[2] <= box[0] or box[3] <= box[1]:
        return
    region = image.resize((right - left, bottom - top), Image.Resampling.BILINEAR, box=box)

    if opacity >= 1.0:
        surface.paste(region, (left, top))
    else:
        base = surface.crop((left, top, right, bottom))
        surface.paste(Image.blend(base, region, opacity), (left, top))


def draw_asset(
    surface: Image.Image,
    image: Image.Image,
    asset: CompositionAsset,
    progress: float,
    opacity: float,
    modern: bool,
    zoom: float = 1.0,
    offset_x: float = 0.0,
    ken_burns: bool = True,
) -> None:
    frame_width, frame_height = surface.size
    placement = compute_placement(
        frame_width,
        frame_height,
        image.width,
        image.height,
        fit=asset.fit,
        progress=progress,
        modern=modern and ken_burns,
        asset_time=asset.start_time,
    )
    if zoom != 1.0 or offset_x:
        placement = placement.transformed(frame_width, frame_height, zoom=zoom, offset_x=offset_x)
    draw_image(surface, image, placement, opacity)


def apply_transition(
    surface: Image.Image,
    transition_type: str,
    t: float,
    previous: tuple[CompositionAsset, Image.Image, float],
    current: tuple[CompositionAsset, Image.Image, float],
    modern: bool,
) -> None:
    """Blend outgoing ``previous`` into incoming ``current`` at progress ``t``.

    ``previous``/``current`` are (asset, decoded image, slot progress).
    """
    prev_asset, prev_image, prev_progress = previous
    cur_asset, cur_image, cur_progress = current
    width = surface.width

    if transition_type == "none":
        draw_asset(surface, cur_image, cur_asset, cur_progress, 1.0, modern)
    elif transition_type == "fade":
        # Through black: out over the first half, in over the second
        if t < 0.5:
            draw_asset(surface, prev_image, prev_asset, prev_progress, 1 - t * 2, modern)
        else:
            draw_asset(surface, cur_image, cur_asset, cur_progress, (t - 0.5) * 2, modern)
    elif transition_type == "zoom":
        draw_asset(
            surface, prev_image, prev_asset, prev_progress, 1 - t, modern,
            zoom=1 + t * 0.5, ken_burns=False,
        )
        draw_asset(surface, cur_image, cur_asset, cur_progress, t, modern)
    elif transition_type == "slide":
        offset = t * width
        draw_asset(surface, prev_image, prev_asset, prev_progress, 1.0, modern, offset_x=-offset)
        draw_asset(surface, cur_image, cur_asset, cur_progress, 1.0, modern, offset_x=width - offset)
    else:
        draw_asset(surface, prev_image, prev_asset, prev_progress, 1.0, modern)
        draw_asset(surface, cur_image, cur_asset, cur_progress, t, modern)
