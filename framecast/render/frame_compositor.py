"""Single-frame composition.

Layer structure (bottom to top):
L1: opaque background fill
L2: active asset, blended against the outgoing asset during a transition
L3: frequency visualizer (optional)
L4: active subtitle cues

A frame depends only on the arguments to ``render_frame``; MediaCache only
memoizes decoding, so frames may be rendered in any order.
"""

import io
from collections.abc import Sequence

from PIL import Image

from framecast.config import get_settings
from framecast.constants.layout import get_layout
from framecast.render.asset_resolver import AssetResolver
from framecast.render.media_cache import MediaCache
from framecast.render.text_renderer import SubtitleRenderer
from framecast.render.transitions import apply_transition, draw_asset
from framecast.render.visualizer import render_visualizer_layer
from framecast.schemas.composition import Composition, CompositionAsset, SubtitleCue
from framecast.schemas.export_config import ExportConfig, merge_export_config

BACKGROUND_COLOR = (0, 0, 0)
# Slot length assumed for the last still, which has no successor
DEFAULT_SLOT_SECONDS = 10.0


def new_surface(width: int, height: int) -> Image.Image:
    return Image.new("RGB", (width, height), BACKGROUND_COLOR)


def _slot_progress(asset: CompositionAsset, time: float, slot_end: float | None) -> float:
    if slot_end is not None:
        length = slot_end - asset.start_time
    else:
        length = asset.native_duration or DEFAULT_SLOT_SECONDS
    if length <= 0:
        return 1.0
    return min(1.0, max(0.0, (time - asset.start_time) / length))


def _asset_image(asset: CompositionAsset, time: float, media: MediaCache, fps: int) -> Image.Image:
    if asset.kind == "video":
        duration = asset.native_duration or media.video_duration(asset.media)
        position = AssetResolver.read_position(asset, time, duration, frame_interval=1 / fps)
        return media.video_frame(asset.media, position, fps)
    return media.image(asset.media)


def render_frame(
    surface: Image.Image,
    width: int,
    height: int,
    time: float,
    assets: Sequence[CompositionAsset],
    subtitles: Sequence[SubtitleCue],
    frequency: Sequence[int] | None,
    previous_frequency: Sequence[int] | None,
    config: ExportConfig,
    media: MediaCache,
    fps: int = 24,
) -> Image.Image:
    """Paint the frame at ``time`` onto ``surface`` and return it."""
    if surface.size != (width, height) or surface.mode != "RGB":
        raise ValueError(f"surface must be RGB {width}x{height}, got {surface.mode} {surface.size}")

    # L1
    surface.paste(BACKGROUND_COLOR, (0, 0, width, height))

    # L2
    resolver = AssetResolver(assets, config.transition.duration_seconds)
    active = resolver.active_asset(time)
    modern = config.use_modern_effects
    if active.current is not None:
        current = active.current
        current_image = _asset_image(current, time, media, fps)
        current_progress = _slot_progress(current, time, active.next_start)

        if active.in_transition and config.transition.type != "none":
            previous = active.previous
            previous_image = _asset_image(previous, time, media, fps)
            previous_progress = _slot_progress(previous, time, current.start_time)
            apply_transition(
                surface,
                config.transition.type,
                active.blend_progress,
                (previous, previous_image, previous_progress),
                (current, current_image, current_progress),
                modern,
            )
        else:
            draw_asset(surface, current_image, current, current_progress, 1.0, modern)

    # L3
    layout = get_layout(config.orientation)
    # Story compositions carry no spectrum overlay
    if config.visualizer.enabled and config.content_mode == "music":
        render_visualizer_layer(
            surface,
            layout.visualizer.to_pixels(width, height),
            frequency,
            previous_frequency,
            config.visualizer,
            modern,
            media,
        )

    # L4
    subtitle_time = time + config.sync_offset_ms / 1000
    active_cues = [cue for cue in subtitles if cue.is_active(subtitle_time)]
    if active_cues:
        SubtitleRenderer(media, config).render(surface, active_cues, subtitle_time, active.next_start)

    return surface


def render_preview(
    composition: Composition,
    time: float,
    config: ExportConfig | dict | None = None,
    media: MediaCache | None = None,
    frequency: Sequence[int] | None = None,
    size: tuple[int, int] | None = None,
    fps: int = 24,
) -> bytes:
    """Render one frame of a composition as PNG bytes (timeline preview)."""
    resolved = config if isinstance(config, ExportConfig) else merge_export_config(config)
    if size is None:
        size = get_settings().resolution(resolved.orientation)
    width, height = size
    cache = media if media is not None else MediaCache()
    try:
        surface = render_frame(
            new_surface(width, height),
            width,
            height,
            time,
            composition.assets,
            composition.subtitles,
            frequency,
            None,
            resolved,
            cache,
            fps=fps,
        )
    finally:
        if media is None:
            cache.clear()
    buf = io.BytesIO()
    surface.save(buf, "PNG")
    return buf.getvalue()
