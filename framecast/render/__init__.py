from framecast.render.asset_resolver import ActiveAsset, AssetResolver
from framecast.render.frame_compositor import new_surface, render_frame, render_preview
from framecast.render.frequency import FrequencySampler
from framecast.render.media_cache import MediaCache
from framecast.render.text_renderer import SubtitleRenderer, render_text_with_wipe, word_progress

__all__ = [
    "ActiveAsset",
    "AssetResolver",
    "FrequencySampler",
    "MediaCache",
    "SubtitleRenderer",
    "new_surface",
    "render_frame",
    "render_preview",
    "render_text_with_wipe",
    "word_progress",
]
