from framecast.schemas.composition import Composition, CompositionAsset, SubtitleCue, SubtitleWord
from framecast.schemas.export_config import (
    DEFAULT_EXPORT_CONFIG,
    ExportConfig,
    TextAnimationConfig,
    TransitionConfig,
    VisualizerConfig,
    merge_export_config,
)

__all__ = [
    "Composition",
    "CompositionAsset",
    "SubtitleCue",
    "SubtitleWord",
    "DEFAULT_EXPORT_CONFIG",
    "ExportConfig",
    "TextAnimationConfig",
    "TransitionConfig",
    "VisualizerConfig",
    "merge_export_config",
]
