"""Export configuration and its default-merging rules."""

from collections.abc import Mapping
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

TransitionType = Literal["none", "fade", "dissolve", "zoom", "slide"]
ColorScheme = Literal["dual-tone", "full-spectrum", "monochrome"]
RevealDirection = Literal["ltr", "rtl", "center-out", "center-in"]


class TransitionConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: TransitionType = "dissolve"
    duration_seconds: float = Field(default=1.5, alias="durationSeconds", ge=0)


class VisualizerConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    enabled: bool = True
    opacity: float = Field(default=0.15, ge=0, le=1)
    max_height_ratio: float = Field(default=0.25, alias="maxHeightRatio", ge=0, le=1)
    bar_width: int = Field(default=3, alias="barWidth", ge=1)
    bar_gap: int = Field(default=2, alias="barGap", ge=0)
    color_scheme: ColorScheme = Field(default="dual-tone", alias="colorScheme")


class TextAnimationConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    reveal_direction: RevealDirection = Field(default="ltr", alias="revealDirection")
    # Reveal window for timed cues when word_reveal is off
    reveal_duration_seconds: float = Field(default=0.3, alias="revealDurationSeconds", ge=0)
    word_reveal: bool = Field(default=True, alias="wordReveal")


class ExportConfig(BaseModel):
    """Per-export rendering options, resolved once before the first frame."""

    model_config = ConfigDict(populate_by_name=True)

    orientation: Literal["landscape", "portrait"] = "landscape"
    use_modern_effects: bool = Field(default=True, alias="useModernEffects")
    transition: TransitionConfig = Field(default_factory=TransitionConfig)
    visualizer: VisualizerConfig = Field(default_factory=VisualizerConfig)
    text_animation: TextAnimationConfig = Field(
        default_factory=TextAnimationConfig, alias="textAnimation"
    )
    content_mode: Literal["music", "story"] = Field(default="music", alias="contentMode")
    # Shifts subtitle timing against the audio; positive shows words earlier
    sync_offset_ms: float = Field(default=0.0, alias="syncOffsetMs")
    # Fade subtitles out over the last 0.3s before an asset cut
    fade_out_before_cut: bool = Field(default=True, alias="fadeOutBeforeCut")
    # Per-export frame rate and frame JPEG quality; None falls back to Settings
    fps: int | None = Field(default=None, gt=0)
    jpeg_quality: int | None = Field(default=None, alias="jpegQuality", ge=1, le=100)


DEFAULT_EXPORT_CONFIG = ExportConfig()

# Sub-objects merged field by field instead of replaced
_NESTED_FIELDS: dict[str, type[BaseModel]] = {
    "visualizer": VisualizerConfig,
    "text_animation": TextAnimationConfig,
}


def _to_field_names(model_cls: type[BaseModel], data: Mapping[str, Any]) -> dict[str, Any]:
    """Rewrite camelCase aliases to attribute names."""
    aliases = {
        info.alias: name for name, info in model_cls.model_fields.items() if info.alias
    }
    return {aliases.get(key, key): value for key, value in data.items()}


def merge_export_config(
    overrides: Mapping[str, Any] | ExportConfig | None = None,
    base: ExportConfig | None = None,
) -> ExportConfig:
    """Resolve an export config against ``base`` (DEFAULT_EXPORT_CONFIG by default).

    Top-level keys replace the base value; inside ``visualizer`` and
    ``textAnimation`` only the given sub-fields replace it and the rest are
    inherited. Both camelCase and snake_case keys are accepted.
    """
    base = (base or DEFAULT_EXPORT_CONFIG).model_dump()
    if overrides is None:
        return ExportConfig.model_validate(base)
    if isinstance(overrides, ExportConfig):
        overrides = overrides.model_dump(exclude_unset=True)

    normalized = _to_field_names(ExportConfig, overrides)
    merged = dict(base)
    for key, value in normalized.items():
        nested_cls = _NESTED_FIELDS.get(key)
        if nested_cls is not None and isinstance(value, Mapping):
            merged[key] = {**base[key], **_to_field_names(nested_cls, value)}
        elif value is not None:
            merged[key] = value
    return ExportConfig.model_validate(merged)
