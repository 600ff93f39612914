from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

AssetKind = Literal["image", "video"]
AssetFit = Literal["cover", "contain"]


class CompositionAsset(BaseModel):
    """A still or clip shown from start_time until the next asset starts."""

    model_config = ConfigDict(populate_by_name=True)

    start_time: float = Field(alias="startTime", ge=0)
    kind: AssetKind = "image"
    # Local path or http(s) URL
    media: str
    native_duration: float | None = Field(default=None, alias="nativeDuration", gt=0)
    # cover = full-bleed background, contain = fit-centered standalone image
    fit: AssetFit = "cover"


class SubtitleWord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    word: str
    start_time: float = Field(alias="startTime")
    end_time: float = Field(alias="endTime")


class SubtitleCue(BaseModel):
    """Subtitle entry with an optional per-word timing track."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    start_time: float = Field(alias="startTime")
    end_time: float = Field(alias="endTime")
    text: str
    words: list[SubtitleWord] | None = None
    translation: str | None = None

    @model_validator(mode="after")
    def check_timing(self) -> "SubtitleCue":
        if self.end_time <= self.start_time:
            raise ValueError(f"cue {self.id}: endTime must be greater than startTime")
        previous_start = self.start_time
        for word in self.words or []:
            if word.start_time < previous_start or word.end_time < word.start_time:
                raise ValueError(f"cue {self.id}: word spans must be monotonic")
            if word.end_time > self.end_time:
                raise ValueError(f"cue {self.id}: word '{word.word}' ends after the cue")
            previous_start = word.start_time
        return self

    @property
    def has_word_timing(self) -> bool:
        return bool(self.words)

    def is_active(self, time: float) -> bool:
        return self.start_time <= time < self.end_time


class Composition(BaseModel):
    """Full timed model handed to an exporter."""

    model_config = ConfigDict(populate_by_name=True)

    # Narration/music track, local path or http(s) URL
    audio: str
    assets: list[CompositionAsset] = Field(default_factory=list)
    subtitles: list[SubtitleCue] = Field(default_factory=list)
    # Overrides the decoded audio duration when set
    duration: float | None = Field(default=None, gt=0)

    @field_validator("assets")
    @classmethod
    def sort_assets(cls, v: list[CompositionAsset]) -> list[CompositionAsset]:
        # Stable sort keeps caller order for equal start times
        return sorted(v, key=lambda a: a.start_time)
