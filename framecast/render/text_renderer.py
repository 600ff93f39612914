"""Subtitle text rendering with per-word directional wipes.

Features:
- Word reveal progress from word timing
- Ghost pass (dim full text) under a clipped revealed pass
- ltr / rtl / center-out / center-in wipes, RTL-script aware
- Wrapped cue layout on a rounded background bar, optional translation line
"""

import math
import re
from dataclasses import dataclass

from PIL import Image, ImageChops, ImageDraw, ImageFilter, ImageFont

from framecast.constants.layout import get_layout
from framecast.render.media_cache import MediaCache
from framecast.schemas.composition import SubtitleCue
from framecast.schemas.export_config import ExportConfig

Font = ImageFont.FreeTypeFont | ImageFont.ImageFont

RTL_PATTERN = re.compile(r"[\u0590-\u05FF\u0600-\u06FF\u0750-\u077F\u08A0-\u08FF\uFB1D-\uFDFF\uFE70-\uFEFF]")

# Shortest reveal window for a word; guards zero-length spans
MIN_WORD_REVEAL = 0.1
FADE_OUT_BEFORE_CUT = 0.3


@dataclass
class TextStyle:
    """Colors and proportions for the two text passes."""

    ghost_color: tuple[int, int, int] = (255, 255, 255)
    ghost_alpha: float = 0.4
    stroke_color: tuple[int, int, int] = (0, 0, 0)
    stroke_alpha: float = 0.5
    shadow_alpha: float = 0.6
    reveal_color: tuple[int, int, int] = (255, 255, 255)
    glow_color: tuple[int, int, int] = (255, 215, 100)
    glow_alpha: float = 0.8
    background_color: tuple[int, int, int] = (0, 0, 0)
    background_alpha: float = 0.70
    background_radius: int = 8
    background_padding: tuple[int, int] = (20, 10)
    line_height: float = 1.3
    clip_height: float = 1.6


DEFAULT_STYLE = TextStyle()


def _clamp(value: float) -> float:
    return min(1.0, max(0.0, value))


def is_rtl(text: str) -> bool:
    return RTL_PATTERN.search(text) is not None


def resolve_direction(direction: str, rtl: bool) -> str:
    """Right-to-left text forces plain ltr/rtl wipes to rtl."""
    if rtl and direction in ("ltr", "rtl"):
        return "rtl"
    return direction


def word_progress(time: float, cue: SubtitleCue) -> list[float]:
    """Per-word reveal progress in [0, 1].

    Without word timing the cue is a single unit, fully revealed from its
    start time.
    """
    if not cue.words:
        return [1.0 if time >= cue.start_time else 0.0]
    return [
        _clamp((time - word.start_time) / max(MIN_WORD_REVEAL, word.end_time - word.start_time))
        for word in cue.words
    ]


def _scale_mask(mask: Image.Image, factor: float) -> Image.Image:
    if factor >= 1.0:
        return mask
    return mask.point(lambda v: round(v * factor))


def _fill(layer: Image.Image, color: tuple[int, int, int], mask: Image.Image) -> None:
    solid = Image.new("RGBA", layer.size, color + (0,))
    solid.putalpha(mask)
    layer.alpha_composite(solid)


def _font_size(font: Font) -> int:
    return int(getattr(font, "size", 16))


def reveal_span(text_width: float, progress: float, direction: str) -> tuple[float, float]:
    """Horizontal (start, end) of the revealed clip, relative to the text's left edge."""
    if direction == "rtl":
        width = text_width * progress
        return text_width - width, text_width
    if direction == "center-out":
        width = text_width * progress
        left = (text_width - width) / 2
        return left, left + width
    if direction == "center-in":
        width = text_width * (1 - progress)
        left = (text_width - width) / 2
        return left, left + width
    return 0.0, text_width * progress


def render_text_with_wipe(
    surface: Image.Image,
    text: str,
    x: float,
    y: float,
    font: Font,
    progress: float,
    direction: str = "ltr",
    rtl: bool = False,
    opacity: float = 1.0,
    glow: bool = True,
    style: TextStyle = DEFAULT_STYLE,
) -> float:
    """Draw ``text`` with its left edge at ``x`` and vertical center at ``y``.

    Returns the advance width of the text.
    """
    text_width = font.getlength(text)
    if not text or opacity <= 0:
        return text_width

    direction = resolve_direction(direction, rtl)
    size = _font_size(font)
    pad = max(4, round(size * 0.4))
    layer_w = math.ceil(text_width) + pad * 2
    layer_h = round(size * style.clip_height) + pad * 2
    origin = (pad, layer_h / 2)
    stroke_width = max(1, round(size / 14))

    # Alpha masks are drawn once and reused for every pass
    text_mask = Image.new("L", (layer_w, layer_h), 0)
    ImageDraw.Draw(text_mask).text(origin, text, font=font, fill=255, anchor="lm")
    stroke_mask = Image.new("L", (layer_w, layer_h), 0)
    ImageDraw.Draw(stroke_mask).text(
        origin, text, font=font, fill=255, anchor="lm",
        stroke_width=stroke_width, stroke_fill=255,
    )

    layer = Image.new("RGBA", (layer_w, layer_h), (0, 0, 0, 0))

    # Ghost pass
    shadow = stroke_mask.filter(ImageFilter.GaussianBlur(radius=max(1, size / 8)))
    _fill(layer, style.stroke_color, _scale_mask(shadow, style.shadow_alpha * opacity))
    _fill(layer, style.stroke_color, _scale_mask(stroke_mask, style.stroke_alpha * opacity))
    _fill(layer, style.ghost_color, _scale_mask(text_mask, style.ghost_alpha * opacity))

    # Revealed pass
    if progress > 0:
        if progress >= 1 and direction != "center-in":
            revealed = text_mask
        else:
            start, end = reveal_span(text_width, progress, direction)
            clip = Image.new("L", (layer_w, layer_h), 0)
            left, right = round(pad + start), round(pad + end)
            if right > left:
                ImageDraw.Draw(clip).rectangle([(left, 0), (right - 1, layer_h - 1)], fill=255)
            revealed = ImageChops.multiply(text_mask, clip)
        if glow:
            halo = revealed.filter(ImageFilter.GaussianBlur(radius=max(1, size / 6)))
            _fill(layer, style.glow_color, _scale_mask(halo, style.glow_alpha * opacity))
        _fill(layer, style.reveal_color, _scale_mask(revealed, opacity))

    surface.paste(layer, (round(x) - pad, round(y - layer_h / 2)), layer)
    return text_width


@dataclass
class _Line:
    words: list[str]
    indices: list[int]


class SubtitleRenderer:
    """Lays out and draws the active cues inside the text zone."""

    def __init__(self, cache: MediaCache, config: ExportConfig, style: TextStyle = DEFAULT_STYLE):
        self.cache = cache
        self.config = config
        self.style = style
        self.layout = get_layout(config.orientation)

    def _scale(self, surface: Image.Image) -> float:
        return min(surface.size) / 1080

    def _wrap(self, words: list[str], font: Font, max_width: float) -> list[_Line]:
        lines: list[_Line] = []
        current = _Line([], [])
        current_width = 0.0
        for idx, word in enumerate(words):
            word_width = font.getlength(word + " ")
            if current.words and current_width + word_width > max_width:
                lines.append(current)
                current = _Line([], [])
                current_width = 0.0
            current.words.append(word)
            current.indices.append(idx)
            current_width += word_width
        if current.words:
            lines.append(current)
        return lines

    def subtitle_opacity(self, time: float, slot_end: float | None) -> float:
        if not self.config.fade_out_before_cut or slot_end is None:
            return 1.0
        remaining = slot_end - time
        if 0 < remaining < FADE_OUT_BEFORE_CUT:
            return remaining / FADE_OUT_BEFORE_CUT
        return 1.0

    def render(
        self,
        surface: Image.Image,
        cues: list[SubtitleCue],
        time: float,
        slot_end: float | None = None,
    ) -> None:
        if not cues:
            return
        opacity = self.subtitle_opacity(time, slot_end)
        if opacity <= 0:
            return

        scale = self._scale(surface)
        font = self.cache.font(max(8, round(self.layout.font_size * scale)))
        zx, zy, zw, zh = self.layout.text.to_pixels(*surface.size)
        max_width = zw - self.layout.text_margin * scale
        line_height = _font_size(font) * self.style.line_height
        pad_x, pad_y = (round(p * scale) for p in self.style.background_padding)

        # Blank cues have no lines to lay out
        blocks = [block for block in (self._plan(cue, time, font, max_width) for cue in cues) if block[1]]
        block_heights = [len(lines) * line_height + pad_y * 2 for _, lines, _ in blocks]
        y = zy + zh / 2 - (sum(block_heights) + pad_y * (len(blocks) - 1)) / 2

        for (cue, lines, progress), block_height in zip(blocks, block_heights):
            self._draw_block(surface, cue, lines, progress, font, (zx, zw), y, line_height, (pad_x, pad_y), opacity)
            y += block_height + pad_y

        for cue in cues:
            if cue.translation:
                self._draw_translation(surface, cue.translation, scale, opacity)

    def _plan(self, cue: SubtitleCue, time: float, font: Font, max_width: float):
        """Split a cue into wrapped lines plus the progress to draw them with.

        Progress is per word when word reveal is on, otherwise one value for
        the whole cue.
        """
        animation = self.config.text_animation
        if cue.words and animation.word_reveal:
            words = [w.word for w in cue.words]
            progress: list[float] | float = word_progress(time, cue)
        else:
            words = cue.text.split()
            if cue.words and animation.reveal_duration_seconds > 0:
                progress = _clamp((time - cue.start_time) / animation.reveal_duration_seconds)
            else:
                progress = 1.0 if time >= cue.start_time else 0.0
        return cue, self._wrap(words, font, max_width), progress

    def _draw_block(self, surface, cue, lines, progress, font, zone_x, top, line_height, padding, opacity) -> None:
        zx, zw = zone_x
        pad_x, pad_y = padding
        style = self.style
        rtl = is_rtl(cue.text)
        direction = self.config.text_animation.reveal_direction
        glow = self.config.use_modern_effects
        space = font.getlength(" ")

        line_widths = [font.getlength(" ".join(line.words)) for line in lines]
        bg_w = max(line_widths) + pad_x * 2
        bg_h = len(lines) * line_height + pad_y * 2
        bg_x = zx + (zw - bg_w) / 2
        bar = Image.new("RGBA", (math.ceil(bg_w), math.ceil(bg_h)), (0, 0, 0, 0))
        ImageDraw.Draw(bar).rounded_rectangle(
            [(0, 0), (bar.width - 1, bar.height - 1)],
            radius=style.background_radius,
            fill=style.background_color + (round(255 * style.background_alpha * opacity),),
        )
        surface.paste(bar, (round(bg_x), round(top)), bar)

        for line_no, (line, line_width) in enumerate(zip(lines, line_widths)):
            y = top + pad_y + line_no * line_height + line_height / 2
            if isinstance(progress, float):
                x = zx + (zw - line_width) / 2
                render_text_with_wipe(
                    surface, " ".join(line.words), x, y, font, progress,
                    direction, rtl, opacity, glow, style,
                )
                continue

            x = zx + (zw + line_width) / 2 if rtl else zx + (zw - line_width) / 2
            for word, idx in zip(line.words, line.indices):
                word_width = font.getlength(word)
                if rtl:
                    x -= word_width
                render_text_with_wipe(
                    surface, word, x, y, font, progress[idx],
                    direction, rtl, opacity, glow, style,
                )
                x = x - space if rtl else x + word_width + space

    def _draw_translation(self, surface: Image.Image, text: str, scale: float, opacity: float) -> None:
        zx, zy, zw, zh = self.layout.translation.to_pixels(*surface.size)
        font = self.cache.font(max(8, round(self.layout.font_size * 0.6 * scale)))
        width = font.getlength(text)
        render_text_with_wipe(
            surface, text, zx + (zw - width) / 2, zy + zh / 2, font, 1.0,
            rtl=is_rtl(text), opacity=opacity * 0.85, glow=False, style=self.style,
        )
