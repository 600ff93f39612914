"""Tests for word reveal progress and wipe rendering."""

import pytest
from PIL import Image

from framecast.render.media_cache import MediaCache
from framecast.render.text_renderer import (
    SubtitleRenderer,
    is_rtl,
    render_text_with_wipe,
    resolve_direction,
    reveal_span,
    word_progress,
)
from framecast.schemas.composition import SubtitleCue
from framecast.schemas.export_config import merge_export_config


@pytest.fixture
def ab_cue():
    return SubtitleCue.model_validate({
        "id": "c1",
        "startTime": 0,
        "endTime": 3,
        "text": "a b",
        "words": [
            {"word": "a", "startTime": 0, "endTime": 1},
            {"word": "b", "startTime": 1, "endTime": 2},
        ],
    })


@pytest.fixture
def font():
    return MediaCache(font_candidates=[]).font(32)


class TestWordProgress:
    """Tests for per-word reveal progress."""

    def test_half_way_through_first_word(self, ab_cue):
        """Test progress half way through the first word."""
        assert word_progress(0.5, ab_cue) == [0.5, 0.0]

    def test_half_way_through_second_word(self, ab_cue):
        """Test progress half way through the second word."""
        assert word_progress(1.5, ab_cue) == [1.0, 0.5]

    def test_after_all_words(self, ab_cue):
        """Test that every word is revealed after the last word ends."""
        assert word_progress(3, ab_cue) == [1.0, 1.0]

    def test_before_cue(self, ab_cue):
        """Test that nothing is revealed before the cue."""
        assert word_progress(-1, ab_cue) == [0.0, 0.0]

    def test_progress_is_non_decreasing(self, ab_cue):
        """Test that word progress never goes down over time."""
        previous = [0.0, 0.0]
        for step in range(0, 31):
            current = word_progress(step / 10, ab_cue)
            assert all(c >= p for c, p in zip(current, previous))
            previous = current

    def test_zero_length_word_uses_minimum_window(self):
        """Test that a zero-length word uses the minimum reveal window."""
        cue = SubtitleCue.model_validate({
            "id": "c2", "startTime": 0, "endTime": 2, "text": "x",
            "words": [{"word": "x", "startTime": 1, "endTime": 1}],
        })
        assert word_progress(1.05, cue) == [pytest.approx(0.5)]

    def test_untimed_cue_reveals_at_start(self):
        """Test that a cue without word timing reveals at its start."""
        cue = SubtitleCue(id="c3", start_time=2, end_time=4, text="plain")
        assert word_progress(1.9, cue) == [0.0]
        assert word_progress(2.0, cue) == [1.0]


class TestRevealDirection:
    """Tests for wipe geometry and direction selection."""

    def test_ltr_span(self):
        """Test the left-to-right reveal span."""
        assert reveal_span(100, 0.25, "ltr") == (0.0, 25.0)

    def test_rtl_span(self):
        """Test the right-to-left reveal span."""
        assert reveal_span(100, 0.25, "rtl") == (75.0, 100.0)

    def test_center_out_span(self):
        """Test the center-out reveal span."""
        assert reveal_span(100, 0.5, "center-out") == (25.0, 75.0)

    def test_center_in_shrinks(self):
        """Test that the center-in span shrinks as progress grows."""
        assert reveal_span(100, 0.0, "center-in") == (0.0, 100.0)
        assert reveal_span(100, 1.0, "center-in") == (50.0, 50.0)

    def test_rtl_script_detected(self):
        """Test right-to-left script detection."""
        assert is_rtl("مرحبا")
        assert is_rtl("שלום")
        assert not is_rtl("hello")

    def test_rtl_text_forces_rtl_wipe(self):
        """Test that right-to-left text forces an rtl wipe."""
        assert resolve_direction("ltr", rtl=True) == "rtl"
        assert resolve_direction("center-out", rtl=True) == "center-out"
        assert resolve_direction("ltr", rtl=False) == "ltr"


class TestRenderTextWithWipe:
    """Tests for the two-pass wipe renderer."""

    def test_returns_text_width(self, font):
        """Test that the advance width is returned."""
        surface = Image.new("RGB", (400, 100), (0, 0, 0))
        width = render_text_with_wipe(surface, "Hello", 10, 50, font, 1.0)
        assert width == pytest.approx(font.getlength("Hello"))

    def test_revealed_text_is_brighter_than_ghost(self, font):
        """Test that revealed text is brighter than the ghost pass."""
        ghost = Image.new("RGB", (400, 100), (0, 0, 0))
        revealed = Image.new("RGB", (400, 100), (0, 0, 0))
        render_text_with_wipe(ghost, "Hello", 10, 50, font, 0.0, glow=False)
        render_text_with_wipe(revealed, "Hello", 10, 50, font, 1.0, glow=False)
        assert max(revealed.convert("L").getdata()) > max(ghost.convert("L").getdata())

    def test_partial_ltr_reveals_left_side_only(self, font):
        """Test that a partial ltr wipe reveals the left side only."""
        full = Image.new("RGB", (400, 100), (0, 0, 0))
        half = Image.new("RGB", (400, 100), (0, 0, 0))
        render_text_with_wipe(full, "MMMMMM", 10, 50, font, 1.0, glow=False)
        render_text_with_wipe(half, "MMMMMM", 10, 50, font, 0.5, glow=False)
        text_width = font.getlength("MMMMMM")
        right_box = (round(10 + text_width * 0.6), 0, round(10 + text_width), 100)
        left_box = (10, 0, round(10 + text_width * 0.4), 100)
        assert half.crop(left_box).tobytes() == full.crop(left_box).tobytes()
        assert half.crop(right_box).tobytes() != full.crop(right_box).tobytes()

    def test_empty_text_draws_nothing(self, font):
        """Test that empty text draws nothing."""
        surface = Image.new("RGB", (100, 50), (0, 0, 0))
        render_text_with_wipe(surface, "", 10, 25, font, 1.0)
        assert surface.getbbox() is None


class TestSubtitleRenderer:
    """Tests for cue layout on the frame."""

    def test_draws_inside_text_zone(self, ab_cue):
        """Test that cues are drawn inside the text zone."""
        config = merge_export_config({"visualizer": {"enabled": False}})
        surface = Image.new("RGB", (640, 360), (0, 0, 0))
        renderer = SubtitleRenderer(MediaCache(font_candidates=[]), config)
        renderer.render(surface, [ab_cue], 1.5)

        left, top, right, bottom = surface.getbbox()
        zx, zy, zw, zh = renderer.layout.text.to_pixels(640, 360)
        assert top >= zy - 1
        assert bottom <= zy + zh + 1

    def test_fade_out_before_cut(self):
        """Test subtitle fade out before an asset cut."""
        config = merge_export_config(None)
        renderer = SubtitleRenderer(MediaCache(font_candidates=[]), config)
        assert renderer.subtitle_opacity(4.85, slot_end=5.0) == pytest.approx(0.5)
        assert renderer.subtitle_opacity(3.0, slot_end=5.0) == 1.0
        assert renderer.subtitle_opacity(4.85, slot_end=None) == 1.0

    def test_fade_out_disabled(self):
        """Test that the fade out can be turned off."""
        config = merge_export_config({"fadeOutBeforeCut": False})
        renderer = SubtitleRenderer(MediaCache(font_candidates=[]), config)
        assert renderer.subtitle_opacity(4.9, slot_end=5.0) == 1.0

    def test_translation_line_drawn(self, ab_cue):
        """Test that a translation is drawn in the translation zone."""
        config = merge_export_config(None)
        with_translation = ab_cue.model_copy(update={"translation": "translated line"})
        plain = Image.new("RGB", (640, 360), (0, 0, 0))
        translated = Image.new("RGB", (640, 360), (0, 0, 0))
        SubtitleRenderer(MediaCache(font_candidates=[]), config).render(plain, [ab_cue], 1.5)
        SubtitleRenderer(MediaCache(font_candidates=[]), config).render(translated, [with_translation], 1.5)

        renderer = SubtitleRenderer(MediaCache(font_candidates=[]), config)
        box = renderer.layout.translation.to_pixels(640, 360)
        crop = (box[0], box[1], box[0] + box[2], box[1] + box[3])
        assert plain.crop(crop).getbbox() is None
        assert translated.crop(crop).getbbox() is not None

    @pytest.mark.parametrize("text", ["", "   "])
    def test_blank_cue_draws_nothing(self, text):
        """Test that a blank cue renders without error and draws nothing."""
        config = merge_export_config(None)
        blank = SubtitleCue(id="blank", start_time=0, end_time=2, text=text)
        surface = Image.new("RGB", (640, 360), (0, 0, 0))

        SubtitleRenderer(MediaCache(font_candidates=[]), config).render(surface, [blank], 1.0)

        assert surface.getbbox() is None

    def test_blank_cue_beside_real_cue(self, ab_cue):
        """Test that a blank cue does not change how other cues render."""
        config = merge_export_config(None)
        blank = SubtitleCue(id="blank", start_time=0, end_time=3, text=" ")
        alone = Image.new("RGB", (640, 360), (0, 0, 0))
        together = Image.new("RGB", (640, 360), (0, 0, 0))

        SubtitleRenderer(MediaCache(font_candidates=[]), config).render(alone, [ab_cue], 1.5)
        SubtitleRenderer(MediaCache(font_candidates=[]), config).render(together, [blank, ab_cue], 1.5)

        assert together.tobytes() == alone.tobytes()
