"""Tests for the spectrum visualizer layer and layout zones."""

import numpy as np
import pytest
from PIL import Image

from framecast.constants.layout import LAYOUT_PRESETS, get_layout
from framecast.render.media_cache import MediaCache
from framecast.render.visualizer import bar_heights, render_visualizer_layer, smooth_frequencies
from framecast.schemas.export_config import VisualizerConfig

ZONE = (0, 60, 200, 40)


class TestBarHeights:
    """Tests for smoothing and height scaling."""

    def test_smoothing_averages_with_previous(self):
        """Test that bar heights average with the previous frame."""
        assert list(smooth_frequencies([100, 200], [0, 100])) == [50, 150]

    def test_no_previous_keeps_current(self):
        """Test that heights are unchanged without a previous frame."""
        assert list(smooth_frequencies([10, 20], None)) == [10, 20]

    def test_heights_capped_by_zone_and_ratio(self):
        """Test that heights are capped by the zone and maxHeightRatio."""
        heights = bar_heights([255], None, zone_height=40, canvas_height=100, max_height_ratio=0.25)
        assert heights[0] == pytest.approx(25)
        heights = bar_heights([255], None, zone_height=20, canvas_height=100, max_height_ratio=0.25)
        assert heights[0] == pytest.approx(20)


class TestRenderVisualizerLayer:
    """Tests for render_visualizer_layer."""

    def test_silence_draws_nothing(self):
        """Test that silence draws nothing."""
        surface = Image.new("RGB", (200, 100), (0, 0, 0))
        render_visualizer_layer(surface, ZONE, np.zeros(64, dtype=np.uint8), None, VisualizerConfig(), True)
        assert surface.getbbox() is None

    def test_missing_frequency_draws_nothing(self):
        """Test that missing frequency data draws nothing."""
        surface = Image.new("RGB", (200, 100), (0, 0, 0))
        render_visualizer_layer(surface, ZONE, None, None, VisualizerConfig(), True)
        assert surface.getbbox() is None

    def test_bars_are_clipped_to_zone(self):
        """Test that bars stay inside the zone."""
        surface = Image.new("RGB", (200, 100), (0, 0, 0))
        config = VisualizerConfig(opacity=1.0, max_height_ratio=1.0)
        render_visualizer_layer(surface, ZONE, np.full(64, 255, dtype=np.uint8), None, config, True)
        left, top, right, bottom = surface.getbbox()
        assert top >= 60 and bottom <= 100

    def test_bars_mirrored_around_center(self):
        """Test that bars are mirrored around the zone center."""
        surface = Image.new("RGB", (200, 100), (0, 0, 0))
        freq = np.zeros(64, dtype=np.uint8)
        freq[0] = 255
        config = VisualizerConfig(opacity=1.0, max_height_ratio=1.0)
        render_visualizer_layer(surface, ZONE, freq, None, config, modern=False)
        # First bar sits on both sides of the zone center
        assert surface.getpixel((101, 99)) != (0, 0, 0)
        assert surface.getpixel((98, 99)) != (0, 0, 0)
        assert surface.getpixel((20, 99)) == (0, 0, 0)

    def test_opacity_scales_output(self):
        """Test that opacity scales the drawn bars."""
        freq = np.full(64, 200, dtype=np.uint8)
        faint = Image.new("RGB", (200, 100), (0, 0, 0))
        strong = Image.new("RGB", (200, 100), (0, 0, 0))
        render_visualizer_layer(faint, ZONE, freq, None, VisualizerConfig(opacity=0.15), False)
        render_visualizer_layer(strong, ZONE, freq, None, VisualizerConfig(opacity=1.0), False)
        assert sum(faint.convert("L").getdata()) < sum(strong.convert("L").getdata())

    @pytest.mark.parametrize("scheme", ["dual-tone", "full-spectrum", "monochrome"])
    def test_color_schemes_render(self, scheme):
        """Test that every color scheme renders."""
        surface = Image.new("RGB", (200, 100), (0, 0, 0))
        config = VisualizerConfig(opacity=1.0, color_scheme=scheme)
        render_visualizer_layer(surface, ZONE, np.full(64, 255, dtype=np.uint8), None, config, True,
                                MediaCache(font_candidates=[]))
        assert surface.getbbox() is not None


class TestLayoutZones:
    """Tests for orientation zone presets."""

    @pytest.mark.parametrize("orientation", ["landscape", "portrait"])
    def test_zones_never_overlap(self, orientation):
        """Test that layout zones never overlap."""
        layout = get_layout(orientation)
        zones = [layout.visualizer, layout.text, layout.translation]
        for i, a in enumerate(zones):
            for b in zones[i + 1:]:
                assert not a.overlaps(b)

    def test_zones_inside_frame(self):
        """Test that layout zones lie inside the frame."""
        for layout in LAYOUT_PRESETS.values():
            for zone in (layout.visualizer, layout.text, layout.translation):
                assert zone.x >= 0 and zone.y >= 0
                assert zone.x + zone.width <= 1 and zone.y + zone.height <= 1

    def test_portrait_uses_smaller_font(self):
        """Test that portrait layout uses a smaller font."""
        assert get_layout("portrait").font_size == 36
        assert get_layout("landscape").font_size == 42
