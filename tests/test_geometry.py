"""Tests for relative-to-pixel geometry resolution."""

import pytest

from storyreel.render.geometry import (
    FRAME_SIZES,
    FULL_FRAME,
    FrameSize,
    PixelRect,
    VideoStyle,
    effective_geometry,
    resolve_frame_size,
    resolve_geometry,
    to_pixels,
)
from storyreel.schemas.timeline import Geometry, MediaItem

LANDSCAPE = FrameSize(1920, 1080)


class TestFrameSize:
    """Tests for video style -> resolution mapping."""

    @pytest.mark.parametrize(
        "style,expected",
        [
            ("landscape", FrameSize(1920, 1080)),
            ("square", FrameSize(1080, 1080)),
            ("vertical", FrameSize(1080, 1920)),
        ],
    )
    def test_known_styles(self, style, expected):
        """Test each preset maps to its resolution."""
        assert resolve_frame_size(style) == expected

    def test_unknown_style_falls_back_to_landscape(self):
        """Test an unknown style renders as landscape."""
        assert resolve_frame_size("cinema") == FRAME_SIZES[VideoStyle.LANDSCAPE]

    def test_missing_style_falls_back_to_landscape(self):
        assert resolve_frame_size(None) == FrameSize(1920, 1080)


class TestEffectiveGeometry:
    """Tests for the item -> media -> full frame fallback chain."""

    def test_item_geometry_wins(self):
        """Test the timeline item's own geometry is used first."""
        item_geometry = Geometry(x=0.1, y=0.2, width=0.3, height=0.4)
        media = MediaItem(id="m1", type="image", x=0.5, y=0.5, width=0.5, height=0.5)

        assert effective_geometry(item_geometry, media) is item_geometry

    def test_media_defaults_used_per_field(self):
        """Test absent media x/y default to 0 and width/height to 1."""
        media = MediaItem(id="m1", type="image", width=0.5)

        geometry = effective_geometry(None, media)

        assert geometry.x == 0
        assert geometry.y == 0
        assert geometry.width == 0.5
        assert geometry.height == 1

    def test_full_frame_without_media(self):
        assert effective_geometry(None, None) == FULL_FRAME


class TestToPixels:
    """Tests for pixel conversion and clamping."""

    def test_full_frame(self):
        rect = to_pixels(Geometry(), LANDSCAPE)
        assert rect == PixelRect(x=0, y=0, width=1920, height=1080, rotation=0.0)

    def test_quarter_box(self):
        """Test relative values multiply the frame size."""
        rect = to_pixels(Geometry(x=0.5, y=0.5, width=0.25, height=0.25), LANDSCAPE)
        assert (rect.x, rect.y, rect.width, rect.height) == (960, 540, 480, 270)

    def test_rounds_half_up(self):
        """Test .5 values round up like the preview does."""
        rect = to_pixels(Geometry(x=0.25, y=0, width=0.25, height=1), FrameSize(1918, 100))
        # 0.25 * 1918 = 479.5
        assert rect.x == 480
        assert rect.width == 480

    def test_rotation_passed_through(self):
        rect = to_pixels(Geometry(rotation=45), LANDSCAPE)
        assert rect.rotation == 45

    def test_missing_rotation_is_zero(self):
        rect = to_pixels(Geometry(rotation=None), LANDSCAPE)
        assert rect.rotation == 0.0

    def test_negative_values_clamped(self):
        """Test values below 0 are clamped to the frame edge."""
        rect = to_pixels(Geometry(x=-0.2, y=-1, width=0.5, height=0.5), LANDSCAPE)
        assert rect.x == 0
        assert rect.y == 0

    def test_oversized_box_clamped_to_frame(self):
        """Test a box that would overflow is shrunk to end at the frame edge."""
        rect = to_pixels(Geometry(x=0.9, y=0.9, width=0.5, height=1.5), LANDSCAPE)
        assert rect.x == 1728
        assert rect.width == 1920 - 1728
        assert rect.y == 972
        assert rect.height == 1080 - 972

    def test_zero_size_box_is_at_least_one_pixel(self):
        rect = to_pixels(Geometry(x=1, y=1, width=0, height=0), LANDSCAPE)
        assert rect.width >= 1
        assert rect.height >= 1

    @pytest.mark.parametrize(
        "geometry",
        [
            Geometry(x=0, y=0, width=1, height=1),
            Geometry(x=0.99, y=0.99, width=1, height=1),
            Geometry(x=1.5, y=-3, width=2, height=0.01),
            Geometry(x=0.333, y=0.666, width=0.333, height=0.333),
        ],
    )
    @pytest.mark.parametrize("frame", list(FRAME_SIZES.values()))
    def test_rect_always_inside_frame(self, geometry, frame):
        """Test every resolved rectangle lies inside the output frame."""
        rect = to_pixels(geometry, frame)

        assert 0 <= rect.x < frame.width
        assert 0 <= rect.y < frame.height
        assert rect.x + rect.width <= frame.width
        assert rect.y + rect.height <= frame.height


class TestResolveGeometry:
    def test_resolves_media_defaults_to_pixels(self):
        media = MediaItem(id="m1", type="text", x=0.25, y=0.5, width=0.5, height=0.25)

        rect = resolve_geometry(None, media, LANDSCAPE)

        assert rect == PixelRect(x=480, y=540, width=960, height=270)
