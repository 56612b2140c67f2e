"""
Unit tests for whitespace auto-crop.
"""

import pytest
from PIL import Image, ImageDraw

from note_forge.render.crop import (
    ALPHA_THRESHOLD,
    BACKGROUND_TOLERANCE,
    CROP_PADDING,
    BoundingBox,
    auto_crop,
    find_content_bounds,
    is_content_pixel,
    pad_box,
    scan
)


def white(width, height, mode="RGBA"):
    color = (255, 255, 255, 255) if mode == "RGBA" else (255, 255, 255)
    return Image.new(mode, (width, height), color)


class TestIsContentPixel:
    """Test pixel classification."""

    def test_background_is_not_content(self):
        assert not is_content_pixel(255, 255, 255, 255)

    def test_near_background_within_tolerance(self):
        shade = 255 - BACKGROUND_TOLERANCE
        assert not is_content_pixel(shade, shade, shade, 255)
        assert is_content_pixel(shade - 1, 255, 255, 255)

    def test_transparent_pixels_ignored(self):
        assert not is_content_pixel(0, 0, 0, ALPHA_THRESHOLD)
        assert is_content_pixel(0, 0, 0, ALPHA_THRESHOLD + 1)


class TestFindContentBounds:
    """Test bounding box detection on raw RGBA buffers."""

    def test_single_block(self):
        image = white(50, 40)
        ImageDraw.Draw(image).rectangle([10, 5, 19, 14], fill=(0, 0, 0, 255))

        box = find_content_bounds(image.tobytes(), 50, 40)

        assert box == BoundingBox(10, 5, 19, 14)
        assert box.width == 10
        assert box.height == 10

    def test_scattered_pixels(self):
        image = white(30, 30)
        image.putpixel((3, 20), (200, 0, 0, 255))
        image.putpixel((25, 4), (0, 0, 200, 255))

        assert find_content_bounds(image.tobytes(), 30, 30) == BoundingBox(3, 4, 25, 20)

    def test_blank_buffer(self):
        assert find_content_bounds(white(20, 20).tobytes(), 20, 20) is None

    def test_size_mismatch(self):
        with pytest.raises(ValueError, match="expected"):
            find_content_bounds(b"\x00" * 10, 2, 2)


class TestPadBox:
    """Test padding and clamping."""

    def test_padding_within_bounds(self):
        assert pad_box(BoundingBox(20, 20, 30, 30), 5, 100, 100) == BoundingBox(15, 15, 35, 35)

    def test_padding_clamped(self):
        assert pad_box(BoundingBox(2, 3, 97, 98), 10, 100, 100) == BoundingBox(0, 0, 99, 99)


class TestAutoCrop:
    """Test auto_crop on Pillow images."""

    def test_crops_to_padded_content(self):
        image = white(400, 300, mode="RGB")
        ImageDraw.Draw(image).rectangle([100, 80, 199, 129], fill=(30, 60, 90))

        cropped = auto_crop(image)

        assert cropped.size == (100 + 2 * CROP_PADDING, 50 + 2 * CROP_PADDING)
        assert cropped.mode == "RGB"

    def test_padding_clamped_at_edges(self):
        image = white(100, 100)
        ImageDraw.Draw(image).rectangle([0, 0, 9, 9], fill=(0, 0, 0, 255))

        cropped = auto_crop(image, padding=5)

        assert cropped.size == (15, 15)

    def test_blank_image_returned_unchanged(self):
        image = white(64, 32)
        assert auto_crop(image) is image

    def test_scan_reports_bounds_without_cropping(self):
        image = white(50, 40, mode="RGB")
        ImageDraw.Draw(image).rectangle([5, 6, 14, 19], fill=(200, 0, 0))

        artifact = scan(image)

        assert artifact.image is image
        assert artifact.bounds == BoundingBox(5, 6, 14, 19)

    def test_scan_blank_image(self):
        assert scan(white(8, 8)).bounds is None
