"""
Whitespace auto-crop for rendered notes.

Scans the raw RGBA buffer for the smallest box holding non-background
pixels and trims everything outside it (plus padding).
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from PIL import Image

logger = logging.getLogger(__name__)

# Pixels at or below this alpha are treated as transparent
ALPHA_THRESHOLD = 10
# Max per-channel distance from BACKGROUND_COLOR still counted as background
BACKGROUND_TOLERANCE = 10
# Pixels kept around the detected content
CROP_PADDING = 16
BACKGROUND_COLOR: Tuple[int, int, int] = (255, 255, 255)


@dataclass(frozen=True)
class BoundingBox:
    """Content box in pixel coordinates; max bounds are inclusive."""
    min_x: int
    min_y: int
    max_x: int
    max_y: int

    @property
    def width(self) -> int:
        return self.max_x - self.min_x + 1

    @property
    def height(self) -> int:
        return self.max_y - self.min_y + 1

    def to_pil(self) -> Tuple[int, int, int, int]:
        """Half-open (left, upper, right, lower) box for ``Image.crop``."""
        return (self.min_x, self.min_y, self.max_x + 1, self.max_y + 1)


def is_content_pixel(
    r: int,
    g: int,
    b: int,
    a: int,
    background: Tuple[int, int, int] = BACKGROUND_COLOR,
    tolerance: int = BACKGROUND_TOLERANCE
) -> bool:
    """A pixel is content when it is visible and not background colored."""
    if a <= ALPHA_THRESHOLD:
        return False
    return (
        abs(r - background[0]) > tolerance
        or abs(g - background[1]) > tolerance
        or abs(b - background[2]) > tolerance
    )


def find_content_bounds(
    data: bytes,
    width: int,
    height: int,
    background: Tuple[int, int, int] = BACKGROUND_COLOR,
    tolerance: int = BACKGROUND_TOLERANCE
) -> Optional[BoundingBox]:
    """Find the minimal box containing every content pixel.

    Args:
        data: Row-major RGBA bytes, 4 bytes per pixel
        width: Image width in pixels
        height: Image height in pixels
        background: Page background color
        tolerance: Per-channel background tolerance

    Returns:
        BoundingBox, or None when the buffer holds no content

    Raises:
        ValueError: If the buffer size does not match the dimensions
    """
    stride = width * 4
    if len(data) != stride * height:
        raise ValueError(
            f"buffer holds {len(data)} bytes, expected {stride * height} for {width}x{height} RGBA"
        )

    # Rows matching a solid background row exactly cannot contain content
    blank_row = bytes((*background, 255)) * width

    min_x, min_y = width, height
    max_x, max_y = -1, -1

    for y in range(height):
        row_start = y * stride
        row = data[row_start:row_start + stride]
        if row == blank_row:
            continue

        for x in range(width):
            i = x * 4
            if is_content_pixel(row[i], row[i + 1], row[i + 2], row[i + 3], background, tolerance):
                if x < min_x:
                    min_x = x
                if x > max_x:
                    max_x = x
                if y < min_y:
                    min_y = y
                max_y = y

    if max_x < 0:
        return None
    return BoundingBox(min_x, min_y, max_x, max_y)


def pad_box(box: BoundingBox, padding: int, width: int, height: int) -> BoundingBox:
    """Grow a box by ``padding`` on every side, clamped to the image."""
    return BoundingBox(
        min_x=max(0, box.min_x - padding),
        min_y=max(0, box.min_y - padding),
        max_x=min(width - 1, box.max_x + padding),
        max_y=min(height - 1, box.max_y + padding)
    )


@dataclass(frozen=True)
class RasterArtifact:
    """A rendered note and its detected content box, discarded after encoding."""
    image: Image.Image
    bounds: Optional[BoundingBox]


def scan(image: Image.Image) -> RasterArtifact:
    """Locate the content of a rendered note."""
    rgba = image if image.mode == "RGBA" else image.convert("RGBA")
    width, height = rgba.size
    return RasterArtifact(image=image, bounds=find_content_bounds(rgba.tobytes(), width, height))


def auto_crop(image: Image.Image, padding: int = CROP_PADDING) -> Image.Image:
    """Trim surrounding background from a rendered note.

    Returns the original image unchanged when no content pixel is found.
    """
    width, height = image.size
    box = scan(image).bounds
    if box is None:
        logger.info("No content found in %sx%s raster; skipping crop", width, height)
        return image

    padded = pad_box(box, padding, width, height)
    logger.debug(
        "Cropping %sx%s raster to %sx%s", width, height, padded.width, padded.height
    )
    return image.crop(padded.to_pil())
