"""
HTML rasterizer.

Lays a generated note out with PyMuPDF's Story engine and renders it to a
Pillow image. One CSS pixel maps to one layout point; ``device_scale``
multiplies the output resolution.
"""

import asyncio
import io
import logging
import math
import re
from typing import Awaitable, Callable, Tuple

import fitz  # PyMuPDF
from PIL import Image

from note_forge.config.loader import ExportSettings

logger = logging.getLogger(__name__)

# Tallest layout the rasterizer will produce, in CSS px
MAX_LAYOUT_HEIGHT = 14400

_SCRIPT_RE = re.compile(
    r"<(script|noscript)\b[^>]*>.*?</\1\s*>|<(?:script|noscript)\b[^>]*/>",
    re.IGNORECASE | re.DOTALL
)


def strip_scripts(html: str) -> str:
    """Remove <script> and <noscript> elements."""
    return _SCRIPT_RE.sub("", html or "")


def clamp_width(natural_width: float, min_width: int, max_width: int) -> int:
    """Clamp a measured content width into the allowed range."""
    return int(min(max(math.ceil(natural_width), min_width), max_width))


def _render_pdf(html: str, width: float, height: float) -> Tuple[bytes, fitz.Rect]:
    """Lay out and draw the document onto a single page."""
    story = fitz.Story(html=html)
    mediabox = fitz.Rect(0, 0, width, height)
    buffer = io.BytesIO()
    writer = fitz.DocumentWriter(buffer)
    device = writer.begin_page(mediabox)
    more, filled = story.place(mediabox)
    story.draw(device)
    writer.end_page()
    writer.close()
    if more:
        logger.warning("Note content exceeds %s px; output is truncated", int(height))
    return buffer.getvalue(), filled


def measure_natural_width(html: str, max_width: int) -> float:
    """Right edge of the laid-out text and images at the widest allowed width."""
    pdf, _ = _render_pdf(html, max_width, MAX_LAYOUT_HEIGHT)
    right = 0.0
    with fitz.open(stream=pdf, filetype="pdf") as doc:
        page = doc[0]
        for block in page.get_text("blocks"):
            right = max(right, block[2])
        for info in page.get_image_info():
            right = max(right, info["bbox"][2])
    return right


def measure_height(html: str, width: int) -> int:
    """Height of the laid-out document at a fixed width."""
    _, filled = fitz.Story(html=html).place(fitz.Rect(0, 0, width, MAX_LAYOUT_HEIGHT))
    return max(1, min(MAX_LAYOUT_HEIGHT, math.ceil(fitz.Rect(filled).y1)))


class HtmlRasterizer:
    """Renders a note's HTML into an RGB image."""

    def __init__(
        self,
        min_width: int = 600,
        max_width: int = 1200,
        device_scale: float = 2.0,
        settle_delay: float = 0.5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        if min_width <= 0 or max_width < min_width:
            raise ValueError("expected 0 < min_width <= max_width")
        if device_scale <= 0:
            raise ValueError("device_scale must be > 0")

        self.min_width = min_width
        self.max_width = max_width
        self.device_scale = device_scale
        self.settle_delay = settle_delay
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: ExportSettings) -> "HtmlRasterizer":
        return cls(
            min_width=settings.min_width,
            max_width=settings.max_width,
            device_scale=settings.device_scale,
            settle_delay=settings.settle_delay_seconds
        )

    def layout_size(self, html: str) -> Tuple[int, int]:
        """Clamped width and resulting height for an already-cleaned document."""
        natural = measure_natural_width(html, self.max_width)
        width = clamp_width(natural, self.min_width, self.max_width)
        return width, measure_height(html, width)

    async def rasterize(self, html: str) -> Image.Image:
        """Render a note to an image at ``device_scale``.

        Args:
            html: Complete HTML document

        Returns:
            RGB image of the full note, uncropped
        """
        cleaned = strip_scripts(html)
        width, height = self.layout_size(cleaned)

        # Let fonts and styles settle before drawing
        await self._sleep(self.settle_delay)

        pdf, _ = _render_pdf(cleaned, width, height)
        with fitz.open(stream=pdf, filetype="pdf") as doc:
            matrix = fitz.Matrix(self.device_scale, self.device_scale)
            pix = doc[0].get_pixmap(matrix=matrix, alpha=False)
            image = Image.frombytes("RGB", (pix.width, pix.height), pix.samples)

        logger.info(
            "Rasterized note at %sx%s css px -> %sx%s px",
            width, height, image.width, image.height,
        )
        return image
