"""
Page layout for PDF export.

A raster note either fits on one page (portrait or landscape, whichever
shows it larger) or is sliced across consecutive portrait pages at the
printable width.
"""

import io
import logging
import math
from dataclasses import dataclass
from typing import List, Tuple

from PIL import Image
from reportlab.lib.pagesizes import A4, letter
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

logger = logging.getLogger(__name__)

PAGE_SIZES = {
    "A4": A4,
    "LETTER": letter,
}


def get_page_size(name: str) -> Tuple[float, float]:
    """Portrait page size in points for a configured page name."""
    try:
        return PAGE_SIZES[name.upper()]
    except KeyError:
        raise ValueError(f"Unknown page size: {name}. Must be one of: {list(PAGE_SIZES)}")


@dataclass(frozen=True)
class PagePlacement:
    """Where an image lands on a page, in points from the bottom-left."""
    page_width: float
    page_height: float
    x: float
    y: float
    width: float
    height: float

    @property
    def landscape(self) -> bool:
        return self.page_width > self.page_height


@dataclass(frozen=True)
class PageSlice:
    """Rows [top, bottom) of the source image shown on one page."""
    top: int
    bottom: int


def fit_to_page(
    image_width: int,
    image_height: int,
    page_size: Tuple[float, float],
    margin: float
) -> PagePlacement:
    """Fit an image into the printable area, preserving aspect ratio.

    Landscape is chosen only when it yields a strictly larger scale.
    The image is centered within the printable area.
    """
    if image_width <= 0 or image_height <= 0:
        raise ValueError("image dimensions must be > 0")

    portrait_w, portrait_h = min(page_size), max(page_size)
    printable_w = portrait_w - 2 * margin
    printable_h = portrait_h - 2 * margin
    if printable_w <= 0 or printable_h <= 0:
        raise ValueError("page margin leaves no printable area")

    portrait_scale = min(printable_w / image_width, printable_h / image_height)
    landscape_scale = min(printable_h / image_width, printable_w / image_height)

    if landscape_scale > portrait_scale:
        page_w, page_h, scale = portrait_h, portrait_w, landscape_scale
    else:
        page_w, page_h, scale = portrait_w, portrait_h, portrait_scale

    width = image_width * scale
    height = image_height * scale
    return PagePlacement(
        page_width=page_w,
        page_height=page_h,
        x=(page_w - width) / 2,
        y=(page_h - height) / 2,
        width=width,
        height=height
    )


def slice_for_pages(
    image_width: int,
    image_height: int,
    page_size: Tuple[float, float],
    margin: float
) -> List[PageSlice]:
    """Split an image into page-height strips at printable-width scale."""
    portrait_w, portrait_h = min(page_size), max(page_size)
    printable_w = portrait_w - 2 * margin
    printable_h = portrait_h - 2 * margin
    if printable_w <= 0 or printable_h <= 0:
        raise ValueError("page margin leaves no printable area")

    scale = printable_w / image_width
    rows_per_page = max(1, math.floor(printable_h / scale))
    return [
        PageSlice(top=top, bottom=min(top + rows_per_page, image_height))
        for top in range(0, image_height, rows_per_page)
    ]


def render_pdf(
    image: Image.Image,
    page_size: Tuple[float, float] = A4,
    margin: float = 36.0,
    multi_page: bool = False
) -> bytes:
    """Lay a raster note out as a PDF document.

    Args:
        image: Cropped note raster
        page_size: Portrait page size in points
        margin: Margin on every side in points
        multi_page: Slice across pages instead of fitting on one

    Returns:
        PDF file contents
    """
    if image.mode not in ("RGB", "L"):
        image = image.convert("RGB")

    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=page_size)

    if not multi_page:
        placement = fit_to_page(image.width, image.height, page_size, margin)
        pdf.setPageSize((placement.page_width, placement.page_height))
        pdf.drawImage(
            ImageReader(image), placement.x, placement.y,
            width=placement.width, height=placement.height
        )
        pdf.showPage()
        page_count = 1
    else:
        portrait_w, portrait_h = min(page_size), max(page_size)
        scale = (portrait_w - 2 * margin) / image.width
        slices = slice_for_pages(image.width, image.height, page_size, margin)
        for piece in slices:
            strip = image.crop((0, piece.top, image.width, piece.bottom))
            height = strip.height * scale
            pdf.setPageSize((portrait_w, portrait_h))
            pdf.drawImage(
                ImageReader(strip), margin, portrait_h - margin - height,
                width=image.width * scale, height=height
            )
            pdf.showPage()
        page_count = len(slices)

    pdf.save()
    logger.info("Rendered %sx%s raster onto %s PDF page(s)", image.width, image.height, page_count)
    return buffer.getvalue()
