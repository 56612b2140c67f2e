"""
Note export.

Turns a stored note into a downloadable HTML, PNG or PDF file.
"""

import io
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Tuple

from note_forge.config.loader import ExportSettings
from note_forge.core.sanitize import strip_code_fences
from .crop import auto_crop
from .pagination import get_page_size, render_pdf
from .rasterizer import HtmlRasterizer

logger = logging.getLogger(__name__)


class ExportFormat(str, Enum):
    """Supported download formats."""
    HTML = "html"
    PNG = "png"
    PDF = "pdf"


MEDIA_TYPES = {
    ExportFormat.HTML: "text/html; charset=utf-8",
    ExportFormat.PNG: "image/png",
    ExportFormat.PDF: "application/pdf",
}


@dataclass(frozen=True)
class ExportResult:
    """A rendered file ready to write or serve."""
    content: bytes
    media_type: str
    filename: str


def safe_filename(title: str, fmt: ExportFormat) -> str:
    """Filesystem-safe file name derived from a note title."""
    slug = re.sub(r"[^A-Za-z0-9]+", "-", title or "").strip("-").lower()[:60]
    return f"{slug or 'note'}.{fmt.value}"


def export_html(html: str) -> bytes:
    """The note's HTML, byte-for-byte after code-fence stripping."""
    return strip_code_fences(html).encode("utf-8")


class NoteExporter:
    """Exports notes in any supported format."""

    def __init__(
        self,
        rasterizer: HtmlRasterizer,
        page_size: Tuple[float, float] = get_page_size("A4"),
        page_margin: float = 36.0
    ):
        self.rasterizer = rasterizer
        self.page_size = page_size
        self.page_margin = page_margin

    @classmethod
    def from_settings(cls, settings: ExportSettings) -> "NoteExporter":
        return cls(
            rasterizer=HtmlRasterizer.from_settings(settings),
            page_size=get_page_size(settings.page_size),
            page_margin=settings.page_margin
        )

    async def export(
        self,
        html: str,
        fmt: ExportFormat,
        title: str = "note",
        multi_page: bool = False
    ) -> ExportResult:
        """Render a note in the requested format.

        Args:
            html: Note HTML as returned by generation
            fmt: Target format
            title: Used to name the file
            multi_page: PDF only; slice across pages instead of fitting one

        Returns:
            ExportResult with the file contents
        """
        fmt = ExportFormat(fmt)
        if fmt is ExportFormat.HTML:
            content = export_html(html)
        else:
            image = auto_crop(await self.rasterizer.rasterize(strip_code_fences(html)))
            if fmt is ExportFormat.PNG:
                buffer = io.BytesIO()
                image.save(buffer, format="PNG")
                content = buffer.getvalue()
            else:
                content = render_pdf(image, self.page_size, self.page_margin, multi_page)

        logger.info("Exported note %r as %s (%s bytes)", title, fmt.value, len(content))
        return ExportResult(
            content=content,
            media_type=MEDIA_TYPES[fmt],
            filename=safe_filename(title, fmt)
        )
