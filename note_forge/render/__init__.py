"""
Rendering for Note Forge.

Rasterizes generated notes and exports them as HTML, PNG or PDF.
"""

from .crop import auto_crop
from .exporter import ExportFormat, ExportResult, NoteExporter, export_html
from .rasterizer import HtmlRasterizer

__all__ = [
    "auto_crop",
    "ExportFormat",
    "ExportResult",
    "NoteExporter",
    "export_html",
    "HtmlRasterizer",
]
