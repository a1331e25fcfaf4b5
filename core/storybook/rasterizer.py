"""
Rasterizer

Renders every page of a composed PDF to a PNG preview with pdf2image
(poppler's pdftoppm). The preview size is the first page scaled to fit the
configured bounding box, aspect ratio preserved.

A missing poppler install raises ToolchainError, which callers treat as a
soft failure (no previews, PDF still delivered). A broken PDF or a timeout
raises RasterizationError, and no half-written preview file is left behind.
"""

import logging
from pathlib import Path
from typing import List, Optional, Tuple

import fitz  # PyMuPDF
from pdf2image import convert_from_bytes
from pdf2image.exceptions import (
    PDFInfoNotInstalledError,
    PDFPageCountError,
    PDFPopplerTimeoutError,
    PDFSyntaxError,
)

from .exceptions import RasterizationError, ToolchainError
from .storage import StorageLayout, remove_files

logger = logging.getLogger(__name__)


def compute_preview_size(
    page_width: float,
    page_height: float,
    max_width: int = 1200,
    max_height: int = 900,
) -> Tuple[int, int]:
    """Scale (page_width, page_height) to fit the box, preserving aspect ratio."""
    if page_width <= 0 or page_height <= 0:
        raise ValueError(f"Invalid page size: {page_width}x{page_height}")
    scale = min(max_width / page_width, max_height / page_height)
    return round(page_width * scale), round(page_height * scale)


def first_page_size(pdf_bytes: bytes) -> Tuple[float, float]:
    try:
        with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
            if doc.page_count == 0:
                raise RasterizationError("PDF has no pages")
            rect = doc[0].rect
            return rect.width, rect.height
    except (RuntimeError, ValueError) as e:
        raise RasterizationError(f"Cannot read PDF: {e}") from e


class PdfRasterizer:
    def __init__(
        self,
        layout: StorageLayout,
        dpi: int = 200,
        max_width: int = 1200,
        max_height: int = 900,
        poppler_path: Optional[str] = None,
        timeout: Optional[int] = 120,
    ):
        self.layout = layout
        self.dpi = dpi
        self.max_width = max_width
        self.max_height = max_height
        self.poppler_path = poppler_path
        self.timeout = timeout

    @classmethod
    def from_settings(cls, layout: StorageLayout, app_settings=None) -> "PdfRasterizer":
        if app_settings is None:
            from config.settings import settings as app_settings
        return cls(
            layout,
            dpi=app_settings.preview_dpi,
            max_width=app_settings.preview_max_width,
            max_height=app_settings.preview_max_height,
            poppler_path=app_settings.poppler_path,
            timeout=app_settings.rasterize_timeout_seconds,
        )

    def to_preview_images(self, pdf_bytes: bytes, output_dir: Optional[Path] = None) -> List[Path]:
        """
        Rasterize all pages to PNG files.

        Args:
            pdf_bytes: Composed PDF
            output_dir: Target directory (default: previews dir)

        Returns:
            Paths of the written PNGs, one per page, in page order

        Raises:
            ToolchainError: poppler is not installed
            RasterizationError: malformed PDF, timeout, write failure
        """
        output_dir = Path(output_dir or self.layout.previews_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        width, height = first_page_size(pdf_bytes)
        size = compute_preview_size(width, height, self.max_width, self.max_height)
        logger.info(f"[RASTERIZER] PDF {width:.0f}x{height:.0f}pt -> preview {size[0]}x{size[1]}px")

        try:
            pages = convert_from_bytes(
                pdf_bytes,
                dpi=self.dpi,
                size=size,
                fmt="png",
                poppler_path=self.poppler_path,
                timeout=self.timeout,
            )
        except (PDFInfoNotInstalledError, FileNotFoundError) as e:
            raise ToolchainError(f"Poppler is not available: {e}") from e
        except PDFPopplerTimeoutError as e:
            raise RasterizationError(f"Rasterization timed out after {self.timeout}s") from e
        except (PDFPageCountError, PDFSyntaxError) as e:
            raise RasterizationError(f"Cannot rasterize PDF: {e}") from e

        written: List[Path] = []
        try:
            for image in pages:
                path = output_dir / self.layout.generate_filename("preview", "png")
                image.save(path, "PNG")
                written.append(path)
        except OSError as e:
            remove_files(written)
            raise RasterizationError(f"Failed to write preview image: {e}") from e
        finally:
            for image in pages:
                image.close()

        logger.info(f"[RASTERIZER] Wrote {len(written)} preview images")
        return written
