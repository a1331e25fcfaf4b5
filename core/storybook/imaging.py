"""
Image format sniffing and conversion for PDF embedding.

PDF image objects carry PNG and JPEG data natively; everything else Pillow can
read (GIF, WEBP, BMP, TIFF...) is converted to PNG first.

Usage:
    data, fmt = prepare_for_embedding(raw_bytes)
"""

import io
import logging
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

from .exceptions import ImageProcessingError
from .models import ImageFormat

logger = logging.getLogger(__name__)


def sniff_image_format(data: bytes) -> Optional[ImageFormat]:
    """Detect the image format from its leading bytes, None when unknown."""
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return ImageFormat.PNG
    if data.startswith(b"\xff\xd8\xff"):
        return ImageFormat.JPEG
    if data[:6] in (b"GIF87a", b"GIF89a"):
        return ImageFormat.GIF
    if len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return ImageFormat.WEBP
    return None


def convert_to_png(data: bytes) -> bytes:
    """Re-encode any Pillow-readable image as PNG (first frame for animations)."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.seek(0)
            if img.mode not in ("RGB", "RGBA", "L", "LA"):
                img = img.convert("RGBA")
            output = io.BytesIO()
            img.save(output, format="PNG")
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise ImageProcessingError(f"Cannot convert image to PNG: {e}") from e
    return output.getvalue()


def prepare_for_embedding(data: bytes) -> Tuple[bytes, ImageFormat]:
    """
    Return bytes a PDF can embed as-is, plus their format.

    The declared format (file extension, data-URI type) is ignored in favour
    of the actual content.

    Raises:
        ImageProcessingError: empty data or content Pillow cannot read
    """
    if not data:
        raise ImageProcessingError("Empty image data")

    fmt = sniff_image_format(data)
    if fmt is not None and fmt.embeds_natively:
        return data, fmt

    logger.info(f"[IMAGING] Converting {fmt.value if fmt else 'unknown'} image to PNG")
    return convert_to_png(data), ImageFormat.PNG
