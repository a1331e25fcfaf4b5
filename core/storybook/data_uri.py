"""
Data-URI image values.

A variable may carry its image inline instead of as an upload:

    data:image/png;base64,iVBORw0KGgo...

Validation is strict: the payload must decode, be non-empty, re-encode to the
exact same text, and PNG payloads must start with the PNG signature.
"""

import base64
import binascii
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .exceptions import ImageProcessingError

logger = logging.getLogger(__name__)

DATA_URI_PATTERN = re.compile(r"^data:image/([a-zA-Z]+);base64,(.+)$", re.DOTALL)
SUPPORTED_FORMATS = ("png", "jpg", "jpeg", "gif", "webp")
PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


class DataUriErrorKind(str, Enum):
    BAD_FORMAT = "bad_format"
    BAD_BASE64 = "bad_base64"
    EMPTY_DATA = "empty_data"
    INVALID_PNG_SIGNATURE = "invalid_png_signature"


@dataclass
class DataUriCheck:
    valid: bool
    format: Optional[str] = None
    error: Optional[str] = None
    kind: Optional[DataUriErrorKind] = None
    data: Optional[bytes] = None

    @classmethod
    def failure(cls, kind: DataUriErrorKind, error: str, fmt: Optional[str] = None) -> "DataUriCheck":
        return cls(valid=False, format=fmt, error=error, kind=kind)


def is_data_uri(value) -> bool:
    return isinstance(value, str) and value.startswith("data:image/")


def has_png_signature(data: bytes) -> bool:
    return len(data) >= len(PNG_SIGNATURE) and data[:len(PNG_SIGNATURE)] == PNG_SIGNATURE


def validate_data_uri(value: str) -> DataUriCheck:
    """Check a data-URI image and return its decoded bytes when valid."""
    match = DATA_URI_PATTERN.match(value or "")
    if not match:
        return DataUriCheck.failure(DataUriErrorKind.BAD_FORMAT, "Invalid data URI format")

    fmt, payload = match.group(1).lower(), match.group(2).strip()
    if fmt not in SUPPORTED_FORMATS:
        return DataUriCheck.failure(
            DataUriErrorKind.BAD_FORMAT, f"Unsupported data URI image format: {fmt}", fmt
        )

    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        return DataUriCheck.failure(DataUriErrorKind.BAD_BASE64, f"Invalid base64 data: {e}", fmt)

    if not data:
        return DataUriCheck.failure(DataUriErrorKind.EMPTY_DATA, "Empty image data", fmt)

    # Non-canonical encodings decode "successfully" but lose bits
    if base64.b64encode(data).decode("ascii") != payload:
        return DataUriCheck.failure(
            DataUriErrorKind.BAD_BASE64, "Corrupted base64 data (round-trip mismatch)", fmt
        )

    if fmt == "png" and not has_png_signature(data):
        return DataUriCheck.failure(
            DataUriErrorKind.INVALID_PNG_SIGNATURE, "Invalid PNG signature", fmt
        )

    return DataUriCheck(valid=True, format=fmt, data=data)


def decode_data_uri(value: str) -> tuple:
    """
    Decode a data-URI image.

    Returns:
        (format, bytes)

    Raises:
        ImageProcessingError: if the URI fails validation
    """
    check = validate_data_uri(value)
    if not check.valid:
        logger.warning(f"[DATA-URI] {check.kind.value}: {check.error}")
        raise ImageProcessingError(check.error)
    return check.format, check.data
