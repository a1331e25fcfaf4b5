"""Tests for data-URI image validation and decoding."""

import base64

import pytest

from core.storybook.data_uri import (
    DataUriErrorKind,
    decode_data_uri,
    has_png_signature,
    is_data_uri,
    validate_data_uri,
)
from core.storybook.exceptions import ImageProcessingError


def _uri(data: bytes, fmt: str = "png") -> str:
    return f"data:image/{fmt};base64,{base64.b64encode(data).decode('ascii')}"


def _corrupt(uri: str) -> str:
    """Replace one base64 character in the middle of the payload."""
    prefix, payload = uri.split(",", 1)
    i = len(payload) // 2
    return f"{prefix},{payload[:i]}*{payload[i + 1:]}"


class TestValidateDataUri:

    def test_valid_png(self, png_bytes):
        check = validate_data_uri(_uri(png_bytes))
        assert check.valid
        assert check.format == "png"
        assert check.data == png_bytes

    def test_valid_jpeg(self, make_image):
        data = make_image("JPEG")
        check = validate_data_uri(_uri(data, "jpeg"))
        assert check.valid
        assert check.format == "jpeg"

    def test_corrupted_base64(self, png_bytes):
        check = validate_data_uri(_corrupt(_uri(png_bytes)))
        assert not check.valid
        assert check.kind == DataUriErrorKind.BAD_BASE64

    def test_non_canonical_padding_rejected(self):
        # "QQ==" is canonical for b"A"; "QR==" decodes to the same byte
        check = validate_data_uri("data:image/gif;base64,QR==")
        assert not check.valid
        assert check.kind == DataUriErrorKind.BAD_BASE64

    def test_png_without_signature(self):
        check = validate_data_uri(_uri(b"definitely not a png file"))
        assert not check.valid
        assert check.kind == DataUriErrorKind.INVALID_PNG_SIGNATURE

    def test_not_a_data_uri(self):
        check = validate_data_uri("photo.png")
        assert not check.valid
        assert check.kind == DataUriErrorKind.BAD_FORMAT

    def test_unsupported_format(self, png_bytes):
        check = validate_data_uri(_uri(png_bytes, "tiff"))
        assert not check.valid
        assert check.kind == DataUriErrorKind.BAD_FORMAT
        assert "tiff" in check.error


class TestHelpers:

    def test_is_data_uri(self):
        assert is_data_uri("data:image/png;base64,AAAA")
        assert not is_data_uri("avatar.png")
        assert not is_data_uri(None)
        assert not is_data_uri(42)

    def test_has_png_signature(self, png_bytes):
        assert has_png_signature(png_bytes)
        assert not has_png_signature(b"\x89PN")

    def test_decode_returns_format_and_bytes(self, png_bytes):
        fmt, data = decode_data_uri(_uri(png_bytes))
        assert fmt == "png"
        assert data == png_bytes

    def test_decode_raises_on_invalid(self):
        with pytest.raises(ImageProcessingError, match="Invalid PNG signature"):
            decode_data_uri(_uri(b"not a png"))
