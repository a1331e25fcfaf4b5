"""Tests for api/upload_utils.py."""

import io

import pytest
from fastapi import HTTPException, UploadFile
from starlette.datastructures import FormData, Headers

from api.upload_utils import is_plain_variable_name, parse_variables_field, save_image_uploads, save_upload
from core.storybook import InvalidVariablesError


def _upload(filename, content, content_type="image/png"):
    return UploadFile(
        file=io.BytesIO(content),
        filename=filename,
        headers=Headers({"content-type": content_type}),
    )


class TestParseVariablesField:

    @pytest.mark.parametrize("raw", [None, ""])
    def test_empty(self, raw):
        assert parse_variables_field(raw) == {}

    def test_object(self):
        assert parse_variables_field('{"nom": "Ali", "âge": 6}') == {"nom": "Ali", "âge": 6}

    def test_invalid_json(self):
        with pytest.raises(InvalidVariablesError, match="valid JSON string"):
            parse_variables_field("{nom}")

    def test_not_an_object(self):
        with pytest.raises(InvalidVariablesError, match="valid object"):
            parse_variables_field("[1, 2]")


class TestSaveUpload:

    @pytest.mark.asyncio
    async def test_saves_with_generated_name(self, tmp_path):
        path = await save_upload(_upload("Book.PDF", b"%PDF-1.4"), tmp_path, "template", [".pdf"], 1)
        assert path.parent == tmp_path
        assert path.name.startswith("template-") and path.suffix == ".pdf"
        assert path.read_bytes() == b"%PDF-1.4"

    @pytest.mark.asyncio
    async def test_rejects_extension(self, tmp_path):
        with pytest.raises(HTTPException) as exc_info:
            await save_upload(_upload("book.docx", b"x"), tmp_path, "template", [".pdf"], 1)
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_rejects_large_file(self, tmp_path):
        with pytest.raises(HTTPException, match="File too large"):
            await save_upload(_upload("big.pdf", b"x" * (1024 * 1024 + 1)), tmp_path, "template", [".pdf"], 1)
        assert list(tmp_path.iterdir()) == []


class TestSaveImageUploads:

    @pytest.mark.asyncio
    async def test_maps_variables_to_saved_names(self, layout, png_bytes):
        form = FormData([
            ("variables", "{}"),
            ("images_avatar", _upload("photo.png", png_bytes)),
            ("images_pet", _upload("chat.jpg", b"jpeg", "image/jpeg")),
        ])

        mapping, paths = await save_image_uploads(form, layout)

        assert set(mapping) == {"avatar", "pet"}
        assert mapping["avatar"].startswith("avatar-") and mapping["avatar"].endswith(".png")
        assert mapping["pet"].endswith(".jpg")
        assert sorted(paths) == sorted(str(layout.temp_images_dir / name) for name in mapping.values())

    @pytest.mark.asyncio
    async def test_rejected_file_removes_earlier_saves(self, layout, png_bytes):
        form = FormData([
            ("images_avatar", _upload("photo.png", png_bytes)),
            ("images_notes", _upload("notes.txt", b"hello", "text/plain")),
        ])

        with pytest.raises(HTTPException, match="Only image files are allowed!"):
            await save_image_uploads(form, layout)
        assert list(layout.temp_images_dir.iterdir()) == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field_name", ["images_../../escaped", "images_../x", "images_a/b", "images_a\\b", "images_.."])
    async def test_field_name_cannot_leave_temp_images(self, tmp_path, layout, png_bytes, field_name):
        form = FormData([
            ("images_avatar", _upload("photo.png", png_bytes)),
            (field_name, _upload("photo.png", png_bytes)),
        ])

        with pytest.raises(HTTPException) as exc_info:
            await save_image_uploads(form, layout)

        assert exc_info.value.status_code == 400
        assert exc_info.value.detail == f"Invalid image field name: {field_name}"
        written = [p for p in tmp_path.rglob("*") if p.is_file()]
        assert written == []

    @pytest.mark.asyncio
    async def test_extension_taken_from_content_type_when_not_an_image(self, layout, png_bytes):
        form = FormData([("images_avatar", _upload("photo.php", png_bytes))])
        mapping, _ = await save_image_uploads(form, layout)
        assert mapping["avatar"].endswith(".png")


class TestIsPlainVariableName:

    @pytest.mark.parametrize("name", ["avatar", "photo_enfant", "prénom"])
    def test_plain(self, name):
        assert is_plain_variable_name(name)

    @pytest.mark.parametrize("name", ["", ".", "..", "../x", "a/b", "a\\b"])
    def test_rejected(self, name):
        assert not is_plain_variable_name(name)
