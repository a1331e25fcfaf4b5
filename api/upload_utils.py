"""
Saving multipart uploads under the uploads directory.

Image variables arrive as form fields named `images_<variable>`; each file
is written to temp-images as `<variable>-<epoch-ms>-<random>.<ext>` and the
saved filename becomes the variable's value.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from fastapi import HTTPException, UploadFile
from starlette.datastructures import FormData, UploadFile as StarletteUploadFile

from config.logging_config import get_logger
from config.settings import settings
from core.storybook import InvalidVariablesError, StorageLayout, generate_filename, remove_files

logger = get_logger(__name__)

IMAGE_FIELD_PREFIX = "images_"
ALLOWED_IMAGE_TYPES = ("image/jpg", "image/jpeg", "image/png", "image/gif", "image/webp")
ALLOWED_IMAGE_EXTENSIONS = [".jpg", ".jpeg", ".png", ".gif", ".webp"]

_CONTENT_TYPE_EXTENSIONS = {
    "image/jpg": ".jpg",
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
}


def is_plain_variable_name(name: str) -> bool:
    """A variable name usable as a filename prefix: no path separators, not `.` or `..`."""
    if not name or name in (".", ".."):
        return False
    return "/" not in name and "\\" not in name and "\x00" not in name


async def save_upload(
    file: UploadFile,
    directory: Path,
    purpose: str,
    allowed_extensions: List[str],
    max_size_mb: int,
) -> Path:
    """
    Validate and write one uploaded file.

    Raises:
        HTTPException 400: bad extension or file too large
    """
    file_ext = os.path.splitext(file.filename or "")[1].lower()
    if file_ext not in allowed_extensions:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid file type. Allowed: {', '.join(allowed_extensions)}"
        )

    contents = await file.read()
    if len(contents) > max_size_mb * 1024 * 1024:
        raise HTTPException(status_code=400, detail=f"File too large (max {max_size_mb}MB)")

    directory.mkdir(parents=True, exist_ok=True)
    file_path = directory / generate_filename(purpose, file_ext.lstrip("."))
    file_path.write_bytes(contents)
    return file_path


async def save_image_uploads(form: FormData, layout: StorageLayout) -> Tuple[Dict[str, str], List[str]]:
    """
    Save every `images_<variable>` file of a multipart form.

    Returns:
        ({variable: saved filename}, [saved absolute paths])

    Files saved before a rejected one are removed again.
    """
    mapping: Dict[str, str] = {}
    saved: List[Path] = []
    max_mb = settings.max_image_upload_mb

    try:
        for field_name, value in form.multi_items():
            if not field_name.startswith(IMAGE_FIELD_PREFIX) or not isinstance(value, StarletteUploadFile):
                continue
            variable = field_name[len(IMAGE_FIELD_PREFIX):]
            if variable in mapping:
                continue
            if not is_plain_variable_name(variable):
                raise HTTPException(status_code=400, detail=f"Invalid image field name: {field_name}")

            content_type = (value.content_type or "").lower()
            if content_type not in ALLOWED_IMAGE_TYPES:
                raise HTTPException(status_code=400, detail="Only image files are allowed!")

            contents = await value.read()
            if len(contents) > max_mb * 1024 * 1024:
                raise HTTPException(status_code=400, detail=f"File too large (max {max_mb}MB)")

            ext = os.path.splitext(value.filename or "")[1].lower()
            if ext not in ALLOWED_IMAGE_EXTENSIONS:
                ext = _CONTENT_TYPE_EXTENSIONS[content_type]
            layout.temp_images_dir.mkdir(parents=True, exist_ok=True)
            path = layout.temp_images_dir / generate_filename(variable, ext.lstrip("."))
            if layout.temp_images_dir.resolve() not in path.resolve().parents:
                raise HTTPException(status_code=400, detail=f"Invalid image field name: {field_name}")
            path.write_bytes(contents)
            saved.append(path)
            mapping[variable] = path.name
            logger.info(f"Saved image for variable \"{variable}\": {path.name} ({len(contents)} bytes)")
    except Exception:
        remove_files(saved)
        raise

    return mapping, [str(p) for p in saved]


def parse_variables_field(raw: Optional[Any]) -> Dict[str, Any]:
    """
    `variables` form field: a JSON object encoded as a string.

    Raises:
        InvalidVariablesError: not valid JSON, or not an object
    """
    if raw is None or raw == "":
        return {}
    if not isinstance(raw, str):
        raise InvalidVariablesError("Variables must be a valid JSON string")
    try:
        variables = json.loads(raw)
    except json.JSONDecodeError as e:
        raise InvalidVariablesError("Variables must be a valid JSON string") from e
    if not isinstance(variables, dict):
        raise InvalidVariablesError("Variables must be a valid object")
    return variables
