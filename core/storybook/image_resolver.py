"""
Image Resolver

Locates the file behind an image variable value through a ranked list of
lookup strategies (first match wins):

    1. DirectMatchStrategy     value names one of the uploaded paths
    2. PrefixMatchStrategy     an upload named `<variable>-...`
    3. TempImageScanStrategy   scan of the temp-images directory
    4. DirectoryScanStrategy   scan of every known image directory

Uploaded files are stored as `<variable>-<epoch-ms>-<random>.<ext>`, so the
base filename of `photo-1234567890-123456789.png` is `photo.png`.

Usage:
    resolver = ImageResolver(StorageLayout.from_settings())
    result = resolver.find_image("avatar", "avatar.png", uploaded_paths)
    if result.found:
        data = Path(result.image_path).read_bytes()
"""

import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol, Sequence

from .imaging import sniff_image_format
from .storage import StorageLayout

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp")


@dataclass
class ImageLookupResult:
    found: bool
    image_path: Optional[str] = None
    filename: Optional[str] = None
    variable_name: Optional[str] = None
    error: Optional[str] = None
    strategy: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            "found": self.found,
            "image_path": self.image_path,
            "filename": self.filename,
            "variable_name": self.variable_name,
            "error": self.error,
        }


@dataclass
class ImageCheck:
    valid: bool
    error: Optional[str] = None


def extract_base_filename(filename: str) -> str:
    """`photo-1234567890-123456789.png` -> `photo.png`; other names unchanged."""
    parts = filename.split("-")
    if len(parts) >= 3:
        return parts[0] + os.path.splitext(filename)[1]
    return filename


def is_image_file(filename: str) -> bool:
    return os.path.splitext(filename)[1].lower() in IMAGE_EXTENSIONS


def validate_image_exists(image_path) -> ImageCheck:
    """Check the file exists, is non-empty and looks like an image."""
    path = Path(image_path)
    if not path.is_file():
        return ImageCheck(False, f"Image file does not exist: {image_path}")
    if path.stat().st_size == 0:
        return ImageCheck(False, f"Image file is empty: {image_path}")
    if not is_image_file(path.name):
        return ImageCheck(False, f"File is not a valid image: {image_path}")
    with open(path, "rb") as f:
        header = f.read(16)
    if sniff_image_format(header) is None:
        return ImageCheck(False, f"File is not a valid image: {image_path}")
    return ImageCheck(True)


def _hit(path, strategy: str) -> ImageLookupResult:
    path = Path(path)
    return ImageLookupResult(found=True, image_path=str(path), filename=path.name, strategy=strategy)


def _list_images(directory: Path) -> List[Path]:
    if not directory.is_dir():
        return []
    return sorted(p for p in directory.iterdir() if p.is_file() and is_image_file(p.name))


class ImageLookupStrategy(Protocol):
    """One step of the image lookup cascade."""

    name: str

    def find(
        self, variable_name: str, value: str, uploaded_paths: Sequence[str]
    ) -> Optional[ImageLookupResult]: ...


class DirectMatchStrategy:
    """Value equals an uploaded path, its basename, or its base filename."""

    name = "direct"

    def find(self, variable_name, value, uploaded_paths):
        for uploaded in uploaded_paths:
            filename = os.path.basename(uploaded)
            if uploaded == value or filename == value or extract_base_filename(filename) == value:
                return _hit(uploaded, self.name)
        return None


class PrefixMatchStrategy:
    """
    A file named `<variable>-...`, or whose base filename is the variable
    name plus its own extension. Uploaded paths are tried before the
    temp-images and histoires-images directories.
    """

    name = "prefix"

    def __init__(self, layout: StorageLayout):
        self.layout = layout

    def _matches(self, variable_name: str, filename: str) -> bool:
        if filename.startswith(f"{variable_name}-"):
            return True
        ext = os.path.splitext(filename)[1]
        return extract_base_filename(filename) == f"{variable_name}{ext}"

    def find(self, variable_name, value, uploaded_paths):
        for uploaded in uploaded_paths:
            if self._matches(variable_name, os.path.basename(uploaded)):
                return _hit(uploaded, self.name)
        for directory in (self.layout.temp_images_dir, self.layout.histoires_images_dir):
            for path in _list_images(directory):
                if self._matches(variable_name, path.name):
                    return _hit(path, self.name)
        return None


class TempImageScanStrategy:
    """Temp-images file equal to the value, containing the variable name, or sharing its base name."""

    name = "temp-scan"

    def __init__(self, layout: StorageLayout):
        self.layout = layout

    def find(self, variable_name, value, uploaded_paths):
        for path in _list_images(self.layout.temp_images_dir):
            if (
                path.name == value
                or variable_name in path.name
                or extract_base_filename(path.name) == value
            ):
                return _hit(path, self.name)
        return None


class DirectoryScanStrategy:
    """Last resort: every known image directory, exact name or `<variable>-` prefix."""

    name = "directory-scan"

    def __init__(self, layout: StorageLayout):
        self.layout = layout

    def find(self, variable_name, value, uploaded_paths):
        for directory in self.layout.image_dirs():
            for path in _list_images(directory):
                if path.name == value or path.name.startswith(f"{variable_name}-"):
                    return _hit(path, self.name)
        return None


def default_strategies(layout: StorageLayout) -> List[ImageLookupStrategy]:
    return [
        DirectMatchStrategy(),
        PrefixMatchStrategy(layout),
        TempImageScanStrategy(layout),
        DirectoryScanStrategy(layout),
    ]


class ImageResolver:
    """Runs the lookup strategies in order for one image variable."""

    def __init__(
        self,
        layout: StorageLayout,
        strategies: Optional[List[ImageLookupStrategy]] = None,
    ):
        self.layout = layout
        self.strategies = strategies if strategies is not None else default_strategies(layout)

    def find_image(
        self,
        variable_name: str,
        value: str,
        uploaded_paths: Optional[Iterable[str]] = None,
    ) -> ImageLookupResult:
        uploaded = [str(p) for p in (uploaded_paths or [])]
        logger.debug(
            f"[IMAGE-RESOLVER] Looking up variable={variable_name!r} value={value!r} "
            f"({len(uploaded)} uploaded)"
        )

        for strategy in self.strategies:
            try:
                result = strategy.find(variable_name, value, uploaded)
            except OSError as e:
                logger.warning(f"[IMAGE-RESOLVER] {strategy.name} lookup failed: {e}")
                continue
            if result is not None:
                result.variable_name = variable_name
                logger.info(f"[IMAGE-RESOLVER] {strategy.name} match for {variable_name!r}: {result.filename}")
                return result

        error = f'Image not found for variable "{variable_name}" with value "{value}"'
        logger.warning(f"[IMAGE-RESOLVER] {error}")
        return ImageLookupResult(found=False, variable_name=variable_name, error=error)

    def list_available_images(self) -> List[Dict]:
        directories = [
            ("temp-images", self.layout.temp_images_dir),
            ("histoires-images", self.layout.histoires_images_dir),
            ("uploads", self.layout.uploads_dir),
            ("previews", self.layout.previews_dir),
            ("pdfs", self.layout.pdfs_dir),
        ]
        return [
            {"directory": name, "files": [p.name for p in _list_images(path)]}
            for name, path in directories
        ]

    def cleanup_temp_images(self, older_than_days: float = 1) -> int:
        """Delete temp-images files older than the cutoff. Returns count removed."""
        directory = self.layout.temp_images_dir
        if not directory.is_dir():
            return 0

        cutoff = time.time() - older_than_days * 86400
        removed = 0
        for path in directory.iterdir():
            try:
                if path.is_file() and path.stat().st_mtime < cutoff:
                    path.unlink()
                    removed += 1
                    logger.info(f"[IMAGE-RESOLVER] Cleaned up temp image: {path.name}")
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning(f"[IMAGE-RESOLVER] Error cleaning up {path.name}: {e}")
        return removed
