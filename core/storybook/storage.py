"""
Storage layout for uploaded and generated files.

All directories hang off a single uploads root; public URLs map 1:1 onto them:

    uploads/                    template PDFs and covers
    uploads/temp-images/        per-request uploaded images
    uploads/histoires-images/   images persisted with a histoire
    uploads/previews/           rasterized preview pages
    uploads/temp-previews/      template preview PDFs (removed after 24h)
    uploads/pdfs/               generated PDFs

Usage:
    layout = StorageLayout.from_settings()
    layout.ensure()
    name = layout.generate_filename("preview", "png")
"""

import logging
import random
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)

URL_PREFIX = "/uploads"


def generate_filename(purpose: str, ext: str) -> str:
    """Build a unique `<purpose>-<epoch-ms>-<random-int>.<ext>` file name."""
    ext = ext.lstrip(".")
    return f"{purpose}-{int(time.time() * 1000)}-{random.randint(0, 999_999_999)}.{ext}"


@dataclass
class StorageLayout:
    uploads_dir: Path
    temp_images_dir: Path
    histoires_images_dir: Path
    previews_dir: Path
    temp_previews_dir: Path
    pdfs_dir: Path

    @classmethod
    def from_root(cls, uploads_dir: Path) -> "StorageLayout":
        uploads_dir = Path(uploads_dir)
        return cls(
            uploads_dir=uploads_dir,
            temp_images_dir=uploads_dir / "temp-images",
            histoires_images_dir=uploads_dir / "histoires-images",
            previews_dir=uploads_dir / "previews",
            temp_previews_dir=uploads_dir / "temp-previews",
            pdfs_dir=uploads_dir / "pdfs",
        )

    @classmethod
    def from_settings(cls, app_settings=None) -> "StorageLayout":
        if app_settings is None:
            from config.settings import settings as app_settings
        return cls.from_root(app_settings.uploads_dir)

    def ensure(self) -> "StorageLayout":
        for directory in self.all_dirs():
            directory.mkdir(parents=True, exist_ok=True)
        return self

    def all_dirs(self) -> List[Path]:
        return [
            self.uploads_dir,
            self.temp_images_dir,
            self.histoires_images_dir,
            self.previews_dir,
            self.temp_previews_dir,
            self.pdfs_dir,
        ]

    def image_dirs(self) -> List[Path]:
        """Directories searched when resolving an image variable, in order."""
        return [
            self.uploads_dir,
            self.temp_images_dir,
            self.histoires_images_dir,
            self.previews_dir,
            self.pdfs_dir,
        ]

    def generate_filename(self, purpose: str, ext: str) -> str:
        return generate_filename(purpose, ext)

    def public_url(self, path: Path) -> str:
        """`uploads/pdfs/x.pdf` -> `/uploads/pdfs/x.pdf`"""
        relative = Path(path).resolve().relative_to(self.uploads_dir.resolve())
        return f"{URL_PREFIX}/{relative.as_posix()}"

    def path_from_url(self, url: Optional[str]) -> Optional[Path]:
        """
        Inverse of public_url. Returns None for URLs outside /uploads or
        that would escape the uploads root.
        """
        if not url or not url.startswith(URL_PREFIX + "/"):
            return None
        relative = url[len(URL_PREFIX) + 1:]
        candidate = (self.uploads_dir / relative).resolve()
        root = self.uploads_dir.resolve()
        if root not in candidate.parents:
            return None
        return candidate

    def relative_path(self, path: Path) -> str:
        """Path relative to the uploads root, as stored on templates."""
        return Path(path).resolve().relative_to(self.uploads_dir.resolve()).as_posix()

    def absolute_path(self, relative: str) -> Path:
        return self.uploads_dir / relative


def remove_files(paths: Iterable) -> int:
    """Delete files, tolerating ones already gone. Returns count removed."""
    removed = 0
    for path in paths:
        if not path:
            continue
        try:
            Path(path).unlink()
            removed += 1
        except FileNotFoundError:
            continue
        except OSError as e:
            logger.warning(f"[STORAGE] Could not remove {path}: {e}")
    return removed
