"""
File Cleanup Service: keeps the uploads tree from growing without bound.

Removes:
  - Uploaded temp images older than N hours
  - Template preview PDFs (temp-previews) older than 24 hours
  - Orphaned previews / generated PDFs (no histoire references them) older than N days
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional, Set

from core.storybook.storage import StorageLayout

if TYPE_CHECKING:
    from core.storybook.store import SQLiteStorybookStore

logger = logging.getLogger(__name__)


@dataclass
class CleanupResult:
    """Summary of a cleanup run."""
    temp_images_removed: int = 0
    temp_previews_removed: int = 0
    orphaned_previews_removed: int = 0
    orphaned_pdfs_removed: int = 0
    bytes_freed: int = 0
    errors: List[str] = field(default_factory=list)
    dry_run: bool = False

    def __str__(self) -> str:
        mb = self.bytes_freed / (1024 * 1024)
        mode = " (DRY RUN)" if self.dry_run else ""
        return (
            f"Cleanup{mode}: temp_images={self.temp_images_removed}, "
            f"temp_previews={self.temp_previews_removed}, "
            f"previews={self.orphaned_previews_removed}, "
            f"pdfs={self.orphaned_pdfs_removed}, "
            f"freed={mb:.1f}MB"
        )


class FileCleanupService:
    """Configurable file cleanup with retention policies."""

    def __init__(
        self,
        layout: Optional[StorageLayout] = None,
        store: Optional["SQLiteStorybookStore"] = None,
        temp_max_age_hours: int | None = None,
        temp_preview_retention_hours: int | None = None,
        preview_retention_days: int | None = None,
    ):
        from config.settings import settings

        self.layout = layout or StorageLayout.from_settings(settings)
        self.store = store

        self.temp_max_age_hours = temp_max_age_hours or settings.cleanup_temp_max_age_hours
        self.temp_preview_retention_hours = (
            temp_preview_retention_hours or settings.temp_preview_retention_hours
        )
        self.preview_retention_days = preview_retention_days or settings.cleanup_preview_retention_days

    def run_cleanup(self, dry_run: bool = False) -> CleanupResult:
        """Execute full cleanup sweep."""
        result = CleanupResult(dry_run=dry_run)

        self._clean_temp_images(result, dry_run)
        self._clean_temp_previews(result, dry_run)
        self._clean_orphaned_outputs(result, dry_run)

        logger.info(str(result))
        return result

    def _clean_temp_images(self, result: CleanupResult, dry_run: bool) -> None:
        """Remove uploaded images older than max_age_hours."""
        if not self.layout.temp_images_dir.exists():
            return
        cutoff = time.time() - (self.temp_max_age_hours * 3600)
        self._remove_old_files(self.layout.temp_images_dir, cutoff, result, "temp_images_removed", dry_run)

    def _clean_temp_previews(self, result: CleanupResult, dry_run: bool) -> None:
        """Remove template preview PDFs past their retention window."""
        if not self.layout.temp_previews_dir.exists():
            return
        cutoff = time.time() - (self.temp_preview_retention_hours * 3600)
        self._remove_old_files(self.layout.temp_previews_dir, cutoff, result, "temp_previews_removed", dry_run)

    def _clean_orphaned_outputs(self, result: CleanupResult, dry_run: bool) -> None:
        """Remove previews / PDFs no histoire points at. Skipped without a store."""
        if self.store is None:
            return
        try:
            keep = self._referenced_files()
        except Exception as e:
            result.errors.append(f"histoire lookup: {e}")
            logger.warning(f"Orphan cleanup skipped, cannot read histoires: {e}")
            return

        cutoff = time.time() - (self.preview_retention_days * 86400)
        for directory, counter in (
            (self.layout.previews_dir, "orphaned_previews_removed"),
            (self.layout.pdfs_dir, "orphaned_pdfs_removed"),
        ):
            if directory.exists():
                self._remove_old_files(directory, cutoff, result, counter, dry_run, keep=keep)

    def _referenced_files(self) -> Set[Path]:
        keep: Set[Path] = set()
        for histoire in self.store.list_histoires():
            for url in list(histoire.preview_urls) + [histoire.pdf_url, histoire.generated_pdf_url]:
                path = self.layout.path_from_url(url)
                if path is not None:
                    keep.add(path)
        return keep

    def _remove_old_files(
        self,
        directory: Path,
        cutoff_ts: float,
        result: CleanupResult,
        counter_attr: str,
        dry_run: bool,
        keep: Optional[Set[Path]] = None,
    ) -> None:
        """Remove files older than cutoff timestamp from a directory."""
        count = 0
        for path in directory.rglob("*"):
            if not path.is_file():
                continue
            if keep and path.resolve() in keep:
                continue
            try:
                stat = path.stat()
                if stat.st_mtime < cutoff_ts:
                    if not dry_run:
                        path.unlink()
                    result.bytes_freed += stat.st_size
                    count += 1
            except FileNotFoundError:
                continue
            except OSError as e:
                result.errors.append(f"{path}: {e}")

        setattr(result, counter_attr, getattr(result, counter_attr) + count)
