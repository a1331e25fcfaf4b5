"""Tests for FileCleanupService."""

import os
import time
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from core.services.file_cleanup import CleanupResult, FileCleanupService
from core.storybook.models import Histoire


def _create_old_file(directory: Path, name: str, age_hours: int) -> Path:
    """Create a file with a modified time in the past."""
    f = directory / name
    f.write_text("test content")
    old_time = time.time() - (age_hours * 3600)
    os.utime(f, (old_time, old_time))
    return f


@pytest.fixture
def svc(layout, store):
    return FileCleanupService(
        layout,
        store,
        temp_max_age_hours=24,
        temp_preview_retention_hours=24,
        preview_retention_days=7,
    )


class TestFileCleanupService:

    def test_clean_temp_images(self, svc, layout):
        """Old temp images should be removed, recent ones kept."""
        old = _create_old_file(layout.temp_images_dir, "avatar-1-1.png", age_hours=48)
        new_file = layout.temp_images_dir / "avatar-2-2.png"
        new_file.write_text("recent")

        result = svc.run_cleanup()

        assert result.temp_images_removed == 1
        assert not old.exists()
        assert new_file.exists()

    def test_clean_temp_previews(self, svc, layout):
        old = _create_old_file(layout.temp_previews_dir, "preview-t1-1-1.pdf", age_hours=30)
        result = svc.run_cleanup()
        assert result.temp_previews_removed == 1
        assert not old.exists()

    def test_dry_run_does_not_delete(self, svc, layout):
        """Dry run should count but not delete files."""
        old = _create_old_file(layout.temp_images_dir, "avatar-1-1.png", age_hours=48)

        result = svc.run_cleanup(dry_run=True)

        assert result.dry_run is True
        assert result.temp_images_removed == 1
        assert result.bytes_freed > 0
        assert old.exists()

    def test_referenced_outputs_kept(self, svc, layout, store):
        """Previews and PDFs a histoire still points at survive any age."""
        kept_preview = _create_old_file(layout.previews_dir, "preview-1-1.png", age_hours=24 * 30)
        kept_pdf = _create_old_file(layout.pdfs_dir, "generated-1-1.pdf", age_hours=24 * 30)
        orphan_preview = _create_old_file(layout.previews_dir, "preview-2-2.png", age_hours=24 * 30)
        orphan_pdf = _create_old_file(layout.pdfs_dir, "generated-2-2.pdf", age_hours=24 * 30)
        store.create_histoire(Histoire(
            template_id="t1",
            user_id="u1",
            preview_urls=[layout.public_url(kept_preview)],
            pdf_url=layout.public_url(kept_pdf),
            generated_pdf_url=layout.public_url(kept_pdf),
        ))

        result = svc.run_cleanup()

        assert result.orphaned_previews_removed == 1
        assert result.orphaned_pdfs_removed == 1
        assert kept_preview.exists()
        assert kept_pdf.exists()
        assert not orphan_preview.exists()
        assert not orphan_pdf.exists()

    def test_recent_orphans_kept(self, svc, layout):
        recent = _create_old_file(layout.pdfs_dir, "generated-3-3.pdf", age_hours=1)
        result = svc.run_cleanup()
        assert result.orphaned_pdfs_removed == 0
        assert recent.exists()

    def test_without_store_skips_orphans(self, layout):
        orphan = _create_old_file(layout.pdfs_dir, "generated-2-2.pdf", age_hours=24 * 60)
        svc = FileCleanupService(layout, None, temp_max_age_hours=24)

        result = svc.run_cleanup()

        assert result.orphaned_pdfs_removed == 0
        assert orphan.exists()

    def test_store_failure_recorded(self, layout):
        store = MagicMock()
        store.list_histoires.side_effect = RuntimeError("database is locked")
        orphan = _create_old_file(layout.pdfs_dir, "generated-2-2.pdf", age_hours=24 * 60)

        result = FileCleanupService(layout, store).run_cleanup()

        assert result.errors == ["histoire lookup: database is locked"]
        assert orphan.exists()


class TestCleanupResult:

    def test_str_format(self):
        result = CleanupResult(temp_images_removed=5, bytes_freed=1024 * 1024)
        s = str(result)
        assert "temp_images=5" in s
        assert "1.0MB" in s

    def test_dry_run_label(self):
        result = CleanupResult(dry_run=True)
        assert "DRY RUN" in str(result)
