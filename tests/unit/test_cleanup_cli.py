"""Tests for the scripts/cleanup.py CLI."""

from unittest.mock import patch

from core.services.file_cleanup import CleanupResult
from scripts import cleanup


class TestCleanupCli:

    @patch("core.services.file_cleanup.FileCleanupService.run_cleanup")
    def test_dry_run_without_store(self, mock_run, capsys):
        mock_run.return_value = CleanupResult(temp_images_removed=2, dry_run=True)

        assert cleanup.main(["--dry-run", "--skip-orphans", "--temp-hours", "12"]) == 0

        mock_run.assert_called_once_with(dry_run=True)
        out = capsys.readouterr().out
        assert "DRY RUN" in out
        assert "temp_images=2" in out

    @patch("core.services.file_cleanup.FileCleanupService.run_cleanup")
    def test_warnings_printed(self, mock_run, capsys):
        mock_run.return_value = CleanupResult(errors=["pdfs/a.pdf: permission denied"])

        cleanup.main(["--skip-orphans"])

        out = capsys.readouterr().out
        assert "Warnings (1):" in out
        assert "pdfs/a.pdf: permission denied" in out
