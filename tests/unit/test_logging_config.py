"""Tests for config/logging_config.py."""

import logging
from logging.handlers import RotatingFileHandler

import pytest

from config import logging_config


@pytest.fixture
def added_handlers(monkeypatch):
    """Run setup_logging as if for the first time; yields the handlers it adds to the root logger."""
    root = logging.getLogger()
    before, saved_level = list(root.handlers), root.level
    monkeypatch.setattr(logging_config, "_configured", False)

    yield lambda: [h for h in root.handlers if h not in before]

    for handler in [h for h in root.handlers if h not in before]:
        root.removeHandler(handler)
        handler.close()
    root.setLevel(saved_level)


class TestSetupLogging:

    def test_writes_to_logs_dir(self, added_handlers, tmp_path):
        logs_dir = tmp_path / "logs"
        logging_config.setup_logging("DEBUG", logs_dir=logs_dir)

        logging.getLogger("storybook.test").info("hello file")
        for handler in added_handlers():
            handler.flush()

        assert any(isinstance(h, RotatingFileHandler) for h in added_handlers())
        assert "hello file" in (logs_dir / logging_config.LOG_FILE_NAME).read_text(encoding="utf-8")
        assert logging.getLogger().level == logging.DEBUG

    def test_configures_once(self, added_handlers, tmp_path):
        logging_config.setup_logging(logs_dir=tmp_path)
        logging_config.setup_logging(logs_dir=tmp_path)
        assert len(added_handlers()) == 2
