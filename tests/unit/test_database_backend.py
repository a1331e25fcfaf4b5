"""Tests for the database abstraction layer, against the storybook schema."""

import pytest

from core.database import get_db_backend
from core.database.protocol import DatabaseBackend
from core.database.sqlite_backend import SQLiteBackend
from core.storybook.store import SCHEMA

TEMPLATE_ROW = (
    "INSERT INTO templates (id, title, category, gender, age_range, language, pdf_path, cover_path, "
    "created_at, updated_at) VALUES (?, 'Le voyage', 'Contes', 'boy', '3 ans - 5 ans', 'Français', "
    "'template-1-1.pdf', 'cover-1-1.png', '2025-01-01T00:00:00', '2025-01-01T00:00:00')"
)
ELEMENT_ROW = (
    "INSERT INTO editor_elements (id, template_id, page_index, data, created_at, updated_at) "
    "VALUES (?, ?, 0, '{}', '2025-01-01T00:00:00', '2025-01-01T00:00:00')"
)


@pytest.fixture
def backend(tmp_path):
    db = SQLiteBackend(tmp_path / "storybook.db")
    db.init_schema(SCHEMA)
    return db


class TestSQLiteBackend:

    def test_implements_protocol(self, backend):
        assert isinstance(backend, DatabaseBackend)

    def test_init_schema_is_idempotent(self, backend):
        backend.init_schema(SCHEMA)
        with backend.connection() as conn:
            names = {r["name"] for r in conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()}
        assert {"templates", "editor_elements", "histoires"} <= names

    def test_commit_on_success(self, backend):
        with backend.connection() as conn:
            conn.execute(TEMPLATE_ROW, ("t1",))

        with backend.connection() as conn:
            row = conn.execute("SELECT title FROM templates WHERE id = ?", ("t1",)).fetchone()
        assert row["title"] == "Le voyage"

    def test_rollback_on_error(self, backend):
        with pytest.raises(RuntimeError):
            with backend.connection() as conn:
                conn.execute(TEMPLATE_ROW, ("t1",))
                raise RuntimeError("force rollback")

        with backend.connection() as conn:
            assert conn.execute("SELECT COUNT(*) FROM templates").fetchone()[0] == 0

    def test_foreign_keys_cascade(self, backend):
        with backend.connection() as conn:
            conn.execute(TEMPLATE_ROW, ("t1",))
            conn.execute(ELEMENT_ROW, ("e1", "t1"))
            conn.execute(ELEMENT_ROW, ("e2", "t1"))

        with backend.connection() as conn:
            conn.execute("DELETE FROM templates WHERE id = ?", ("t1",))
            assert conn.rowcount == 1

        with backend.connection() as conn:
            assert conn.execute("SELECT COUNT(*) FROM editor_elements").fetchone()[0] == 0

    def test_element_needs_existing_template(self, backend):
        with pytest.raises(Exception, match="FOREIGN KEY"):
            with backend.connection() as conn:
                conn.execute(ELEMENT_ROW, ("e1", "missing"))

    def test_empty_results(self, backend):
        with backend.connection() as conn:
            assert conn.execute("SELECT * FROM histoires").fetchone() is None
            assert conn.execute("SELECT * FROM histoires").fetchall() == []

    def test_creates_parent_dirs(self, tmp_path):
        deep_path = tmp_path / "a" / "b" / "storybook.db"
        SQLiteBackend(deep_path).init_schema(SCHEMA)
        assert deep_path.exists()


class TestGetDbBackend:

    def test_sqlite_path_from_name(self, tmp_path):
        backend = get_db_backend("storybook", db_dir=tmp_path)
        assert isinstance(backend, SQLiteBackend)
        assert backend.db_path == tmp_path / "storybook.db"

    def test_unsupported_backend(self, tmp_path, monkeypatch):
        from config.settings import settings
        monkeypatch.setattr(settings, "database_backend", "postgres")
        with pytest.raises(ValueError, match="Unsupported database backend"):
            get_db_backend("storybook", db_dir=tmp_path)
