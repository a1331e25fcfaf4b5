"""
Template / Element / Histoire store (SQLite).

The pipeline only relies on three calls (see TemplateStore): get_template,
list_elements and set_template_variables. The rest is the CRUD the API and
editor need.

Usage:
    store = SQLiteStorybookStore()              # data/storybook.db
    store = SQLiteStorybookStore(SQLiteBackend(tmp_path / "test.db"))
"""

import json
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Sequence

from core.database import DatabaseBackend, get_db_backend

from .exceptions import ResourceNotFoundError
from .models import EditorElement, Histoire, PageDimensions, Template

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS templates (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    category TEXT NOT NULL,
    gender TEXT NOT NULL,
    age_range TEXT NOT NULL,
    language TEXT NOT NULL,
    pdf_path TEXT NOT NULL,
    cover_path TEXT NOT NULL,
    page_count INTEGER,
    dimensions TEXT,
    variables TEXT NOT NULL DEFAULT '[]',
    is_published INTEGER NOT NULL DEFAULT 0,
    is_featured INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS editor_elements (
    id TEXT PRIMARY KEY,
    template_id TEXT NOT NULL REFERENCES templates(id) ON DELETE CASCADE,
    page_index INTEGER NOT NULL DEFAULT 0,
    data TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_elements_template ON editor_elements(template_id, page_index);

CREATE TABLE IF NOT EXISTS histoires (
    id TEXT PRIMARY KEY,
    template_id TEXT NOT NULL,
    user_id TEXT NOT NULL,
    variables TEXT NOT NULL DEFAULT '{}',
    preview_urls TEXT NOT NULL DEFAULT '[]',
    pdf_url TEXT,
    generated_pdf_url TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_histoires_user ON histoires(user_id);
CREATE INDEX IF NOT EXISTS idx_histoires_template ON histoires(template_id);
"""

TEMPLATE_COLUMNS = (
    "title", "description", "category", "gender", "age_range", "language",
    "pdf_path", "cover_path", "page_count", "dimensions", "variables",
    "is_published", "is_featured",
)
HISTOIRE_COLUMNS = ("variables", "preview_urls", "pdf_url", "generated_pdf_url")


class TemplateStore(Protocol):
    """What the generation pipeline needs from persistence."""

    def get_template(self, template_id: str) -> Template: ...
    def list_elements(self, template_id: str) -> List[EditorElement]: ...
    def set_template_variables(self, template_id: str, names: Sequence[str]) -> None: ...


def _now() -> str:
    return datetime.now().isoformat()


def _new_id() -> str:
    return uuid.uuid4().hex


def _row_to_template(row) -> Template:
    return Template(
        id=row["id"],
        title=row["title"],
        description=row["description"],
        category=row["category"],
        gender=row["gender"],
        age_range=row["age_range"],
        language=row["language"],
        pdf_path=row["pdf_path"],
        cover_path=row["cover_path"],
        page_count=row["page_count"],
        dimensions=PageDimensions.from_dict(json.loads(row["dimensions"]) if row["dimensions"] else None),
        variables=json.loads(row["variables"] or "[]"),
        is_published=bool(row["is_published"]),
        is_featured=bool(row["is_featured"]),
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


def _row_to_element(row) -> EditorElement:
    data = json.loads(row["data"])
    data.update(
        id=row["id"],
        template_id=row["template_id"],
        page_index=row["page_index"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
    return EditorElement.from_dict(data)


def _row_to_histoire(row) -> Histoire:
    return Histoire(
        id=row["id"],
        template_id=row["template_id"],
        user_id=row["user_id"],
        variables=json.loads(row["variables"] or "{}"),
        preview_urls=json.loads(row["preview_urls"] or "[]"),
        pdf_url=row["pdf_url"],
        generated_pdf_url=row["generated_pdf_url"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


def _template_values(template: Template) -> Dict[str, Any]:
    return {
        "title": template.title,
        "description": template.description,
        "category": template.category,
        "gender": template.gender,
        "age_range": template.age_range,
        "language": template.language,
        "pdf_path": template.pdf_path,
        "cover_path": template.cover_path,
        "page_count": template.page_count,
        "dimensions": json.dumps(template.dimensions.to_dict()) if template.dimensions else None,
        "variables": json.dumps(list(template.variables), ensure_ascii=False),
        "is_published": int(template.is_published),
        "is_featured": int(template.is_featured),
    }


def _element_data(element: EditorElement) -> str:
    data = element.to_dict()
    for key in ("id", "template_id", "page_index", "created_at", "updated_at"):
        data.pop(key, None)
    return json.dumps(data, ensure_ascii=False)


class SQLiteStorybookStore:
    """Templates, editor elements and histoires in one SQLite database."""

    def __init__(self, backend: Optional[DatabaseBackend] = None):
        self.backend = backend or get_db_backend("storybook")
        self.backend.init_schema(SCHEMA)

    # ========== Templates ==========

    def create_template(self, template: Template) -> Template:
        template.id = template.id or _new_id()
        now = _now()
        values = _template_values(template)
        columns = ", ".join(("id",) + TEMPLATE_COLUMNS + ("created_at", "updated_at"))
        placeholders = ", ".join("?" for _ in range(len(TEMPLATE_COLUMNS) + 3))
        with self.backend.connection() as conn:
            conn.execute(
                f"INSERT INTO templates ({columns}) VALUES ({placeholders})",
                (template.id, *[values[c] for c in TEMPLATE_COLUMNS], now, now),
            )
        logger.info(f"[STORE] Created template {template.id} ({template.title!r})")
        return self.get_template(template.id)

    def find_template(self, template_id: str) -> Optional[Template]:
        with self.backend.connection() as conn:
            row = conn.execute("SELECT * FROM templates WHERE id = ?", (template_id,)).fetchone()
        return _row_to_template(row) if row else None

    def get_template(self, template_id: str) -> Template:
        template = self.find_template(template_id)
        if template is None:
            raise ResourceNotFoundError("Template", template_id)
        return template

    def list_templates(
        self,
        category: Optional[str] = None,
        gender: Optional[str] = None,
        age_range: Optional[str] = None,
        language: Optional[str] = None,
        is_published: Optional[bool] = None,
        is_featured: Optional[bool] = None,
    ) -> List[Template]:
        clauses, params = [], []
        for column, value in (
            ("category", category),
            ("gender", gender),
            ("age_range", age_range),
            ("language", language),
        ):
            if value is not None:
                clauses.append(f"{column} = ?")
                params.append(value)
        if is_published is not None:
            clauses.append("is_published = ?")
            params.append(int(is_published))
        if is_featured is not None:
            clauses.append("is_featured = ?")
            params.append(int(is_featured))

        sql = "SELECT * FROM templates"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY created_at DESC"
        with self.backend.connection() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [_row_to_template(r) for r in rows]

    def search_templates(self, query: str) -> List[Template]:
        """Published templates whose title, description or category contains `query`."""
        pattern = f"%{query.lower()}%"
        with self.backend.connection() as conn:
            rows = conn.execute(
                "SELECT * FROM templates WHERE is_published = 1 AND ("
                "lower(title) LIKE ? OR lower(description) LIKE ? OR lower(category) LIKE ?"
                ") ORDER BY created_at DESC",
                (pattern, pattern, pattern),
            ).fetchall()
        return [_row_to_template(r) for r in rows]

    def update_template(self, template_id: str, **fields) -> Template:
        template = self.get_template(template_id)
        for key, value in fields.items():
            if not hasattr(template, key) or key in ("id", "created_at", "updated_at"):
                raise ValueError(f"Unknown template field: {key}")
            setattr(template, key, value)

        values = _template_values(template)
        assignments = ", ".join(f"{c} = ?" for c in TEMPLATE_COLUMNS)
        with self.backend.connection() as conn:
            conn.execute(
                f"UPDATE templates SET {assignments}, updated_at = ? WHERE id = ?",
                (*[values[c] for c in TEMPLATE_COLUMNS], _now(), template_id),
            )
        return self.get_template(template_id)

    def set_template_variables(self, template_id: str, names: Sequence[str]) -> None:
        with self.backend.connection() as conn:
            cursor = conn.execute(
                "UPDATE templates SET variables = ?, updated_at = ? WHERE id = ?",
                (json.dumps(list(names), ensure_ascii=False), _now(), template_id),
            )
            if cursor.rowcount == 0:
                raise ResourceNotFoundError("Template", template_id)
        logger.info(f"[STORE] Template {template_id} variables: {list(names)}")

    def delete_template(self, template_id: str) -> Template:
        template = self.get_template(template_id)
        with self.backend.connection() as conn:
            conn.execute("DELETE FROM templates WHERE id = ?", (template_id,))
        return template

    # ========== Editor elements ==========

    def list_elements(self, template_id: str) -> List[EditorElement]:
        with self.backend.connection() as conn:
            rows = conn.execute(
                "SELECT * FROM editor_elements WHERE template_id = ? ORDER BY page_index, created_at, rowid",
                (template_id,),
            ).fetchall()
        return [_row_to_element(r) for r in rows]

    def get_element(self, element_id: str) -> EditorElement:
        with self.backend.connection() as conn:
            row = conn.execute("SELECT * FROM editor_elements WHERE id = ?", (element_id,)).fetchone()
        if row is None:
            raise ResourceNotFoundError("Element", element_id)
        return _row_to_element(row)

    def create_element(self, element: EditorElement) -> EditorElement:
        element.id = element.id or _new_id()
        now = _now()
        with self.backend.connection() as conn:
            conn.execute(
                "INSERT INTO editor_elements (id, template_id, page_index, data, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (element.id, element.template_id, element.page_index, _element_data(element), now, now),
            )
        return self.get_element(element.id)

    def update_element(self, element: EditorElement) -> EditorElement:
        with self.backend.connection() as conn:
            cursor = conn.execute(
                "UPDATE editor_elements SET page_index = ?, data = ?, updated_at = ? WHERE id = ?",
                (element.page_index, _element_data(element), _now(), element.id),
            )
            if cursor.rowcount == 0:
                raise ResourceNotFoundError("Element", element.id)
        return self.get_element(element.id)

    def delete_element(self, element_id: str) -> EditorElement:
        element = self.get_element(element_id)
        with self.backend.connection() as conn:
            conn.execute("DELETE FROM editor_elements WHERE id = ?", (element_id,))
        return element

    # ========== Histoires ==========

    def create_histoire(self, histoire: Histoire) -> Histoire:
        histoire.id = histoire.id or _new_id()
        now = _now()
        with self.backend.connection() as conn:
            conn.execute(
                "INSERT INTO histoires (id, template_id, user_id, variables, preview_urls, "
                "pdf_url, generated_pdf_url, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    histoire.id,
                    histoire.template_id,
                    histoire.user_id,
                    json.dumps(histoire.variables, ensure_ascii=False),
                    json.dumps(histoire.preview_urls),
                    histoire.pdf_url,
                    histoire.generated_pdf_url,
                    now,
                    now,
                ),
            )
        logger.info(f"[STORE] Created histoire {histoire.id} for template {histoire.template_id}")
        return self.get_histoire(histoire.id)

    def get_histoire(self, histoire_id: str) -> Histoire:
        with self.backend.connection() as conn:
            row = conn.execute("SELECT * FROM histoires WHERE id = ?", (histoire_id,)).fetchone()
        if row is None:
            raise ResourceNotFoundError("Histoire", histoire_id)
        return _row_to_histoire(row)

    def list_histoires(self, user_id: Optional[str] = None, template_id: Optional[str] = None) -> List[Histoire]:
        clauses, params = [], []
        if user_id is not None:
            clauses.append("user_id = ?")
            params.append(user_id)
        if template_id is not None:
            clauses.append("template_id = ?")
            params.append(template_id)
        sql = "SELECT * FROM histoires"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY created_at DESC"
        with self.backend.connection() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [_row_to_histoire(r) for r in rows]

    def update_histoire(self, histoire_id: str, **fields) -> Histoire:
        unknown = set(fields) - set(HISTOIRE_COLUMNS)
        if unknown:
            raise ValueError(f"Unknown histoire fields: {sorted(unknown)}")
        histoire = self.get_histoire(histoire_id)
        for key, value in fields.items():
            setattr(histoire, key, value)
        with self.backend.connection() as conn:
            conn.execute(
                "UPDATE histoires SET variables = ?, preview_urls = ?, pdf_url = ?, "
                "generated_pdf_url = ?, updated_at = ? WHERE id = ?",
                (
                    json.dumps(histoire.variables, ensure_ascii=False),
                    json.dumps(histoire.preview_urls),
                    histoire.pdf_url,
                    histoire.generated_pdf_url,
                    _now(),
                    histoire_id,
                ),
            )
        return self.get_histoire(histoire_id)

    def is_file_referenced(self, filename: str, exclude_histoire_id: Optional[str] = None) -> bool:
        """Whether another histoire's variables name `filename`."""
        with self.backend.connection() as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM histoires WHERE id != ? AND variables LIKE ?",
                (exclude_histoire_id or "", f'%{json.dumps(filename, ensure_ascii=False)}%'),
            ).fetchone()
        return row[0] > 0

    def delete_histoire(self, histoire_id: str) -> Histoire:
        histoire = self.get_histoire(histoire_id)
        with self.backend.connection() as conn:
            conn.execute("DELETE FROM histoires WHERE id = ?", (histoire_id,))
        return histoire
