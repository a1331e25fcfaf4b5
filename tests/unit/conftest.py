"""
Shared fixtures for storybook unit tests.

Every fixture works under tmp_path: an uploads tree, a SQLite store and
template PDFs drawn with reportlab.
"""

import io
from unittest.mock import MagicMock

import pytest
from PIL import Image
from reportlab.pdfgen import canvas

from core.database import SQLiteBackend
from core.storybook import (
    ImageResolver,
    PageDimensions,
    PdfCompositor,
    SQLiteStorybookStore,
    StorageLayout,
    Template,
    generate_filename,
)

A4 = PageDimensions(width=595.0, height=842.0)


# ============================================================
# Helper Functions
# ============================================================

def make_pdf_bytes(pages: int = 1, width: float = 595.0, height: float = 842.0, label: str = "Page") -> bytes:
    """A plain PDF with one line of text per page."""
    buffer = io.BytesIO()
    c = canvas.Canvas(buffer, pagesize=(width, height))
    for i in range(pages):
        c.setFont("Helvetica", 10)
        c.drawString(20, 20, f"{label} {i + 1}")
        c.showPage()
    c.save()
    return buffer.getvalue()


def make_image_bytes(fmt: str = "PNG", size=(8, 8), color=(200, 30, 30)) -> bytes:
    buffer = io.BytesIO()
    mode = "RGB" if fmt in ("JPEG", "WEBP") else "RGBA"
    Image.new(mode, size, color).save(buffer, format=fmt)
    return buffer.getvalue()


# ============================================================
# Fixtures
# ============================================================

@pytest.fixture
def make_pdf():
    return make_pdf_bytes


@pytest.fixture
def make_image():
    return make_image_bytes


@pytest.fixture
def layout(tmp_path):
    return StorageLayout.from_root(tmp_path / "uploads").ensure()


@pytest.fixture
def store(tmp_path):
    return SQLiteStorybookStore(SQLiteBackend(tmp_path / "db" / "storybook.db"))


@pytest.fixture
def resolver(layout):
    return ImageResolver(layout)


@pytest.fixture
def compositor(resolver):
    return PdfCompositor(resolver)


@pytest.fixture
def png_bytes():
    return make_image_bytes("PNG")


@pytest.fixture
def template_pdf(layout):
    """A two-page A4 template PDF saved under uploads/."""
    path = layout.uploads_dir / "template-1-1.pdf"
    path.write_bytes(make_pdf_bytes(pages=2))
    return path


@pytest.fixture
def saved_template(store, layout, template_pdf):
    cover = layout.uploads_dir / "cover-1-1.png"
    cover.write_bytes(make_image_bytes("PNG"))
    return store.create_template(Template(
        title="Le voyage de (nom)",
        description="Une aventure",
        category="Contes et aventures imaginaires",
        gender="unisex",
        age_range="3 ans - 5 ans",
        language="Français",
        pdf_path=layout.relative_path(template_pdf),
        cover_path=layout.relative_path(cover),
        page_count=2,
        dimensions=A4,
        is_published=True,
    ))


@pytest.fixture
def rasterizer(layout):
    """Stands in for poppler: writes one fake PNG preview per call."""
    stub = MagicMock()

    def _render(pdf_bytes):
        path = layout.previews_dir / generate_filename("preview", "png")
        path.write_bytes(b"\x89PNG\r\n\x1a\nfake")
        return [path]

    stub.to_preview_images.side_effect = _render
    return stub


@pytest.fixture
def client(layout, store, resolver, compositor, rasterizer):
    """TestClient whose services all work under tmp_path."""
    from fastapi.testclient import TestClient

    from api import deps
    from api.main import app
    from api.rate_limiter import limiter
    from core.storybook import EditorService, GenerationService, TemplateService, VariableValidator

    generation = GenerationService(store, VariableValidator(resolver), compositor, rasterizer, layout)
    app.dependency_overrides[deps.get_layout] = lambda: layout
    app.dependency_overrides[deps.get_store] = lambda: store
    app.dependency_overrides[deps.get_resolver] = lambda: resolver
    app.dependency_overrides[deps.get_editor_service] = lambda: EditorService(store)
    app.dependency_overrides[deps.get_template_service] = lambda: TemplateService(store, compositor, layout)
    app.dependency_overrides[deps.get_generation_service] = lambda: generation

    limiter.reset()
    yield TestClient(app)

    app.dependency_overrides.clear()
