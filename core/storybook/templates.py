"""
Template Service - storybook templates

Creation analyses the uploaded PDF (page count, first page size), normalizes
category/language slugs to their display labels and stores paths relative to
the uploads directory. Removal deletes the template's files.

Usage:
    service = TemplateService(store, compositor, layout)
    template = await service.create_template(metadata, pdf_path, cover_path)
    url = await service.preview_template(template.id, {"nom": "Ali"})
"""

import asyncio
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import fitz  # PyMuPDF

from .compositor import PdfCompositor
from .coordinates import page_dimensions_or_default
from .exceptions import TemplateNotAvailableError, TemplatePdfError
from .models import PageDimensions, Template
from .storage import StorageLayout, generate_filename, remove_files
from .store import SQLiteStorybookStore

logger = logging.getLogger(__name__)


class Gender(str, Enum):
    BOY = "boy"
    GIRL = "girl"
    UNISEX = "unisex"


AGE_RANGES = ("3 ans - 5 ans", "6 ans - 8 ans", "9 ans - 11 ans", "12 ans - 15 ans")

CATEGORY_LABELS = {
    "contes-et-aventures-imaginaires": "Contes et aventures imaginaires",
    "heros-du-quotidien": "Héros du quotidien",
    "histoires-avec-des-animaux": "Histoires avec des animaux",
    "histoires-educatives": "Histoires éducatives",
    "valeurs-et-developpement-personnel": "Valeurs et développement personnel",
    "vie-quotidienne-et-ecole": "Vie quotidienne et école",
    "fetes-et-occasions-speciales": "Fêtes et occasions spéciales",
    "exploration-et-science-fiction": "Exploration et science-fiction",
    "culture-et-traditions": "Culture et traditions",
    "histoires-du-soir": "Histoires du soir",
}

LANGUAGE_LABELS = {
    "français": "Français",
    "anglais": "Anglais",
    "arabe": "Arabe",
}


def normalize_category(category: str) -> str:
    return CATEGORY_LABELS.get(category, category)


def normalize_language(language: str) -> str:
    return LANGUAGE_LABELS.get(language, language)


def analyze_pdf(pdf_path: Path) -> Tuple[int, PageDimensions]:
    """
    Page count and first page dimensions (points) of a PDF.

    Raises:
        TemplatePdfError: missing file, unreadable PDF or no pages
    """
    pdf_path = Path(pdf_path)
    if not pdf_path.is_file():
        raise TemplatePdfError(f"Template PDF not found: {pdf_path.name}")
    try:
        with fitz.open(pdf_path) as doc:
            if not doc.is_pdf or doc.page_count == 0:
                raise TemplatePdfError("Invalid PDF file")
            rect = doc[0].rect
            return doc.page_count, PageDimensions(width=rect.width, height=rect.height)
    except (RuntimeError, ValueError) as e:
        raise TemplatePdfError(f"Invalid PDF file: {e}") from e


class TemplateService:
    def __init__(
        self,
        store: SQLiteStorybookStore,
        compositor: PdfCompositor,
        layout: StorageLayout,
        preview_retention_hours: float = 24,
    ):
        self.store = store
        self.compositor = compositor
        self.layout = layout
        self.preview_retention_hours = preview_retention_hours

    async def create_template(self, metadata: Mapping[str, Any], pdf_path: Path, cover_path: Path) -> Template:
        """
        Create a template from uploaded files already saved under uploads/.

        On any failure both uploaded files are removed.
        """
        try:
            page_count, dimensions = await asyncio.to_thread(analyze_pdf, pdf_path)
            template = Template(
                title=metadata["title"],
                description=metadata.get("description", ""),
                category=normalize_category(metadata["category"]),
                gender=Gender(metadata["gender"]).value,
                age_range=metadata["age_range"],
                language=normalize_language(metadata["language"]),
                pdf_path=self.layout.relative_path(pdf_path),
                cover_path=self.layout.relative_path(cover_path),
                page_count=page_count,
                dimensions=dimensions,
                is_published=bool(metadata.get("is_published", False)),
                is_featured=bool(metadata.get("is_featured", False)),
            )
            created = self.store.create_template(template)
        except Exception:
            remove_files([pdf_path, cover_path])
            raise

        logger.info(
            f"[TEMPLATES] Created {created.id}: {page_count} pages, "
            f"{dimensions.width:.0f}x{dimensions.height:.0f}pt"
        )
        return created

    def get_template(self, template_id: str) -> Template:
        return self.store.get_template(template_id)

    def list_templates(self, **filters) -> List[Template]:
        if filters.get("category"):
            filters["category"] = normalize_category(filters["category"])
        if filters.get("language"):
            filters["language"] = normalize_language(filters["language"])
        return self.store.list_templates(**filters)

    def search_templates(self, query: str, limit: int = 10) -> List[Template]:
        if not query.strip():
            return []
        return self.store.search_templates(query.strip())[:limit]

    async def update_template(
        self,
        template_id: str,
        changes: Mapping[str, Any],
        pdf_path: Optional[Path] = None,
        cover_path: Optional[Path] = None,
    ) -> Template:
        """Update metadata; a new PDF is re-analysed and replaces the old file."""
        current = self.store.get_template(template_id)
        fields: Dict[str, Any] = {k: v for k, v in changes.items() if v is not None}
        if "category" in fields:
            fields["category"] = normalize_category(fields["category"])
        if "language" in fields:
            fields["language"] = normalize_language(fields["language"])
        if "gender" in fields:
            fields["gender"] = Gender(fields["gender"]).value

        replaced: List[Path] = []
        if pdf_path is not None:
            try:
                page_count, dimensions = await asyncio.to_thread(analyze_pdf, pdf_path)
            except TemplatePdfError:
                remove_files([pdf_path, cover_path])
                raise
            fields.update(
                pdf_path=self.layout.relative_path(pdf_path),
                page_count=page_count,
                dimensions=dimensions,
            )
            replaced.append(self.layout.absolute_path(current.pdf_path))
        if cover_path is not None:
            fields["cover_path"] = self.layout.relative_path(cover_path)
            replaced.append(self.layout.absolute_path(current.cover_path))

        updated = self.store.update_template(template_id, **fields)
        remove_files(replaced)
        return updated

    def remove_template(self, template_id: str) -> None:
        template = self.store.delete_template(template_id)
        remove_files([
            self.layout.absolute_path(template.pdf_path),
            self.layout.absolute_path(template.cover_path),
        ])
        logger.info(f"[TEMPLATES] Removed template {template_id}")

    def read_template_pdf(self, template: Template) -> bytes:
        path = self.layout.absolute_path(template.pdf_path)
        if not path.is_file():
            raise TemplatePdfError(f"Template PDF not found: {template.pdf_path}")
        return path.read_bytes()

    async def preview_template(self, template_id: str, variables: Mapping[str, Any]) -> str:
        """
        Compose a throwaway PDF for a published template.

        Returns the public URL of `temp-previews/preview-<id>-<ms>-<rand>.pdf`;
        the file is scheduled for removal after the retention window.
        """
        template = await asyncio.to_thread(self.store.get_template, template_id)
        if not template.is_published:
            raise TemplateNotAvailableError(template_id)

        elements = await asyncio.to_thread(self.store.list_elements, template_id)
        pdf_bytes = await asyncio.to_thread(self.read_template_pdf, template)
        result = await asyncio.to_thread(
            self.compositor.compose,
            pdf_bytes,
            elements,
            dict(variables),
            page_dimensions_or_default(template.dimensions),
        )

        self.layout.temp_previews_dir.mkdir(parents=True, exist_ok=True)
        path = self.layout.temp_previews_dir / generate_filename(f"preview-{template_id}", "pdf")
        await asyncio.to_thread(path.write_bytes, result.pdf_bytes)
        self.schedule_removal(path)

        logger.info(f"[TEMPLATES] Preview for {template_id}: {path.name} ({result.failed} element errors)")
        return self.layout.public_url(path)

    def schedule_removal(self, path: Path) -> None:
        """Best-effort in-process removal; FileCleanupService covers restarts."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        loop.call_later(self.preview_retention_hours * 3600, remove_files, [path])
