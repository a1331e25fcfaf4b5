"""
Shared state and dependency getters for API route modules.

Services are built lazily on first use so tests can swap the uploads
directory and database (or use `app.dependency_overrides`) before anything
touches disk.
"""

from typing import Optional

from config.logging_config import get_logger
from config.settings import settings
from core.storybook import (
    EditorService,
    GenerationService,
    ImageResolver,
    PdfCompositor,
    PdfRasterizer,
    SQLiteStorybookStore,
    StorageLayout,
    TemplateService,
    VariableValidator,
)

logger = get_logger(__name__)

# --- Singletons ---

_layout: Optional[StorageLayout] = None
_store: Optional[SQLiteStorybookStore] = None
_resolver: Optional[ImageResolver] = None
_compositor: Optional[PdfCompositor] = None
_editor_service: Optional[EditorService] = None
_template_service: Optional[TemplateService] = None
_generation_service: Optional[GenerationService] = None


def get_layout() -> StorageLayout:
    global _layout
    if _layout is None:
        _layout = StorageLayout.from_settings(settings).ensure()
    return _layout


def get_store() -> SQLiteStorybookStore:
    global _store
    if _store is None:
        _store = SQLiteStorybookStore()
    return _store


def get_resolver() -> ImageResolver:
    global _resolver
    if _resolver is None:
        _resolver = ImageResolver(get_layout())
    return _resolver


def get_compositor() -> PdfCompositor:
    global _compositor
    if _compositor is None:
        _compositor = PdfCompositor(
            get_resolver(),
            base_font=settings.base_font,
            min_font_size=settings.min_font_size,
        )
    return _compositor


def get_editor_service() -> EditorService:
    global _editor_service
    if _editor_service is None:
        _editor_service = EditorService(get_store())
    return _editor_service


def get_template_service() -> TemplateService:
    global _template_service
    if _template_service is None:
        _template_service = TemplateService(
            get_store(),
            get_compositor(),
            get_layout(),
            preview_retention_hours=settings.temp_preview_retention_hours,
        )
    return _template_service


def get_generation_service() -> GenerationService:
    global _generation_service
    if _generation_service is None:
        layout = get_layout()
        _generation_service = GenerationService(
            store=get_store(),
            validator=VariableValidator(get_resolver()),
            compositor=get_compositor(),
            rasterizer=PdfRasterizer.from_settings(layout, settings),
            layout=layout,
        )
        logger.info(f"Generation service ready (uploads: {layout.uploads_dir})")
    return _generation_service


def reset_services() -> None:
    """Drop every cached service; the next getter call rebuilds from settings."""
    global _layout, _store, _resolver, _compositor
    global _editor_service, _template_service, _generation_service
    _layout = _store = _resolver = _compositor = None
    _editor_service = _template_service = _generation_service = None
