"""
Generation Service - personalized histoires

A generation request moves through

    received -> validated -> composed -> rasterized -> persisted

and any failing stage moves it to `failed`, carrying that stage. Nothing is
persisted before composition succeeds, and every file written for a failed
request (uploaded images, PDF, previews) is removed.

Missing poppler is not a failure: the histoire is saved without previews.

Usage:
    service = GenerationService(store, validator, compositor, rasterizer, layout)
    outcome = await service.generate(template_id, user_id, variables, uploaded_paths)
    outcome.histoire.pdf_url   # /uploads/pdfs/generated-...pdf
"""

import asyncio
import logging
import shutil
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .compositor import CompositionResult, PdfCompositor
from .coordinates import page_dimensions_or_default
from .data_uri import is_data_uri
from .exceptions import (
    GenerationError,
    InvalidVariablesError,
    ResourceNotFoundError,
    TemplatePdfError,
    ToolchainError,
    VariablesValidationError,
)
from .models import ElementType, Histoire, Template
from .rasterizer import PdfRasterizer
from .storage import StorageLayout, generate_filename, remove_files
from .store import SQLiteStorybookStore
from .validator import VariableValidator
from .variables import merge_default_values

logger = logging.getLogger(__name__)

# Pre-filled values for the preview flow; user values win
PREVIEW_DEFAULTS = {
    "nom": "Alex",
    "âge": "5",
    "date": "2025-10-30",
    "image": "/assets/avatar.png",
}


class GenerationStage(str, Enum):
    RECEIVED = "received"
    VALIDATED = "validated"
    COMPOSED = "composed"
    RASTERIZED = "rasterized"
    PERSISTED = "persisted"
    FAILED = "failed"


@dataclass
class GenerationRun:
    """Stage tracking for one request."""
    template_id: str
    stage: GenerationStage = GenerationStage.RECEIVED
    failed_stage: Optional[GenerationStage] = None
    error: Optional[str] = None
    written_files: List[Path] = field(default_factory=list)

    def advance(self, stage: GenerationStage) -> None:
        logger.debug(f"[GENERATION] {self.template_id}: {self.stage.value} -> {stage.value}")
        self.stage = stage

    def fail(self, error: BaseException) -> None:
        """The stage being attempted is the one after the last reached."""
        order = list(GenerationStage)
        attempted = order[min(order.index(self.stage) + 1, order.index(GenerationStage.PERSISTED))]
        self.failed_stage = attempted
        self.error = str(error)
        self.stage = GenerationStage.FAILED
        logger.error(f"[GENERATION] {self.template_id} failed at {attempted.value}: {error}")


@dataclass
class GenerationOutcome:
    histoire: Histoire
    composition: CompositionResult
    run: GenerationRun

    def to_dict(self) -> Dict:
        return {
            "histoire": self.histoire.to_dict(),
            "histoire_id": self.histoire.id,
            "preview_urls": list(self.histoire.preview_urls),
            "pdf_url": self.histoire.pdf_url,
            "elements": self.composition.to_dict(),
        }


class GenerationService:
    def __init__(
        self,
        store: SQLiteStorybookStore,
        validator: VariableValidator,
        compositor: PdfCompositor,
        rasterizer: PdfRasterizer,
        layout: StorageLayout,
    ):
        self.store = store
        self.validator = validator
        self.compositor = compositor
        self.rasterizer = rasterizer
        self.layout = layout

    # ========== Flows ==========

    async def generate(
        self,
        template_id: str,
        user_id: str,
        variables: Any,
        uploaded_paths: Optional[Sequence[str]] = None,
    ) -> GenerationOutcome:
        """Validated, all-or-nothing generation of a new histoire."""
        return await self._run(template_id, user_id, variables, uploaded_paths, validate=True)

    async def preview(
        self,
        template_id: str,
        user_id: str,
        variables: Any,
        uploaded_paths: Optional[Sequence[str]] = None,
    ) -> GenerationOutcome:
        """
        Preview with placeholder values for anything the user left out.

        Not validated: unresolved images show up as element errors.
        """
        if not isinstance(variables, Mapping):
            raise InvalidVariablesError("Variables must be a valid object")
        merged = {**PREVIEW_DEFAULTS, **variables}
        return await self._run(template_id, user_id, merged, uploaded_paths, validate=False)

    async def regenerate_pdf(self, histoire_id: str, user_id: Optional[str] = None) -> Histoire:
        """Recompose an existing histoire's PDF from its stored variables."""
        histoire = await asyncio.to_thread(self._get_owned_histoire, histoire_id, user_id)
        template = await asyncio.to_thread(self.store.get_template, histoire.template_id)
        elements = await asyncio.to_thread(self.store.list_elements, template.id)

        composition = await self._compose(template, elements, histoire.variables, self._persisted_images(histoire))
        pdf_path = self.layout.pdfs_dir / generate_filename("generated", "pdf")
        try:
            await asyncio.to_thread(self._write, pdf_path, composition.pdf_bytes)
        except OSError as e:
            remove_files([pdf_path])
            raise GenerationError(GenerationStage.COMPOSED.value, "Failed to write PDF", e) from e

        old_pdf = self.layout.path_from_url(histoire.pdf_url)
        pdf_url = self.layout.public_url(pdf_path)
        updated = await asyncio.to_thread(
            self.store.update_histoire, histoire_id, pdf_url=pdf_url, generated_pdf_url=pdf_url
        )
        if old_pdf and old_pdf != pdf_path:
            remove_files([old_pdf])
        logger.info(f"[GENERATION] Regenerated PDF for histoire {histoire_id}: {pdf_url}")
        return updated

    def create_histoire(self, template_id: str, user_id: str, variables: Any) -> Histoire:
        """Save a histoire's variables without generating anything."""
        if not isinstance(variables, Mapping):
            raise InvalidVariablesError("Variables must be a valid object")
        self.store.get_template(template_id)
        return self.store.create_histoire(
            Histoire(template_id=template_id, user_id=user_id, variables=dict(variables))
        )

    def get_histoire(self, histoire_id: str, user_id: Optional[str] = None) -> Histoire:
        return self._get_owned_histoire(histoire_id, user_id)

    def list_histoires(self, user_id: Optional[str] = None, template_id: Optional[str] = None) -> List[Histoire]:
        if template_id is not None:
            self.store.get_template(template_id)
        return self.store.list_histoires(user_id=user_id, template_id=template_id)

    def update_histoire(self, histoire_id: str, user_id: Optional[str], variables: Any) -> Histoire:
        if not isinstance(variables, Mapping):
            raise InvalidVariablesError("Variables must be a valid object")
        self._get_owned_histoire(histoire_id, user_id)
        return self.store.update_histoire(histoire_id, variables=dict(variables))

    def delete_histoire(self, histoire_id: str, user_id: Optional[str] = None) -> int:
        """Delete the record and its previews, PDFs and persisted images."""
        histoire = self._get_owned_histoire(histoire_id, user_id)
        urls = list(histoire.preview_urls) + [histoire.pdf_url, histoire.generated_pdf_url]
        paths = {p for p in (self.layout.path_from_url(u) for u in urls) if p is not None}
        paths.update(
            p for p in self._persisted_images(histoire)
            if not self.store.is_file_referenced(p.name, exclude_histoire_id=histoire_id)
        )

        self.store.delete_histoire(histoire_id)
        removed = remove_files(sorted(paths))
        logger.info(f"[GENERATION] Deleted histoire {histoire_id} ({removed} files)")
        return removed

    # ========== Pipeline ==========

    async def _run(
        self,
        template_id: str,
        user_id: str,
        variables: Any,
        uploaded_paths: Optional[Sequence[str]],
        validate: bool,
    ) -> GenerationOutcome:
        run = GenerationRun(template_id=template_id)
        uploaded = [str(p) for p in (uploaded_paths or [])]

        try:
            if not isinstance(variables, Mapping):
                raise InvalidVariablesError("Variables must be a valid object")
            template = await asyncio.to_thread(self.store.get_template, template_id)
            elements = await asyncio.to_thread(self.store.list_elements, template_id)
            values = merge_default_values(elements, variables)

            if validate:
                report = await asyncio.to_thread(self.validator.validate, elements, values, uploaded)
                if not report.valid:
                    raise VariablesValidationError(report)
            run.advance(GenerationStage.VALIDATED)

            composition = await self._compose(template, elements, values, uploaded)
            pdf_path = self.layout.pdfs_dir / generate_filename("generated", "pdf")
            run.written_files.append(pdf_path)
            await asyncio.to_thread(self._write, pdf_path, composition.pdf_bytes)
            run.advance(GenerationStage.COMPOSED)

            previews = await self._rasterize(composition.pdf_bytes)
            run.written_files.extend(previews)
            run.advance(GenerationStage.RASTERIZED)

            stored_variables = dict(variables)
            persisted = await asyncio.to_thread(
                self._persist_uploaded_images, elements, stored_variables, uploaded
            )
            run.written_files.extend(persisted)

            pdf_url = self.layout.public_url(pdf_path)
            histoire = await asyncio.to_thread(self.store.create_histoire, Histoire(
                template_id=template_id,
                user_id=user_id,
                variables=stored_variables,
                preview_urls=[self.layout.public_url(p) for p in previews],
                pdf_url=pdf_url,
                generated_pdf_url=pdf_url,
            ))
            run.advance(GenerationStage.PERSISTED)
        except Exception as e:
            run.fail(e)
            remove_files(run.written_files + [Path(p) for p in uploaded])
            if isinstance(e, (InvalidVariablesError, ResourceNotFoundError, VariablesValidationError)):
                raise
            raise GenerationError(run.failed_stage.value, "Failed to generate histoire", e) from e

        # Uploads not moved into histoires-images are request-scoped
        remove_files(p for p in uploaded if Path(p).exists())

        logger.info(
            f"[GENERATION] Histoire {histoire.id}: {len(histoire.preview_urls)} previews, "
            f"{composition.succeeded} elements drawn, {composition.failed} failed"
        )
        return GenerationOutcome(histoire=histoire, composition=composition, run=run)

    async def _compose(
        self,
        template: Template,
        elements,
        variables: Mapping[str, Any],
        uploaded: Sequence[str],
    ) -> CompositionResult:
        pdf_path = self.layout.absolute_path(template.pdf_path)
        if not pdf_path.is_file():
            raise TemplatePdfError(f"Template PDF not found: {template.pdf_path}")
        pdf_bytes = await asyncio.to_thread(pdf_path.read_bytes)
        return await asyncio.to_thread(
            self.compositor.compose,
            pdf_bytes,
            elements,
            variables,
            page_dimensions_or_default(template.dimensions),
            uploaded,
        )

    async def _rasterize(self, pdf_bytes: bytes) -> List[Path]:
        try:
            return await asyncio.to_thread(self.rasterizer.to_preview_images, pdf_bytes)
        except ToolchainError as e:
            logger.warning(f"[GENERATION] Previews skipped, rasterizer unavailable: {e}")
            return []

    @staticmethod
    def _write(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    def _persist_uploaded_images(
        self,
        elements,
        variables: Dict[str, Any],
        uploaded: Sequence[str],
    ) -> List[Path]:
        """
        Move this request's uploaded images into histoires-images and point
        the stored variable values at the moved files.
        """
        moved: List[Path] = []
        if not uploaded:
            return moved
        self.layout.histoires_images_dir.mkdir(parents=True, exist_ok=True)

        for element in elements:
            name = element.variable_name
            if element.type != ElementType.IMAGE or not name:
                continue
            value = variables.get(name)
            if not isinstance(value, str) or not value or is_data_uri(value):
                continue
            lookup = self.validator.resolver.find_image(name, value, uploaded)
            if not lookup.found or lookup.image_path not in uploaded:
                continue
            source = Path(lookup.image_path)
            if not source.exists():
                continue
            target = self.layout.histoires_images_dir / source.name
            shutil.move(str(source), str(target))
            variables[name] = target.name
            moved.append(target)
        return moved

    def _persisted_images(self, histoire: Histoire) -> List[Path]:
        """Stored variable values naming files in histoires-images."""
        paths = []
        for value in histoire.variables.values():
            if isinstance(value, str) and value and "/" not in value and not is_data_uri(value):
                candidate = self.layout.histoires_images_dir / value
                if candidate.is_file():
                    paths.append(candidate)
        return paths

    def _get_owned_histoire(self, histoire_id: str, user_id: Optional[str]) -> Histoire:
        histoire = self.store.get_histoire(histoire_id)
        if user_id is not None and histoire.user_id != user_id:
            logger.warning(f"[GENERATION] Histoire {histoire_id} access denied for user {user_id}")
            raise ResourceNotFoundError("Histoire", histoire_id)
        return histoire
