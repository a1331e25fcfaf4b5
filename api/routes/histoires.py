"""
Histoire endpoints: preview, generate, regenerate and CRUD.

Preview and generate take multipart forms:

    template_id   the template to personalize
    user_id       owner of the new histoire
    variables     JSON object string, e.g. {"nom": "Ali", "âge": "6"}
    images_<var>  one image file per image variable (jpg/png/gif/webp, 5MB)

An uploaded file's saved name becomes the value of its variable.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from api.deps import get_generation_service, get_layout, get_store
from api.rate_limiter import limiter, rate_limit_config
from api.models import (
    DeleteResponse,
    GenerationResponse,
    HistoireCreate,
    HistoireResponse,
    HistoireUpdate,
)
from api.upload_utils import parse_variables_field, save_image_uploads
from config.logging_config import get_logger
from core.storybook import GenerationService, SQLiteStorybookStore, StorageLayout
from core.storybook.generation import PREVIEW_DEFAULTS

logger = get_logger(__name__)

router = APIRouter(prefix="/histoires", tags=["Histoires"])


async def _read_generation_form(request: Request, layout: StorageLayout):
    """Parse the multipart form into (template_id, user_id, variables, uploaded_paths)."""
    form = await request.form()
    template_id = form.get("template_id") or form.get("templateId")
    user_id = form.get("user_id") or form.get("userId")
    if not isinstance(template_id, str) or not template_id:
        raise HTTPException(status_code=400, detail="template_id is required")
    if not isinstance(user_id, str) or not user_id:
        raise HTTPException(status_code=400, detail="user_id is required")

    variables = parse_variables_field(form.get("variables"))
    image_values, uploaded_paths = await save_image_uploads(form, layout)
    variables.update(image_values)
    return template_id, user_id, variables, uploaded_paths


@router.post("/preview", response_model=GenerationResponse)
@limiter.limit(rate_limit_config.get_limit("preview"))
async def preview_histoire(
    request: Request,
    service: GenerationService = Depends(get_generation_service),
    layout: StorageLayout = Depends(get_layout),
):
    """
    Preview a personalized histoire.

    Missing values are filled with placeholders (nom=Alex, âge=5, ...); the
    histoire is saved with its preview images and PDF.
    """
    template_id, user_id, variables, uploaded = await _read_generation_form(request, layout)
    logger.info(f"Preview for template {template_id} by user {user_id} ({len(uploaded)} images)")
    outcome = await service.preview(template_id, user_id, variables, uploaded)
    return outcome.to_dict()


@router.post("/generate", response_model=GenerationResponse, status_code=201)
@limiter.limit(rate_limit_config.get_limit("generate"))
async def generate_histoire(
    request: Request,
    service: GenerationService = Depends(get_generation_service),
    layout: StorageLayout = Depends(get_layout),
):
    """
    Generate a histoire.

    Every variable the template uses must be supplied and every image
    variable must resolve; otherwise the response is a 400 listing all the
    problems and nothing is saved.
    """
    template_id, user_id, variables, uploaded = await _read_generation_form(request, layout)
    logger.info(f"Generating histoire for template {template_id} by user {user_id} ({len(uploaded)} images)")
    outcome = await service.generate(template_id, user_id, variables, uploaded)
    return outcome.to_dict()


@router.post("/{histoire_id}/generer", response_model=HistoireResponse)
async def regenerate_pdf(
    histoire_id: str,
    user_id: Optional[str] = None,
    service: GenerationService = Depends(get_generation_service),
):
    """Recompose the histoire's PDF from its stored variables"""
    histoire = await service.regenerate_pdf(histoire_id, user_id)
    return histoire.to_dict()


@router.get("/template/{template_id}", response_model=List[HistoireResponse])
async def list_histoires_for_template(
    template_id: str,
    service: GenerationService = Depends(get_generation_service),
):
    return [h.to_dict() for h in service.list_histoires(template_id=template_id)]


@router.get("/template/{template_id}/variables")
async def get_template_variables(
    template_id: str,
    store: SQLiteStorybookStore = Depends(get_store),
):
    """Variables a template needs, with the placeholder values used by previews"""
    template = store.get_template(template_id)
    return {
        "variables": template.variables,
        "default_values": PREVIEW_DEFAULTS,
    }


@router.get("", response_model=List[HistoireResponse])
async def list_histoires(
    user_id: str = Query(...),
    service: GenerationService = Depends(get_generation_service),
):
    """Histoires owned by a user, newest first"""
    return [h.to_dict() for h in service.list_histoires(user_id=user_id)]


@router.post("", response_model=HistoireResponse, status_code=201)
async def create_histoire(
    request: HistoireCreate,
    service: GenerationService = Depends(get_generation_service),
):
    """Save variables for later generation"""
    histoire = service.create_histoire(request.template_id, request.user_id, request.variables)
    return histoire.to_dict()


@router.get("/{histoire_id}", response_model=HistoireResponse)
async def get_histoire(
    histoire_id: str,
    user_id: Optional[str] = None,
    service: GenerationService = Depends(get_generation_service),
):
    return service.get_histoire(histoire_id, user_id).to_dict()


@router.put("/{histoire_id}", response_model=HistoireResponse)
async def update_histoire(
    histoire_id: str,
    request: HistoireUpdate,
    user_id: Optional[str] = None,
    service: GenerationService = Depends(get_generation_service),
):
    return service.update_histoire(histoire_id, user_id, request.variables).to_dict()


@router.delete("/{histoire_id}", response_model=DeleteResponse)
async def delete_histoire(
    histoire_id: str,
    user_id: Optional[str] = None,
    service: GenerationService = Depends(get_generation_service),
):
    """Delete a histoire with its preview images, PDF and persisted uploads"""
    removed = service.delete_histoire(histoire_id, user_id)
    return DeleteResponse(id=histoire_id, files_removed=removed)
