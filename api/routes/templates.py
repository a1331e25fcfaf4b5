"""
Template CRUD, editor elements, variables and preview endpoints.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile

from api.deps import get_editor_service, get_layout, get_resolver, get_template_service
from api.rate_limiter import limiter, rate_limit_config
from api.models import (
    AvailableImages,
    DeleteResponse,
    ElementCreate,
    ElementResponse,
    ElementUpdate,
    TemplatePreviewRequest,
    TemplatePreviewResponse,
    TemplateResponse,
    TemplateVariablesResponse,
)
from api.upload_utils import ALLOWED_IMAGE_EXTENSIONS, save_upload
from config.logging_config import get_logger
from config.settings import settings
from core.storybook import (
    EditorService,
    ImageResolver,
    StorageLayout,
    TemplateService,
    remove_files,
)
from core.storybook.templates import AGE_RANGES, Gender

logger = get_logger(__name__)

router = APIRouter(prefix="/templates", tags=["Templates"])


def _check_template_fields(gender: Optional[str], age_range: Optional[str]) -> None:
    if gender is not None and gender not in {g.value for g in Gender}:
        raise HTTPException(status_code=400, detail=f"Invalid gender. Allowed: {', '.join(g.value for g in Gender)}")
    if age_range is not None and age_range not in AGE_RANGES:
        raise HTTPException(status_code=400, detail=f"Invalid age range. Allowed: {', '.join(AGE_RANGES)}")


# =============================================================================
# Templates
# =============================================================================

@router.post("", response_model=TemplateResponse, status_code=201)
async def create_template(
    title: str = Form(...),
    description: str = Form(""),
    category: str = Form(...),
    gender: str = Form(...),
    age_range: str = Form(...),
    language: str = Form(...),
    is_published: bool = Form(False),
    is_featured: bool = Form(False),
    pdf: UploadFile = File(...),
    cover_image: UploadFile = File(...),
    service: TemplateService = Depends(get_template_service),
    layout: StorageLayout = Depends(get_layout),
):
    """
    Create a template from a PDF and a cover image.

    The PDF is analysed for page count and first page size; an invalid PDF
    is rejected and both uploaded files are removed.
    """
    _check_template_fields(gender, age_range)

    pdf_path = await save_upload(pdf, layout.uploads_dir, "template", [".pdf"], settings.max_template_upload_mb)
    try:
        cover_path = await save_upload(
            cover_image, layout.uploads_dir, "cover", ALLOWED_IMAGE_EXTENSIONS, settings.max_image_upload_mb
        )
    except HTTPException:
        remove_files([pdf_path])
        raise

    template = await service.create_template(
        {
            "title": title,
            "description": description,
            "category": category,
            "gender": gender,
            "age_range": age_range,
            "language": language,
            "is_published": is_published,
            "is_featured": is_featured,
        },
        pdf_path,
        cover_path,
    )
    return template.to_dict()


@router.get("", response_model=List[TemplateResponse])
async def list_templates(
    category: Optional[str] = None,
    gender: Optional[str] = None,
    age_range: Optional[str] = Query(default=None, alias="ageRange"),
    language: Optional[str] = None,
    is_published: Optional[bool] = Query(default=None, alias="isPublished"),
    is_featured: Optional[bool] = Query(default=None, alias="isFeatured"),
    service: TemplateService = Depends(get_template_service),
):
    """
    List templates with optional filtering

    - **category**: slug or display label
    - **gender**: boy/girl/unisex
    - **ageRange**: e.g. "3 ans - 5 ans"
    - **language**: slug or display label
    """
    templates = service.list_templates(
        category=category,
        gender=gender,
        age_range=age_range,
        language=language,
        is_published=is_published,
        is_featured=is_featured,
    )
    return [t.to_dict() for t in templates]


@router.get("/search", response_model=List[TemplateResponse])
async def search_templates(
    q: str = "",
    limit: int = Query(default=10, ge=1, le=50),
    service: TemplateService = Depends(get_template_service),
):
    """Case-insensitive search on title, description and category (published only)"""
    return [t.to_dict() for t in service.search_templates(q, limit=limit)]


@router.get("/images", response_model=List[AvailableImages])
async def list_available_images(resolver: ImageResolver = Depends(get_resolver)):
    """Image files present in each uploads directory"""
    return resolver.list_available_images()


@router.get("/{template_id}", response_model=TemplateResponse)
async def get_template(template_id: str, service: TemplateService = Depends(get_template_service)):
    return service.get_template(template_id).to_dict()


@router.put("/{template_id}", response_model=TemplateResponse)
async def update_template(
    template_id: str,
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    gender: Optional[str] = Form(None),
    age_range: Optional[str] = Form(None),
    language: Optional[str] = Form(None),
    is_published: Optional[bool] = Form(None),
    is_featured: Optional[bool] = Form(None),
    pdf: Optional[UploadFile] = File(None),
    cover_image: Optional[UploadFile] = File(None),
    service: TemplateService = Depends(get_template_service),
    layout: StorageLayout = Depends(get_layout),
):
    """Update metadata; a new PDF or cover replaces the stored file"""
    _check_template_fields(gender, age_range)
    service.get_template(template_id)

    pdf_path = cover_path = None
    if pdf is not None and pdf.filename:
        pdf_path = await save_upload(pdf, layout.uploads_dir, "template", [".pdf"], settings.max_template_upload_mb)
    if cover_image is not None and cover_image.filename:
        try:
            cover_path = await save_upload(
                cover_image, layout.uploads_dir, "cover", ALLOWED_IMAGE_EXTENSIONS, settings.max_image_upload_mb
            )
        except HTTPException:
            remove_files([pdf_path])
            raise

    changes = {
        "title": title,
        "description": description,
        "category": category,
        "gender": gender,
        "age_range": age_range,
        "language": language,
        "is_published": is_published,
        "is_featured": is_featured,
    }
    template = await service.update_template(template_id, changes, pdf_path=pdf_path, cover_path=cover_path)
    return template.to_dict()


@router.delete("/{template_id}", response_model=DeleteResponse)
async def delete_template(template_id: str, service: TemplateService = Depends(get_template_service)):
    """Delete a template, its elements and its PDF/cover files"""
    service.remove_template(template_id)
    return DeleteResponse(id=template_id)


@router.get("/{template_id}/variables", response_model=TemplateVariablesResponse)
async def get_template_variables(
    template_id: str,
    refresh: bool = False,
    service: TemplateService = Depends(get_template_service),
    editor: EditorService = Depends(get_editor_service),
):
    """Variables the template's elements use; `refresh=true` recomputes them first"""
    if refresh:
        service.get_template(template_id)
        variables = editor.recompute_template_variables(template_id)
    else:
        variables = service.get_template(template_id).variables
    return TemplateVariablesResponse(template_id=template_id, variables=variables)


@router.post("/{template_id}/preview", response_model=TemplatePreviewResponse)
@limiter.limit(rate_limit_config.get_limit("preview"))
async def preview_template(
    request: Request,
    template_id: str,
    payload: TemplatePreviewRequest,
    service: TemplateService = Depends(get_template_service),
):
    """
    Compose a throwaway PDF of a published template.

    The file lives under /uploads/temp-previews/ and is removed after the
    retention window.
    """
    url = await service.preview_template(template_id, payload.variables)
    return TemplatePreviewResponse(template_id=template_id, preview_url=url)


# =============================================================================
# Editor elements
# =============================================================================

@router.get("/{template_id}/elements", response_model=List[ElementResponse])
async def list_elements(template_id: str, editor: EditorService = Depends(get_editor_service)):
    return [e.to_dict() for e in editor.list_elements(template_id)]


@router.post("/{template_id}/elements", response_model=ElementResponse, status_code=201)
async def create_element(
    template_id: str,
    request: ElementCreate,
    editor: EditorService = Depends(get_editor_service),
):
    """Add a text or image element; the template's variables are recomputed"""
    element = editor.create_element(template_id, request.model_dump(mode="json"))
    return element.to_dict()


@router.put("/{template_id}/elements/{element_id}", response_model=ElementResponse)
async def update_element(
    template_id: str,
    element_id: str,
    request: ElementUpdate,
    editor: EditorService = Depends(get_editor_service),
):
    _get_template_element(editor, template_id, element_id)
    element = editor.update_element(element_id, request.model_dump(mode="json", exclude_unset=True))
    return element.to_dict()


@router.delete("/{template_id}/elements/{element_id}", response_model=DeleteResponse)
async def delete_element(
    template_id: str,
    element_id: str,
    editor: EditorService = Depends(get_editor_service),
):
    _get_template_element(editor, template_id, element_id)
    editor.delete_element(element_id)
    return DeleteResponse(id=element_id)


def _get_template_element(editor: EditorService, template_id: str, element_id: str):
    element = editor.get_element(element_id)
    if element.template_id != template_id:
        raise HTTPException(status_code=404, detail=f"Element not found: {element_id}")
    return element
