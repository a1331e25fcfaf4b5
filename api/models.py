"""
Pydantic models for the API.

Request/response models shared across route modules. Responses mirror the
`to_dict()` output of the core dataclasses.
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any

from core.storybook import Alignment, ElementType


class FontStyleModel(BaseModel):
    bold: bool = False
    italic: bool = False
    underline: bool = False
    strikethrough: bool = False


class PageDimensionsModel(BaseModel):
    width: float
    height: float


# =============================================================================
# Templates
# =============================================================================

class TemplateResponse(BaseModel):
    """Response model for template data"""
    id: str
    title: str
    description: str = ""
    category: str
    gender: str
    age_range: str
    language: str
    pdf_path: str
    cover_path: str
    page_count: Optional[int] = None
    dimensions: Optional[PageDimensionsModel] = None
    variables: List[str] = Field(default_factory=list)
    is_published: bool = False
    is_featured: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class TemplateVariablesResponse(BaseModel):
    template_id: str
    variables: List[str]


class TemplatePreviewRequest(BaseModel):
    """Request model for a throwaway template preview PDF"""
    variables: Dict[str, Any] = Field(default_factory=dict, description="Variable values, e.g. {\"nom\": \"Ali\"}")


class TemplatePreviewResponse(BaseModel):
    template_id: str
    preview_url: str


# =============================================================================
# Editor elements
# =============================================================================

class ElementCreate(BaseModel):
    """Request model for creating an editor element (positions in % of the page)"""
    type: ElementType = Field(..., description="Element type: text or image")
    page_index: int = Field(default=0, ge=0, description="0-based page index")
    x: float = Field(default=0.0, description="Left edge, % of page width")
    y: float = Field(default=0.0, description="Top edge, % of page height")
    width: float = Field(default=0.0, ge=0, description="Width, % of page width")
    height: float = Field(default=0.0, ge=0, description="Height, % of page height")
    text_content: Optional[str] = Field(default=None, description="Text with (variable) placeholders")
    font: Optional[str] = None
    font_size: Optional[float] = Field(default=None, gt=0)
    font_style: FontStyleModel = Field(default_factory=FontStyleModel)
    google_font: Optional[str] = None
    color: Optional[str] = Field(default=None, description="Hex color, e.g. #000000")
    background_color: Optional[str] = None
    alignment: Alignment = Alignment.LEFT
    variable_name: Optional[str] = Field(default=None, description="Bound variable for image elements")
    default_values: Dict[str, Any] = Field(default_factory=dict)


class ElementUpdate(BaseModel):
    """Request model for updating an editor element; unset fields are kept"""
    type: Optional[ElementType] = None
    page_index: Optional[int] = Field(default=None, ge=0)
    x: Optional[float] = None
    y: Optional[float] = None
    width: Optional[float] = Field(default=None, ge=0)
    height: Optional[float] = Field(default=None, ge=0)
    text_content: Optional[str] = None
    font: Optional[str] = None
    font_size: Optional[float] = Field(default=None, gt=0)
    font_style: Optional[FontStyleModel] = None
    google_font: Optional[str] = None
    color: Optional[str] = None
    background_color: Optional[str] = None
    alignment: Optional[Alignment] = None
    variable_name: Optional[str] = None
    default_values: Optional[Dict[str, Any]] = None


class ElementResponse(BaseModel):
    id: str
    template_id: str
    type: str
    page_index: int
    x: float
    y: float
    width: float
    height: float
    text_content: Optional[str] = None
    font: Optional[str] = None
    font_size: Optional[float] = None
    font_style: FontStyleModel
    google_font: Optional[str] = None
    color: Optional[str] = None
    background_color: Optional[str] = None
    alignment: str
    variables: List[str] = Field(default_factory=list)
    variable_name: Optional[str] = None
    default_values: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


# =============================================================================
# Histoires
# =============================================================================

class HistoireCreate(BaseModel):
    """Save a histoire's variables without generating anything"""
    template_id: str
    user_id: str
    # Checked by the service so a non-object payload is a 400, not a 422
    variables: Any = Field(default_factory=dict)


class HistoireUpdate(BaseModel):
    variables: Any


class HistoireResponse(BaseModel):
    id: str
    template_id: str
    user_id: str
    variables: Dict[str, Any] = Field(default_factory=dict)
    preview_urls: List[str] = Field(default_factory=list)
    preview_image: Optional[str] = None
    pdf_url: Optional[str] = None
    generated_pdf_url: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class CompositionSummary(BaseModel):
    succeeded: int
    failed: int
    errors: List[str] = Field(default_factory=list)


class GenerationResponse(BaseModel):
    """Response for the preview and generate flows"""
    histoire_id: str
    preview_urls: List[str]
    pdf_url: str
    histoire: HistoireResponse
    elements: CompositionSummary


class DeleteResponse(BaseModel):
    deleted: bool = True
    id: str
    files_removed: int = 0


class AvailableImages(BaseModel):
    directory: str
    files: List[str]
