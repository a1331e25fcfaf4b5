"""
Storybook Models

Data models for templates, editor elements and generated stories (histoires).

Element geometry is always stored as percentages (0-100) of the page's
original size. Absolute points only exist transiently while drawing.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class ElementType(str, Enum):
    TEXT = "text"
    IMAGE = "image"


class Alignment(str, Enum):
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


class ImageFormat(Enum):
    """Image formats accepted as variable values"""
    PNG = "png"
    JPEG = "jpeg"
    GIF = "gif"
    WEBP = "webp"

    @classmethod
    def from_extension(cls, ext: str) -> Optional["ImageFormat"]:
        """Get format from file extension, None when unsupported"""
        ext = ext.lower().lstrip(".")
        if ext == "jpg":
            return cls.JPEG
        try:
            return cls(ext)
        except ValueError:
            return None

    @property
    def embeds_natively(self) -> bool:
        """PDF image XObjects only carry PNG (flate) and JPEG (DCT) data as-is."""
        return self in (ImageFormat.PNG, ImageFormat.JPEG)


@dataclass
class PageDimensions:
    """Page size in PDF points"""
    width: float
    height: float

    def to_dict(self) -> Dict:
        return {"width": self.width, "height": self.height}

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> Optional["PageDimensions"]:
        if not data:
            return None
        return cls(width=float(data["width"]), height=float(data["height"]))


@dataclass
class FontStyle:
    bold: bool = False
    italic: bool = False
    underline: bool = False
    strikethrough: bool = False

    def to_dict(self) -> Dict:
        return {
            "bold": self.bold,
            "italic": self.italic,
            "underline": self.underline,
            "strikethrough": self.strikethrough,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> "FontStyle":
        data = data or {}
        return cls(
            bold=bool(data.get("bold", False)),
            italic=bool(data.get("italic", False)),
            underline=bool(data.get("underline", False)),
            strikethrough=bool(data.get("strikethrough", False)),
        )


@dataclass
class EditorElement:
    """
    A positioned text or image placeholder on one template page.

    x, y, width, height are percentages of the page width/height with the
    origin at the top-left corner of the page (editor convention).
    """
    type: ElementType
    page_index: int = 0
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0

    id: Optional[str] = None
    template_id: Optional[str] = None

    # Text elements
    text_content: Optional[str] = None
    font: Optional[str] = None
    font_size: Optional[float] = None
    font_style: FontStyle = field(default_factory=FontStyle)
    # Display-only metadata: the PDF is always drawn with the base font
    google_font: Optional[str] = None
    color: Optional[str] = None
    background_color: Optional[str] = None
    alignment: Alignment = Alignment.LEFT
    variables: List[str] = field(default_factory=list)

    # Image elements
    variable_name: Optional[str] = None

    default_values: Dict[str, Any] = field(default_factory=dict)

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_text(self) -> bool:
        return self.type == ElementType.TEXT

    @property
    def is_image(self) -> bool:
        return self.type == ElementType.IMAGE

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "template_id": self.template_id,
            "type": self.type.value,
            "page_index": self.page_index,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "text_content": self.text_content,
            "font": self.font,
            "font_size": self.font_size,
            "font_style": self.font_style.to_dict(),
            "google_font": self.google_font,
            "color": self.color,
            "background_color": self.background_color,
            "alignment": self.alignment.value,
            "variables": list(self.variables),
            "variable_name": self.variable_name,
            "default_values": dict(self.default_values),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "EditorElement":
        return cls(
            id=data.get("id"),
            template_id=data.get("template_id"),
            type=ElementType(data.get("type", "text")),
            page_index=int(data.get("page_index", 0)),
            x=float(data.get("x", 0.0)),
            y=float(data.get("y", 0.0)),
            width=float(data.get("width", 0.0)),
            height=float(data.get("height", 0.0)),
            text_content=data.get("text_content"),
            font=data.get("font"),
            font_size=data.get("font_size"),
            font_style=FontStyle.from_dict(data.get("font_style")),
            google_font=data.get("google_font"),
            color=data.get("color"),
            background_color=data.get("background_color"),
            alignment=Alignment(data.get("alignment") or "left"),
            variables=list(data.get("variables") or []),
            variable_name=data.get("variable_name"),
            default_values=dict(data.get("default_values") or {}),
            created_at=_parse_dt(data.get("created_at")),
            updated_at=_parse_dt(data.get("updated_at")),
        )


@dataclass
class Template:
    """An admin-authored storybook: source PDF plus metadata"""
    title: str
    description: str
    category: str
    gender: str
    age_range: str
    language: str
    pdf_path: str  # relative to the uploads directory
    cover_path: str

    id: Optional[str] = None
    page_count: Optional[int] = None
    dimensions: Optional[PageDimensions] = None
    variables: List[str] = field(default_factory=list)
    is_published: bool = False
    is_featured: bool = False

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "gender": self.gender,
            "age_range": self.age_range,
            "language": self.language,
            "pdf_path": self.pdf_path,
            "cover_path": self.cover_path,
            "page_count": self.page_count,
            "dimensions": self.dimensions.to_dict() if self.dimensions else None,
            "variables": list(self.variables),
            "is_published": self.is_published,
            "is_featured": self.is_featured,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass
class Histoire:
    """One user's personalized story: the variables and the files produced"""
    template_id: str
    user_id: str
    variables: Dict[str, Any] = field(default_factory=dict)

    id: Optional[str] = None
    preview_urls: List[str] = field(default_factory=list)
    pdf_url: Optional[str] = None
    generated_pdf_url: Optional[str] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def preview_image(self) -> Optional[str]:
        return self.preview_urls[0] if self.preview_urls else None

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "template_id": self.template_id,
            "user_id": self.user_id,
            "variables": dict(self.variables),
            "preview_urls": list(self.preview_urls),
            "preview_image": self.preview_image,
            "pdf_url": self.pdf_url,
            "generated_pdf_url": self.generated_pdf_url,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


def _parse_dt(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)
