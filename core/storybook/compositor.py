"""
PDF Compositor

Draws personalized text and images on top of a template PDF.

Each page that carries editor elements gets a ReportLab overlay page of the
template's dimensions; PyMuPDF then stamps the overlay onto the original
page, leaving the template's own content untouched. Pages without elements
are copied as-is.

A failing element (missing image, undecodable data...) is recorded and
skipped; only an unreadable template PDF aborts the whole composition.

Usage:
    compositor = PdfCompositor(ImageResolver(layout))
    result = compositor.compose(pdf_bytes, elements, {"nom": "Ali"}, dims)
    Path("out.pdf").write_bytes(result.pdf_bytes)
"""

import io
import logging
import re
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

import fitz  # PyMuPDF
from reportlab.lib.colors import Color, black
from reportlab.lib.utils import ImageReader, simpleSplit
from reportlab.pdfgen import canvas as pdf_canvas

from .coordinates import AbsoluteBox, image_bottom_y, map_element, text_baseline_y
from .data_uri import decode_data_uri, is_data_uri
from .exceptions import ImageProcessingError, TemplatePdfError
from .image_resolver import ImageResolver, validate_image_exists
from .imaging import prepare_for_embedding
from .models import Alignment, EditorElement, ElementType, FontStyle, PageDimensions
from .variables import merge_default_values, substitute_variables

logger = logging.getLogger(__name__)

_HEX_COLOR = re.compile(r"^#?([0-9a-fA-F]{2})([0-9a-fA-F]{2})([0-9a-fA-F]{2})$")

# Standard 14 variants of the base family
_FONT_VARIANTS = {
    "Helvetica": ("Helvetica", "Helvetica-Bold", "Helvetica-Oblique", "Helvetica-BoldOblique"),
    "Times-Roman": ("Times-Roman", "Times-Bold", "Times-Italic", "Times-BoldItalic"),
    "Courier": ("Courier", "Courier-Bold", "Courier-Oblique", "Courier-BoldOblique"),
}

LINE_SPACING = 1.2


@dataclass
class CompositionResult:
    pdf_bytes: bytes
    succeeded: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return self.failed > 0

    def to_dict(self) -> Dict:
        return {
            "succeeded": self.succeeded,
            "failed": self.failed,
            "errors": list(self.errors),
        }


class ElementError(Exception):
    """A single element could not be drawn"""
    pass


def parse_hex_color(value: Optional[str]) -> Color:
    """`#RRGGBB` to a ReportLab colour; black when unset or unparsable."""
    match = _HEX_COLOR.match(value or "")
    if not match:
        return black
    r, g, b = (int(part, 16) / 255 for part in match.groups())
    return Color(r, g, b)


def resolve_font_name(style: FontStyle, base_font: str = "Helvetica") -> str:
    """
    Only the base family is ever drawn; `font` and `google_font` are display
    metadata for the editor. Bold/italic pick the matching variant.
    """
    regular, bold, italic, bold_italic = _FONT_VARIANTS.get(base_font, _FONT_VARIANTS["Helvetica"])
    if style.bold and style.italic:
        return bold_italic
    if style.bold:
        return bold
    if style.italic:
        return italic
    return regular


def compute_font_size(element: EditorElement, text: str, box: AbsoluteBox, minimum: float = 12.0) -> float:
    """
    Explicit size wins. Otherwise a rough fit: 80% of the box height, capped
    by roughly two points of width per character, never below `minimum`.
    """
    if element.font_size:
        return float(element.font_size)
    if not text:
        return minimum
    return max(minimum, min(box.height * 0.8, box.width / len(text) * 2))


class PdfCompositor:
    """Applies editor elements and variable values to a template PDF."""

    def __init__(self, resolver: ImageResolver, base_font: str = "Helvetica", min_font_size: float = 12.0):
        self.resolver = resolver
        self.base_font = base_font
        self.min_font_size = min_font_size

    def compose(
        self,
        template_pdf_bytes: bytes,
        elements: Iterable[EditorElement],
        variables: Mapping[str, Any],
        page_dimensions: PageDimensions,
        uploaded_paths: Optional[Iterable[str]] = None,
    ) -> CompositionResult:
        """
        Compose the personalized PDF.

        Args:
            template_pdf_bytes: Source template PDF
            elements: Editor elements of the template (any page order)
            variables: User values; element default values fill the gaps
            page_dimensions: Page size the percentages refer to
            uploaded_paths: Paths of images uploaded with this request

        Returns:
            CompositionResult with the new PDF and per-element outcome

        Raises:
            TemplatePdfError: template bytes are empty or not a PDF
        """
        elements = list(elements)
        uploaded = [str(p) for p in (uploaded_paths or [])]
        values = merge_default_values(elements, variables)

        if not template_pdf_bytes:
            raise TemplatePdfError("Template PDF is empty")
        try:
            doc = fitz.open(stream=template_pdf_bytes, filetype="pdf")
        except (fitz.FileDataError, RuntimeError, ValueError) as e:
            raise TemplatePdfError(f"Cannot parse template PDF: {e}") from e

        result = CompositionResult(pdf_bytes=b"")
        try:
            if not doc.is_pdf or doc.page_count == 0:
                raise TemplatePdfError("Template PDF has no pages")

            by_page: Dict[int, List[EditorElement]] = defaultdict(list)
            for element in elements:
                by_page[element.page_index].append(element)

            for page_index in sorted(by_page):
                page_elements = by_page[page_index]
                if page_index < 0 or page_index >= doc.page_count:
                    logger.warning(
                        f"[COMPOSITOR] Page index {page_index} exceeds PDF page count {doc.page_count}"
                    )
                    for element in page_elements:
                        result.failed += 1
                        result.errors.append(
                            f"Element {element.id or '?'}: page {page_index} out of range "
                            f"(template has {doc.page_count} pages)"
                        )
                    continue

                overlay = self._draw_overlay(page_elements, values, page_dimensions, uploaded, result)
                with fitz.open(stream=overlay, filetype="pdf") as overlay_doc:
                    page = doc[page_index]
                    page.show_pdf_page(page.rect, overlay_doc, 0)

            result.pdf_bytes = doc.tobytes(garbage=3, deflate=True)
        finally:
            doc.close()

        logger.info(f"[COMPOSITOR] {result.succeeded} elements drawn, {result.failed} failed")
        if result.errors:
            logger.warning(f"[COMPOSITOR] Element errors: {result.errors}")
        return result

    def _draw_overlay(
        self,
        elements: List[EditorElement],
        values: Mapping[str, Any],
        page: PageDimensions,
        uploaded: List[str],
        result: CompositionResult,
    ) -> bytes:
        buffer = io.BytesIO()
        c = pdf_canvas.Canvas(buffer, pagesize=(page.width, page.height))

        # Images first so text stays readable on top
        ordered = sorted(elements, key=lambda el: 0 if el.type == ElementType.IMAGE else 1)
        for element in ordered:
            try:
                if element.type == ElementType.IMAGE:
                    self._draw_image(c, element, values, page, uploaded)
                else:
                    if not self._draw_text(c, element, values, page):
                        continue
                result.succeeded += 1
            except ElementError as e:
                result.failed += 1
                result.errors.append(str(e))
            except Exception as e:
                logger.error(f"[COMPOSITOR] Element {element.id} failed: {e}", exc_info=True)
                result.failed += 1
                label = element.variable_name or element.id or "?"
                result.errors.append(f'Variable "{label}": processing error ({e})')

        c.showPage()
        c.save()
        return buffer.getvalue()

    def _draw_text(self, c, element: EditorElement, values: Mapping[str, Any], page: PageDimensions) -> bool:
        text = substitute_variables(element.text_content or "", values)
        if not text.strip():
            return False

        box = map_element(element, page)
        font_size = compute_font_size(element, text, box, self.min_font_size)
        font_name = resolve_font_name(element.font_style, self.base_font)

        c.setFont(font_name, font_size)
        c.setFillColor(parse_hex_color(element.color))

        lines = simpleSplit(text, font_name, font_size, box.width) if box.width > 0 else [text]
        y = text_baseline_y(box, font_size)
        for line in lines:
            if element.alignment == Alignment.CENTER:
                c.drawCentredString(box.x + box.width / 2, y, line)
            elif element.alignment == Alignment.RIGHT:
                c.drawRightString(box.x + box.width, y, line)
            else:
                c.drawString(box.x, y, line)
            y -= font_size * LINE_SPACING

        logger.debug(f"[COMPOSITOR] Text {text!r} at ({box.x:.1f}, {box.top_y:.1f}) size {font_size:.1f}")
        return True

    def _draw_image(
        self,
        c,
        element: EditorElement,
        values: Mapping[str, Any],
        page: PageDimensions,
        uploaded: List[str],
    ) -> None:
        name = element.variable_name
        if not name:
            raise ElementError(f"Element {element.id or '?'}: missing variable_name")

        value = values.get(name)
        if not value:
            raise ElementError(f'Variable "{name}": no value provided')
        if not isinstance(value, str):
            raise ElementError(f'Variable "{name}": invalid type ({type(value).__name__})')

        raw = self._load_image_bytes(name, value, uploaded)
        try:
            data, fmt = prepare_for_embedding(raw)
        except ImageProcessingError as e:
            raise ElementError(f'Variable "{name}": {e}') from e

        box = map_element(element, page)
        c.drawImage(
            ImageReader(io.BytesIO(data)),
            box.x,
            image_bottom_y(box),
            width=box.width,
            height=box.height,
            mask="auto",
        )
        logger.debug(f"[COMPOSITOR] Image {name!r} ({fmt.value}) at ({box.x:.1f}, {box.bottom_y:.1f})")

    def _load_image_bytes(self, name: str, value: str, uploaded: List[str]) -> bytes:
        if is_data_uri(value):
            try:
                _, data = decode_data_uri(value)
            except ImageProcessingError as e:
                raise ElementError(f'Variable "{name}": {e}') from e
            return data

        lookup = self.resolver.find_image(name, value, uploaded)
        if not lookup.found:
            raise ElementError(f'Variable "{name}": {lookup.error}')

        check = validate_image_exists(lookup.image_path)
        if not check.valid:
            raise ElementError(f'Variable "{name}": {check.error}')
        return Path(lookup.image_path).read_bytes()
