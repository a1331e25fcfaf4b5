"""
Coordinate Mapper

Editor elements are laid out in percentages of the page with the origin at
the top-left corner; PDF user space is in points with the origin at the
bottom-left. Values are not clamped: out-of-range percentages draw off-page
and the PDF viewer clips them.
"""

from dataclasses import dataclass
from typing import Optional

from .models import EditorElement, PageDimensions


@dataclass(frozen=True)
class AbsoluteBox:
    """Element box in PDF points. `top_y` is the PDF y of the box's top edge."""
    x: float
    top_y: float
    width: float
    height: float

    @property
    def bottom_y(self) -> float:
        return self.top_y - self.height


@dataclass(frozen=True)
class RelativeBox:
    x: float
    y: float
    width: float
    height: float


def map_box(x: float, y: float, width: float, height: float, page: PageDimensions) -> AbsoluteBox:
    return AbsoluteBox(
        x=x / 100 * page.width,
        top_y=page.height - y / 100 * page.height,
        width=width / 100 * page.width,
        height=height / 100 * page.height,
    )


def map_element(element: EditorElement, page: PageDimensions) -> AbsoluteBox:
    return map_box(element.x, element.y, element.width, element.height, page)


def text_baseline_y(box: AbsoluteBox, font_size: float) -> float:
    return box.top_y - font_size


def image_bottom_y(box: AbsoluteBox) -> float:
    return box.bottom_y


def to_relative(abs_x: float, abs_top_y: float, abs_width: float, abs_height: float,
                page: PageDimensions) -> RelativeBox:
    """Inverse of map_box: PDF points back to editor percentages."""
    return RelativeBox(
        x=abs_x / page.width * 100,
        y=(page.height - abs_top_y) / page.height * 100,
        width=abs_width / page.width * 100,
        height=abs_height / page.height * 100,
    )


def is_relative(x: float, y: float, width: float, height: float) -> bool:
    """
    True when every value lies in [0, 100].

    Only a heuristic: small absolute coordinates are indistinguishable from
    percentages.
    """
    return all(0 <= v <= 100 for v in (x, y, width, height))


def page_dimensions_or_default(dimensions: Optional[PageDimensions], app_settings=None) -> PageDimensions:
    """Template dimensions, or the configured fallback page size (A4)."""
    if dimensions and dimensions.width > 0 and dimensions.height > 0:
        return dimensions
    if app_settings is None:
        from config.settings import settings as app_settings
    return PageDimensions(app_settings.default_page_width, app_settings.default_page_height)
