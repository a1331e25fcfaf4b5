"""
Storybook Module

Personalized storybooks: PDF templates annotated with text/image elements,
filled with a child's name, age, photo... and rendered to PDF + previews.

Usage:
    from core.storybook import (
        StorageLayout, ImageResolver, VariableValidator, PdfCompositor,
    )

    layout = StorageLayout.from_settings().ensure()
    resolver = ImageResolver(layout)

    report = VariableValidator(resolver).validate(elements, variables, uploaded)
    if report.valid:
        result = PdfCompositor(resolver).compose(pdf_bytes, elements, variables, dims)
"""

from .models import (
    Alignment,
    EditorElement,
    ElementType,
    FontStyle,
    Histoire,
    ImageFormat,
    PageDimensions,
    Template,
)
from .exceptions import (
    GenerationError,
    ImageProcessingError,
    InvalidVariablesError,
    RasterizationError,
    ResourceNotFoundError,
    StorybookError,
    TemplateNotAvailableError,
    TemplatePdfError,
    ToolchainError,
    VariablesValidationError,
)
from .storage import StorageLayout, generate_filename, remove_files
from .variables import (
    detect_variables,
    merge_default_values,
    parse_variables_from_elements,
    substitute_variables,
)
from .data_uri import decode_data_uri, is_data_uri, validate_data_uri
from .image_resolver import (
    DirectMatchStrategy,
    DirectoryScanStrategy,
    ImageLookupResult,
    ImageLookupStrategy,
    ImageResolver,
    PrefixMatchStrategy,
    TempImageScanStrategy,
    extract_base_filename,
    is_image_file,
    validate_image_exists,
)
from .validator import ValidationReport, VariableValidator
from .coordinates import (
    AbsoluteBox,
    image_bottom_y,
    is_relative,
    map_element,
    text_baseline_y,
    to_relative,
)
from .compositor import CompositionResult, PdfCompositor
from .rasterizer import PdfRasterizer, compute_preview_size
from .store import SQLiteStorybookStore, TemplateStore
from .editor import EditorService
from .templates import TemplateService
from .generation import GenerationOutcome, GenerationService, GenerationStage

__all__ = [
    # Models
    "Alignment",
    "EditorElement",
    "ElementType",
    "FontStyle",
    "Histoire",
    "ImageFormat",
    "PageDimensions",
    "Template",
    # Errors
    "GenerationError",
    "ImageProcessingError",
    "InvalidVariablesError",
    "RasterizationError",
    "ResourceNotFoundError",
    "StorybookError",
    "TemplateNotAvailableError",
    "TemplatePdfError",
    "ToolchainError",
    "VariablesValidationError",
    # Storage
    "StorageLayout",
    "generate_filename",
    "remove_files",
    # Variables
    "detect_variables",
    "merge_default_values",
    "parse_variables_from_elements",
    "substitute_variables",
    # Images
    "decode_data_uri",
    "is_data_uri",
    "validate_data_uri",
    "DirectMatchStrategy",
    "DirectoryScanStrategy",
    "ImageLookupResult",
    "ImageLookupStrategy",
    "ImageResolver",
    "PrefixMatchStrategy",
    "TempImageScanStrategy",
    "extract_base_filename",
    "is_image_file",
    "validate_image_exists",
    # Validation
    "ValidationReport",
    "VariableValidator",
    # Coordinates
    "AbsoluteBox",
    "image_bottom_y",
    "is_relative",
    "map_element",
    "text_baseline_y",
    "to_relative",
    # Rendering
    "CompositionResult",
    "PdfCompositor",
    "PdfRasterizer",
    "compute_preview_size",
    # Services
    "SQLiteStorybookStore",
    "TemplateStore",
    "EditorService",
    "TemplateService",
    "GenerationOutcome",
    "GenerationService",
    "GenerationStage",
]
