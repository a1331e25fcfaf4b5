"""
Storybook Custom Exceptions
"""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .validator import ValidationReport


class StorybookError(Exception):
    """Base exception for the storybook pipeline"""
    pass


class ResourceNotFoundError(StorybookError):
    """Template, element or histoire does not exist"""
    def __init__(self, resource: str, resource_id: str):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} not found: {resource_id}")


class VariablesValidationError(StorybookError):
    """Supplied variables do not satisfy the template's contract"""
    def __init__(self, report: "ValidationReport"):
        self.report = report
        super().__init__(f"Variables validation failed: {'; '.join(report.messages())}")


class InvalidVariablesError(StorybookError):
    """Variables payload is malformed (not an object, bad JSON)"""
    pass


class TemplatePdfError(StorybookError):
    """Template PDF is missing or cannot be parsed"""
    pass


class ImageProcessingError(StorybookError):
    """Image bytes could not be decoded or converted"""
    pass


class ToolchainError(StorybookError):
    """Native rasterization toolchain (poppler) is unavailable"""
    pass


class RasterizationError(StorybookError):
    """PDF could not be rasterized (malformed PDF, timeout)"""
    pass


class GenerationError(StorybookError):
    """A generation request failed at a given stage"""
    def __init__(self, stage: str, message: str, cause: Optional[BaseException] = None):
        self.stage = stage
        self.cause = cause
        super().__init__(f"[{stage}] {message}")


class TemplateNotAvailableError(StorybookError):
    """Template exists but is not published"""
    def __init__(self, template_id: str):
        self.template_id = template_id
        super().__init__(f"Template is not available for preview: {template_id}")
