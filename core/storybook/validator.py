"""
Variable Validator

Checks a variables map against the contract a template's elements define,
before anything is drawn. Generation is all-or-nothing: a report with any
entry means no PDF is produced.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .data_uri import is_data_uri, validate_data_uri
from .image_resolver import ImageResolver
from .models import EditorElement, ElementType
from .variables import parse_variables_from_text

logger = logging.getLogger(__name__)


@dataclass
class ValidationReport:
    missing_variables: List[str] = field(default_factory=list)
    missing_images: List[str] = field(default_factory=list)
    image_errors: List[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not (self.missing_variables or self.missing_images or self.image_errors)

    def messages(self) -> List[str]:
        items = []
        if self.missing_variables:
            items.append(f"Missing variables: {', '.join(self.missing_variables)}")
        if self.missing_images:
            items.append(f"Missing images: {', '.join(self.missing_images)}")
        items.extend(self.image_errors)
        return items

    def to_dict(self) -> Dict:
        return {
            "valid": self.valid,
            "missing_variables": list(self.missing_variables),
            "missing_images": list(self.missing_images),
            "image_errors": list(self.image_errors),
        }


def element_variables(element: EditorElement) -> List[str]:
    """Variables one element depends on (stored list, else derived from its text)."""
    names = list(element.variables)
    if not names and element.type == ElementType.TEXT and element.text_content:
        names = parse_variables_from_text(element.text_content)
    if element.variable_name and element.variable_name not in names:
        names.append(element.variable_name)
    return names


class VariableValidator:
    def __init__(self, resolver: ImageResolver):
        self.resolver = resolver

    def validate(
        self,
        elements: Iterable[EditorElement],
        variables: Mapping[str, Any],
        uploaded_paths: Optional[Iterable[str]] = None,
    ) -> ValidationReport:
        uploaded = list(uploaded_paths or [])
        required: List[str] = []
        image_vars: List[str] = []

        for element in elements:
            for name in element_variables(element):
                if name not in required:
                    required.append(name)
                if element.type == ElementType.IMAGE and name not in image_vars:
                    image_vars.append(name)

        report = ValidationReport()
        report.missing_variables = [name for name in required if name not in variables]

        for name in image_vars:
            value = variables.get(name)
            if not value:
                report.missing_images.append(name)
                continue
            if not isinstance(value, str):
                report.image_errors.append(
                    f'Image variable "{name}" must be a string, got {type(value).__name__}'
                )
                continue
            if is_data_uri(value):
                check = validate_data_uri(value)
                if not check.valid:
                    report.image_errors.append(f'Image variable "{name}": {check.error}')
                continue
            result = self.resolver.find_image(name, value, uploaded)
            if not result.found:
                report.image_errors.append(result.error)

        if report.valid:
            logger.info(f"[VALIDATION] {len(required)} variables validated ({len(image_vars)} images)")
        else:
            logger.warning(f"[VALIDATION] Failed: {'; '.join(report.messages())}")
        return report
