"""
Editor element service.

Every create/update/delete of an element recomputes the owning template's
cached variable list, so `Template.variables` always matches its elements.
"""

import logging
from typing import Any, Dict, List

from .models import EditorElement, ElementType
from .store import SQLiteStorybookStore
from .variables import parse_variables_from_elements, parse_variables_from_text

logger = logging.getLogger(__name__)

# Fields an update may touch; id/template_id/timestamps are fixed
EDITABLE_FIELDS = (
    "type", "page_index", "x", "y", "width", "height",
    "text_content", "font", "font_size", "font_style", "google_font",
    "color", "background_color", "alignment", "variable_name", "default_values",
)


class EditorService:
    def __init__(self, store: SQLiteStorybookStore):
        self.store = store

    def list_elements(self, template_id: str) -> List[EditorElement]:
        self.store.get_template(template_id)
        return self.store.list_elements(template_id)

    def get_element(self, element_id: str) -> EditorElement:
        return self.store.get_element(element_id)

    def create_element(self, template_id: str, data: Dict[str, Any]) -> EditorElement:
        self.store.get_template(template_id)
        element = EditorElement.from_dict({**data, "template_id": template_id, "id": None})
        self._refresh_element_variables(element)
        created = self.store.create_element(element)
        self.recompute_template_variables(template_id)
        logger.info(f"[EDITOR] Created {created.type.value} element {created.id} on page {created.page_index}")
        return created

    def update_element(self, element_id: str, changes: Dict[str, Any]) -> EditorElement:
        current = self.store.get_element(element_id)
        merged = current.to_dict()
        merged.update({k: v for k, v in changes.items() if k in EDITABLE_FIELDS})
        element = EditorElement.from_dict(merged)
        self._refresh_element_variables(element)
        updated = self.store.update_element(element)
        self.recompute_template_variables(updated.template_id)
        return updated

    def delete_element(self, element_id: str) -> EditorElement:
        element = self.store.delete_element(element_id)
        self.recompute_template_variables(element.template_id)
        logger.info(f"[EDITOR] Deleted element {element_id}")
        return element

    def recompute_template_variables(self, template_id: str) -> List[str]:
        names = parse_variables_from_elements(self.store.list_elements(template_id))
        self.store.set_template_variables(template_id, names)
        return names

    @staticmethod
    def _refresh_element_variables(element: EditorElement) -> None:
        if element.type == ElementType.TEXT:
            element.variables = parse_variables_from_text(element.text_content or "")
            element.variable_name = None
        else:
            element.variables = []
