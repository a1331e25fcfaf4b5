"""Tests for EditorService: element CRUD keeps template variables in sync."""

from unittest.mock import MagicMock

import pytest

from core.storybook.editor import EditorService
from core.storybook.exceptions import ResourceNotFoundError


@pytest.fixture
def editor(store):
    return EditorService(store)


class TestEditorService:

    def test_create_text_element_recomputes(self, editor, store, saved_template):
        element = editor.create_element(saved_template.id, {
            "type": "text",
            "x": 10, "y": 10, "width": 50, "height": 10,
            "text_content": "Bonjour (nom), tu as (âge) ans (et demi)",
        })
        assert element.variables == ["nom", "âge"]
        assert element.variable_name is None
        assert store.get_template(saved_template.id).variables == ["nom", "âge"]

    def test_image_element_adds_its_variable(self, editor, store, saved_template):
        editor.create_element(saved_template.id, {"type": "text", "text_content": "(nom)"})
        editor.create_element(saved_template.id, {"type": "image", "variable_name": "avatar"})
        assert store.get_template(saved_template.id).variables == ["nom", "avatar"]

    def test_client_supplied_variables_ignored(self, editor, saved_template):
        element = editor.create_element(saved_template.id, {
            "type": "text", "text_content": "(nom)", "variables": ["injected"], "variable_name": "x",
        })
        assert element.variables == ["nom"]
        assert element.variable_name is None

    def test_update_recomputes(self, editor, store, saved_template):
        element = editor.create_element(saved_template.id, {"type": "text", "text_content": "(nom)"})
        updated = editor.update_element(element.id, {"text_content": "(prénom) et (ville)", "x": 42})
        assert updated.x == 42
        assert updated.variables == ["prénom", "ville"]
        assert store.get_template(saved_template.id).variables == ["prénom", "ville"]

    def test_update_ignores_fixed_fields(self, editor, saved_template):
        element = editor.create_element(saved_template.id, {"type": "text", "text_content": "a"})
        updated = editor.update_element(element.id, {"id": "other", "template_id": "other"})
        assert updated.id == element.id
        assert updated.template_id == saved_template.id

    def test_delete_recomputes(self, editor, store, saved_template):
        keep = editor.create_element(saved_template.id, {"type": "text", "text_content": "(nom)"})
        drop = editor.create_element(saved_template.id, {"type": "image", "variable_name": "avatar"})
        editor.delete_element(drop.id)

        assert store.get_template(saved_template.id).variables == ["nom"]
        assert [e.id for e in editor.list_elements(saved_template.id)] == [keep.id]

    def test_unknown_template(self, editor):
        with pytest.raises(ResourceNotFoundError):
            editor.create_element("missing", {"type": "text", "text_content": "(nom)"})
        with pytest.raises(ResourceNotFoundError):
            editor.list_elements("missing")

    def test_every_mutation_triggers_recompute(self, saved_template):
        store = MagicMock()
        store.get_template.return_value = saved_template
        store.create_element.side_effect = lambda el: el
        store.list_elements.return_value = []
        editor = EditorService(store)

        editor.create_element(saved_template.id, {"type": "text", "text_content": "(nom)"})
        store.set_template_variables.assert_called_once_with(saved_template.id, [])
