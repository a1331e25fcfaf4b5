"""Tests for SQLiteStorybookStore."""

import pytest

from core.storybook.exceptions import ResourceNotFoundError
from core.storybook.models import (
    EditorElement,
    ElementType,
    FontStyle,
    Histoire,
    PageDimensions,
    Template,
)


def _template(**overrides):
    data = dict(
        title="Le dragon",
        description="Un dragon gentil",
        category="Contes et aventures imaginaires",
        gender="boy",
        age_range="6 ans - 8 ans",
        language="Français",
        pdf_path="template-1-1.pdf",
        cover_path="cover-1-1.png",
        page_count=4,
        dimensions=PageDimensions(595, 842),
    )
    data.update(overrides)
    return Template(**data)


class TestTemplates:

    def test_create_and_get(self, store):
        created = store.create_template(_template())
        assert created.id
        assert created.created_at is not None

        fetched = store.get_template(created.id)
        assert fetched.title == "Le dragon"
        assert fetched.dimensions == PageDimensions(595, 842)
        assert fetched.variables == []
        assert fetched.is_published is False

    def test_get_missing(self, store):
        with pytest.raises(ResourceNotFoundError, match="Template not found"):
            store.get_template("nope")
        assert store.find_template("nope") is None

    def test_list_filters(self, store):
        store.create_template(_template(title="A", gender="boy", is_published=True))
        store.create_template(_template(title="B", gender="girl", is_published=True))
        store.create_template(_template(title="C", gender="girl"))

        assert {t.title for t in store.list_templates()} == {"A", "B", "C"}
        assert {t.title for t in store.list_templates(gender="girl")} == {"B", "C"}
        assert {t.title for t in store.list_templates(gender="girl", is_published=True)} == {"B"}

    def test_search_published_only(self, store):
        store.create_template(_template(title="Le Dragon bleu", is_published=True))
        store.create_template(_template(title="Le dragon rouge", is_published=False))
        store.create_template(_template(title="La forêt", description="un DRAGON caché", is_published=True))

        titles = {t.title for t in store.search_templates("dragon")}
        assert titles == {"Le Dragon bleu", "La forêt"}

    def test_update(self, store):
        created = store.create_template(_template())
        updated = store.update_template(created.id, title="Nouveau", is_featured=True)
        assert updated.title == "Nouveau"
        assert updated.is_featured is True

    def test_update_unknown_field(self, store):
        created = store.create_template(_template())
        with pytest.raises(ValueError):
            store.update_template(created.id, colour="blue")

    def test_set_variables(self, store):
        created = store.create_template(_template())
        store.set_template_variables(created.id, ["nom", "âge"])
        assert store.get_template(created.id).variables == ["nom", "âge"]

    def test_set_variables_missing_template(self, store):
        with pytest.raises(ResourceNotFoundError):
            store.set_template_variables("nope", ["nom"])

    def test_delete_cascades_elements(self, store):
        created = store.create_template(_template())
        store.create_element(EditorElement(type=ElementType.TEXT, template_id=created.id, text_content="x"))
        store.delete_template(created.id)
        assert store.find_template(created.id) is None
        assert store.list_elements(created.id) == []


class TestElements:

    def test_round_trip_fields(self, store):
        template = store.create_template(_template())
        element = store.create_element(EditorElement(
            type=ElementType.TEXT,
            template_id=template.id,
            page_index=1,
            x=12.5,
            y=40,
            width=50,
            height=8,
            text_content="Bonjour (nom)",
            font_style=FontStyle(bold=True),
            color="#ff0000",
            variables=["nom"],
            default_values={"nom": "Alex"},
        ))

        fetched = store.get_element(element.id)
        assert fetched.template_id == template.id
        assert fetched.page_index == 1
        assert fetched.x == 12.5
        assert fetched.font_style.bold is True
        assert fetched.variables == ["nom"]
        assert fetched.default_values == {"nom": "Alex"}

    def test_list_ordered_by_page(self, store):
        template = store.create_template(_template())
        for page, text in ((2, "c"), (0, "a"), (1, "b")):
            store.create_element(EditorElement(
                type=ElementType.TEXT, template_id=template.id, page_index=page, text_content=text
            ))
        assert [e.text_content for e in store.list_elements(template.id)] == ["a", "b", "c"]

    def test_update_and_delete(self, store):
        template = store.create_template(_template())
        element = store.create_element(EditorElement(type=ElementType.IMAGE, template_id=template.id))
        element.variable_name = "avatar"
        assert store.update_element(element).variable_name == "avatar"

        store.delete_element(element.id)
        with pytest.raises(ResourceNotFoundError):
            store.get_element(element.id)


class TestHistoires:

    def test_create_get_update(self, store):
        histoire = store.create_histoire(Histoire(
            template_id="t1", user_id="u1", variables={"nom": "Ali", "âge": "6"}
        ))
        assert store.get_histoire(histoire.id).variables == {"nom": "Ali", "âge": "6"}

        updated = store.update_histoire(
            histoire.id,
            preview_urls=["/uploads/previews/preview-1-1.png"],
            pdf_url="/uploads/pdfs/generated-1-1.pdf",
        )
        assert updated.preview_image == "/uploads/previews/preview-1-1.png"
        assert updated.pdf_url == "/uploads/pdfs/generated-1-1.pdf"

    def test_update_rejects_unknown_field(self, store):
        histoire = store.create_histoire(Histoire(template_id="t1", user_id="u1"))
        with pytest.raises(ValueError):
            store.update_histoire(histoire.id, user_id="u2")

    def test_list_by_user_and_template(self, store):
        store.create_histoire(Histoire(template_id="t1", user_id="u1"))
        store.create_histoire(Histoire(template_id="t2", user_id="u1"))
        store.create_histoire(Histoire(template_id="t1", user_id="u2"))

        assert len(store.list_histoires(user_id="u1")) == 2
        assert len(store.list_histoires(template_id="t1")) == 2
        assert len(store.list_histoires(user_id="u2", template_id="t1")) == 1

    def test_is_file_referenced(self, store):
        first = store.create_histoire(Histoire(template_id="t1", user_id="u1", variables={"avatar": "avatar-1-2.png"}))
        assert not store.is_file_referenced("avatar-1-2.png", exclude_histoire_id=first.id)

        store.create_histoire(Histoire(template_id="t1", user_id="u2", variables={"avatar": "avatar-1-2.png"}))
        assert store.is_file_referenced("avatar-1-2.png", exclude_histoire_id=first.id)

    def test_delete(self, store):
        histoire = store.create_histoire(Histoire(template_id="t1", user_id="u1"))
        store.delete_histoire(histoire.id)
        with pytest.raises(ResourceNotFoundError):
            store.get_histoire(histoire.id)
