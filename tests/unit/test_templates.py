"""Tests for TemplateService: PDF analysis, file handling and template previews."""

import fitz  # PyMuPDF
import pytest

from core.storybook.exceptions import TemplateNotAvailableError, TemplatePdfError
from core.storybook.models import EditorElement, ElementType, PageDimensions
from core.storybook.templates import TemplateService, analyze_pdf, normalize_category, normalize_language

METADATA = {
    "title": "Le voyage",
    "description": "Une aventure",
    "category": "contes-et-aventures-imaginaires",
    "gender": "girl",
    "age_range": "3 ans - 5 ans",
    "language": "français",
}


@pytest.fixture
def service(store, compositor, layout):
    return TemplateService(store, compositor, layout)


@pytest.fixture
def uploaded_files(layout, make_pdf, make_image):
    pdf = layout.uploads_dir / "template-1700000000000-1.pdf"
    pdf.write_bytes(make_pdf(pages=3, width=400, height=600))
    cover = layout.uploads_dir / "cover-1700000000000-1.png"
    cover.write_bytes(make_image("PNG"))
    return pdf, cover


class TestHelpers:

    def test_analyze_pdf(self, tmp_path, make_pdf):
        path = tmp_path / "t.pdf"
        path.write_bytes(make_pdf(pages=3, width=400, height=600))
        assert analyze_pdf(path) == (3, PageDimensions(400, 600))

    def test_analyze_pdf_missing(self, tmp_path):
        with pytest.raises(TemplatePdfError):
            analyze_pdf(tmp_path / "missing.pdf")

    def test_normalize_labels(self):
        assert normalize_category("histoires-du-soir") == "Histoires du soir"
        assert normalize_category("Histoires du soir") == "Histoires du soir"
        assert normalize_language("arabe") == "Arabe"


class TestCreateTemplate:

    @pytest.mark.asyncio
    async def test_create(self, service, uploaded_files):
        pdf, cover = uploaded_files
        template = await service.create_template(METADATA, pdf, cover)

        assert template.page_count == 3
        assert template.dimensions == PageDimensions(400, 600)
        assert template.category == "Contes et aventures imaginaires"
        assert template.language == "Français"
        assert template.pdf_path == pdf.name
        assert template.cover_path == cover.name

    @pytest.mark.asyncio
    async def test_invalid_pdf_removes_files(self, service, uploaded_files):
        pdf, cover = uploaded_files
        pdf.write_bytes(b"not a pdf at all")

        with pytest.raises(TemplatePdfError):
            await service.create_template(METADATA, pdf, cover)
        assert not pdf.exists()
        assert not cover.exists()

    @pytest.mark.asyncio
    async def test_invalid_gender_removes_files(self, service, uploaded_files):
        pdf, cover = uploaded_files
        with pytest.raises(ValueError):
            await service.create_template({**METADATA, "gender": "robot"}, pdf, cover)
        assert not pdf.exists()


class TestManageTemplates:

    @pytest.mark.asyncio
    async def test_list_normalizes_filters(self, service, uploaded_files):
        await service.create_template(METADATA, *uploaded_files)
        assert len(service.list_templates(category="contes-et-aventures-imaginaires")) == 1
        assert service.list_templates(category="histoires-du-soir") == []

    def test_search_blank_query(self, service):
        assert service.search_templates("   ") == []

    @pytest.mark.asyncio
    async def test_update_with_new_pdf_replaces_file(self, service, layout, uploaded_files, make_pdf):
        pdf, cover = uploaded_files
        template = await service.create_template(METADATA, pdf, cover)

        new_pdf = layout.uploads_dir / "template-1700000000001-2.pdf"
        new_pdf.write_bytes(make_pdf(pages=1))
        updated = await service.update_template(template.id, {"title": "Nouveau", "category": "histoires-du-soir"}, pdf_path=new_pdf)

        assert updated.title == "Nouveau"
        assert updated.category == "Histoires du soir"
        assert updated.page_count == 1
        assert updated.pdf_path == new_pdf.name
        assert not pdf.exists()
        assert cover.exists()

    @pytest.mark.asyncio
    async def test_remove_deletes_files(self, service, store, uploaded_files):
        pdf, cover = uploaded_files
        template = await service.create_template(METADATA, pdf, cover)
        service.remove_template(template.id)

        assert store.find_template(template.id) is None
        assert not pdf.exists()
        assert not cover.exists()


class TestPreviewTemplate:

    @pytest.mark.asyncio
    async def test_unpublished_rejected(self, service, uploaded_files):
        template = await service.create_template(METADATA, *uploaded_files)
        with pytest.raises(TemplateNotAvailableError):
            await service.preview_template(template.id, {})

    @pytest.mark.asyncio
    async def test_preview_written_to_temp_previews(self, service, store, layout, uploaded_files):
        template = await service.create_template({**METADATA, "is_published": True}, *uploaded_files)
        store.create_element(EditorElement(
            type=ElementType.TEXT, template_id=template.id,
            x=10, y=10, width=80, height=10, font_size=14, text_content="Bonjour (nom)",
        ))

        url = await service.preview_template(template.id, {"nom": "Ali"})

        assert url.startswith(f"/uploads/temp-previews/preview-{template.id}-")
        path = layout.path_from_url(url)
        assert path.exists()
        with fitz.open(path) as doc:
            assert "Bonjour Ali" in doc[0].get_text()
