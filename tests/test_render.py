"""Tests for PDF rendering."""

from reportlab.lib.pagesizes import A4, LETTER

from docksign.models import Document, TemplateField, TemplateReference, new_id
from docksign.render import DocumentRenderer


def _document(fields=None, content=None, **kwargs):
    return Document(
        title=kwargs.pop("title", "My NDA"),
        created_by=new_id(),
        derived_from_template=TemplateReference(template_id=new_id()),
        fields=fields or [],
        content=content or {},
        **kwargs,
    )


class TestDocumentRenderer:
    def test_produces_pdf(self, nda_fields):
        pdf = DocumentRenderer().render(_document(nda_fields, {"f1": "Alice", "f2": True}))
        assert pdf.startswith(b"%PDF")
        assert pdf.rstrip().endswith(b"%%EOF")

    def test_one_page_per_field_page(self, nda_fields):
        pdf = DocumentRenderer().render(_document(nda_fields))
        # Fields sit on pages 1 and 2.
        assert b"/Count 2" in pdf

    def test_no_fields(self):
        pdf = DocumentRenderer().render(_document(description="Nothing to fill"))
        assert pdf.startswith(b"%PDF")
        assert b"/Count 1" in pdf

    def test_long_values_wrap(self):
        field = TemplateField(id="notes", type="textarea", label="Notes")
        pdf = DocumentRenderer(pagesize=A4).render(_document([field], {"notes": "lorem ipsum " * 200}))
        assert pdf.startswith(b"%PDF")

    def test_renderer_keeps_no_layout_state(self, nda_fields):
        renderer = DocumentRenderer()
        renderer.render(_document(nda_fields))
        assert vars(renderer) == {"pagesize": LETTER}
        second = renderer.render(_document(nda_fields, title="Second"))
        assert b"/Count 2" in second
