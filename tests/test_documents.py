"""Tests for the document lifecycle."""

import pytest

from docksign.documents import DocumentStore, download_filename, upload_basename
from docksign.errors import InternalError, NotFoundError, ValidationError
from docksign.models import (
    DocumentFromTemplate,
    DocumentStatus,
    DocumentUpdate,
    FieldConfig,
    FieldOption,
    FieldType,
    Signer,
    TemplateCreate,
    TemplateField,
    TemplateUpdate,
    Visibility,
    new_id,
)
from docksign.templates import TemplateStore


@pytest.fixture
def documents(tmp_store):
    return DocumentStore(tmp_store, max_upload_bytes=1024)


class TestCreateFromTemplate:
    """Fields are copied from the template at creation time."""

    def test_copies_fields(self, documents, nda_template, alice):
        doc = documents.create_from_template(nda_template.id, alice, DocumentFromTemplate(title="My NDA"))
        assert doc.title == "My NDA"
        assert doc.fields == nda_template.fields
        assert doc.content == {}
        assert doc.status == DocumentStatus.DRAFT
        assert doc.created_by == alice.id
        assert doc.template_id == nda_template.id

    def test_default_title_and_description(self, tmp_store, documents, nda_template, alice):
        TemplateStore(tmp_store).update(nda_template.id, alice, TemplateUpdate(description="Mutual"))
        doc = documents.create_from_template(nda_template.id, alice)
        assert doc.title == "NDA Document"
        assert doc.description == "Mutual"

    def test_template_edits_do_not_reach_documents(self, tmp_store, documents, nda_template, alice):
        doc = documents.create_from_template(nda_template.id, alice)
        TemplateStore(tmp_store).update(
            nda_template.id, alice, TemplateUpdate(fields=[TemplateField(id="new", label="New")])
        )
        reloaded = documents.get(doc.id, alice)
        assert [f.id for f in reloaded.fields] == ["f1", "f2", "sig"]

    def test_template_delete_keeps_documents(self, tmp_store, documents, nda_template, alice):
        doc = documents.create_from_template(nda_template.id, alice)
        TemplateStore(tmp_store).delete(nda_template.id, alice)
        assert documents.get(doc.id, alice).fields[0].label == "Name"

    def test_initial_content_and_signers(self, documents, nda_template, alice):
        doc = documents.create_from_template(
            nda_template.id,
            alice,
            DocumentFromTemplate(content={"f1": "Alice"}, signers=[Signer(name="Bob", email="bob@example.com")]),
        )
        assert doc.content == {"f1": "Alice"}
        assert doc.signers[0].name == "Bob"

    def test_bad_initial_content(self, documents, nda_template, alice):
        with pytest.raises(ValidationError):
            documents.create_from_template(nda_template.id, alice, DocumentFromTemplate(content={"f2": "yes"}))

    def test_private_template_of_someone_else(self, documents, nda_template, bob):
        with pytest.raises(NotFoundError):
            documents.create_from_template(nda_template.id, bob)

    def test_shared_template_of_someone_else(self, tmp_store, documents, nda_template, alice, bob):
        TemplateStore(tmp_store).update(nda_template.id, alice, TemplateUpdate(visibility=Visibility.SHARED))
        doc = documents.create_from_template(nda_template.id, bob)
        assert doc.created_by == bob.id

    def test_unknown_template(self, documents, alice):
        with pytest.raises(NotFoundError):
            documents.create_from_template(new_id(), alice)


class TestCreateFromUpload:
    @pytest.mark.parametrize(
        "filename,expected",
        [("../../evil.pdf", "evil.pdf"), ("C:\\Users\\a\\scan.pdf", "scan.pdf"), ("..", "upload")],
    )
    def test_directories_are_stripped_from_name(self, documents, alice, sample_pdf, filename, expected):
        doc = documents.create_from_upload(alice, "Scan", filename, sample_pdf)
        assert doc.file.name == expected
        assert upload_basename(filename) == expected

    def test_upload(self, tmp_store, documents, alice, sample_pdf):
        doc = documents.create_from_upload(alice, "Scan", "scan.pdf", sample_pdf, "application/pdf")
        assert doc.file.name == "scan.pdf"
        assert doc.file.size == len(sample_pdf)
        assert doc.file.url.startswith("/uploads/")
        assert doc.fields == []
        assert tmp_store.files.get(doc.file.url) == sample_pdf

    def test_short_title(self, documents, alice, sample_pdf):
        with pytest.raises(ValidationError, match="Title"):
            documents.create_from_upload(alice, "S", "scan.pdf", sample_pdf)

    def test_file_required(self, documents, alice):
        with pytest.raises(ValidationError, match="file"):
            documents.create_from_upload(alice, "Scan", None, None)

    def test_too_large(self, documents, alice):
        with pytest.raises(ValidationError, match="too large"):
            documents.create_from_upload(alice, "Big", "big.bin", b"x" * 2048)


class TestOwnership:
    """Someone else's document does not exist for you."""

    def test_other_user_gets_not_found(self, documents, nda_template, alice, bob):
        doc = documents.create_from_template(nda_template.id, alice)
        with pytest.raises(NotFoundError):
            documents.get(doc.id, bob)
        with pytest.raises(NotFoundError):
            documents.update_content(doc.id, bob, {"f1": "Mallory"})
        with pytest.raises(NotFoundError):
            documents.submit(doc.id, bob)
        with pytest.raises(NotFoundError):
            documents.delete(doc.id, bob)
        with pytest.raises(NotFoundError):
            documents.download(doc.id, bob)

    def test_list_is_per_owner(self, documents, nda_template, alice, bob):
        documents.create_from_template(nda_template.id, alice)
        assert len(documents.list(alice)) == 1
        assert documents.list(bob) == []

    def test_malformed_id(self, documents, alice):
        with pytest.raises(ValidationError, match="Invalid document ID"):
            documents.get("42", alice)


class TestUpdate:
    def test_content_is_merged(self, documents, nda_template, alice):
        doc = documents.create_from_template(nda_template.id, alice)
        documents.update_content(doc.id, alice, {"f1": "Alice"})
        updated = documents.update_content(doc.id, alice, {"f2": True})
        assert updated.content == {"f1": "Alice", "f2": True}
        assert updated.status == DocumentStatus.DRAFT

    def test_title_and_description(self, documents, nda_template, alice):
        doc = documents.create_from_template(nda_template.id, alice)
        updated = documents.update(doc.id, alice, DocumentUpdate(title="Renamed", description="d"))
        assert updated.title == "Renamed"
        assert updated.description == "d"

    def test_short_title(self, documents, nda_template, alice):
        doc = documents.create_from_template(nda_template.id, alice)
        with pytest.raises(ValidationError):
            documents.update(doc.id, alice, DocumentUpdate(title="x"))

    def test_bad_value(self, documents, nda_template, alice):
        doc = documents.create_from_template(nda_template.id, alice)
        with pytest.raises(ValidationError, match="Agree"):
            documents.update_content(doc.id, alice, {"f2": "maybe"})
        assert documents.get(doc.id, alice).content == {}


class TestSubmit:
    """Submission replaces content and can be repeated."""

    def test_cleared_inputs_are_accepted(self, tmp_store, documents, alice):
        template = TemplateStore(tmp_store).create(
            alice,
            TemplateCreate(
                name="Order",
                fields=[
                    TemplateField(
                        id="d",
                        type=FieldType.DROPDOWN,
                        label="Choice",
                        required=True,
                        config=FieldConfig(options=[FieldOption(label="A", value="a")]),
                    ),
                    TemplateField(id="dt", type=FieldType.DATE, label="When"),
                ],
            ),
        )
        doc = documents.create_from_template(template.id, alice)
        documents.update_content(doc.id, alice, {"dt": ""})
        submitted = documents.submit(doc.id, alice, {"d": "", "dt": ""})
        assert submitted.status == DocumentStatus.SUBMITTED
        assert submitted.content == {"d": "", "dt": ""}

    def test_submit_replaces_content(self, documents, nda_template, alice):
        doc = documents.create_from_template(nda_template.id, alice)
        documents.update_content(doc.id, alice, {"f1": "Alice", "f2": True})
        submitted = documents.submit(doc.id, alice, {"f1": "Alice B."})
        assert submitted.status == DocumentStatus.SUBMITTED
        assert submitted.content == {"f1": "Alice B."}

    def test_missing_required_does_not_block(self, documents, nda_template, alice):
        doc = documents.create_from_template(nda_template.id, alice)
        assert documents.submit(doc.id, alice, {}).status == DocumentStatus.SUBMITTED

    def test_resubmit_last_wins(self, documents, nda_template, alice):
        doc = documents.create_from_template(nda_template.id, alice)
        documents.submit(doc.id, alice, {"f1": "First"})
        again = documents.submit(doc.id, alice, {"f1": "Second"})
        assert again.status == DocumentStatus.SUBMITTED
        assert documents.get(doc.id, alice).content == {"f1": "Second"}

    def test_bad_value(self, documents, nda_template, alice):
        doc = documents.create_from_template(nda_template.id, alice)
        with pytest.raises(ValidationError):
            documents.submit(doc.id, alice, {"sig": "not a timestamp"})
        assert documents.get(doc.id, alice).is_draft


class TestDelete:
    def test_delete_purges_upload(self, tmp_store, documents, alice, sample_pdf):
        doc = documents.create_from_upload(alice, "Scan", "scan.pdf", sample_pdf)
        documents.delete(doc.id, alice)
        with pytest.raises(NotFoundError):
            documents.get(doc.id, alice)
        assert tmp_store.files.get(doc.file.url) is None


class TestDownload:
    def test_template_document_is_rendered(self, documents, nda_template, alice):
        doc = documents.create_from_template(nda_template.id, alice, DocumentFromTemplate(title="My NDA"))
        artifact = documents.download(doc.id, alice)
        assert artifact.filename == "my_nda.pdf"
        assert artifact.media_type == "application/pdf"
        assert artifact.data.startswith(b"%PDF")

    def test_upload_returns_original(self, documents, alice, sample_pdf):
        doc = documents.create_from_upload(alice, "Scan", "scan.pdf", sample_pdf, "application/pdf")
        artifact = documents.download(doc.id, alice)
        assert artifact.data == sample_pdf
        assert artifact.filename == "scan.pdf"

    def test_missing_upload(self, tmp_store, documents, alice, sample_pdf):
        doc = documents.create_from_upload(alice, "Scan", "scan.pdf", sample_pdf)
        tmp_store.files.delete(doc.file.url)
        with pytest.raises(InternalError):
            documents.download(doc.id, alice)

    def test_render_failure(self, tmp_store, nda_template, alice):
        class Broken:
            def render(self, document):
                raise RuntimeError("boom")

        documents = DocumentStore(tmp_store, renderer=Broken())
        doc = documents.create_from_template(nda_template.id, alice)
        with pytest.raises(InternalError, match="Failed to generate"):
            documents.download(doc.id, alice)

    @pytest.mark.parametrize(
        "title,expected",
        [("My NDA", "my_nda.pdf"), ("Q3 Report!", "q3_report_.pdf"), ("", "document.pdf")],
    )
    def test_filename(self, title, expected):
        assert download_filename(title) == expected
