"""Tests for DockSign Pydantic models."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from docksign.errors import ValidationError
from docksign.models import (
    DEFAULT_CATEGORY_COLOR,
    Category,
    Document,
    DocumentStatus,
    FieldConfig,
    FieldPosition,
    FieldType,
    FileInfo,
    Template,
    TemplateField,
    TemplateReference,
    Visibility,
    new_id,
    validate_id,
)


class TestIdentifiers:
    """Identifiers are canonical UUID strings."""

    def test_new_id_is_valid(self):
        value = new_id()
        assert validate_id(value) == value

    def test_uppercase_is_normalised(self):
        value = new_id()
        assert validate_id(value.upper()) == value

    @pytest.mark.parametrize("bad", ["", "abc", "123", "../etc/passwd", None])
    def test_malformed_rejected(self, bad):
        with pytest.raises(ValidationError, match="Invalid"):
            validate_id(bad, "document")


class TestFieldPosition:
    """Positions are non-negative; pages start at 1."""

    def test_defaults(self):
        p = FieldPosition()
        assert p.page == 1
        assert p.x == 0

    def test_negative_rejected(self):
        with pytest.raises(PydanticValidationError):
            FieldPosition(x=-1)

    def test_page_zero_rejected(self):
        with pytest.raises(PydanticValidationError):
            FieldPosition(page=0)


class TestTemplateField:
    """Fields accept the camelCase wire format."""

    def test_from_wire_format(self):
        f = TemplateField.model_validate(
            {
                "id": "color",
                "type": "dropdown",
                "label": "Color",
                "required": True,
                "position": {"x": 1, "y": 2, "width": 30, "height": 10, "page": 1},
                "config": {
                    "options": [{"label": "Red", "value": "red"}],
                    "showWhen": {"fieldId": "agree", "operator": "equals", "value": True},
                    "minLength": 1,
                },
            }
        )
        assert f.type == FieldType.DROPDOWN
        assert f.config.options[0].value == "red"
        assert f.config.show_when.field_id == "agree"
        assert f.config.min_length == 1

    def test_dump_uses_camel_case(self):
        f = TemplateField(id="n", config=FieldConfig(max_length=5))
        data = f.model_dump(by_alias=True)
        assert data["config"]["maxLength"] == 5

    def test_unknown_type_rejected(self):
        with pytest.raises(PydanticValidationError):
            TemplateField(id="x", type="hologram")

    def test_rich_text_type_value(self):
        assert TemplateField(id="x", type="richText").type == FieldType.RICH_TEXT


class TestCategory:
    def test_defaults(self):
        c = Category(name="Legal")
        assert c.color == DEFAULT_CATEGORY_COLOR
        assert c.parent_id is None
        assert c.id


class TestTemplate:
    """Template visibility rules."""

    def test_private_visible_to_creator_only(self, alice, bob):
        t = Template(name="NDA", created_by=alice.id)
        assert t.visibility == Visibility.PRIVATE
        assert t.visible_to(alice.id)
        assert not t.visible_to(bob.id)

    def test_shared_visible_to_everyone(self, alice, bob):
        t = Template(name="NDA", created_by=alice.id, visibility=Visibility.SHARED)
        assert t.visible_to(bob.id)

    def test_wire_names(self, alice):
        data = Template(name="NDA", created_by=alice.id).model_dump(by_alias=True)
        assert data["createdBy"] == alice.id
        assert data["isActive"] is True
        assert "categoryId" in data


class TestDocument:
    """A document has exactly one origin."""

    def test_from_template(self, alice):
        doc = Document(
            title="My NDA",
            created_by=alice.id,
            derived_from_template=TemplateReference(template_id=new_id()),
        )
        assert doc.status == DocumentStatus.DRAFT
        assert doc.is_draft
        assert doc.content == {}
        assert doc.template_id is not None

    def test_from_upload(self, alice):
        doc = Document(
            title="Scan",
            created_by=alice.id,
            file=FileInfo(name="scan.pdf", type="application/pdf", size=10, url="/uploads/k/scan.pdf"),
        )
        assert doc.template_id is None

    def test_needs_an_origin(self, alice):
        with pytest.raises(PydanticValidationError):
            Document(title="Orphan", created_by=alice.id)

    def test_cannot_have_both_origins(self, alice):
        with pytest.raises(PydanticValidationError):
            Document(
                title="Both",
                created_by=alice.id,
                derived_from_template=TemplateReference(template_id=new_id()),
                file=FileInfo(name="a.pdf", url="/uploads/k/a.pdf"),
            )

    def test_upload_has_no_fields(self, alice):
        with pytest.raises(PydanticValidationError):
            Document(
                title="Upload",
                created_by=alice.id,
                file=FileInfo(name="a.pdf", url="/uploads/k/a.pdf"),
                fields=[TemplateField(id="f1")],
            )

    def test_content_keeps_value_types(self, alice):
        doc = Document(
            title="Typed",
            created_by=alice.id,
            derived_from_template=TemplateReference(template_id=new_id()),
            content={"a": True, "b": 3, "c": "text", "d": None},
        )
        assert doc.content["a"] is True
        assert doc.content["b"] == 3 and not isinstance(doc.content["b"], bool)
        assert doc.content["c"] == "text"

    def test_field_lookup(self, alice):
        doc = Document(
            title="Lookup",
            created_by=alice.id,
            derived_from_template=TemplateReference(template_id=new_id()),
            fields=[TemplateField(id="f1", label="Name")],
        )
        assert doc.field("f1").label == "Name"
        assert doc.field("missing") is None
