"""Core data models for DockSign.

Templates own an ordered list of positioned, typed fields. Documents are
instantiated from a template (taking a deep copy of its fields) or from an
uploaded file, collect field values in a flat ``content`` mapping keyed by
field id, and move from ``draft`` to ``submitted``.

The wire format is camelCase (``parentId``, ``createdBy``) to stay
compatible with existing browser clients; snake_case is accepted on input.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Union
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from .errors import ValidationError

DEFAULT_CATEGORY_COLOR = "#6366F1"
HEX_COLOR_PATTERN = r"^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$"

Scalar = Union[bool, int, float, str, None]
# Tables and similar structured fields carry lists/objects.
FieldValue = Union[Scalar, list[Any], dict[str, Any]]


def new_id() -> str:
    return str(uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def validate_id(value: Optional[str], kind: str = "") -> str:
    """Return ``value`` if it is a well-formed identifier.

    Raises:
        ValidationError: For anything that is not a canonical UUID string.
    """
    label = f"{kind} ID" if kind else "ID"
    if not value or not isinstance(value, str):
        raise ValidationError(f"Invalid {label} format")
    try:
        parsed = UUID(value)
    except ValueError:
        raise ValidationError(f"Invalid {label} format") from None
    if str(parsed) != value.lower():
        raise ValidationError(f"Invalid {label} format")
    return value.lower()


class _Model(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class FieldType(str, Enum):
    """Field types a template can declare."""

    TEXT = "text"
    TEXTAREA = "textarea"
    CHECKBOX = "checkbox"
    DROPDOWN = "dropdown"
    SELECT = "select"
    RADIO = "radio"
    DATE = "date"
    SIGNATURE = "signature"
    NUMBER = "number"
    EMAIL = "email"
    IMAGE = "image"
    TABLE = "table"
    RICH_TEXT = "richText"
    CALCULATED = "calculated"


class Visibility(str, Enum):
    PRIVATE = "private"
    SHARED = "shared"


class DocumentStatus(str, Enum):
    """Lifecycle states for a document. ``draft --submit--> submitted``."""

    DRAFT = "draft"
    SUBMITTED = "submitted"


class ConditionOperator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "notEquals"
    CONTAINS = "contains"
    NOT_CONTAINS = "notContains"
    GREATER_THAN = "greaterThan"
    LESS_THAN = "lessThan"


# ---------------------------------------------------------------------------
# Fields
# ---------------------------------------------------------------------------

class FieldPosition(_Model):
    """Where a field is drawn. Only used for placement.

    Attributes:
        x: Horizontal offset from the left edge.
        y: Vertical offset from the top edge.
        width: Field width.
        height: Field height.
        page: 1-indexed page number.
    """

    x: float = Field(0, ge=0)
    y: float = Field(0, ge=0)
    width: float = Field(0, ge=0)
    height: float = Field(0, ge=0)
    page: int = Field(1, ge=1)


class FieldOption(_Model):
    label: str
    value: str


class ShowWhen(_Model):
    """Display the field only while another field's value matches."""

    field_id: str
    operator: ConditionOperator = ConditionOperator.EQUALS
    value: FieldValue = None


class TableColumn(_Model):
    id: str
    header: str
    width: Optional[float] = None


class FieldConfig(_Model):
    """Optional per-field behaviour: validation bounds, options, defaults."""

    options: list[FieldOption] = Field(default_factory=list)
    min_length: Optional[int] = Field(None, ge=0)
    max_length: Optional[int] = Field(None, ge=0)
    pattern: Optional[str] = None
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    format: Optional[str] = None
    show_when: Optional[ShowWhen] = None
    default_value: FieldValue = None
    formula: Optional[str] = None
    columns: list[TableColumn] = Field(default_factory=list)
    allow_formatting: Optional[bool] = None
    aspect_ratio: Optional[float] = None
    max_size: Optional[int] = None


class TemplateField(_Model):
    """A single labeled, positioned, typed input.

    Attributes:
        id: Unique within the owning template or document.
        type: Field type, drives validation and display.
        label: Human-readable label (e.g. "Buyer Full Name").
        placeholder: Hint shown in empty inputs.
        required: Whether a value is expected before submission.
        position: Placement on the page.
        config: Validation bounds, options, defaults, conditional display.
    """

    id: str
    type: FieldType = FieldType.TEXT
    label: str = ""
    placeholder: Optional[str] = None
    required: bool = False
    position: FieldPosition = Field(default_factory=FieldPosition)
    config: Optional[FieldConfig] = None


# ---------------------------------------------------------------------------
# Category
# ---------------------------------------------------------------------------

class Category(_Model):
    """Hierarchical label for organising templates."""

    id: str = Field(default_factory=new_id)
    name: str
    description: Optional[str] = None
    color: str = DEFAULT_CATEGORY_COLOR
    parent_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class CategoryInput(_Model):
    """Body for creating or updating a category. Checked by the service."""

    name: str = ""
    description: Optional[str] = None
    color: Optional[str] = None
    parent_id: Optional[str] = None


# ---------------------------------------------------------------------------
# Template
# ---------------------------------------------------------------------------

class Template(_Model):
    """Reusable field layout that documents are instantiated from.

    Attributes:
        id: Unique identifier.
        name: Template name (e.g. "NDA").
        description: What this template is for.
        fields: Ordered fields; order is tab order.
        created_by: User id of the creator, the only one allowed to mutate.
        visibility: ``private`` (creator only) or ``shared`` (everyone reads).
        category_id: Optional category.
        is_active: Whether the template is offered for new documents.
        metadata: Free-form key/value metadata.
    """

    id: str = Field(default_factory=new_id)
    name: str
    description: str = ""
    fields: list[TemplateField] = Field(default_factory=list)
    created_by: str
    visibility: Visibility = Visibility.PRIVATE
    category_id: Optional[str] = None
    is_active: bool = True
    metadata: dict[str, FieldValue] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def visible_to(self, requester_id: str) -> bool:
        return self.created_by == requester_id or self.visibility == Visibility.SHARED


class TemplateCreate(_Model):
    name: str = ""
    description: Optional[str] = None
    fields: list[TemplateField] = Field(default_factory=list)
    visibility: Visibility = Visibility.PRIVATE
    category_id: Optional[str] = None
    metadata: dict[str, FieldValue] = Field(default_factory=dict)


class TemplateUpdate(_Model):
    """Partial update. ``None`` means "leave as is"."""

    name: Optional[str] = None
    description: Optional[str] = None
    fields: Optional[list[TemplateField]] = None
    visibility: Optional[Visibility] = None
    category_id: Optional[str] = None
    is_active: Optional[bool] = None
    metadata: Optional[dict[str, FieldValue]] = None


# ---------------------------------------------------------------------------
# Document
# ---------------------------------------------------------------------------

class FileInfo(_Model):
    """Metadata of an uploaded file. Bytes live in file storage."""

    name: str
    type: str = "application/octet-stream"
    size: int = Field(0, ge=0)
    url: str


class Signer(_Model):
    name: str = ""
    email: Optional[str] = None
    role: str = "signer"
    order: int = 0


class TemplateReference(_Model):
    template_id: str


class Document(_Model):
    """A concrete, owned instance with a draft -> submitted lifecycle.

    Exactly one origin applies: ``derived_from_template`` (with a copied
    field set) or ``file`` (an upload, no fields).
    """

    id: str = Field(default_factory=new_id)
    title: str
    description: str = ""
    fields: list[TemplateField] = Field(default_factory=list)
    content: dict[str, FieldValue] = Field(default_factory=dict)
    status: DocumentStatus = DocumentStatus.DRAFT
    created_by: str
    derived_from_template: Optional[TemplateReference] = None
    file: Optional[FileInfo] = None
    signers: list[Signer] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def _one_origin(self) -> "Document":
        if (self.derived_from_template is None) == (self.file is None):
            raise ValueError("a document comes from exactly one of a template or an upload")
        if self.file is not None and self.fields:
            raise ValueError("uploaded documents carry no fields")
        return self

    @property
    def template_id(self) -> Optional[str]:
        if self.derived_from_template is None:
            return None
        return self.derived_from_template.template_id

    @property
    def is_draft(self) -> bool:
        return self.status == DocumentStatus.DRAFT

    def field(self, field_id: str) -> Optional[TemplateField]:
        for f in self.fields:
            if f.id == field_id:
                return f
        return None


class DocumentFromTemplate(_Model):
    title: Optional[str] = None
    description: Optional[str] = None
    content: dict[str, FieldValue] = Field(default_factory=dict)
    signers: list[Signer] = Field(default_factory=list)


class DocumentUpdate(_Model):
    title: Optional[str] = None
    description: Optional[str] = None
    content: Optional[dict[str, FieldValue]] = None


class SubmitRequest(_Model):
    content: dict[str, FieldValue] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

class User(_Model):
    """A registered account. ``password_hash`` never leaves the store."""

    id: str = Field(default_factory=new_id)
    name: str
    email: str
    password_hash: str
    role: str = "user"
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Requester(_Model):
    """The authenticated caller, passed explicitly into every operation."""

    id: str
    email: str
    name: str = ""
    role: str = "user"

    @classmethod
    def from_user(cls, user: User) -> "Requester":
        return cls(id=user.id, email=user.email, name=user.name, role=user.role)
