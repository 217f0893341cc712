"""Field renderer and validator.

Interprets a field's declared ``type`` and ``config`` to decide which
values it accepts and how a value is displayed. Shared by templates and
documents.

Every :class:`~docksign.models.FieldType` has an entry in ``_VALIDATORS``;
a missing entry is a bug, not a pass-through.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Iterable, Mapping, Optional

from .errors import ValidationError
from .models import ConditionOperator, FieldType, TemplateField

logger = logging.getLogger("docksign.fields")

NOT_PROVIDED = "Not provided"
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

Validator = Callable[[TemplateField, Any], list[str]]


def is_empty(value: Any) -> bool:
    """True for values a required field should not accept."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, dict)):
        return len(value) == 0
    return False


# ---------------------------------------------------------------------------
# Per-type validators
# ---------------------------------------------------------------------------

def _check_length(f: TemplateField, value: str) -> list[str]:
    problems = []
    cfg = f.config
    if cfg is None:
        return problems
    if cfg.min_length is not None and len(value) < cfg.min_length:
        problems.append(f"must be at least {cfg.min_length} characters")
    if cfg.max_length is not None and len(value) > cfg.max_length:
        problems.append(f"must be at most {cfg.max_length} characters")
    return problems


def _validate_text(f: TemplateField, value: Any) -> list[str]:
    if not isinstance(value, str):
        return ["must be a string"]
    problems = _check_length(f, value)
    if f.config and f.config.pattern:
        try:
            if re.fullmatch(f.config.pattern, value) is None:
                problems.append("does not match the expected format")
        except re.error:
            logger.warning("Field %s has an invalid pattern %r", f.id, f.config.pattern)
    return problems


def _validate_textarea(f: TemplateField, value: Any) -> list[str]:
    if not isinstance(value, str):
        return ["must be a string"]
    return _check_length(f, value)


def _validate_checkbox(f: TemplateField, value: Any) -> list[str]:
    if not isinstance(value, bool):
        return ["must be true or false"]
    return []


def _validate_choice(f: TemplateField, value: Any) -> list[str]:
    if not isinstance(value, str):
        return ["must be a string"]
    allowed = [o.value for o in f.config.options] if f.config else []
    if value not in allowed:
        return [f"must be one of: {', '.join(allowed) or '(no options)'}"]
    return []


def _validate_date(f: TemplateField, value: Any) -> list[str]:
    if not isinstance(value, str):
        return ["must be an ISO date string"]
    try:
        date.fromisoformat(value)
    except ValueError:
        try:
            datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return ["must be an ISO date string"]
    return []


def _validate_signature(f: TemplateField, value: Any) -> list[str]:
    # The value is the "signed at" timestamp.
    if not isinstance(value, str):
        return ["must be an ISO timestamp"]
    try:
        datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return ["must be an ISO timestamp"]
    return []


def _validate_number(f: TemplateField, value: Any) -> list[str]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return ["must be a number"]
    problems = []
    cfg = f.config
    if cfg is not None:
        if cfg.min_value is not None and value < cfg.min_value:
            problems.append(f"must be at least {cfg.min_value:g}")
        if cfg.max_value is not None and value > cfg.max_value:
            problems.append(f"must be at most {cfg.max_value:g}")
    return problems


def _validate_email(f: TemplateField, value: Any) -> list[str]:
    if not isinstance(value, str) or not _EMAIL_RE.match(value):
        return ["must be an email address"]
    return []


def _accept_any(f: TemplateField, value: Any) -> list[str]:
    return []


_VALIDATORS: dict[FieldType, Validator] = {
    FieldType.TEXT: _validate_text,
    FieldType.TEXTAREA: _validate_textarea,
    FieldType.CHECKBOX: _validate_checkbox,
    FieldType.DROPDOWN: _validate_choice,
    FieldType.SELECT: _validate_choice,
    FieldType.RADIO: _validate_choice,
    FieldType.DATE: _validate_date,
    FieldType.SIGNATURE: _validate_signature,
    FieldType.NUMBER: _validate_number,
    FieldType.EMAIL: _validate_email,
    FieldType.IMAGE: _accept_any,
    FieldType.TABLE: _accept_any,
    FieldType.RICH_TEXT: _accept_any,
    FieldType.CALCULATED: _accept_any,
}


def validate_value(f: TemplateField, value: Any) -> list[str]:
    """Check ``value`` against the field's type and config.

    Empty values are not judged here; see :func:`missing_required`.

    Returns:
        Problems found, empty when the value is acceptable.
    """
    if is_empty(value):
        return []
    return _VALIDATORS[f.type](f, value)


# ---------------------------------------------------------------------------
# Conditional display
# ---------------------------------------------------------------------------

def _compare(operator: ConditionOperator, actual: Any, expected: Any) -> bool:
    if operator == ConditionOperator.EQUALS:
        return actual == expected
    if operator == ConditionOperator.NOT_EQUALS:
        return actual != expected
    if operator in (ConditionOperator.CONTAINS, ConditionOperator.NOT_CONTAINS):
        if isinstance(actual, (str, list)) and expected is not None:
            try:
                found = expected in actual
            except TypeError:
                found = False
        else:
            found = False
        return found if operator == ConditionOperator.CONTAINS else not found
    try:
        if operator == ConditionOperator.GREATER_THAN:
            return float(actual) > float(expected)
        return float(actual) < float(expected)
    except (TypeError, ValueError):
        return False


def is_visible(f: TemplateField, content: Mapping[str, Any]) -> bool:
    """Whether the field's ``showWhen`` rule (if any) currently holds."""
    rule = f.config.show_when if f.config else None
    if rule is None:
        return True
    return _compare(rule.operator, content.get(rule.field_id), rule.value)


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------

def effective_value(f: TemplateField, content: Mapping[str, Any]) -> Any:
    value = content.get(f.id)
    if is_empty(value) and f.config is not None and not is_empty(f.config.default_value):
        return f.config.default_value
    return value


def missing_required(fields: Iterable[TemplateField], content: Mapping[str, Any]) -> list[str]:
    """Ids of visible required fields without a value."""
    return [
        f.id
        for f in fields
        if f.required and is_visible(f, content) and is_empty(effective_value(f, content))
    ]


@dataclass
class ContentReport:
    """Outcome of checking a content mapping against a field set."""

    errors: dict[str, list[str]] = field(default_factory=dict)
    missing: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    @property
    def complete(self) -> bool:
        return self.valid and not self.missing


def check_content(fields: list[TemplateField], content: Mapping[str, Any]) -> ContentReport:
    """Validate every value that belongs to a declared field.

    Keys that name no field are left alone; uploaded documents have no
    fields at all and still keep arbitrary content.
    """
    report = ContentReport()
    by_id = {f.id: f for f in fields}
    for key, value in content.items():
        f = by_id.get(key)
        if f is None:
            continue
        problems = validate_value(f, value)
        if problems:
            report.errors[key] = problems
    report.missing = missing_required(fields, content)
    return report


def ensure_valid_content(fields: list[TemplateField], content: Mapping[str, Any]) -> ContentReport:
    """Like :func:`check_content` but raise on shape errors.

    Missing required values do not raise; partial content is accepted.

    Raises:
        ValidationError: When a value does not fit its field.
    """
    report = check_content(fields, content)
    if not report.valid:
        labels = {f.id: f.label or f.id for f in fields}
        first_id, problems = next(iter(report.errors.items()))
        raise ValidationError(
            f"{labels[first_id]} {problems[0]}",
            details={"fields": report.errors},
        )
    return report


def ensure_unique_ids(fields: list[TemplateField]) -> None:
    seen: set[str] = set()
    for f in fields:
        if not f.id:
            raise ValidationError("Field id is required")
        if f.id in seen:
            raise ValidationError(f"Duplicate field id: {f.id}")
        seen.add(f.id)


# ---------------------------------------------------------------------------
# Display
# ---------------------------------------------------------------------------

def _option_label(f: TemplateField, value: str) -> str:
    if f.config:
        for option in f.config.options:
            if option.value == value:
                return option.label
    return value


def display_value(f: TemplateField, value: Optional[Any]) -> str:
    """Human-readable rendering of a field value."""
    if f.type == FieldType.CHECKBOX:
        if value is None:
            return NOT_PROVIDED
        return "Yes" if value is True else "No"
    if is_empty(value):
        return NOT_PROVIDED
    if f.type in (FieldType.DROPDOWN, FieldType.SELECT, FieldType.RADIO):
        return _option_label(f, str(value))
    if f.type == FieldType.SIGNATURE:
        return f"Signed at {value}"
    if isinstance(value, list):
        return ", ".join(str(v) for v in value)
    return str(value)


def render_field(f: TemplateField, content: Mapping[str, Any]) -> str:
    return display_value(f, effective_value(f, content))
