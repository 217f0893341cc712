"""Template operations.

A template is readable by its creator and, when shared, by every
authenticated user. Only the creator may change or delete it. Templates
that cannot be read are reported as not found.
"""

import logging
from typing import Optional

from .errors import NotFoundError, ReferenceNotFoundError, ValidationError
from .fields import ensure_unique_ids
from .models import (
    Requester,
    Template,
    TemplateCreate,
    TemplateUpdate,
    Visibility,
    utcnow,
    validate_id,
)
from .store import Store

logger = logging.getLogger("docksign.templates")


class TemplateStore:
    """Template CRUD scoped to the requesting user.

    Args:
        store: Backing repositories.
    """

    def __init__(self, store: Store) -> None:
        self.store = store

    def list(
        self,
        requester: Requester,
        name: Optional[str] = None,
        visibility: Optional[Visibility] = None,
    ) -> list[Template]:
        """Own templates plus all shared ones, optionally narrowed."""
        return self.store.templates.list_visible_templates(
            requester.id, name=name or None, visibility=visibility
        )

    def get(self, template_id: str, requester: Requester) -> Template:
        """Load a template the requester can see.

        Raises:
            ValidationError: Malformed id.
            NotFoundError: Missing, or private to someone else.
        """
        template = self._load(template_id)
        if not template.visible_to(requester.id):
            raise NotFoundError("Template not found")
        return template

    def create(self, requester: Requester, data: TemplateCreate) -> Template:
        """Create a template owned by the requester.

        Raises:
            ValidationError: Empty name, duplicate field ids, bad category id.
            ReferenceNotFoundError: The category does not exist.
        """
        if not data.name or not data.name.strip():
            raise ValidationError("Template name is required")
        ensure_unique_ids(data.fields)
        category_id = self._check_category(data.category_id) if data.category_id else None

        template = Template(
            name=data.name.strip(),
            description=data.description or "",
            fields=data.fields,
            created_by=requester.id,
            visibility=data.visibility,
            category_id=category_id,
            metadata=data.metadata,
        )
        self.store.templates.save(template)
        logger.info(
            "Created template %s (%s) with %d fields",
            template.name,
            template.id[:8],
            len(template.fields),
        )
        return template

    def update(self, template_id: str, requester: Requester, patch: TemplateUpdate) -> Template:
        """Apply a partial update. ``None`` values leave fields untouched.

        Raises:
            NotFoundError: Missing, or not created by the requester.
            ValidationError: Same checks as :meth:`create`.
        """
        template = self._owned(template_id, requester)
        changes = {k: v for k, v in patch.model_dump(exclude_unset=True).items() if v is not None}

        if "name" in changes:
            if not patch.name.strip():
                raise ValidationError("Template name is required")
            template.name = patch.name.strip()
        if "description" in changes:
            template.description = patch.description
        if "fields" in changes:
            ensure_unique_ids(patch.fields)
            template.fields = patch.fields
        if "visibility" in changes:
            template.visibility = patch.visibility
        if "category_id" in changes:
            template.category_id = self._check_category(patch.category_id)
        if "is_active" in changes:
            template.is_active = patch.is_active
        if "metadata" in changes:
            template.metadata = patch.metadata
        template.updated_at = utcnow()

        self.store.templates.save(template)
        logger.info("Updated template %s (%s)", template.name, template.id[:8])
        return template

    def delete(self, template_id: str, requester: Requester) -> None:
        """Delete a template. Documents created from it are unaffected.

        Raises:
            NotFoundError: Missing, or not created by the requester.
        """
        template = self._owned(template_id, requester)
        self.store.templates.delete(template.id)
        logger.info("Deleted template %s (%s)", template.name, template.id[:8])

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _load(self, template_id: str) -> Template:
        tid = validate_id(template_id, "template")
        try:
            return self.store.templates.load(tid)
        except FileNotFoundError:
            raise NotFoundError("Template not found") from None

    def _owned(self, template_id: str, requester: Requester) -> Template:
        template = self._load(template_id)
        if template.created_by != requester.id:
            raise NotFoundError("Template not found")
        return template

    def _check_category(self, category_id: str) -> str:
        cid = validate_id(category_id, "category")
        if not self.store.categories.exists(cid):
            raise ReferenceNotFoundError("Category not found")
        return cid
