"""Category operations: hierarchical labels for templates.

A category cannot be its own parent (directly or through its
descendants), and cannot be deleted while it has children or while any
template points at it.
"""

import logging
import re
from typing import Optional

from .errors import ConflictError, NotFoundError, ReferenceNotFoundError, ValidationError
from .models import DEFAULT_CATEGORY_COLOR, HEX_COLOR_PATTERN, Category, CategoryInput, utcnow, validate_id
from .store import Store

logger = logging.getLogger("docksign.categories")

_HEX_COLOR_RE = re.compile(HEX_COLOR_PATTERN)

# Query value selecting categories without a parent.
TOP_LEVEL = "null"


def is_valid_color(color: str) -> bool:
    return bool(_HEX_COLOR_RE.fullmatch(color))


class CategoryStore:
    """CRUD for categories with hierarchy and reference checks.

    Args:
        store: Backing repositories.
        default_color: Color for categories created without one.
    """

    def __init__(self, store: Store, default_color: str = DEFAULT_CATEGORY_COLOR) -> None:
        self.store = store
        self.default_color = default_color

    def list(self, parent_id: Optional[str] = None) -> list[Category]:
        """List categories sorted by name.

        Args:
            parent_id: ``None`` for all, ``"null"`` for top-level only,
                otherwise children of that category.

        Raises:
            ValidationError: If ``parent_id`` is not a well-formed id.
        """
        if parent_id is None or parent_id == "":
            return self.store.categories.list_categories()
        if parent_id == TOP_LEVEL:
            return self.store.categories.list_categories(top_level=True)
        pid = validate_id(parent_id, "parent")
        return self.store.categories.list_categories(parent_id=pid)

    def get(self, category_id: str) -> Category:
        cid = validate_id(category_id, "category")
        try:
            return self.store.categories.load(cid)
        except FileNotFoundError:
            raise NotFoundError("Category not found") from None

    def create(self, data: CategoryInput) -> Category:
        """Create a category.

        Raises:
            ValidationError: Empty name, bad color or malformed parent id.
            ReferenceNotFoundError: The parent does not exist.
        """
        name = self._check_name(data.name)
        if data.color:
            self._check_color(data.color)
        parent_id = self._check_parent(data.parent_id, None) if data.parent_id else None

        category = Category(
            name=name,
            description=data.description,
            color=data.color or self.default_color,
            parent_id=parent_id,
        )
        self.store.categories.save(category)
        logger.info("Created category %s (%s)", category.name, category.id[:8])
        return category

    def update(self, category_id: str, data: CategoryInput) -> Category:
        """Update a category. Fields left out of the body keep their value.

        An explicit ``parentId: null`` moves the category to the top level.

        Raises:
            NotFoundError: Unknown category.
            ValidationError: Same checks as :meth:`create`, plus self-parenting.
        """
        category = self.get(category_id)
        sent = data.model_fields_set

        name = self._check_name(data.name)
        if data.color:
            self._check_color(data.color)

        category.name = name
        if "description" in sent and data.description is not None:
            category.description = data.description
        if data.color:
            category.color = data.color
        if data.parent_id:
            category.parent_id = self._check_parent(data.parent_id, category.id)
        elif "parent_id" in sent:
            category.parent_id = None
        category.updated_at = utcnow()

        self.store.categories.save(category)
        logger.info("Updated category %s", category.id[:8])
        return category

    def delete(self, category_id: str) -> None:
        """Delete a childless, unreferenced category.

        Raises:
            NotFoundError: Unknown category.
            ConflictError: It has children or templates use it.
        """
        category = self.get(category_id)
        if self.store.categories.has_children(category.id):
            raise ConflictError(
                "Cannot delete category with child categories. "
                "Please delete or reassign child categories first."
            )
        if self.store.templates.any_in_category(category.id):
            raise ConflictError(
                "Category is used by one or more templates. Please reassign templates first."
            )
        self.store.categories.delete(category.id)
        logger.info("Deleted category %s (%s)", category.name, category.id[:8])

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    @staticmethod
    def _check_name(name: Optional[str]) -> str:
        if not name or not name.strip():
            raise ValidationError("Category name is required")
        return name.strip()

    @staticmethod
    def _check_color(color: str) -> None:
        if not is_valid_color(color):
            raise ValidationError("Invalid color format. Use hex color (e.g., #FF5733)")

    def _check_parent(self, parent_id: str, category_id: Optional[str]) -> str:
        pid = validate_id(parent_id, "parent")
        if category_id is not None and pid == category_id:
            raise ValidationError("Category cannot be its own parent")
        try:
            parent = self.store.categories.load(pid)
        except FileNotFoundError:
            raise ReferenceNotFoundError("Parent category not found") from None

        # Walk up from the new parent; meeting ourselves means a cycle.
        seen = {pid}
        while category_id is not None and parent.parent_id:
            if parent.parent_id == category_id:
                raise ValidationError("Category cannot be nested under its own descendant")
            if parent.parent_id in seen:
                break
            seen.add(parent.parent_id)
            try:
                parent = self.store.categories.load(parent.parent_id)
            except FileNotFoundError:
                break
        return pid
