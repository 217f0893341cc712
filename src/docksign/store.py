"""Filesystem-backed repositories for DockSign.

Every record is one JSON file; uploads are stored as plain files next to
them. No database required, and the tree is easy to back up or sync.

Directory layout::

    ~/.docksign/
    ├── categories/         # <id>.json
    ├── templates/          # <id>.json
    ├── documents/          # <id>.json
    ├── users/              # <id>.json
    └── uploads/            # <key>/<filename>

There is no locking. Concurrent writers to the same record race and the
last write wins.
"""

import json
import logging
import re
import shutil
from pathlib import Path
from typing import Generic, Iterator, Optional, TypeVar

from pydantic import BaseModel

from .config import DEFAULT_DATA_DIR
from .models import Category, Document, Template, User, Visibility, new_id

logger = logging.getLogger("docksign.store")

M = TypeVar("M", bound=BaseModel)

_SAFE_NAME_RE = re.compile(r"[^A-Za-z0-9._-]+")


class _JsonRepository(Generic[M]):
    """CRUD for one entity type, one JSON file per record.

    Args:
        directory: Where the records live. Created if missing.
    """

    model: type[M]
    kind = "Record"

    def __init__(self, directory: Path) -> None:
        self.directory = directory
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, record_id: str) -> Path:
        if not record_id or "/" in record_id or "\\" in record_id or record_id.startswith("."):
            raise FileNotFoundError(f"{self.kind} not found: {record_id}")
        return self.directory / f"{record_id}.json"

    def save(self, record: M) -> Path:
        """Write a record to disk, replacing any previous version.

        Returns:
            Path to the saved JSON file.
        """
        path = self._path(record.id)
        path.write_text(record.model_dump_json(indent=2, by_alias=True), encoding="utf-8")
        logger.debug("Saved %s %s", self.kind.lower(), record.id[:8])
        return path

    def load(self, record_id: str) -> M:
        """Load a record by ID.

        Raises:
            FileNotFoundError: If the record doesn't exist.
        """
        path = self._path(record_id)
        if not path.exists():
            raise FileNotFoundError(f"{self.kind} not found: {record_id}")
        data = json.loads(path.read_text(encoding="utf-8"))
        return self.model.model_validate(data)

    def exists(self, record_id: str) -> bool:
        try:
            return self._path(record_id).exists()
        except FileNotFoundError:
            return False

    def delete(self, record_id: str) -> bool:
        """Delete a record.

        Returns:
            True if deleted, False if not found.
        """
        try:
            path = self._path(record_id)
        except FileNotFoundError:
            return False
        if path.exists():
            path.unlink()
            logger.info("Deleted %s %s", self.kind.lower(), record_id[:8])
            return True
        return False

    def all(self) -> Iterator[M]:
        for f in sorted(self.directory.glob("*.json")):
            try:
                data = json.loads(f.read_text(encoding="utf-8"))
                yield self.model.model_validate(data)
            except Exception as exc:
                logger.warning("Skipping invalid %s %s: %s", self.kind.lower(), f.name, exc)


class CategoryRepository(_JsonRepository[Category]):
    model = Category
    kind = "Category"

    def list_categories(self, parent_id: Optional[str] = None, top_level: bool = False) -> list[Category]:
        """List categories sorted by name.

        Args:
            parent_id: Only children of this category.
            top_level: Only categories without a parent. Ignored when
                ``parent_id`` is given.
        """
        result = []
        for c in self.all():
            if parent_id is not None:
                if c.parent_id != parent_id:
                    continue
            elif top_level and c.parent_id is not None:
                continue
            result.append(c)
        result.sort(key=lambda c: c.name)
        return result

    def has_children(self, category_id: str) -> bool:
        return any(c.parent_id == category_id for c in self.all())


class TemplateRepository(_JsonRepository[Template]):
    model = Template
    kind = "Template"

    def list_visible_templates(
        self,
        requester_id: str,
        name: Optional[str] = None,
        visibility: Optional[Visibility] = None,
    ) -> list[Template]:
        """Templates the requester owns plus every shared template.

        Args:
            requester_id: The caller.
            name: Case-insensitive substring the name must contain.
            visibility: Exact visibility to keep.

        Returns:
            Matching templates, newest first.
        """
        needle = name.casefold() if name else None
        result = []
        for t in self.all():
            if not t.visible_to(requester_id):
                continue
            if needle is not None and needle not in t.name.casefold():
                continue
            if visibility is not None and t.visibility != visibility:
                continue
            result.append(t)
        result.sort(key=lambda t: t.created_at, reverse=True)
        return result

    def any_in_category(self, category_id: str) -> bool:
        return any(t.category_id == category_id for t in self.all())


class DocumentRepository(_JsonRepository[Document]):
    model = Document
    kind = "Document"

    def list_by_owner(self, owner_id: str) -> list[Document]:
        """Documents created by ``owner_id``, newest first."""
        docs = [d for d in self.all() if d.created_by == owner_id]
        docs.sort(key=lambda d: d.created_at, reverse=True)
        return docs


class UserRepository(_JsonRepository[User]):
    model = User
    kind = "User"

    def get_by_email(self, email: str) -> Optional[User]:
        wanted = email.strip().lower()
        for u in self.all():
            if u.email.lower() == wanted:
                return u
        return None


class FileStorage:
    """Stores uploaded file bytes and hands back a locator.

    Locators look like ``/uploads/<key>/<filename>``.
    """

    PREFIX = "/uploads/"

    def __init__(self, directory: Path) -> None:
        self.directory = directory
        self.directory.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def safe_name(filename: str) -> str:
        name = _SAFE_NAME_RE.sub("_", Path(filename).name).strip("._")
        return name or "upload"

    def put(self, filename: str, data: bytes) -> str:
        """Store bytes under a fresh key.

        Returns:
            The locator to keep on the document.
        """
        key = new_id()
        name = self.safe_name(filename)
        target = self.directory / key
        target.mkdir(parents=True, exist_ok=True)
        (target / name).write_bytes(data)
        logger.info("Stored upload %s (%d bytes)", key[:8], len(data))
        return f"{self.PREFIX}{key}/{name}"

    def _resolve(self, locator: str) -> Optional[Path]:
        if not locator.startswith(self.PREFIX):
            return None
        parts = locator[len(self.PREFIX):].split("/")
        if len(parts) != 2 or any(p in ("", ".", "..") for p in parts):
            return None
        return self.directory / parts[0] / parts[1]

    def get(self, locator: str) -> Optional[bytes]:
        """Read stored bytes, or None if the locator is unknown."""
        path = self._resolve(locator)
        if path is None or not path.exists():
            return None
        return path.read_bytes()

    def delete(self, locator: str) -> bool:
        path = self._resolve(locator)
        if path is None or not path.exists():
            return False
        shutil.rmtree(path.parent)
        logger.info("Deleted upload %s", path.parent.name[:8])
        return True


class Store:
    """All repositories rooted at one data directory.

    Args:
        base_dir: Root directory for all DockSign data.
    """

    def __init__(self, base_dir: Optional[Path] = None) -> None:
        self.base = Path(base_dir) if base_dir else DEFAULT_DATA_DIR
        self.categories = CategoryRepository(self.base / "categories")
        self.templates = TemplateRepository(self.base / "templates")
        self.documents = DocumentRepository(self.base / "documents")
        self.users = UserRepository(self.base / "users")
        self.files = FileStorage(self.base / "uploads")
