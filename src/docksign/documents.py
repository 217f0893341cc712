"""Document operations.

Documents come from one of two places:

* a template, whose current fields are deep-copied onto the document so
  later template edits never reach existing documents, or
* an uploaded file, kept in :class:`~docksign.store.FileStorage` and
  referenced by locator.

Every read and write is scoped to the document's creator. Documents that
belong to someone else are reported as not found.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Any, Mapping, Optional

from .errors import InternalError, NotFoundError, ValidationError
from .fields import ensure_valid_content
from .models import (
    Document,
    DocumentFromTemplate,
    DocumentStatus,
    DocumentUpdate,
    FileInfo,
    Requester,
    TemplateReference,
    utcnow,
    validate_id,
)
from .render import DocumentRenderer
from .store import Store
from .templates import TemplateStore

logger = logging.getLogger("docksign.documents")

MIN_TITLE_LENGTH = 2


@dataclass
class Artifact:
    """A downloadable rendering of a document."""

    filename: str
    media_type: str
    data: bytes


def upload_basename(filename: str) -> str:
    """Last path segment of a client-supplied filename, for either separator."""
    name = PurePosixPath(filename.replace("\\", "/")).name.strip()
    return name if name not in ("", ".", "..") else "upload"


def download_filename(title: str, extension: str = "pdf") -> str:
    slug = re.sub(r"[^a-z0-9]", "_", title, flags=re.IGNORECASE).lower()
    return f"{slug or 'document'}.{extension}"


class DocumentStore:
    """Owner-scoped document lifecycle: create, fill, submit, download.

    Args:
        store: Backing repositories.
        renderer: Produces the downloadable PDF for template documents.
        max_upload_bytes: Largest accepted upload (None = unlimited).
    """

    def __init__(
        self,
        store: Store,
        renderer: Optional[DocumentRenderer] = None,
        max_upload_bytes: Optional[int] = None,
    ) -> None:
        self.store = store
        self.templates = TemplateStore(store)
        self.renderer = renderer or DocumentRenderer()
        self.max_upload_bytes = max_upload_bytes

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_from_template(
        self,
        template_id: str,
        requester: Requester,
        data: Optional[DocumentFromTemplate] = None,
    ) -> Document:
        """Instantiate a draft document from a template.

        The title defaults to ``"<template name> Document"`` and the
        description to the template's.

        Raises:
            ValidationError: Malformed template id or bad initial content.
            NotFoundError: Template missing or not visible to the requester.
        """
        data = data or DocumentFromTemplate()
        template = self.templates.get(template_id, requester)

        fields = [f.model_copy(deep=True) for f in template.fields]
        content = dict(data.content)
        ensure_valid_content(fields, content)

        doc = Document(
            title=(data.title or "").strip() or f"{template.name} Document",
            description=data.description or template.description or "",
            fields=fields,
            content=content,
            status=DocumentStatus.DRAFT,
            created_by=requester.id,
            derived_from_template=TemplateReference(template_id=template.id),
            signers=[s.model_copy() for s in data.signers],
        )
        self.store.documents.save(doc)
        logger.info(
            "Created document %s (%s) from template %s",
            doc.title,
            doc.id[:8],
            template.id[:8],
        )
        return doc

    def create_from_upload(
        self,
        requester: Requester,
        title: Optional[str],
        filename: Optional[str],
        data: Optional[bytes],
        content_type: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Document:
        """Create a draft document around an uploaded file.

        Raises:
            ValidationError: Short title, missing file or file too large.
        """
        title = (title or "").strip()
        if len(title) < MIN_TITLE_LENGTH:
            raise ValidationError(f"Title must be at least {MIN_TITLE_LENGTH} characters")
        if data is None or not filename:
            raise ValidationError("Document file is required")
        if self.max_upload_bytes is not None and len(data) > self.max_upload_bytes:
            raise ValidationError(
                f"File is too large (limit {self.max_upload_bytes} bytes)"
            )

        locator = self.store.files.put(filename, data)
        doc = Document(
            title=title,
            description=description or "",
            created_by=requester.id,
            file=FileInfo(
                name=upload_basename(filename),
                type=content_type or "application/octet-stream",
                size=len(data),
                url=locator,
            ),
        )
        self.store.documents.save(doc)
        logger.info("Created document %s (%s) from upload %s", doc.title, doc.id[:8], filename)
        return doc

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list(self, requester: Requester) -> list[Document]:
        """All of the requester's documents, newest first."""
        return self.store.documents.list_by_owner(requester.id)

    def get(self, document_id: str, requester: Requester) -> Document:
        """Load one of the requester's documents.

        Raises:
            ValidationError: Malformed id.
            NotFoundError: Missing or owned by someone else.
        """
        did = validate_id(document_id, "document")
        try:
            doc = self.store.documents.load(did)
        except FileNotFoundError:
            raise NotFoundError("Document not found") from None
        if doc.created_by != requester.id:
            raise NotFoundError("Document not found")
        return doc

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def update_content(
        self,
        document_id: str,
        requester: Requester,
        content_patch: Mapping[str, Any],
    ) -> Document:
        """Merge values into the document's content. Other keys are kept."""
        return self.update(document_id, requester, DocumentUpdate(content=dict(content_patch)))

    def update(self, document_id: str, requester: Requester, patch: DocumentUpdate) -> Document:
        """Change title, description and/or merge content values.

        Status is not touched here; see :meth:`submit`.

        Raises:
            ValidationError: Short title or values that don't fit their field.
            NotFoundError: Missing or owned by someone else.
        """
        doc = self.get(document_id, requester)

        if patch.title is not None:
            title = patch.title.strip()
            if len(title) < MIN_TITLE_LENGTH:
                raise ValidationError(f"Title must be at least {MIN_TITLE_LENGTH} characters")
            doc.title = title
        if patch.description is not None:
            doc.description = patch.description
        if patch.content is not None:
            ensure_valid_content(doc.fields, patch.content)
            doc.content = {**doc.content, **patch.content}
        doc.updated_at = utcnow()

        self.store.documents.save(doc)
        logger.info("Updated document %s", doc.id[:8])
        return doc

    def submit(
        self,
        document_id: str,
        requester: Requester,
        content: Optional[Mapping[str, Any]] = None,
    ) -> Document:
        """Replace the content wholesale and mark the document submitted.

        Missing required values do not block submission. Submitting again
        is allowed and the latest content wins.

        Raises:
            ValidationError: Values that don't fit their field.
            NotFoundError: Missing or owned by someone else.
        """
        doc = self.get(document_id, requester)
        new_content = dict(content or {})
        report = ensure_valid_content(doc.fields, new_content)

        if doc.status == DocumentStatus.SUBMITTED:
            logger.info("Re-submitting document %s", doc.id[:8])
        doc.content = new_content
        doc.status = DocumentStatus.SUBMITTED
        doc.updated_at = utcnow()

        self.store.documents.save(doc)
        logger.info(
            "Submitted document %s (%d required fields empty)",
            doc.id[:8],
            len(report.missing),
        )
        return doc

    def delete(self, document_id: str, requester: Requester) -> None:
        """Delete the record and any uploaded file behind it."""
        doc = self.get(document_id, requester)
        self.store.documents.delete(doc.id)
        if doc.file is not None:
            self.store.files.delete(doc.file.url)
        logger.info("Deleted document %s (%s)", doc.title, doc.id[:8])

    # ------------------------------------------------------------------
    # Download
    # ------------------------------------------------------------------

    def download(self, document_id: str, requester: Requester) -> Artifact:
        """Produce the downloadable artifact.

        Template documents are rendered to PDF; uploads return the stored
        file as-is.

        Raises:
            NotFoundError: Missing or owned by someone else.
            InternalError: Rendering failed or the upload is gone.
        """
        doc = self.get(document_id, requester)

        if doc.file is not None:
            data = self.store.files.get(doc.file.url)
            if data is None:
                logger.error("Upload for document %s is missing: %s", doc.id[:8], doc.file.url)
                raise InternalError("Failed to generate document")
            return Artifact(filename=doc.file.name, media_type=doc.file.type, data=data)

        try:
            pdf = self.renderer.render(doc)
        except Exception as exc:
            logger.exception("Rendering document %s failed", doc.id[:8])
            raise InternalError("Failed to generate document") from exc
        return Artifact(
            filename=download_filename(doc.title),
            media_type="application/pdf",
            data=pdf,
        )
