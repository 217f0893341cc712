"""PDF rendering of filled documents.

Produces a plain summary: title, description, status and dates, then
every field as ``label: value`` grouped by the page it sits on. The whole
PDF is built in memory.
"""

import logging
from io import BytesIO
from itertools import groupby

from reportlab.lib.pagesizes import LETTER
from reportlab.lib.utils import simpleSplit
from reportlab.pdfgen import canvas

from .fields import render_field
from .models import Document

logger = logging.getLogger("docksign.render")

MARGIN = 50
BODY_FONT = "Helvetica"
BOLD_FONT = "Helvetica-Bold"


class _Layout:
    """Cursor state for one render call."""

    def __init__(self, c: canvas.Canvas, pagesize: tuple[float, float]) -> None:
        self.c = c
        self.width, self.height = pagesize
        self.y = self.height - MARGIN

    def new_page(self) -> None:
        self.c.showPage()
        self.y = self.height - MARGIN

    def gap(self, points: float) -> None:
        self.y -= points

    def rule(self) -> None:
        self.c.line(MARGIN, self.y, self.width - MARGIN, self.y)

    def line(self, text: str, font: str, size: float, align: str = "left") -> None:
        if self.y - size < MARGIN:
            self.new_page()
        self.y -= size
        self.c.setFont(font, size)
        if align == "center":
            self.c.drawCentredString(self.width / 2, self.y, text)
        elif align == "right":
            self.c.drawRightString(self.width - MARGIN, self.y, text)
        else:
            self.c.drawString(MARGIN, self.y, text)
        self.y -= size * 0.3

    def paragraph(self, text: str, size: float, align: str = "left") -> None:
        for line in simpleSplit(text, BODY_FONT, size, self.width - 2 * MARGIN):
            self.line(line, BODY_FONT, size, align=align)


class DocumentRenderer:
    """Draws a :class:`~docksign.models.Document` onto letter-size pages.

    Keeps no per-render state; each call gets its own :class:`_Layout`.
    """

    def __init__(self, pagesize: tuple[float, float] = LETTER) -> None:
        self.pagesize = pagesize

    def render(self, document: Document) -> bytes:
        buf = BytesIO()
        c = canvas.Canvas(buf, pagesize=self.pagesize)
        c.setTitle(document.title)
        out = _Layout(c, self.pagesize)

        out.line(document.title, BOLD_FONT, 22, align="center")
        if document.description:
            out.paragraph(document.description, 12, align="center")
        out.gap(8)

        out.line(f"Status: {document.status.value}", BODY_FONT, 10, align="right")
        out.line(f"Created: {document.created_at:%Y-%m-%d %H:%M} UTC", BODY_FONT, 10, align="right")
        out.line(f"Last updated: {document.updated_at:%Y-%m-%d %H:%M} UTC", BODY_FONT, 10, align="right")
        out.gap(6)
        out.rule()
        out.gap(18)

        out.line("Document Fields", BOLD_FONT, 16)
        out.gap(6)

        if not document.fields:
            out.line("No fields found in this document.", BODY_FONT, 12)
        else:
            by_page = sorted(document.fields, key=lambda f: f.position.page)
            for index, (page, fields) in enumerate(groupby(by_page, key=lambda f: f.position.page)):
                if index > 0:
                    out.new_page()
                out.line(f"Page {page}", BOLD_FONT, 14)
                out.gap(4)
                for f in fields:
                    label = f.label or f.id
                    out.paragraph(f"{label}: {render_field(f, document.content)}", 12)
                    out.gap(4)

        c.showPage()
        c.save()
        pdf = buf.getvalue()
        logger.debug("Rendered document %s (%d bytes)", document.id[:8], len(pdf))
        return pdf
