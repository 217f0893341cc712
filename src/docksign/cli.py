"""DockSign CLI: templates and documents from the command line.

Usage:
    docksign register "Alice Doe" alice@example.com
    docksign categories [--parent null]
    docksign templates --user alice@example.com
    docksign create-from-template <template-id> --user alice@example.com --title "My NDA"
    docksign documents --user alice@example.com
    docksign submit <document-id> --user alice@example.com --set f1=Alice
    docksign download <document-id> --user alice@example.com -o nda.pdf
    docksign serve [--port 8400]
"""

import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from .auth import AccountService
from .categories import CategoryStore
from .config import get_settings
from .documents import DocumentStore
from .errors import DockSignError
from .fields import missing_required
from .models import DocumentFromTemplate, DocumentStatus, Requester, Visibility
from .store import Store
from .templates import TemplateStore

console = Console()


def _parse_value(raw: str) -> Any:
    """JSON if it parses (``true``, ``3``), otherwise the raw string."""
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def _requester(store: Store, email: str) -> Requester:
    user = store.users.get_by_email(email)
    if user is None:
        console.print(f"[red]No user registered with {email}[/]")
        sys.exit(1)
    return Requester.from_user(user)


def _fail(exc: DockSignError) -> None:
    console.print(f"[red]{exc.message}[/]")
    sys.exit(1)


@click.group()
@click.option(
    "--data-dir",
    type=click.Path(),
    default=None,
    help="DockSign data directory (default: ~/.docksign)",
)
@click.option("-v", "--verbose", count=True, help="More log output (-vv for debug)")
@click.pass_context
def main(ctx: click.Context, data_dir: Optional[str], verbose: int) -> None:
    """DockSign: document templates, field filling and submission."""
    level = {0: logging.WARNING, 1: logging.INFO}.get(verbose, logging.DEBUG)
    logging.basicConfig(
        level=level,
        format="%(name)s: %(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )
    settings = get_settings()
    if data_dir:
        settings = settings.model_copy(update={"data_dir": Path(data_dir).expanduser()})

    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings
    ctx.obj["store"] = Store(settings.data_dir)


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------

@main.command()
@click.argument("name")
@click.argument("email")
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True, help="Account password")
@click.pass_context
def register(ctx: click.Context, name: str, email: str, password: str) -> None:
    """Register a user account."""
    settings = ctx.obj["settings"]
    accounts = AccountService(
        ctx.obj["store"],
        secret_key=settings.secret_key,
        bcrypt_rounds=settings.bcrypt_rounds,
    )
    try:
        user = accounts.register(name, email, password)
    except DockSignError as exc:
        _fail(exc)
    console.print(f"[green]Registered[/] {user.name} <{user.email}> ({user.id[:12]})")


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

@main.command()
@click.option("--parent", default=None, help='Parent category id, or "null" for top level')
@click.pass_context
def categories(ctx: click.Context, parent: Optional[str]) -> None:
    """List template categories."""
    store: Store = ctx.obj["store"]
    try:
        cats = CategoryStore(store).list(parent)
    except DockSignError as exc:
        _fail(exc)

    if not cats:
        console.print("[dim]No categories found.[/]")
        return

    table = Table(title="DockSign Categories")
    table.add_column("ID", style="dim", max_width=12)
    table.add_column("Name", style="cyan")
    table.add_column("Color")
    table.add_column("Parent", style="dim", max_width=12)

    for c in cats:
        table.add_row(
            c.id[:12],
            c.name,
            c.color,
            c.parent_id[:12] if c.parent_id else "-",
        )

    console.print(table)


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

@main.command()
@click.option("--user", "email", required=True, help="Email of the requesting user")
@click.option("--name", default=None, help="Only names containing this text")
@click.option("--visibility", type=click.Choice([v.value for v in Visibility]), default=None)
@click.pass_context
def templates(ctx: click.Context, email: str, name: Optional[str], visibility: Optional[str]) -> None:
    """List own and shared templates."""
    store: Store = ctx.obj["store"]
    requester = _requester(store, email)
    tpls = TemplateStore(store).list(
        requester,
        name=name,
        visibility=Visibility(visibility) if visibility else None,
    )

    if not tpls:
        console.print("[dim]No templates found.[/]")
        return

    table = Table(title="DockSign Templates")
    table.add_column("ID", style="dim", max_width=12)
    table.add_column("Name", style="cyan")
    table.add_column("Visibility", justify="center")
    table.add_column("Fields", justify="right")
    table.add_column("Created")

    for t in tpls:
        table.add_row(
            t.id[:12],
            t.name,
            t.visibility.value,
            str(len(t.fields)),
            t.created_at.strftime("%Y-%m-%d %H:%M"),
        )

    console.print(table)


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------

@main.command("documents")
@click.option("--user", "email", required=True, help="Email of the requesting user")
@click.pass_context
def list_docs(ctx: click.Context, email: str) -> None:
    """List your documents."""
    store: Store = ctx.obj["store"]
    requester = _requester(store, email)
    docs = DocumentStore(store).list(requester)

    if not docs:
        console.print("[dim]No documents found.[/]")
        return

    table = Table(title="DockSign Documents")
    table.add_column("ID", style="dim", max_width=12)
    table.add_column("Title", style="cyan")
    table.add_column("Status", justify="center")
    table.add_column("Source")
    table.add_column("Missing", justify="right")
    table.add_column("Created")

    for doc in docs:
        status_color = "green" if doc.status == DocumentStatus.SUBMITTED else "dim"
        source = doc.file.name if doc.file else f"template {doc.template_id[:8]}"
        table.add_row(
            doc.id[:12],
            doc.title,
            f"[{status_color}]{doc.status.value}[/]",
            source,
            str(len(missing_required(doc.fields, doc.content))),
            doc.created_at.strftime("%Y-%m-%d %H:%M"),
        )

    console.print(table)


@main.command("create-from-template")
@click.argument("template_id")
@click.option("--user", "email", required=True, help="Email of the requesting user")
@click.option("--title", default=None, help="Document title")
@click.option("--description", default=None, help="Document description")
@click.pass_context
def create_from_template(
    ctx: click.Context,
    template_id: str,
    email: str,
    title: Optional[str],
    description: Optional[str],
) -> None:
    """Create a draft document from a template."""
    store: Store = ctx.obj["store"]
    requester = _requester(store, email)
    try:
        doc = DocumentStore(store).create_from_template(
            template_id,
            requester,
            DocumentFromTemplate(title=title, description=description),
        )
    except DockSignError as exc:
        _fail(exc)

    console.print(
        Panel(
            f"[bold green]Document created![/]\n\n"
            f"  Document: {doc.title}\n"
            f"  ID:       {doc.id}\n"
            f"  Template: {doc.template_id}\n"
            f"  Fields:   {len(doc.fields)}\n"
            f"  Status:   {doc.status.value}",
            title="DockSign",
            border_style="green",
        )
    )


@main.command()
@click.argument("document_id")
@click.option("--user", "email", required=True, help="Email of the requesting user")
@click.option("--set", "values", multiple=True, metavar="FIELD=VALUE", help="Field value (repeatable)")
@click.pass_context
def submit(ctx: click.Context, document_id: str, email: str, values: tuple[str, ...]) -> None:
    """Submit a document with the given field values."""
    store: Store = ctx.obj["store"]
    requester = _requester(store, email)

    content: dict[str, Any] = {}
    for item in values:
        key, sep, raw = item.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected FIELD=VALUE, got {item!r}", param_hint="--set")
        content[key] = _parse_value(raw)

    try:
        doc = DocumentStore(store).submit(document_id, requester, content)
    except DockSignError as exc:
        _fail(exc)

    missing = missing_required(doc.fields, doc.content)
    border = "green" if not missing else "yellow"
    console.print(
        Panel(
            f"[bold {border}]Document submitted[/]\n\n"
            f"  Document: {doc.title}\n"
            f"  ID:       {doc.id}\n"
            f"  Values:   {len(doc.content)}\n"
            f"  Missing:  {', '.join(missing) or 'none'}",
            title="DockSign",
            border_style=border,
        )
    )


@main.command()
@click.argument("document_id")
@click.option("--user", "email", required=True, help="Email of the requesting user")
@click.option("-o", "--output", type=click.Path(), default=None, help="Output file (default: derived from title)")
@click.pass_context
def download(ctx: click.Context, document_id: str, email: str, output: Optional[str]) -> None:
    """Write the rendered PDF (or original upload) to disk."""
    store: Store = ctx.obj["store"]
    requester = _requester(store, email)
    try:
        artifact = DocumentStore(store).download(document_id, requester)
    except DockSignError as exc:
        _fail(exc)

    # Without -o, write into the current directory only.
    target = Path(output) if output else Path(Path(artifact.filename).name or "download")
    target.write_bytes(artifact.data)
    console.print(f"[green]Wrote[/] {target} ({len(artifact.data)} bytes, {artifact.media_type})")


# ---------------------------------------------------------------------------
# Serve
# ---------------------------------------------------------------------------

@main.command()
@click.option("--host", default="127.0.0.1", help="Bind address")
@click.option("--port", default=8400, help="Port")
def serve(host: str, port: int) -> None:
    """Start the DockSign API server."""
    import uvicorn

    console.print(f"[bold]DockSign API[/] listening on [cyan]http://{host}:{port}[/]")
    uvicorn.run("docksign.api:create_app", factory=True, host=host, port=port, log_level="info")


if __name__ == "__main__":
    main()
