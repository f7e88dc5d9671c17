"""Review dimension CLI commands.

This module provides CLI commands for listing, creating and deactivating
review dimensions. Every command acts on behalf of a user given with
``--as-user`` and goes through the same access checks as the API.
"""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING, Annotated, Any, Optional
from uuid import UUID

import typer
from rich.console import Console
from rich.table import Table

from cardreview.errors import ReviewEngineError
from cardreview.review.dimensions import DimensionService

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

app = typer.Typer(help="Review dimension commands")
console = Console()

AsUser = Annotated[
    UUID,
    typer.Option("--as-user", "-u", help="ID of the user performing the command"),
]


def _run(call: Callable[[DimensionService], Awaitable[Any]], error_label: str) -> Any:
    from cardreview.main import get_app_context

    ctx = get_app_context()
    service = DimensionService(ctx.session_factory, ctx.config.review)

    async def _call() -> Any:
        try:
            return await call(service)
        finally:
            await ctx.engine.dispose()

    try:
        return asyncio.run(_call())
    except ReviewEngineError as e:
        console.print(f"[red]Error {error_label}:[/red] {e.message} ({e.kind.value})")
        raise typer.Exit(code=1)


@app.command("list")
def list_dimensions(
    as_user: AsUser,
    include_inactive: Annotated[
        bool,
        typer.Option("--all", "-a", help="Include inactive dimensions"),
    ] = False,
    format: Annotated[
        str,
        typer.Option("--format", "-f", help="Output format (table or json)"),
    ] = "table",
) -> None:
    """List review dimensions in display order."""
    dimensions = _run(
        lambda s: s.list_dimensions(as_user, include_inactive=include_inactive),
        "listing dimensions",
    )

    if format == "json":
        console.print(json.dumps([d.model_dump(mode="json") for d in dimensions], indent=2))
        return

    if not dimensions:
        console.print("[yellow]No dimensions found[/yellow]")
        return

    table = Table(title="Review Dimensions")
    table.add_column("#", style="dim", justify="right")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name", style="bold")
    table.add_column("Audience", style="magenta")
    table.add_column("Active")

    for d in dimensions:
        table.add_row(
            str(d.position),
            str(d.id),
            d.name,
            d.audience.value,
            "[green]yes[/green]" if d.is_active else "[dim]no[/dim]",
        )

    console.print(table)


@app.command()
def create(
    name: Annotated[str, typer.Argument(help="Dimension name")],
    as_user: AsUser,
    description: Annotated[
        Optional[str],
        typer.Option("--description", "-d", help="Longer description shown to evaluators"),
    ] = None,
    audience: Annotated[
        str,
        typer.Option("--audience", help="Who scores it: LEAD, PO or BOTH"),
    ] = "BOTH",
) -> None:
    """Create a dimension at the end of the display order."""
    view = _run(
        lambda s: s.create_dimension(
            as_user, name, description=description, audience=audience
        ),
        "creating dimension",
    )
    console.print(
        f"[green]Dimension created[/green] {view.name} "
        f"([cyan]{view.id}[/cyan], position {view.position}, {view.audience.value})"
    )


@app.command()
def deactivate(
    dimension_id: Annotated[UUID, typer.Argument(help="Dimension ID")],
    as_user: AsUser,
    hard: Annotated[
        bool,
        typer.Option("--hard", help="Delete the dimension and its scores"),
    ] = False,
) -> None:
    """Deactivate a dimension (or remove it with --hard)."""
    _run(lambda s: s.delete(as_user, dimension_id, hard=hard), "removing dimension")
    verb = "deleted" if hard else "deactivated"
    console.print(f"[green]Dimension {verb}[/green] {dimension_id}")
