"""Main CLI entry point for cardreview.

This module provides the main Typer application with commands to run the
API server, create the schema for development, and manage review dimensions.

Usage:
    cardreview serve --port 8000
    cardreview init-db
    cardreview dimension list --as-user <user-id>
    cardreview dimension create "Readability" --audience PO --as-user <user-id>
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console

from cardreview.cli import dimension as dimension_cli
from cardreview.config import CardReviewConfig, LoggingConfig, load_config
from cardreview.database.connection import get_engine, get_session_factory
from cardreview.database.models import Base
from cardreview.logging import setup_logging

app = typer.Typer(
    name="cardreview",
    help="cardreview: review cycles and quality scores for kanban cards",
    no_args_is_help=True,
)

app.add_typer(dimension_cli.app, name="dimension", help="Manage review dimensions")

console = Console()


class AppContext:
    """Application context shared across CLI commands.

    Attributes:
        config: Loaded cardreview configuration
        engine: Async SQLAlchemy engine
        session_factory: Factory for creating database sessions
    """

    def __init__(self, config: CardReviewConfig):
        self.config = config
        self.engine = get_engine(config.database)
        self.session_factory = get_session_factory(self.engine)


_app_context: AppContext | None = None


def get_app_context() -> AppContext:
    """Get the shared application context.

    Raises:
        RuntimeError: If context has not been initialized
    """
    if _app_context is None:
        raise RuntimeError("Application context not initialized. Call initialize_context first.")
    return _app_context


def initialize_context(config: CardReviewConfig) -> AppContext:
    global _app_context
    _app_context = AppContext(config)
    return _app_context


@app.command()
def serve(
    host: Annotated[
        Optional[str],
        typer.Option("--host", "-h", help="Host to bind to (default from config)"),
    ] = None,
    port: Annotated[
        Optional[int],
        typer.Option("--port", "-p", help="Port to bind to (default from config)"),
    ] = None,
) -> None:
    """Start the cardreview API server with uvicorn."""
    import uvicorn

    from cardreview.web.app import create_app

    config = get_app_context().config
    bind_host = host or config.web.host
    bind_port = port or config.web.port

    console.print("[bold cyan]Starting cardreview API[/bold cyan]")
    console.print(f"[dim]Host:[/dim] {bind_host}")
    console.print(f"[dim]Port:[/dim] {bind_port}")
    console.print()

    uvicorn.run(create_app(config), host=bind_host, port=bind_port, log_level="info")


@app.command("init-db")
def init_db() -> None:
    """Create all tables directly from the models (development only).

    Production databases are migrated with ``alembic upgrade head``.
    """
    ctx = get_app_context()

    async def _create_all() -> None:
        async with ctx.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        await ctx.engine.dispose()

    asyncio.run(_create_all())
    console.print(f"[green]Schema created[/green] ({len(Base.metadata.tables)} tables)")


@app.callback()
def main_callback(
    config_path: Annotated[
        Optional[Path],
        typer.Option(
            "--config",
            "-c",
            help="Path to configuration file (TOML format)",
            exists=True,
            dir_okay=False,
            readable=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
) -> None:
    """Load configuration, configure logging and initialize the context."""
    try:
        config = load_config(config_path)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error loading configuration:[/red] {e}")
        raise typer.Exit(code=1)

    logging_config = config.logging
    if verbose:
        logging_config = LoggingConfig(
            **{**logging_config.model_dump(), "level": "DEBUG", "format": "console"}
        )
    setup_logging(logging_config)

    initialize_context(config)

    if verbose:
        console.print("[dim]Debug logging enabled[/dim]")


if __name__ == "__main__":
    app()
