"""
Akshara CLI - Command-line interface for running the backend.

Minimal CLI providing server management and database setup commands.
"""

import typer
from rich.console import Console

from akshara.logging_config import setup_logging

app = typer.Typer(
    name="akshara",
    help="Akshara - Personal assistant backend",
    no_args_is_help=True,
)

console = Console()


def _setup_cli_logging() -> None:
    # Fall back to console logging if file logging is not permitted
    try:
        setup_logging(context="cli")
    except PermissionError:
        import logging

        logging.basicConfig(level=logging.INFO)


@app.command()
def serve(
    host: str = typer.Option(None, help="Host to bind to (default: API_HOST)"),
    port: int = typer.Option(None, help="Port to bind to (default: API_PORT)"),
    reload: bool = typer.Option(None, help="Enable auto-reload (default: API_RELOAD)"),
) -> None:
    """
    Start the FastAPI server.

    Runs the Akshara API server for accounts, conversations and replies.
    """
    import uvicorn

    from akshara.config import settings

    host = host or settings.api_host
    port = port or settings.api_port
    reload = settings.api_reload if reload is None else reload

    console.print("[bold green]Starting Akshara API server...[/bold green]")
    console.print(f"  Host: {host}")
    console.print(f"  Port: {port}")
    console.print(f"  Reload: {reload}")
    console.print(f"\n  API docs: http://{host}:{port}/docs")

    uvicorn.run(
        "akshara.api.app:app",
        host=host,
        port=port,
        reload=reload,
    )


@app.command("init-db")
def init_db() -> None:
    """Create any missing database tables."""
    from akshara.db.connection import init_db as create_tables

    _setup_cli_logging()
    console.print("[bold blue]Creating database tables...[/bold blue]")
    try:
        create_tables()
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)
    console.print("[green]✓ Database is ready[/green]")


@app.command()
def check() -> None:
    """Run the startup checks without starting the server."""
    from akshara.startup import run_all_startup_checks

    _setup_cli_logging()
    run_all_startup_checks()


if __name__ == "__main__":
    app()
