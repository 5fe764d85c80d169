"""
centralfetch CLI - Main entry point.

Search the Maven Central catalog and download repository files from the
terminal, with throttling, retries and caching handled by the core.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.traceback import install as install_rich_traceback

from centralfetch import __app_name__, __version__
from centralfetch.core.config import ConfigError, load_app_config
from centralfetch.core.logging import setup_logging

# Load environment variables from .env (if present)
load_dotenv()

# Install rich traceback for better error display
install_rich_traceback(show_locals=False, width=120)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

console = Console(legacy_windows=False)
err_console = Console(stderr=True, legacy_windows=False)

# Create main app
app = typer.Typer(
    name=__app_name__,
    help="Resilient search and download client for Maven Central",
    rich_markup_mode="rich",
    no_args_is_help=True,
    pretty_exceptions_show_locals=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold cyan]{__app_name__}[/bold cyan] version [green]{__version__}[/green]")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to app.yaml (default: $CENTRALFETCH_CONFIG or configs/app.yaml)",
    ),
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        "-l",
        help="Override the configured log level",
    ),
) -> None:
    """centralfetch - Maven Central search and download client."""
    try:
        config = load_app_config(config_path)
    except ConfigError as e:
        err_console.print(f"[red]Configuration error:[/red] {e}")
        if e.details:
            err_console.print(f"[dim]{e.details}[/dim]")
        raise typer.Exit(2)

    level = (log_level or config.logging.level).upper()
    if level not in LOG_LEVELS:
        raise typer.BadParameter(f"must be one of {', '.join(LOG_LEVELS)}", param_hint="--log-level")
    setup_logging(config.logging, level=level)
    ctx.obj = config


# =============================================================================
# Import and register subcommand modules
# =============================================================================

from .commands import config as config_cmd, download, search  # noqa: E402

app.command("search")(search.search)
app.command("download")(download.download)
app.add_typer(config_cmd.app, name="config", help="Inspect configuration")


# =============================================================================
# Entry Point
# =============================================================================


def run() -> None:
    """Run the CLI application."""
    app()


if __name__ == "__main__":
    run()
