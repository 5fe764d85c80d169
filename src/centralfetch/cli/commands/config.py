"""
Configuration commands.
"""

from __future__ import annotations

from pathlib import Path

import typer
import yaml
from rich.console import Console
from rich.syntax import Syntax

from centralfetch.core.config import validate_config_file

console = Console(legacy_windows=False)
err_console = Console(stderr=True, legacy_windows=False)

app = typer.Typer(
    help="Inspect configuration",
    no_args_is_help=True,
)


@app.command("show")
def show_config(ctx: typer.Context) -> None:
    """Print the effective configuration as YAML."""
    config = ctx.obj
    text = yaml.safe_dump(config.model_dump(mode="json"), sort_keys=False)
    console.print(Syntax(text, "yaml", theme="ansi_dark", background_color="default"))


@app.command("validate")
def validate_config(
    path: Path = typer.Argument(..., help="Path to an app.yaml file"),
) -> None:
    """Validate a configuration file."""
    errors = validate_config_file(path)
    if errors:
        err_console.print(f"[red]Invalid configuration:[/red] {path}")
        for error in errors:
            err_console.print(f"  - {error}")
        raise typer.Exit(1)
    console.print(f"[green]OK[/green] {path}")
