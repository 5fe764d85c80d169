"""
Download command.

Fetches one artifact file through the core and reports its size and
digest. Nothing is written to disk.
"""

from __future__ import annotations

import hashlib
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel

from centralfetch.core.client import CHECKSUM_ALGORITHMS, CentralClient, build_artifact_path
from centralfetch.core.errors import ChecksumMismatchError, FetchError
from centralfetch.core.fetch.throttling import destination_for
from centralfetch.core.logging import get_contextual_logger

console = Console(legacy_windows=False)
err_console = Console(stderr=True, legacy_windows=False)


def download(
    ctx: typer.Context,
    group: str = typer.Argument(..., help="Group id, e.g. org.slf4j"),
    artifact: str = typer.Argument(..., help="Artifact id, e.g. slf4j-api"),
    version: str = typer.Argument(..., help="Version, e.g. 2.0.9"),
    extension: str = typer.Option("jar", "--ext", help="File extension"),
    classifier: Optional[str] = typer.Option(None, "--classifier", help="Classifier, e.g. sources"),
    verify: Optional[str] = typer.Option(
        None,
        "--verify",
        help=f"Verify against the published checksum ({', '.join(CHECKSUM_ALGORITHMS)})",
    ),
) -> None:
    """Download an artifact file and report its size and checksum."""
    if verify and verify.lower() not in CHECKSUM_ALGORITHMS:
        err_console.print(f"[red]Unsupported checksum algorithm:[/red] {verify}")
        raise typer.Exit(1)

    path = build_artifact_path(group, artifact, version, extension, classifier)

    with CentralClient(ctx.obj) as client:
        log = get_contextual_logger(
            "cli.download",
            destination=destination_for(client.file_url(path)),
            operation="download",
        )
        log.info("Downloading %s", path)

        try:
            if verify:
                result = client.download_with_checksum(path, verify)
                data, algorithm, digest = result.data, result.algorithm, result.digest
                status = "[green]verified[/green]" if result.verified else "[yellow]no checksum published[/yellow]"
            else:
                data = client.download(path)
                algorithm = "sha1"
                digest = hashlib.sha1(data).hexdigest()
                status = "[dim]not verified[/dim]"
        except ChecksumMismatchError as e:
            err_console.print(f"[red]Checksum mismatch:[/red] {e.detail}")
            raise typer.Exit(1)
        except FetchError as e:
            err_console.print(f"[red]Download failed:[/red] {e}")
            raise typer.Exit(1)

    console.print(Panel.fit(
        f"[bold]Path:[/bold] {path}\n"
        f"[bold]Size:[/bold] {len(data):,} bytes\n"
        f"[bold]{algorithm}:[/bold] {digest}\n"
        f"[bold]Checksum:[/bold] {status}",
        title=f"[bold]{artifact}-{version}[/bold]",
        border_style="green",
    ))
