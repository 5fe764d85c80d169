"""
Search command.

Iterates catalog results lazily up to a limit and renders them as a table
or as JSON lines.
"""

from __future__ import annotations

from itertools import islice
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from centralfetch.core.client import CentralClient
from centralfetch.core.errors import FetchError
from centralfetch.core.logging import json_dumps
from centralfetch.core.search import Artifact, FetchRequest, Query, Version
from centralfetch.core.search.query import SEARCH_ROWS_MAX

console = Console(legacy_windows=False)
err_console = Console(stderr=True, legacy_windows=False)

# Core holding one document per artifact version
VERSION_CORE = "gav"


def search(
    ctx: typer.Context,
    group: Optional[str] = typer.Option(None, "--group", "-g", help="Group id (g)"),
    artifact: Optional[str] = typer.Option(None, "--artifact", "-a", help="Artifact id (a)"),
    version: Optional[str] = typer.Option(None, "--version", help="Version (v)"),
    tag: Optional[str] = typer.Option(None, "--tag", help="Tag (tags)"),
    class_name: Optional[str] = typer.Option(None, "--class", help="Class name (c)"),
    raw_query: Optional[str] = typer.Option(
        None,
        "--query",
        "-q",
        help="Raw Solr query; overrides the field options",
    ),
    rows: int = typer.Option(20, "--rows", min=1, max=SEARCH_ROWS_MAX, help="Page size"),
    limit: int = typer.Option(20, "--limit", min=1, help="Maximum results to show"),
    sort: Optional[str] = typer.Option(None, "--sort", help="Sort field"),
    descending: bool = typer.Option(False, "--desc", help="Sort descending"),
    core: Optional[str] = typer.Option(None, "--core", help="Search core (e.g. gav)"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON lines"),
) -> None:
    """Search the catalog.

    Examples:
        centralfetch search -g org.slf4j -a slf4j-api --core gav --limit 5
        centralfetch search -q "tags:logging AND p:jar" --json
    """
    query = Query.of(
        group_id=group,
        artifact_id=artifact,
        version=version,
        tags=tag,
        class_name=class_name,
    )
    if raw_query:
        query = query.with_raw(raw_query)
    if query.is_empty:
        err_console.print("[red]Provide at least one search criterion or --query[/red]")
        raise typer.Exit(1)

    request = FetchRequest(
        query=query,
        rows=min(rows, limit),
        sort_field=sort,
        sort_ascending=not descending,
        core=core,
    )
    doc_type = Version if core == VERSION_CORE else Artifact

    with CentralClient(ctx.obj) as client:
        iterator = client.iterate(request, doc_type=doc_type)
        try:
            docs = list(islice(iterator, limit))
        except FetchError as e:
            err_console.print(f"[red]Search failed:[/red] {e}")
            raise typer.Exit(1)

    if as_json:
        for doc in docs:
            typer.echo(json_dumps(doc.model_dump(by_alias=True)))
        return

    if not docs:
        console.print("[dim]No results.[/dim]")
        return

    table = Table(
        title=f"{len(docs)} of {iterator.total} results for {query}",
        show_header=True,
        header_style="bold magenta",
    )
    table.add_column("Group", style="cyan")
    table.add_column("Artifact", style="green")
    table.add_column("Version")
    table.add_column("Packaging")

    for doc in docs:
        shown_version = doc.version if isinstance(doc, Version) else doc.latest_version
        table.add_row(doc.group_id, doc.artifact_id, shown_version, doc.packaging)

    console.print(table)
