# ABOUTME: The `mediatheque search` command: multi-source catalog search for one domain.
# ABOUTME: Prints merged results with an in-library marker and the catalog totals.

from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from mediatheque.cli.options import db_option, domain_option, library_session
from mediatheque.metadata.types import SourceName

console = Console()

SOURCE_CHOICES = ["all"] + [source.value for source in SourceName]


@click.command("search")
@click.argument("query")
@domain_option
@click.option(
    "-s", "--source",
    type=click.Choice(SOURCE_CHOICES),
    default="all",
    show_default=True,
    help="Restrict the search to one catalog.",
)
@click.option(
    "-n", "--limit",
    type=click.IntRange(1, 40),
    default=20,
    show_default=True,
    help="Maximum results per source.",
)
@click.option("--page", type=click.IntRange(min=1), default=1, show_default=True)
@db_option
def search(
    query: str, domain: str, source: str, limit: int, page: int, db_path: Path | None
) -> None:
    """Search the external catalogs for books, BD, comics, movies or TV shows."""
    with library_session(db_path) as library:
        try:
            response = library.search(query, domain, source, result_cap=limit, page=page)
        except ValueError as exc:
            console.print(f"[red]{exc}[/red]")
            raise SystemExit(1) from exc

    for failed in response.failed_sources:
        console.print(f"[yellow]{failed.value} did not answer; results may be incomplete.[/yellow]")

    if not response.hits:
        console.print("[yellow]No results found.[/yellow]")
        return

    table = Table()
    table.add_column("Source", style="dim")
    table.add_column("ID", style="dim")
    table.add_column("Title", style="bold")
    table.add_column("By")
    table.add_column("Year", width=5)
    table.add_column("Local", justify="right")

    for hit in response.hits:
        record = hit.record
        table.add_row(
            record.source_name.value if record.source_name else "?",
            record.external_id or "",
            record.title or "[dim]untitled[/dim]",
            ", ".join(record.authors) or record.publisher or "[dim]unknown[/dim]",
            str(record.year or ""),
            f"[green]#{hit.local_id}[/green]" if hit.in_library else "",
        )

    console.print(table)
    console.print(
        f"\n[dim]{len(response.hits)} shown, {response.total_results} total, "
        f"page {page}/{max(response.total_pages, 1)}[/dim]"
    )
