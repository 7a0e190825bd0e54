# ABOUTME: The `mediatheque import` command: add one external catalog item to the library.
# ABOUTME: The item is upserted and the current user gets a default overlay row.

from pathlib import Path

import click
from rich.console import Console

from mediatheque.cli.options import db_option, domain_option, library_session, user_context, user_option
from mediatheque.metadata.types import SourceName

console = Console()


@click.command("import")
@click.argument("external_id")
@click.option(
    "-s", "--source",
    type=click.Choice([source.value for source in SourceName]),
    required=True,
    help="Catalog the id comes from.",
)
@domain_option
@user_option
@db_option
def import_item(
    external_id: str, source: str, domain: str, user_name: str | None, db_path: Path | None
) -> None:
    """Import an item by its external id (see `mediatheque search`)."""
    with library_session(db_path) as library:
        outcome = library.import_item(external_id, source, domain, user_context(user_name))

    if not outcome.success:
        console.print(f"[red]Import failed:[/red] {outcome.error}")
        raise SystemExit(1)

    if outcome.already_exists:
        console.print(f"[yellow]Refreshed[/yellow] existing {domain} entry #{outcome.local_id}.")
    else:
        console.print(f"[green]Imported[/green] {domain} entry #{outcome.local_id}.")
