# ABOUTME: The `mediatheque rm` command for deleting a catalog entry.
# ABOUTME: Overlays, owners, volumes, seasons and episodes are removed with it.

from pathlib import Path

import click
from rich.console import Console

from mediatheque.cli.options import db_option, domain_option, library_session

console = Console()


@click.command("rm")
@click.argument("entity_id", type=int)
@domain_option
@click.option("-y", "--yes", is_flag=True, default=False, help="Do not ask for confirmation.")
@db_option
def rm(entity_id: int, domain: str, yes: bool, db_path: Path | None) -> None:
    """Delete an entry from the library for every user."""
    if not yes:
        click.confirm(f"Delete {domain} #{entity_id} and all user data attached to it?", abort=True)
    with library_session(db_path) as library:
        result = library.delete(domain, entity_id)
    if not result.success:
        console.print(f"[red]{result.error}[/red]")
        raise SystemExit(1)
    console.print(f"Deleted {domain} #{entity_id}.")
