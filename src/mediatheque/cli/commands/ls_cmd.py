# ABOUTME: The `mediatheque ls` command for listing the local catalog of one domain.
# ABOUTME: With a user, adds that user's status and favorite flag; hidden entries are skipped.

from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from mediatheque.cli.options import db_option, domain_option, library_session, user_context, user_option

console = Console()


@click.command("ls")
@domain_option
@user_option
@click.option(
    "--all", "show_hidden",
    is_flag=True,
    default=False,
    help="Include entries the user has hidden.",
)
@db_option
def ls(domain: str, user_name: str | None, show_hidden: bool, db_path: Path | None) -> None:
    """List the entries of a domain in the local library."""
    with library_session(db_path) as library:
        entries = library.list_entries(domain)
        user = user_context(user_name)
        overlays = {entry.id: library.overlays.get_overlay(domain, entry.id, user) for entry in entries}

    if not show_hidden:
        entries = [
            entry for entry in entries
            if not (overlays[entry.id] and overlays[entry.id].is_hidden)
        ]

    if not entries:
        console.print(f"[yellow]No {domain} in the library.[/yellow]")
        return

    table = Table()
    table.add_column("ID", style="dim", width=4)
    table.add_column("Title", style="bold")
    table.add_column("By")
    table.add_column("Released", width=10)
    table.add_column("Status")

    for entry in entries:
        overlay = overlays[entry.id]
        status = ""
        if overlay is not None:
            status = overlay.status + (" [yellow]★[/yellow]" if overlay.is_favorite else "")
            if overlay.completion_tag:
                status += f" [dim]({overlay.completion_tag})[/dim]"
        table.add_row(
            str(entry.id),
            entry.title,
            ", ".join(entry.authors) or "[dim]unknown[/dim]",
            entry.release_date or "",
            status,
        )

    console.print(table)
    console.print(f"\n[dim]{len(entries)} entr{'y' if len(entries) == 1 else 'ies'}[/dim]")
