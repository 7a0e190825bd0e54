# ABOUTME: The `mediatheque user` command group for managing local users.
# ABOUTME: Provides add and ls subcommands.

from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from mediatheque.cli.options import db_option, library_session

console = Console()


@click.group("user")
def user() -> None:
    """Manage the people sharing this library."""


@user.command("add")
@click.argument("name")
@db_option
def user_add(name: str, db_path: Path | None) -> None:
    """Add a user."""
    with library_session(db_path) as library:
        result = library.add_user(name)

    if not result.success:
        console.print(f"[red]{result.error}[/red]")
        raise SystemExit(1)
    console.print(f"Added user [bold]{result.value.name}[/bold] (#{result.value.id}).")


@user.command("ls")
@db_option
def user_ls(db_path: Path | None) -> None:
    """List users."""
    with library_session(db_path) as library:
        users = library.list_users()

    if not users:
        console.print("[yellow]No users yet.[/yellow]")
        return

    table = Table()
    table.add_column("ID", style="dim", width=4)
    table.add_column("Name", style="bold")
    table.add_column("Since", style="dim")
    for entry in users:
        table.add_row(str(entry.id), entry.name, entry.created_at)
    console.print(table)
