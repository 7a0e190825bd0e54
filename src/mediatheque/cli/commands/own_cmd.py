# ABOUTME: Ownership and volume commands: `own book|volume|spent` and `volume add|read`.
# ABOUTME: Volume 1's owners and price propagate to sibling volumes that have none.

from pathlib import Path

import click
from rich.console import Console

from mediatheque.cli.options import db_option, library_session, user_context, user_option

console = Console()


@click.group("own")
def own() -> None:
    """Record who owns what and what it cost."""


@own.command("book")
@click.argument("book_id", type=int)
@click.option("--price", type=click.FloatRange(min=0), default=0.0, help="Price paid.")
@click.option("--on", "purchased_on", default=None, help="Purchase date (YYYY-MM-DD).")
@user_option
@db_option
def own_book(
    book_id: int, price: float, purchased_on: str | None, user_name: str | None, db_path: Path | None
) -> None:
    """Mark a book as owned by the user."""
    with library_session(db_path) as library:
        result = library.set_book_owner(book_id, user_context(user_name), price, purchased_on)
    if not result.success:
        console.print(f"[red]{result.error}[/red]")
        raise SystemExit(1)
    console.print(f"Book #{book_id} owned ({price:.2f}).")


@own.command("volume")
@click.argument("volume_id", type=int)
@click.option("-o", "--owner", "owners", multiple=True, required=True, help="Owner name (repeatable).")
@click.option("--on", "purchased_on", default=None, help="Purchase date (YYYY-MM-DD).")
@db_option
def own_volume(volume_id: int, owners: tuple[str, ...], purchased_on: str | None, db_path: Path | None) -> None:
    """Set the owners of a series volume."""
    with library_session(db_path) as library:
        result = library.set_volume_owners(volume_id, owners, purchased_on)
    if not result.success:
        console.print(f"[red]{result.error}[/red]")
        raise SystemExit(1)
    console.print(f"Volume #{volume_id} owned by {', '.join(owners)}.")
    if result.value:
        console.print(f"  [dim]Also applied to {result.value} other volume(s).[/dim]")


@own.command("spent")
@user_option
@db_option
def own_spent(user_name: str | None, db_path: Path | None) -> None:
    """Total spent by the user (shared volumes split between owners)."""
    with library_session(db_path) as library:
        result = library.user_spending(user_context(user_name))
    if not result.success:
        console.print(f"[red]{result.error}[/red]")
        raise SystemExit(1)
    console.print(f"Total spent: [bold]{result.value:.2f}[/bold]")


@click.group("volume")
def volume() -> None:
    """Manage the volumes of a BD, comic or manga series."""


@volume.command("add")
@click.argument("series_id", type=int)
@click.argument("number", type=click.IntRange(min=0))
@click.option("--title", default=None)
@click.option("--price", type=click.FloatRange(min=0), default=None)
@db_option
def volume_add(
    series_id: int, number: int, title: str | None, price: float | None, db_path: Path | None
) -> None:
    """Add (or update) volume NUMBER of a series."""
    with library_session(db_path) as library:
        result = library.add_volume(series_id, number, price=price, title=title)
    if not result.success:
        console.print(f"[red]{result.error}[/red]")
        raise SystemExit(1)
    console.print(f"Volume {number} of series #{series_id} is #{result.value}.")


@volume.command("read")
@click.argument("volume_id", type=int)
@click.option("--unread", is_flag=True, default=False, help="Remove the read mark instead.")
@click.option("--on", "read_on", default=None, help="Date read (YYYY-MM-DD).")
@user_option
@db_option
def volume_read(
    volume_id: int, unread: bool, read_on: str | None, user_name: str | None, db_path: Path | None
) -> None:
    """Mark a volume as read by the user."""
    with library_session(db_path) as library:
        result = library.overlays.mark_volume_read(
            volume_id, user_context(user_name), read=not unread, read_on=read_on
        )
    if not result.success:
        console.print(f"[red]{result.error}[/red]")
        raise SystemExit(1)
    console.print(f"Volume #{volume_id} marked {'unread' if unread else 'read'}; tag: {result.value}")
