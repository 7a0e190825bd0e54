# ABOUTME: Per-user overlay commands: status, favorite, hide, label, progress and tag.
# ABOUTME: Every command acts for --user (or MEDIATHEQUE_USER) on one catalog entry.

from pathlib import Path

import click
from rich.console import Console

from mediatheque.cli.options import db_option, domain_option, library_session, user_context, user_option
from mediatheque.core.overlay import MANUAL_TAGS, OperationResult

console = Console()

_STATUSES = sorted({"to-read", "reading", "read", "to-watch", "watching", "watched", "on-hold", "abandoned"})


def _fail_on_error(result: OperationResult) -> None:
    if not result.success:
        console.print(f"[red]{result.error}[/red]")
        raise SystemExit(1)


@click.command("status")
@click.argument("entity_id", type=int)
@click.argument("status", type=click.Choice(_STATUSES))
@domain_option
@click.option("--score", type=click.FloatRange(0, 10), default=None, help="Score out of 10.")
@click.option("--started", "started_on", default=None, help="Start date (YYYY-MM-DD).")
@click.option("--finished", "finished_on", default=None, help="End date (YYYY-MM-DD).")
@user_option
@db_option
def status(
    entity_id: int,
    status: str,
    domain: str,
    score: float | None,
    started_on: str | None,
    finished_on: str | None,
    user_name: str | None,
    db_path: Path | None,
) -> None:
    """Set the reading/watching status of an entry, with score and dates."""
    with library_session(db_path) as library:
        result = library.overlays.set_status(
            domain,
            entity_id,
            user_context(user_name),
            status,
            score=score,
            started_on=started_on,
            finished_on=finished_on,
        )
    _fail_on_error(result)
    console.print(f"{domain} #{entity_id} is now [cyan]{status}[/cyan].")


@click.command("favorite")
@click.argument("entity_id", type=int)
@domain_option
@user_option
@db_option
def favorite(entity_id: int, domain: str, user_name: str | None, db_path: Path | None) -> None:
    """Toggle the favorite flag of an entry."""
    with library_session(db_path) as library:
        result = library.overlays.toggle_favorite(domain, entity_id, user_context(user_name))
    _fail_on_error(result)
    state = "added to" if result.value else "removed from"
    console.print(f"{domain} #{entity_id} {state} favorites.")


@click.command("hide")
@click.argument("entity_id", type=int)
@domain_option
@user_option
@db_option
def hide(entity_id: int, domain: str, user_name: str | None, db_path: Path | None) -> None:
    """Toggle whether an entry is hidden from listings."""
    with library_session(db_path) as library:
        result = library.overlays.toggle_hidden(domain, entity_id, user_context(user_name))
    _fail_on_error(result)
    console.print(f"{domain} #{entity_id} is now {'hidden' if result.value else 'visible'}.")


@click.group("label")
def label() -> None:
    """Manage an entry's labels."""


@label.command("add")
@click.argument("entity_id", type=int)
@click.argument("name")
@click.option("--color", default=None, help="Hex color, e.g. #ef4444.")
@domain_option
@user_option
@db_option
def label_add(
    entity_id: int,
    name: str,
    color: str | None,
    domain: str,
    user_name: str | None,
    db_path: Path | None,
) -> None:
    """Add (or recolor) a label."""
    with library_session(db_path) as library:
        result = library.overlays.add_label(domain, entity_id, user_context(user_name), name, color)
    _fail_on_error(result)
    console.print(f"Labels: {', '.join(item.label for item in result.value)}")


@label.command("rm")
@click.argument("entity_id", type=int)
@click.argument("name")
@domain_option
@user_option
@db_option
def label_rm(entity_id: int, name: str, domain: str, user_name: str | None, db_path: Path | None) -> None:
    """Remove a label."""
    with library_session(db_path) as library:
        result = library.overlays.remove_label(domain, entity_id, user_context(user_name), name)
    _fail_on_error(result)
    remaining = ", ".join(item.label for item in result.value) or "[dim]none[/dim]"
    console.print(f"Labels: {remaining}")


@click.command("progress")
@click.argument("entity_id", type=int)
@domain_option
@click.option("--volumes", "volumes_read", type=click.IntRange(min=0), default=None)
@click.option("--chapters", "chapters_read", type=click.IntRange(min=0), default=None)
@click.option("--episodes", "episodes_watched", type=click.IntRange(min=0), default=None)
@user_option
@db_option
def progress(
    entity_id: int,
    domain: str,
    volumes_read: int | None,
    chapters_read: int | None,
    episodes_watched: int | None,
    user_name: str | None,
    db_path: Path | None,
) -> None:
    """Record volumes/chapters read (series) or episodes watched (tv)."""
    counters = {
        name: value
        for name, value in (
            ("volumes_read", volumes_read),
            ("chapters_read", chapters_read),
            ("episodes_watched", episodes_watched),
        )
        if value is not None
    }
    if not counters:
        raise click.UsageError("Give at least one of --volumes, --chapters or --episodes.")
    with library_session(db_path) as library:
        result = library.overlays.set_progress(domain, entity_id, user_context(user_name), **counters)
    _fail_on_error(result)
    console.print(f"Progress saved for {domain} #{entity_id}.")
    if result.value:
        console.print(f"  Tag: [cyan]{result.value}[/cyan]")


@click.command("tag")
@click.argument("series_id", type=int)
@click.argument("tag", type=click.Choice([*MANUAL_TAGS, "auto"]))
@user_option
@db_option
def tag(series_id: int, tag: str, user_name: str | None, db_path: Path | None) -> None:
    """Pin a series completion tag, or `auto` to derive it from progress again."""
    with library_session(db_path) as library:
        user = user_context(user_name)
        if tag == "auto":
            result = library.overlays.clear_manual_tag(series_id, user)
        else:
            result = library.overlays.set_manual_tag(series_id, user, tag)
    _fail_on_error(result)
    console.print(f"Series #{series_id} tag: [cyan]{result.value}[/cyan]")
