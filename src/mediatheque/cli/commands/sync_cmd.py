# ABOUTME: The `mediatheque sync` command group: refresh movies and TV shows from TMDb.
# ABOUTME: TV sync also stores seasons, episodes and the TV Maze schedule.

from pathlib import Path

import click
from rich.console import Console

from mediatheque.cli.options import db_option, library_session
from mediatheque.core.overlay import OperationResult
from mediatheque.sync.engine import SyncResult

console = Console()


def _report(kind: str, tmdb_id: int, result: OperationResult) -> None:
    if not result.success:
        console.print(f"[red]Sync failed:[/red] {result.error}")
        raise SystemExit(1)
    synced: SyncResult = result.value
    line = f"[green]Synced[/green] {kind} tmdb:{tmdb_id} as #{synced.local_id}"
    if synced.seasons:
        line += f" ({synced.seasons} season(s), {synced.episodes} episode(s))"
    console.print(line)
    if synced.synopsis_source != "tmdb":
        console.print(f"  [dim]Synopsis from {synced.synopsis_source}[/dim]")


@click.group("sync")
def sync() -> None:
    """Fetch full TMDb details for a movie or TV show."""


@sync.command("movie")
@click.argument("tmdb_id", type=int)
@db_option
def sync_movie(tmdb_id: int, db_path: Path | None) -> None:
    """Sync one movie by TMDb id."""
    with library_session(db_path) as library:
        result = library.sync_item("movies", tmdb_id)
    _report("movie", tmdb_id, result)


@sync.command("tv")
@click.argument("tmdb_id", type=int)
@click.option(
    "--episodes/--no-episodes",
    default=True,
    help="Also fetch every season with its episodes.",
)
@db_option
def sync_tv(tmdb_id: int, episodes: bool, db_path: Path | None) -> None:
    """Sync one TV show by TMDb id."""
    with library_session(db_path) as library:
        result = library.sync_item("tv", tmdb_id, include_episodes=episodes)
    _report("tv show", tmdb_id, result)
