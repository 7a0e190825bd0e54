# ABOUTME: CLI package for mediatheque, built on Click.
# ABOUTME: Defines the root command group, log verbosity, and registers subcommands.

import logging

import click
from rich.logging import RichHandler

from mediatheque.cli.commands import (
    import_cmd,
    ls_cmd,
    overlay_cmd,
    own_cmd,
    rm_cmd,
    search_cmd,
    sync_cmd,
    user_cmd,
)

_LOG_LEVELS = (logging.WARNING, logging.INFO, logging.DEBUG)


def _configure_logging(verbosity: int) -> None:
    level = _LOG_LEVELS[min(verbosity, len(_LOG_LEVELS) - 1)]
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(show_path=False)],
        force=True,
    )
    # httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))


@click.group()
@click.version_option(package_name="mediatheque")
@click.option("-v", "--verbose", count=True, help="More log output (-v info, -vv debug).")
def cli(verbose: int) -> None:
    """Mediatheque - one library for books, BD, comics, movies and TV shows."""
    _configure_logging(verbose)


cli.add_command(search_cmd.search)
cli.add_command(import_cmd.import_item)
cli.add_command(sync_cmd.sync)
cli.add_command(user_cmd.user)
cli.add_command(ls_cmd.ls)
cli.add_command(overlay_cmd.status)
cli.add_command(overlay_cmd.favorite)
cli.add_command(overlay_cmd.hide)
cli.add_command(overlay_cmd.label)
cli.add_command(overlay_cmd.progress)
cli.add_command(overlay_cmd.tag)
cli.add_command(own_cmd.own)
cli.add_command(own_cmd.volume)
cli.add_command(rm_cmd.rm)
