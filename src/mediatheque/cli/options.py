# ABOUTME: Shared Click options and the library session helper for mediatheque CLI commands.
# ABOUTME: --db and --user fall back to MEDIATHEQUE_DB / MEDIATHEQUE_USER and .env settings.

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import replace
from pathlib import Path

import click

from mediatheque.config import load_settings
from mediatheque.core.library import MediaLibrary
from mediatheque.core.overlay import UserContext
from mediatheque.db.connection import DEFAULT_DB_PATH, open_database
from mediatheque.metadata.types import MediaDomain

DOMAIN_CHOICES = [domain.value for domain in MediaDomain]

db_option = click.option(
    "--db",
    "db_path",
    type=click.Path(path_type=Path),
    default=None,
    envvar="MEDIATHEQUE_DB",
    help=f"Path to library database (default: {DEFAULT_DB_PATH})",
)

user_option = click.option(
    "--user",
    "user_name",
    default=None,
    envvar="MEDIATHEQUE_USER",
    help="User the command acts for (default: $MEDIATHEQUE_USER).",
)

domain_option = click.option(
    "-d", "--domain",
    type=click.Choice(DOMAIN_CHOICES),
    default=MediaDomain.BOOKS.value,
    show_default=True,
    help="Media domain.",
)


@contextmanager
def library_session(db_path: Path | None) -> Iterator[MediaLibrary]:
    """Open the database and a fully wired MediaLibrary; both are closed on exit."""
    settings = load_settings()
    if db_path is not None:
        settings = replace(settings, db_path=db_path)
    conn = open_database(settings.db_path)
    try:
        with MediaLibrary.from_settings(conn, settings) as library:
            yield library
    finally:
        conn.close()


def user_context(user_name: str | None) -> UserContext:
    """Explicit user context, falling back to the configured default user."""
    return UserContext(user_name or load_settings().user)
