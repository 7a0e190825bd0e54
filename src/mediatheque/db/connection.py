# ABOUTME: SQLite connection management for the mediatheque library database.
# ABOUTME: Opens or creates the database, applies schema and migrations, and scopes transactions.

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from mediatheque.db.schema import MIGRATIONS, SCHEMA_V1

DEFAULT_DB_PATH = Path.home() / ".mediatheque" / "library.db"


def _schema_exists(conn: sqlite3.Connection) -> bool:
    """Check if the schema has already been applied."""
    cursor = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name='schema_version'"
    )
    return cursor.fetchone() is not None


def get_schema_version(conn: sqlite3.Connection) -> int:
    """Read the current schema version from the database."""
    cursor = conn.execute("SELECT version FROM schema_version ORDER BY version DESC LIMIT 1")
    row = cursor.fetchone()
    return row[0] if row else 0


def _apply_migrations(conn: sqlite3.Connection) -> None:
    """Apply pending schema migrations sequentially.

    No-op if the database is already at the latest version.
    """
    current = get_schema_version(conn)
    for version, sql in MIGRATIONS:
        if version > current:
            conn.executescript(sql)


def open_database(path: Path | None = None) -> sqlite3.Connection:
    """Open or create the library database.

    Creates the database file and parent directories if they don't exist.
    Applies the schema on first creation, then any pending migrations. Sets
    WAL journal mode, enforces foreign keys (delete cascades rely on it) and
    installs sqlite3.Row for dict-like column access.

    Args:
        path: Path to the database file. Defaults to ~/.mediatheque/library.db.
    """
    db_path = path or DEFAULT_DB_PATH
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")

    if not _schema_exists(conn):
        conn.executescript(SCHEMA_V1)

    _apply_migrations(conn)

    return conn


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Run a block of writes atomically.

    Commits on success and rolls back on any exception. Nested use joins
    the enclosing transaction, so repositories can be composed freely.
    """
    if conn.in_transaction:
        yield conn
        return
    conn.execute("BEGIN")
    try:
        yield conn
    except BaseException:
        conn.rollback()
        raise
    conn.commit()
