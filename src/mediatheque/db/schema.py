# ABOUTME: SQL DDL for the mediatheque library database.
# ABOUTME: Shared catalog tables, per-user overlay tables, FTS index, and versioned migrations.

SCHEMA_V1 = """
CREATE TABLE users (
    id         INTEGER PRIMARY KEY AUTOINCREMENT,
    name       TEXT NOT NULL UNIQUE,
    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);

-- Shared catalog: one row per (source_id, source_name)
CREATE TABLE books (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    title           TEXT NOT NULL,
    original_title  TEXT,
    subtitle        TEXT,
    main_author     TEXT,
    authors         TEXT,
    publisher       TEXT,
    release_date    TEXT,
    page_count      INTEGER,
    language        TEXT,
    book_type       TEXT,
    genres          TEXT,
    synopsis        TEXT,
    cover_url       TEXT,
    isbn10          TEXT,
    isbn13          TEXT,
    source_id       TEXT NOT NULL,
    source_name     TEXT NOT NULL,
    source_url      TEXT,
    preview_url     TEXT,
    buy_url         TEXT,
    maturity_rating TEXT,
    community_score REAL,
    community_votes INTEGER,
    suggested_price REAL,
    currency        TEXT,
    created_at      TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at      TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (source_id, source_name)
);

CREATE INDEX idx_books_isbn10 ON books(isbn10) WHERE isbn10 IS NOT NULL;
CREATE INDEX idx_books_isbn13 ON books(isbn13) WHERE isbn13 IS NOT NULL;

CREATE VIRTUAL TABLE books_fts USING fts5(
    title, authors, synopsis,
    content='books',
    content_rowid='id'
);

CREATE TRIGGER books_ai AFTER INSERT ON books BEGIN
    INSERT INTO books_fts(rowid, title, authors, synopsis)
    VALUES (new.id, new.title, new.authors, new.synopsis);
END;

CREATE TRIGGER books_ad AFTER DELETE ON books BEGIN
    INSERT INTO books_fts(books_fts, rowid, title, authors, synopsis)
    VALUES ('delete', old.id, old.title, old.authors, old.synopsis);
END;

CREATE TRIGGER books_au AFTER UPDATE ON books BEGIN
    INSERT INTO books_fts(books_fts, rowid, title, authors, synopsis)
    VALUES ('delete', old.id, old.title, old.authors, old.synopsis);
    INSERT INTO books_fts(rowid, title, authors, synopsis)
    VALUES (new.id, new.title, new.authors, new.synopsis);
END;

-- BD, comics and manga series
CREATE TABLE series (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    title           TEXT NOT NULL,
    original_title  TEXT,
    media_type      TEXT NOT NULL,
    authors         TEXT,
    publisher       TEXT,
    release_date    TEXT,
    language        TEXT,
    genres          TEXT,
    synopsis        TEXT,
    cover_url       TEXT,
    isbn10          TEXT,
    isbn13          TEXT,
    source_id       TEXT NOT NULL,
    source_name     TEXT NOT NULL,
    source_url      TEXT,
    page_count      INTEGER,
    nb_volumes      INTEGER,
    nb_chapters     INTEGER,
    community_score REAL,
    community_votes INTEGER,
    created_at      TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at      TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (source_id, source_name)
);

CREATE INDEX idx_series_isbn10 ON series(isbn10) WHERE isbn10 IS NOT NULL;
CREATE INDEX idx_series_isbn13 ON series(isbn13) WHERE isbn13 IS NOT NULL;

CREATE TABLE series_volumes (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    series_id    INTEGER NOT NULL REFERENCES series(id) ON DELETE CASCADE,
    number       INTEGER NOT NULL,
    title        TEXT,
    isbn         TEXT,
    price        REAL NOT NULL DEFAULT 0,
    release_date TEXT,
    cover_url    TEXT,
    created_at   TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (series_id, number)
);

CREATE TABLE movies (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    tmdb_id          INTEGER NOT NULL UNIQUE,
    imdb_id          TEXT UNIQUE,
    title            TEXT NOT NULL,
    original_title   TEXT,
    tagline          TEXT,
    synopsis         TEXT,
    status           TEXT,
    release_date     TEXT,
    runtime          INTEGER,
    budget           INTEGER,
    revenue          INTEGER,
    vote_average     REAL,
    vote_count       INTEGER,
    popularity       REAL,
    adult            INTEGER NOT NULL DEFAULT 0,
    genres           TEXT,
    keywords         TEXT,
    spoken_languages TEXT,
    companies        TEXT,
    countries        TEXT,
    homepage         TEXT,
    poster_url       TEXT,
    backdrop_url     TEXT,
    credits          TEXT,
    videos           TEXT,
    images           TEXT,
    watch_providers  TEXT,
    external_ids     TEXT,
    translations     TEXT,
    raw_data         TEXT,
    last_synced      TEXT,
    created_at       TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at       TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE tv_shows (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    tmdb_id          INTEGER NOT NULL UNIQUE,
    tvmaze_id        INTEGER UNIQUE,
    imdb_id          TEXT,
    title            TEXT NOT NULL,
    original_title   TEXT,
    tagline          TEXT,
    synopsis         TEXT,
    status           TEXT,
    show_type        TEXT,
    nb_seasons       INTEGER,
    nb_episodes      INTEGER,
    episode_runtime  INTEGER,
    first_air_date   TEXT,
    last_air_date    TEXT,
    next_episode     TEXT,
    last_episode     TEXT,
    genres           TEXT,
    keywords         TEXT,
    spoken_languages TEXT,
    companies        TEXT,
    countries        TEXT,
    networks         TEXT,
    network_name     TEXT,
    homepage         TEXT,
    poster_url       TEXT,
    backdrop_url     TEXT,
    credits          TEXT,
    images           TEXT,
    videos           TEXT,
    watch_providers  TEXT,
    external_ids     TEXT,
    translations     TEXT,
    raw_data         TEXT,
    last_synced      TEXT,
    created_at       TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at       TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE tv_seasons (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    show_id       INTEGER NOT NULL REFERENCES tv_shows(id) ON DELETE CASCADE,
    tmdb_id       INTEGER,
    season_number INTEGER NOT NULL,
    title         TEXT,
    synopsis      TEXT,
    air_date      TEXT,
    nb_episodes   INTEGER,
    poster_url    TEXT,
    raw_data      TEXT,
    last_synced   TEXT,
    created_at    TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at    TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (show_id, season_number)
);

CREATE TABLE tv_episodes (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    show_id        INTEGER NOT NULL REFERENCES tv_shows(id) ON DELETE CASCADE,
    season_id      INTEGER REFERENCES tv_seasons(id) ON DELETE CASCADE,
    tmdb_id        INTEGER,
    season_number  INTEGER NOT NULL,
    episode_number INTEGER NOT NULL,
    title          TEXT,
    synopsis       TEXT,
    air_date       TEXT,
    runtime        INTEGER,
    vote_average   REAL,
    vote_count     INTEGER,
    still_url      TEXT,
    raw_data       TEXT,
    created_at     TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at     TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (show_id, season_number, episode_number)
);

-- Per-user overlays: zero or one row per (entity, user)
CREATE TABLE book_user_data (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    book_id             INTEGER NOT NULL REFERENCES books(id) ON DELETE CASCADE,
    user_id             INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    status              TEXT NOT NULL DEFAULT 'to-read',
    score               REAL,
    started_on          TEXT,
    finished_on         TEXT,
    is_favorite         INTEGER NOT NULL DEFAULT 0,
    is_hidden           INTEGER NOT NULL DEFAULT 0,
    notes               TEXT,
    labels              TEXT NOT NULL DEFAULT '[]',
    display_preferences TEXT NOT NULL DEFAULT '{}',
    created_at          TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at          TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (book_id, user_id)
);

CREATE TABLE series_user_data (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    series_id           INTEGER NOT NULL REFERENCES series(id) ON DELETE CASCADE,
    user_id             INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    status              TEXT NOT NULL DEFAULT 'to-read',
    score               REAL,
    started_on          TEXT,
    finished_on         TEXT,
    is_favorite         INTEGER NOT NULL DEFAULT 0,
    is_hidden           INTEGER NOT NULL DEFAULT 0,
    notes               TEXT,
    labels              TEXT NOT NULL DEFAULT '[]',
    display_preferences TEXT NOT NULL DEFAULT '{}',
    volumes_read        INTEGER NOT NULL DEFAULT 0,
    chapters_read       INTEGER NOT NULL DEFAULT 0,
    completion_tag      TEXT,
    tag_is_manual       INTEGER NOT NULL DEFAULT 0,
    created_at          TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at          TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (series_id, user_id)
);

CREATE TABLE movie_user_data (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    movie_id            INTEGER NOT NULL REFERENCES movies(id) ON DELETE CASCADE,
    user_id             INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    status              TEXT NOT NULL DEFAULT 'to-watch',
    score               REAL,
    started_on          TEXT,
    finished_on         TEXT,
    is_favorite         INTEGER NOT NULL DEFAULT 0,
    is_hidden           INTEGER NOT NULL DEFAULT 0,
    notes               TEXT,
    labels              TEXT NOT NULL DEFAULT '[]',
    display_preferences TEXT NOT NULL DEFAULT '{}',
    created_at          TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at          TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (movie_id, user_id)
);

CREATE TABLE tv_show_user_data (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    show_id             INTEGER NOT NULL REFERENCES tv_shows(id) ON DELETE CASCADE,
    user_id             INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    status              TEXT NOT NULL DEFAULT 'to-watch',
    score               REAL,
    started_on          TEXT,
    finished_on         TEXT,
    is_favorite         INTEGER NOT NULL DEFAULT 0,
    is_hidden           INTEGER NOT NULL DEFAULT 0,
    notes               TEXT,
    labels              TEXT NOT NULL DEFAULT '[]',
    display_preferences TEXT NOT NULL DEFAULT '{}',
    episodes_watched    INTEGER NOT NULL DEFAULT 0,
    created_at          TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at          TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (show_id, user_id)
);

-- Schema versioning for future migrations
CREATE TABLE schema_version (
    version    INTEGER NOT NULL,
    applied_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%S', 'now'))
);

INSERT INTO schema_version (version) VALUES (1);
"""

MIGRATION_V2 = """
-- Ownership links and per-user volume read marks
CREATE TABLE volume_owners (
    volume_id    INTEGER NOT NULL REFERENCES series_volumes(id) ON DELETE CASCADE,
    user_id      INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    purchased_on TEXT,
    PRIMARY KEY (volume_id, user_id)
);

CREATE TABLE volume_reads (
    volume_id INTEGER NOT NULL REFERENCES series_volumes(id) ON DELETE CASCADE,
    user_id   INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    read_on   TEXT,
    PRIMARY KEY (volume_id, user_id)
);

CREATE TABLE book_owners (
    book_id      INTEGER NOT NULL REFERENCES books(id) ON DELETE CASCADE,
    user_id      INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    price        REAL NOT NULL DEFAULT 0,
    purchased_on TEXT,
    PRIMARY KEY (book_id, user_id)
);

INSERT INTO schema_version (version) VALUES (2);
"""

MIGRATIONS: list[tuple[int, str]] = [
    (2, MIGRATION_V2),
]

LATEST_VERSION = max(version for version, _ in MIGRATIONS)
