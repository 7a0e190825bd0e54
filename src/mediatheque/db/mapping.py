# ABOUTME: Converts between canonical records / typed overlay values and SQLite rows.
# ABOUTME: The only place JSON text columns are serialized or parsed.

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from mediatheque.metadata.types import CanonicalMediaRecord

logger = logging.getLogger(__name__)

DEFAULT_LABEL_COLOR = "#6b7280"


def to_json(value: Any) -> str | None:
    """Serialize a nested value for a TEXT column; None (never an exception) on failure."""
    if value is None:
        return None
    try:
        return json.dumps(value, ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        logger.warning("Dropping unserializable value: %s", exc)
        return None


def from_json(text: str | None, default: Any = None) -> Any:
    """Parse a JSON TEXT column, returning ``default`` for NULL or malformed text."""
    if not text:
        return default
    try:
        return json.loads(text)
    except (TypeError, ValueError):
        logger.warning("Ignoring malformed JSON column value")
        return default


@dataclass(frozen=True)
class Label:
    """A free-form user label with a display color."""

    label: str
    color: str = DEFAULT_LABEL_COLOR


def labels_to_json(labels: list[Label]) -> str:
    return json.dumps([{"label": item.label, "color": item.color} for item in labels], ensure_ascii=False)


def labels_from_json(text: str | None) -> list[Label]:
    labels: list[Label] = []
    for entry in from_json(text, []) or []:
        if isinstance(entry, dict) and entry.get("label"):
            labels.append(Label(label=str(entry["label"]), color=entry.get("color") or DEFAULT_LABEL_COLOR))
        elif isinstance(entry, str) and entry:
            labels.append(Label(label=entry))
    return labels


def preferences_to_json(preferences: dict[str, bool]) -> str:
    return json.dumps({key: bool(value) for key, value in preferences.items()})


def preferences_from_json(text: str | None) -> dict[str, bool]:
    data = from_json(text, {})
    if not isinstance(data, dict):
        return {}
    return {str(key): bool(value) for key, value in data.items()}


@dataclass
class UserOverlay:
    """One user's facts about one catalog entity.

    ``progress`` holds the table-specific counters (volumes_read,
    chapters_read, episodes_watched) present on that overlay table.
    """

    id: int
    entity_id: int
    user_id: int
    status: str
    score: float | None = None
    started_on: str | None = None
    finished_on: str | None = None
    is_favorite: bool = False
    is_hidden: bool = False
    notes: str | None = None
    labels: list[Label] = field(default_factory=list)
    display_preferences: dict[str, bool] = field(default_factory=dict)
    progress: dict[str, int] = field(default_factory=dict)
    completion_tag: str | None = None
    tag_is_manual: bool = False


_PROGRESS_COLUMNS = ("volumes_read", "chapters_read", "episodes_watched")


def row_to_overlay(row: Any, entity_column: str) -> UserOverlay:
    keys = row.keys()
    return UserOverlay(
        id=row["id"],
        entity_id=row[entity_column],
        user_id=row["user_id"],
        status=row["status"],
        score=row["score"],
        started_on=row["started_on"],
        finished_on=row["finished_on"],
        is_favorite=bool(row["is_favorite"]),
        is_hidden=bool(row["is_hidden"]),
        notes=row["notes"],
        labels=labels_from_json(row["labels"]),
        display_preferences=preferences_from_json(row["display_preferences"]),
        progress={column: row[column] for column in _PROGRESS_COLUMNS if column in keys},
        completion_tag=row["completion_tag"] if "completion_tag" in keys else None,
        tag_is_manual=bool(row["tag_is_manual"]) if "tag_is_manual" in keys else False,
    )


def overlay_value_to_column(name: str, value: Any) -> Any:
    """Convert one typed overlay field into its column value."""
    if name == "labels":
        return labels_to_json(value)
    if name == "display_preferences":
        return preferences_to_json(value)
    if name in ("is_favorite", "is_hidden", "tag_is_manual"):
        return 1 if value else 0
    return value


@dataclass
class LibraryEntry:
    """Summary of a shared catalog row for listings."""

    id: int
    domain: str
    title: str
    authors: list[str] = field(default_factory=list)
    release_date: str | None = None
    source_name: str | None = None
    source_id: str | None = None


def row_to_entry(row: Any, domain: str) -> LibraryEntry:
    keys = row.keys()
    authors = from_json(row["authors"], []) if "authors" in keys else []
    if "source_name" in keys:
        source_name, source_id = row["source_name"], row["source_id"]
    else:
        source_name, source_id = "tmdb", str(row["tmdb_id"])
    release = None
    for column in ("release_date", "first_air_date"):
        if column in keys and row[column]:
            release = row[column]
            break
    return LibraryEntry(
        id=row["id"],
        domain=domain,
        title=row["title"],
        authors=authors if isinstance(authors, list) else [],
        release_date=release,
        source_name=source_name,
        source_id=source_id,
    )


def record_to_book_row(record: CanonicalMediaRecord, book_type: str) -> dict[str, Any]:
    """Columns written by a book upsert (identity columns included)."""
    return {
        "source_id": record.external_id,
        "source_name": record.source_name.value if record.source_name else None,
        "title": record.title or "",
        "original_title": record.original_title,
        "subtitle": record.subtitle,
        "main_author": record.main_author,
        "authors": to_json(record.authors),
        "publisher": record.publisher,
        "release_date": record.release_date,
        "page_count": record.page_count,
        "language": record.language,
        "book_type": book_type,
        "genres": to_json(record.categories),
        "synopsis": record.synopsis,
        "cover_url": record.cover_url,
        "isbn10": record.isbn10,
        "isbn13": record.isbn13,
        "source_url": record.detail_url,
        "preview_url": record.preview_url,
        "buy_url": record.buy_url,
        "maturity_rating": record.maturity_rating,
        "community_score": record.community_score,
        "community_votes": record.community_votes,
        "suggested_price": record.price,
        "currency": record.currency,
    }


def record_to_series_row(record: CanonicalMediaRecord, media_type: str) -> dict[str, Any]:
    """Columns written by a series (BD / comic / manga) upsert."""
    return {
        "source_id": record.external_id,
        "source_name": record.source_name.value if record.source_name else None,
        "title": record.title or "",
        "original_title": record.original_title,
        "media_type": media_type,
        "authors": to_json(record.authors),
        "publisher": record.publisher,
        "release_date": record.release_date,
        "language": record.language,
        "genres": to_json(record.categories),
        "synopsis": record.synopsis,
        "cover_url": record.cover_url,
        "isbn10": record.isbn10,
        "isbn13": record.isbn13,
        "source_url": record.detail_url,
        "page_count": record.page_count,
        "community_score": record.community_score,
        "community_votes": record.community_votes,
    }
