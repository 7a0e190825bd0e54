# ABOUTME: User-Overlay Manager: per-user status, flags, labels, progress and completion tags.
# ABOUTME: The current user is an explicit UserContext; missing user or entity yields a failed result.

import logging
import sqlite3
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from mediatheque.db.connection import transaction
from mediatheque.db.mapping import Label, UserOverlay
from mediatheque.db.overlays import (
    BOOK_OVERLAY,
    MOVIE_OVERLAY,
    SERIES_OVERLAY,
    TV_OVERLAY,
    OverlayRepository,
    OverlayTable,
)
from mediatheque.db.ownership import OwnershipRepository
from mediatheque.db.users import UserRepository

logger = logging.getLogger(__name__)

TAG_TO_READ = "to-read"
TAG_IN_PROGRESS = "in-progress"
TAG_COMPLETED = "completed"
TAG_ABANDONED = "abandoned"

MANUAL_TAGS = (TAG_ABANDONED, TAG_TO_READ)

OVERLAY_BY_DOMAIN: dict[str, OverlayTable] = {
    "books": BOOK_OVERLAY,
    "series": SERIES_OVERLAY,
    "bd": SERIES_OVERLAY,
    "comics": SERIES_OVERLAY,
    "manga": SERIES_OVERLAY,
    "movies": MOVIE_OVERLAY,
    "tv": TV_OVERLAY,
}

# Progress counter column -> catalog column holding its known total.
_SERIES_TOTALS = {"volumes_read": "nb_volumes", "chapters_read": "nb_chapters"}
_PROGRESS_COLUMNS = ("volumes_read", "chapters_read", "episodes_watched")


@dataclass(frozen=True)
class ProgressCounter:
    consumed: int
    total: int | None = None


def derive_completion_tag(counters: Iterable[ProgressCounter]) -> str:
    """Completion tag implied by progress counters.

    ``to-read`` when nothing has been consumed, ``completed`` when any counter
    with a known total has reached it, ``in-progress`` otherwise.
    """
    counters = list(counters)
    if all(counter.consumed <= 0 for counter in counters):
        return TAG_TO_READ
    for counter in counters:
        if counter.total and counter.total > 0 and counter.consumed >= counter.total:
            return TAG_COMPLETED
    return TAG_IN_PROGRESS


@dataclass(frozen=True)
class UserContext:
    """Who the overlay operations act for; ``name=None`` means no user."""

    name: str | None = None


@dataclass
class OperationResult:
    success: bool
    error: str | None = None
    value: Any = None

    @classmethod
    def ok(cls, value: Any = None) -> "OperationResult":
        return cls(success=True, value=value)

    @classmethod
    def fail(cls, error: str) -> "OperationResult":
        return cls(success=False, error=error)


def overlay_table_for(domain: str) -> OverlayTable:
    try:
        return OVERLAY_BY_DOMAIN[domain]
    except KeyError:
        raise ValueError(f"Unknown domain: {domain}") from None


class OverlayManager:
    """Mutations of the per-user overlay rows.

    Every mutation creates the overlay row on first use. Operations return an
    OperationResult instead of raising for expected conditions (no current
    user, unknown entity, invalid user-supplied value); a missing id raises
    ValueError.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._users = UserRepository(conn)
        self._ownership = OwnershipRepository(conn)

    def _repository(self, domain: str) -> OverlayRepository:
        return OverlayRepository(self._conn, overlay_table_for(domain))

    def _resolve(
        self, domain: str, entity_id: int | None, user: UserContext
    ) -> tuple[OverlayRepository, int] | OperationResult:
        if entity_id is None:
            raise ValueError("entity_id is required")
        repository = self._repository(domain)
        user_id = self._users.resolve_id(user.name)
        if user_id is None:
            if user.name:
                return OperationResult.fail(f"Unknown user '{user.name}'")
            return OperationResult.fail("No current user")
        if not repository.entity_exists(entity_id):
            return OperationResult.fail(f"{domain} entry with id {entity_id} not found")
        return repository, user_id

    def get_overlay(self, domain: str, entity_id: int, user: UserContext) -> UserOverlay | None:
        """Read-only view of the overlay; None without a user or row."""
        user_id = self._users.resolve_id(user.name)
        if user_id is None:
            return None
        return self._repository(domain).get(entity_id, user_id)

    def ensure_overlay_row(self, domain: str, entity_id: int, user: UserContext) -> OperationResult:
        """Create the default overlay row if missing; ``value`` tells whether it was created."""
        resolved = self._resolve(domain, entity_id, user)
        if isinstance(resolved, OperationResult):
            return resolved
        repository, user_id = resolved
        return OperationResult.ok(repository.ensure(entity_id, user_id))

    def update_overlay(
        self, domain: str, entity_id: int, user: UserContext, fields: dict[str, Any]
    ) -> OperationResult:
        """Write only ``fields``; all other overlay columns keep their values.

        Progress counters and completion-tag columns are refused here since
        they must go through the tag derivation in ``set_progress`` and
        ``set_manual_tag``.
        """
        resolved = self._resolve(domain, entity_id, user)
        if isinstance(resolved, OperationResult):
            return resolved
        repository, user_id = resolved
        routed = sorted(set(fields) & set(repository.table.extra_fields))
        if routed:
            return OperationResult.fail(
                f"Use set_progress or set_manual_tag to change: {', '.join(routed)}"
            )
        if "status" in fields and fields["status"] not in repository.table.statuses:
            return OperationResult.fail(f"Invalid status: {fields['status']}")
        with transaction(self._conn):
            repository.ensure(entity_id, user_id)
            repository.update(entity_id, user_id, fields)
        return OperationResult.ok()

    def _toggle(self, domain: str, entity_id: int, user: UserContext, flag: str) -> OperationResult:
        resolved = self._resolve(domain, entity_id, user)
        if isinstance(resolved, OperationResult):
            return resolved
        repository, user_id = resolved
        with transaction(self._conn):
            repository.ensure(entity_id, user_id)
            new_value = repository.toggle(entity_id, user_id, flag)
        return OperationResult.ok(new_value)

    def toggle_favorite(self, domain: str, entity_id: int, user: UserContext) -> OperationResult:
        return self._toggle(domain, entity_id, user, "is_favorite")

    def toggle_hidden(self, domain: str, entity_id: int, user: UserContext) -> OperationResult:
        return self._toggle(domain, entity_id, user, "is_hidden")

    def set_status(
        self,
        domain: str,
        entity_id: int,
        user: UserContext,
        status: str,
        *,
        score: float | None = None,
        started_on: str | None = None,
        finished_on: str | None = None,
    ) -> OperationResult:
        """Set status, score and date range together in one write."""
        resolved = self._resolve(domain, entity_id, user)
        if isinstance(resolved, OperationResult):
            return resolved
        repository, user_id = resolved
        if status not in repository.table.statuses:
            return OperationResult.fail(f"Invalid status: {status}")
        if score is not None and not 0 <= score <= 10:
            return OperationResult.fail("Score must be between 0 and 10")
        with transaction(self._conn):
            repository.ensure(entity_id, user_id)
            repository.update(
                entity_id,
                user_id,
                {
                    "status": status,
                    "score": score,
                    "started_on": started_on,
                    "finished_on": finished_on,
                },
            )
        return OperationResult.ok()

    # --- labels and display preferences ---

    def add_label(
        self, domain: str, entity_id: int, user: UserContext, label: str, color: str | None = None
    ) -> OperationResult:
        label = label.strip()
        if not label:
            return OperationResult.fail("Label is required")
        resolved = self._resolve(domain, entity_id, user)
        if isinstance(resolved, OperationResult):
            return resolved
        repository, user_id = resolved
        with transaction(self._conn):
            repository.ensure(entity_id, user_id)
            overlay = repository.get(entity_id, user_id)
            assert overlay is not None
            labels = [existing for existing in overlay.labels if existing.label != label]
            labels.append(Label(label, color) if color else Label(label))
            repository.update(entity_id, user_id, {"labels": labels})
        return OperationResult.ok(labels)

    def remove_label(self, domain: str, entity_id: int, user: UserContext, label: str) -> OperationResult:
        resolved = self._resolve(domain, entity_id, user)
        if isinstance(resolved, OperationResult):
            return resolved
        repository, user_id = resolved
        with transaction(self._conn):
            repository.ensure(entity_id, user_id)
            overlay = repository.get(entity_id, user_id)
            assert overlay is not None
            labels = [existing for existing in overlay.labels if existing.label != label.strip()]
            repository.update(entity_id, user_id, {"labels": labels})
        return OperationResult.ok(labels)

    def set_display_preference(
        self, domain: str, entity_id: int, user: UserContext, key: str, value: bool
    ) -> OperationResult:
        resolved = self._resolve(domain, entity_id, user)
        if isinstance(resolved, OperationResult):
            return resolved
        repository, user_id = resolved
        with transaction(self._conn):
            repository.ensure(entity_id, user_id)
            overlay = repository.get(entity_id, user_id)
            assert overlay is not None
            preferences = {**overlay.display_preferences, key: bool(value)}
            repository.update(entity_id, user_id, {"display_preferences": preferences})
        return OperationResult.ok(preferences)

    # --- progress and completion tags ---

    def set_progress(
        self, domain: str, entity_id: int, user: UserContext, **counters: int
    ) -> OperationResult:
        """Store progress counters, then re-derive the completion tag unless it is manual.

        Counters are ``volumes_read`` / ``chapters_read`` on series and
        ``episodes_watched`` on TV shows.
        """
        resolved = self._resolve(domain, entity_id, user)
        if isinstance(resolved, OperationResult):
            return resolved
        repository, user_id = resolved
        allowed = set(_PROGRESS_COLUMNS) & set(repository.table.extra_fields)
        unknown = set(counters) - allowed
        if unknown or not counters:
            return OperationResult.fail(f"Unsupported progress counters: {sorted(unknown) or 'none'}")
        if any(value < 0 for value in counters.values()):
            return OperationResult.fail("Progress counters cannot be negative")
        with transaction(self._conn):
            repository.ensure(entity_id, user_id)
            repository.update(entity_id, user_id, dict(counters))
            tag = self._refresh_tag(repository, entity_id, user_id)
        return OperationResult.ok(tag)

    def _refresh_tag(self, repository: OverlayRepository, entity_id: int, user_id: int) -> str | None:
        if repository.table is not SERIES_OVERLAY:
            return None
        overlay = repository.get(entity_id, user_id)
        assert overlay is not None
        if overlay.tag_is_manual:
            logger.debug("Keeping manual tag %r for series %d", overlay.completion_tag, entity_id)
            return overlay.completion_tag

        series = self._conn.execute("SELECT * FROM series WHERE id = ?", (entity_id,)).fetchone()
        counters = [
            ProgressCounter(overlay.progress.get(column, 0), series[total])
            for column, total in _SERIES_TOTALS.items()
        ]
        read, total = self._ownership.volume_read_counts(entity_id, user_id)
        counters.append(ProgressCounter(read, total))

        tag = derive_completion_tag(counters)
        if tag != overlay.completion_tag:
            repository.update(entity_id, user_id, {"completion_tag": tag})
        return tag

    def set_manual_tag(self, entity_id: int, user: UserContext, tag: str) -> OperationResult:
        """Pin a series tag (``abandoned`` or ``to-read``) until the override is cleared."""
        if tag not in MANUAL_TAGS:
            return OperationResult.fail(f"Manual tag must be one of: {', '.join(MANUAL_TAGS)}")
        resolved = self._resolve("series", entity_id, user)
        if isinstance(resolved, OperationResult):
            return resolved
        repository, user_id = resolved
        with transaction(self._conn):
            repository.ensure(entity_id, user_id)
            repository.update(entity_id, user_id, {"completion_tag": tag, "tag_is_manual": True})
        return OperationResult.ok(tag)

    def clear_manual_tag(self, entity_id: int, user: UserContext) -> OperationResult:
        """Drop the override and re-derive the tag from progress."""
        resolved = self._resolve("series", entity_id, user)
        if isinstance(resolved, OperationResult):
            return resolved
        repository, user_id = resolved
        with transaction(self._conn):
            repository.ensure(entity_id, user_id)
            repository.update(entity_id, user_id, {"tag_is_manual": False})
            tag = self._refresh_tag(repository, entity_id, user_id)
        return OperationResult.ok(tag)

    def mark_volume_read(
        self,
        volume_id: int,
        user: UserContext,
        *,
        read: bool = True,
        read_on: str | None = None,
    ) -> OperationResult:
        """Mark (or unmark) a series volume as read and refresh the series tag."""
        if volume_id is None:
            raise ValueError("volume_id is required")
        volume = self._conn.execute(
            "SELECT series_id FROM series_volumes WHERE id = ?", (volume_id,)
        ).fetchone()
        if volume is None:
            return OperationResult.fail(f"Volume with id {volume_id} not found")
        resolved = self._resolve("series", volume["series_id"], user)
        if isinstance(resolved, OperationResult):
            return resolved
        repository, user_id = resolved
        with transaction(self._conn):
            repository.ensure(volume["series_id"], user_id)
            if read:
                self._ownership.mark_volume_read(volume_id, user_id, read_on)
            else:
                self._ownership.unmark_volume_read(volume_id, user_id)
            tag = self._refresh_tag(repository, volume["series_id"], user_id)
        return OperationResult.ok(tag)
