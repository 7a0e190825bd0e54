# ABOUTME: Environment-driven settings for mediatheque (database, user, API credentials, languages).
# ABOUTME: .env files are loaded with python-dotenv; real environment variables take precedence.

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from mediatheque.db.connection import DEFAULT_DB_PATH

USER_ENV_FILE = Path.home() / ".mediatheque" / ".env"

_TRUE_VALUES = ("1", "true", "yes", "on")


def _flag(value: str | None, default: bool) -> bool:
    if value is None or not value.strip():
        return default
    return value.strip().lower() in _TRUE_VALUES


def _optional(value: str | None) -> str | None:
    if value is None or not value.strip():
        return None
    return value.strip()


@dataclass(frozen=True)
class Settings:
    db_path: Path = DEFAULT_DB_PATH
    user: str | None = None
    tmdb_api_key: str | None = None
    tmdb_api_token: str | None = None
    tmdb_language: str = "fr-FR"
    tmdb_region: str = "FR"
    google_books_api_key: str | None = None
    groq_api_key: str | None = None
    groq_model: str | None = None
    translate_to: str = "fr"
    fallback_language: str = "en"
    auto_translate: bool = True

    @property
    def tmdb_configured(self) -> bool:
        return bool(self.tmdb_api_key or self.tmdb_api_token)

    @classmethod
    def from_env(cls, env: Mapping[str, str]) -> "Settings":
        """Build settings from a mapping of environment variables."""
        db = _optional(env.get("MEDIATHEQUE_DB"))
        return cls(
            db_path=Path(db).expanduser() if db else DEFAULT_DB_PATH,
            user=_optional(env.get("MEDIATHEQUE_USER")),
            tmdb_api_key=_optional(env.get("TMDB_API_KEY")),
            tmdb_api_token=_optional(env.get("TMDB_API_TOKEN")),
            tmdb_language=_optional(env.get("TMDB_LANGUAGE")) or "fr-FR",
            tmdb_region=_optional(env.get("TMDB_REGION")) or "FR",
            google_books_api_key=_optional(env.get("GOOGLE_BOOKS_API_KEY")),
            groq_api_key=_optional(env.get("GROQ_API_KEY")),
            groq_model=_optional(env.get("GROQ_MODEL")),
            translate_to=_optional(env.get("MEDIATHEQUE_TRANSLATE_TO")) or "fr",
            fallback_language=_optional(env.get("MEDIATHEQUE_FALLBACK_LANGUAGE")) or "en",
            auto_translate=_flag(env.get("MEDIATHEQUE_AUTO_TRANSLATE"), True),
        )


def load_settings(*, env_files: tuple[Path, ...] | None = None) -> Settings:
    """Load .env files (user-level, then the working directory) and read settings.

    Variables already present in the environment are never overridden.
    """
    files = env_files if env_files is not None else (USER_ENV_FILE, Path.cwd() / ".env")
    for env_file in files:
        if env_file.is_file():
            load_dotenv(dotenv_path=env_file, override=False)
    return Settings.from_env(os.environ)
