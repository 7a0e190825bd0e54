# ABOUTME: Keyword-table classifiers deciding which search domain a book-like record belongs to.
# ABOUTME: Best-effort text matching (BD, comic, book type); misclassifies edge cases by nature.

import re
from dataclasses import dataclass

from mediatheque.metadata.types import CanonicalMediaRecord


@dataclass(frozen=True)
class KeywordRules:
    """Data-driven inclusion rules, checked in order.

    known_series matches the title, publishers the publisher, keywords and
    categories the combined text. excludes only applies once nothing above
    has matched.
    """

    known_series: tuple[str, ...] = ()
    publishers: tuple[str, ...] = ()
    keywords: tuple[str, ...] = ()
    categories: tuple[str, ...] = ()
    excludes: tuple[str, ...] = ()


@dataclass(frozen=True)
class _Text:
    title: str
    publisher: str
    categories: str
    combined: str


def _text_of(record: CanonicalMediaRecord) -> _Text:
    title = (record.title or "").lower()
    description = (record.synopsis or "").lower()
    categories = " ".join(record.categories).lower()
    publisher = (record.publisher or "").lower()
    return _Text(
        title=title,
        publisher=publisher,
        categories=categories,
        combined=f"{title} {description} {categories} {publisher}",
    )


def _matches(rules: KeywordRules, text: _Text) -> bool | None:
    """True on a positive rule, False on an exclusion, None when undecided."""
    if any(series in text.title for series in rules.known_series):
        return True
    if text.publisher and any(name in text.publisher for name in rules.publishers):
        return True
    if any(keyword in text.combined for keyword in rules.keywords):
        return True
    if any(category in text.categories for category in rules.categories):
        return True
    if any(keyword in text.combined for keyword in rules.excludes):
        return False
    return None


BD_RULES = KeywordRules(
    known_series=(
        "tintin", "asterix", "lucky luke", "gaston", "spirou", "schtroumpf",
        "blake et mortimer", "alix", "thorgal", "lanfeust", "donjon",
        "blueberry", "corto maltese", "valérian", "persepolis", "maus",
        "watchmen", "sandman", "batman", "superman", "spider-man",
        "x-men", "avengers", "one piece", "naruto", "dragon ball",
    ),
    publishers=(
        "casterman", "dargaud", "dupuis", "glénat", "delcourt", "soleil",
        "bamboo", "vents d'ouest", "humanoïdes associés", "futuropolis",
    ),
    keywords=(
        "bande dessinée", "bandes dessinées", "bd", "comic", "graphic novel", "manga",
        "album", "album illustré", "comics", "bande dessinée jeunesse",
    ),
    excludes=(
        "roman historique", "nouvelle littéraire", "poésie", "théâtre classique",
        "essai philosophique", "biographie complète", "autobiographie littéraire",
    ),
)

COMIC_RULES = KeywordRules(
    known_series=(
        "superman", "batman", "spider-man", "spiderman", "x-men", "xmen", "avengers",
        "iron man", "hulk", "thor", "captain america", "wolverine", "deadpool",
        "green lantern", "flash", "wonder woman", "aquaman", "justice league",
        "watchmen", "sandman", "the walking dead", "saga", "y: the last man",
        "fables", "preacher", "hellboy", "sin city", "300", "v for vendetta",
        "daredevil", "punisher", "ghost rider", "doctor strange", "black panther",
        "guardians of the galaxy", "fantastic four", "x-force", "x-factor",
    ),
    publishers=(
        "marvel", "dc comics", "dc", "image comics", "image", "dark horse",
        "vertigo", "idw", "boom", "dynamite", "valiant", "archie comics",
    ),
    keywords=(
        "comic book", "comicbook", "graphic novel", "superhero", "super hero",
        "super-villain", "supervillain", "cape", "powers", "mutant", "mutants",
    ),
    categories=(
        "comics", "comic", "graphic novels", "superhero", "super hero",
        "comics & graphic novels", "sequential art",
    ),
)

# Short titles numbered like a volume are usually albums.
_BD_SHORT_TITLE_LIMIT = 50
_VOLUME_TITLE_RE = re.compile(r"^(tome|vol\.?|n°|numéro)\s*\d+", re.IGNORECASE)


def is_bd(record: CanonicalMediaRecord) -> bool:
    """Whether a record looks like a franco-belgian BD album."""
    text = _text_of(record)
    decided = _matches(BD_RULES, text)
    if decided is not None:
        return decided
    return len(text.title) < _BD_SHORT_TITLE_LIMIT and (
        "album" in text.categories or bool(_VOLUME_TITLE_RE.match(text.title))
    )


def is_comic(record: CanonicalMediaRecord) -> bool:
    """Whether a record looks like an American-style comic."""
    return bool(_matches(COMIC_RULES, _text_of(record)))


def is_french(record: CanonicalMediaRecord) -> bool:
    language = (record.language or "").lower()
    return language.startswith("fr")


# Ordered: the first matching keyword decides the type.
BOOK_TYPE_RULES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("manga", ("manga", "manhwa", "manhua", "webtoon")),
    ("bd", ("bande dessinée", "bandes dessinées", "bd")),
    ("comic", ("comics", "comic", "graphic novel")),
    ("essay", ("essai", "essay", "philosophy", "philosophie", "political science", "social science")),
    ("biography", ("biography", "biographie", "autobiography", "mémoires", "memoir")),
    ("poetry", ("poetry", "poésie")),
    ("theatre", ("drama", "théâtre", "theatre", "theater")),
    ("youth", ("juvenile", "jeunesse", "young adult", "children")),
)
DEFAULT_BOOK_TYPE = "novel"


def book_type_for(categories: list[str]) -> str:
    """Map a record's categories onto the local book type (``novel`` by default)."""
    words = [category.lower() for category in categories]
    for book_type, keywords in BOOK_TYPE_RULES:
        for keyword in keywords:
            if any(re.search(rf"\b{re.escape(keyword)}\b", word) for word in words):
                return book_type
    return DEFAULT_BOOK_TYPE
