# ABOUTME: Per-source mapping of raw catalog items into CanonicalMediaRecord.
# ABOUTME: Pure functions; per-record failures are logged and skipped by normalize_items().

import logging
import re
from collections.abc import Callable, Iterable
from typing import Any

from mediatheque.metadata.types import CanonicalMediaRecord, RawItem, SourceName

logger = logging.getLogger(__name__)

_GOOGLE_BOOKS_HOST = "https://books.google.com"
_OL_BASE = "https://openlibrary.org"
_OL_COVERS = "https://covers.openlibrary.org/b"
_BNF_CATALOGUE = "https://catalogue.bnf.fr"
_ARK_PREFIX = "ark:/12148/"
TMDB_IMAGE_BASE = "https://image.tmdb.org/t/p/original"

_YEAR_ONLY_RE = re.compile(r"^\d{4}$")
_ANY_YEAR_RE = re.compile(r"\d{4}")
_ZOOM_RE = re.compile(r"zoom=\d+")
_HTML_TAG_RE = re.compile(r"<[^>]+>")

_BNF_ARK_RE = re.compile(r"ark:/12148/cb(\d+)")
_BNF_FRBNF_RE = re.compile(r"FRBNF(\d+)")
_ISBN_PREFIXED_RE = re.compile(r"ISBN\s*([0-9X-]+)", re.IGNORECASE)
_ISBN_BARE_RE = re.compile(r"^([0-9X-]{10,17})$")

# Subject lists from BnF and Open Library are long and noisy.
_MAX_SUBJECTS = 5


# --- shared field rules -----------------------------------------------------


def normalize_release_date(value: str | None) -> str | None:
    """Anchor a bare year to January 1st; pass any other non-empty value through."""
    if not value:
        return None
    value = str(value).strip()
    if not value:
        return None
    if _YEAR_ONLY_RE.match(value):
        return f"{value}-01-01"
    return value


def year_to_date(value: str | None) -> str | None:
    """Find the first 4-digit year anywhere in free text and anchor it to January 1st."""
    if not value:
        return None
    match = _ANY_YEAR_RE.search(str(value))
    return f"{match.group(0)}-01-01" if match else None


def unique(values: Iterable[str | None]) -> list[str]:
    """Trimmed, non-empty values with duplicates removed, first occurrence kept."""
    seen: set[str] = set()
    result: list[str] = []
    for value in values:
        if value is None:
            continue
        value = str(value).strip()
        if value and value not in seen:
            seen.add(value)
            result.append(value)
    return result


def strip_html(text: str | None) -> str | None:
    if not text:
        return None
    cleaned = _HTML_TAG_RE.sub("", text).strip()
    return cleaned or None


def tmdb_image_url(path: str | None) -> str | None:
    """Absolute original-size image URL for a TMDb file path."""
    if not path:
        return None
    if path.startswith("http"):
        return path
    return f"{TMDB_IMAGE_BASE}{path}"


def _to_float(value: Any) -> float | None:
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _to_int(value: Any) -> int | None:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


# --- Google Books -----------------------------------------------------------


def normalize_cover_url(url: str | None) -> str | None:
    """Upgrade a Google Books image link to an absolute, https, max-zoom URL.

    Already-normalized URLs come back unchanged.
    """
    if not url:
        return None
    if url.startswith("//"):
        url = "https:" + url
    elif url.startswith("/"):
        url = _GOOGLE_BOOKS_HOST + url
    if url.startswith("http://"):
        url = "https://" + url[len("http://"):]
    url = url.replace("&edge=curl", "")
    return _ZOOM_RE.sub("zoom=0", url, count=1)


def google_cover_url(image_links: dict[str, Any] | None, volume_id: str | None) -> str | None:
    """Pick the best image variant, or synthesize a content URL from the volume id."""
    links = image_links or {}
    for variant in ("large", "medium", "thumbnail", "smallThumbnail"):
        if links.get(variant):
            return normalize_cover_url(links[variant])
    if volume_id:
        return (
            f"{_GOOGLE_BOOKS_HOST}/books/content?id={volume_id}"
            "&printsec=frontcover&img=1&zoom=0&source=gbs_api"
        )
    return None


def flatten_categories(categories: Iterable[str | None] | None) -> list[str]:
    """Split ``/``-delimited category paths into a deduplicated genre list.

    The literal segment "fiction" is dropped when the path it came from has
    more specific segments alongside it.
    """
    genres: list[str] = []
    for category in categories or []:
        if not category:
            continue
        parts = [part.strip() for part in category.split("/") if part.strip()]
        for part in parts:
            if len(parts) > 1 and part.lower() == "fiction":
                continue
            genres.append(part)
    return unique(genres)


def extract_price(sale_info: dict[str, Any] | None) -> tuple[float | None, str | None]:
    """List price first, retail price second; (None, None) when neither is present."""
    info = sale_info or {}
    price_info = info.get("listPrice") or info.get("retailPrice")
    if not price_info:
        return None, None
    return _to_float(price_info.get("amount")), price_info.get("currencyCode")


def normalize_google_books(item: RawItem) -> CanonicalMediaRecord:
    volume = item.get("volumeInfo") or {}
    sale = item.get("saleInfo") or {}
    volume_id = item.get("id")

    identifiers = {
        entry.get("type"): entry.get("identifier")
        for entry in volume.get("industryIdentifiers") or []
        if isinstance(entry, dict)
    }
    price, currency = extract_price(sale)

    return CanonicalMediaRecord(
        external_id=volume_id,
        source_name=SourceName.GOOGLE_BOOKS,
        title=volume.get("title"),
        original_title=volume.get("title"),
        subtitle=volume.get("subtitle"),
        authors=unique(volume.get("authors") or []),
        publisher=volume.get("publisher"),
        release_date=normalize_release_date(volume.get("publishedDate")),
        language=volume.get("language"),
        synopsis=volume.get("description"),
        categories=flatten_categories(volume.get("categories")),
        isbn10=identifiers.get("ISBN_10"),
        isbn13=identifiers.get("ISBN_13"),
        cover_url=google_cover_url(volume.get("imageLinks"), volume_id),
        detail_url=volume.get("infoLink"),
        community_score=_to_float(volume.get("averageRating")),
        community_votes=_to_int(volume.get("ratingsCount")),
        page_count=_to_int(volume.get("pageCount")),
        price=price,
        currency=currency,
        preview_url=volume.get("previewLink"),
        buy_url=sale.get("buyLink"),
        maturity_rating=volume.get("maturityRating"),
    )


# --- Open Library -----------------------------------------------------------


def normalize_open_library(doc: RawItem) -> CanonicalMediaRecord:
    key = doc.get("key") or ""
    isbns = [str(value) for value in doc.get("isbn") or []]
    isbn10 = next((value for value in isbns if len(value) == 10), None)
    isbn13 = next((value for value in isbns if len(value) == 13), None)

    cover_url = None
    if doc.get("cover_i"):
        cover_url = f"{_OL_COVERS}/id/{doc['cover_i']}-L.jpg"
    elif isbns:
        cover_url = f"{_OL_COVERS}/isbn/{isbns[0]}-L.jpg"

    first_sentence = doc.get("first_sentence")
    if isinstance(first_sentence, list):
        first_sentence = " ".join(str(part) for part in first_sentence)

    publish_dates = doc.get("publish_date") or []
    release_date = year_to_date(publish_dates[0]) if publish_dates else None
    if release_date is None and doc.get("first_publish_year"):
        release_date = normalize_release_date(str(doc["first_publish_year"]))
    archive_ids = doc.get("ia") or []

    return CanonicalMediaRecord(
        external_id=key.replace("/works/", "") or None,
        source_name=SourceName.OPEN_LIBRARY,
        title=doc.get("title"),
        original_title=doc.get("title"),
        subtitle=doc.get("subtitle"),
        authors=unique(doc.get("author_name") or []),
        publisher=(doc.get("publisher") or [None])[0],
        release_date=release_date,
        language=(doc.get("language") or [None])[0],
        synopsis=first_sentence or None,
        categories=unique((doc.get("subject") or [])[:_MAX_SUBJECTS]),
        isbn10=isbn10,
        isbn13=isbn13,
        cover_url=cover_url,
        detail_url=f"{_OL_BASE}{key}" if key else None,
        community_score=_to_float(doc.get("ratings_average")),
        community_votes=_to_int(doc.get("ratings_count")),
        page_count=_to_int(doc.get("number_of_pages_median") or doc.get("number_of_pages")),
        preview_url=f"https://archive.org/details/{archive_ids[0]}" if archive_ids else None,
    )


# --- BnF --------------------------------------------------------------------


def resolve_bnf_id(identifiers: Iterable[str]) -> str | None:
    """Pick the record id: an ARK ``cb`` path, else FRBNF, else any raw ARK value."""
    identifiers = list(identifiers)
    for value in identifiers:
        match = _BNF_ARK_RE.search(value)
        if match:
            return f"{_ARK_PREFIX}cb{match.group(1)}"
    for value in identifiers:
        match = _BNF_FRBNF_RE.search(value)
        if match:
            return f"FRBNF{match.group(1)}"
    for value in identifiers:
        if _ARK_PREFIX in value:
            return value
    return None


def extract_isbns(identifiers: Iterable[str]) -> tuple[str | None, str | None]:
    """Return (isbn10, isbn13) from ``ISBN ...`` prefixed or bare identifier values."""
    isbn10 = isbn13 = None
    for value in identifiers:
        match = _ISBN_PREFIXED_RE.search(value) or _ISBN_BARE_RE.match(value.strip())
        if not match:
            continue
        digits = match.group(1).replace("-", "")
        if len(digits) == 10:
            isbn10 = digits
        elif len(digits) == 13:
            isbn13 = digits
    return isbn10, isbn13


def bnf_detail_url(bnf_id: str | None) -> str | None:
    if not bnf_id:
        return None
    if bnf_id.startswith(_ARK_PREFIX):
        return f"{_BNF_CATALOGUE}/{bnf_id}"
    if bnf_id.startswith("FRBNF"):
        return f"{_BNF_CATALOGUE}/{_ARK_PREFIX}cb{bnf_id[len('FRBNF'):]}"
    return None


def normalize_bnf(record: RawItem) -> CanonicalMediaRecord:
    def values(field: str) -> list[str]:
        return list(record.get(field) or [])

    identifiers = values("identifier")
    titles = values("title")
    bnf_id = resolve_bnf_id(identifiers)
    isbn10, isbn13 = extract_isbns(identifiers)
    dates = values("date")

    return CanonicalMediaRecord(
        external_id=bnf_id,
        source_name=SourceName.BNF,
        title=titles[0] if titles else None,
        original_title=titles[0] if titles else None,
        subtitle=titles[1] if len(titles) > 1 else None,
        authors=unique(values("creator")),
        publisher=(values("publisher") or [None])[0],
        release_date=year_to_date(dates[0]) if dates else None,
        language=(values("language") or [None])[0],
        synopsis=(values("description") or [None])[0],
        categories=unique(values("subject")[:_MAX_SUBJECTS]),
        isbn10=isbn10,
        isbn13=isbn13,
        detail_url=bnf_detail_url(bnf_id),
    )


# --- TMDb -------------------------------------------------------------------

_TMDB_MOVIE_EXTRAS = (
    "imdb_id",
    "tagline",
    "status",
    "runtime",
    "budget",
    "revenue",
    "popularity",
    "adult",
    "homepage",
    "poster_path",
    "backdrop_path",
    "spoken_languages",
    "production_companies",
    "production_countries",
    "credits",
    "videos",
    "images",
    "keywords",
    "watch/providers",
    "external_ids",
    "translations",
)

_TMDB_TV_EXTRAS = _TMDB_MOVIE_EXTRAS + (
    "type",
    "number_of_seasons",
    "number_of_episodes",
    "episode_run_time",
    "last_air_date",
    "next_episode_to_air",
    "last_episode_to_air",
    "networks",
    "created_by",
    "seasons",
)


def _tmdb_extras(item: RawItem, keys: tuple[str, ...]) -> dict[str, Any]:
    extras = {key: item[key] for key in keys if key in item}
    extras["raw"] = item
    return extras


def normalize_tmdb(item: RawItem) -> CanonicalMediaRecord:
    """Map a TMDb search result or details payload (movie or tv)."""
    is_tv = item.get("media_type") == "tv" or ("name" in item and "title" not in item)
    tmdb_id = item.get("id")

    if is_tv:
        creators = [person.get("name") for person in item.get("created_by") or []]
        companies = item.get("networks") or item.get("production_companies") or []
        release = item.get("first_air_date")
        detail_url = f"https://www.themoviedb.org/tv/{tmdb_id}" if tmdb_id else None
    else:
        crew = (item.get("credits") or {}).get("crew") or []
        creators = [person.get("name") for person in crew if person.get("job") == "Director"]
        companies = item.get("production_companies") or []
        release = item.get("release_date")
        detail_url = f"https://www.themoviedb.org/movie/{tmdb_id}" if tmdb_id else None

    return CanonicalMediaRecord(
        external_id=str(tmdb_id) if tmdb_id is not None else None,
        source_name=SourceName.TMDB,
        title=item.get("title") or item.get("name"),
        original_title=item.get("original_title") or item.get("original_name"),
        subtitle=item.get("tagline") or None,
        authors=unique(creators),
        publisher=companies[0].get("name") if companies else None,
        release_date=normalize_release_date(release),
        language=item.get("original_language"),
        synopsis=item.get("overview") or None,
        categories=unique(genre.get("name") for genre in item.get("genres") or []),
        cover_url=tmdb_image_url(item.get("poster_path")),
        detail_url=detail_url,
        community_score=_to_float(item.get("vote_average")),
        community_votes=_to_int(item.get("vote_count")),
        extras=_tmdb_extras(item, _TMDB_TV_EXTRAS if is_tv else _TMDB_MOVIE_EXTRAS),
    )


# --- TV Maze ----------------------------------------------------------------


def normalize_tvmaze(show: RawItem) -> CanonicalMediaRecord:
    network = show.get("network") or show.get("webChannel") or {}
    image = show.get("image") or {}
    cover = image.get("original") or image.get("medium")
    if cover and cover.startswith("http://"):
        cover = "https://" + cover[len("http://"):]
    show_id = show.get("id")

    return CanonicalMediaRecord(
        external_id=str(show_id) if show_id is not None else None,
        source_name=SourceName.TVMAZE,
        title=show.get("name"),
        original_title=show.get("name"),
        publisher=network.get("name"),
        release_date=normalize_release_date(show.get("premiered")),
        language=show.get("language"),
        synopsis=strip_html(show.get("summary")),
        categories=unique(show.get("genres") or []),
        cover_url=cover,
        detail_url=show.get("officialSite") or show.get("url"),
        community_score=_to_float((show.get("rating") or {}).get("average")),
        extras={
            "externals": show.get("externals") or {},
            "network": network,
            "status": show.get("status"),
            "runtime": show.get("runtime") or show.get("averageRuntime"),
            "embedded": show.get("_embedded") or {},
        },
    )


NORMALIZERS: dict[SourceName, Callable[[RawItem], CanonicalMediaRecord]] = {
    SourceName.GOOGLE_BOOKS: normalize_google_books,
    SourceName.OPEN_LIBRARY: normalize_open_library,
    SourceName.BNF: normalize_bnf,
    SourceName.TMDB: normalize_tmdb,
    SourceName.TVMAZE: normalize_tvmaze,
}


def normalize(item: RawItem, source: SourceName) -> CanonicalMediaRecord:
    """Map one raw item from ``source`` into a canonical record."""
    return NORMALIZERS[SourceName(source)](item)


def normalize_items(items: Iterable[RawItem], source: SourceName) -> list[CanonicalMediaRecord]:
    """Normalize a response, skipping (and logging) any record that fails to map."""
    records: list[CanonicalMediaRecord] = []
    for item in items:
        try:
            records.append(normalize(item, source))
        except (KeyError, TypeError, ValueError, AttributeError, IndexError) as exc:
            logger.warning("Skipping malformed %s record: %s", SourceName(source).value, exc)
    return records
