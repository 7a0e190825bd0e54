# ABOUTME: BnF catalogue client over the SRU protocol with Dublin Core records.
# ABOUTME: Extracts dc:* fields by field-scoped pattern matching into flat dicts of value lists.

import html
import logging
import re

from mediatheque.metadata.types import RawItem, SourceName
from mediatheque.sources.http import HttpClient, ItemNotFoundError, SourceParseError
from mediatheque.sources.provider import (
    DEFAULT_MAX_RESULTS,
    SearchOptions,
    SearchPage,
    is_blank,
)

logger = logging.getLogger(__name__)

_SRU_URL = "https://catalogue.bnf.fr/api/SRU"
_ARK_PREFIX = "ark:/12148/"

# Records without a usable title are common, so searches ask for twice the cap.
_SEARCH_OVERFETCH = 2

DC_FIELDS = (
    "title",
    "creator",
    "subject",
    "date",
    "publisher",
    "language",
    "description",
    "identifier",
    "type",
    "format",
)

_RECORD_RE = re.compile(r"<srw:record(?:\s[^>]*)?>([\s\S]*?)</srw:record>")
_TOTAL_RE = re.compile(r"<srw:numberOfRecords>\s*(\d+)\s*</srw:numberOfRecords>")
_FIELD_RES = {
    name: re.compile(rf"<dc:{name}[^>]*>([^<]+)</dc:{name}>") for name in DC_FIELDS
}


def extract_record(record_xml: str) -> RawItem:
    """Pull every Dublin Core field of one SRU record into ``{field: [values]}``."""
    return {
        name: [html.unescape(value.strip()) for value in pattern.findall(record_xml)]
        for name, pattern in _FIELD_RES.items()
    }


def parse_sru_response(xml_text: str) -> SearchPage:
    """Split an SRU searchRetrieve response into raw records.

    A record that fails extraction is logged and skipped. A body that is not
    an SRU response at all raises SourceParseError.
    """
    if not isinstance(xml_text, str) or "searchRetrieveResponse" not in xml_text:
        raise SourceParseError(SourceName.BNF.value, "not an SRU searchRetrieve response")

    items: list[RawItem] = []
    for record_xml in _RECORD_RE.findall(xml_text):
        try:
            items.append(extract_record(record_xml))
        except (re.error, TypeError, ValueError) as exc:
            logger.warning("Skipping unreadable BnF record: %s", exc)

    total_match = _TOTAL_RE.search(xml_text)
    total = int(total_match.group(1)) if total_match else len(items)
    return SearchPage(items=items, total_results=total)


def ark_lookup_id(bnf_id: str) -> str:
    """Reduce an ARK or FRBNF identifier to the ``cb...`` form used by bib.arkId."""
    if bnf_id.startswith(_ARK_PREFIX):
        return bnf_id[len(_ARK_PREFIX):]
    if bnf_id.startswith("FRBNF"):
        return "cb" + bnf_id[len("FRBNF"):]
    return bnf_id


class BnfClient:
    """Source client for the Bibliothèque nationale de France general catalogue."""

    def __init__(self, http_client: HttpClient) -> None:
        self._http = http_client

    @property
    def name(self) -> SourceName:
        return SourceName.BNF

    def search(self, query: str, options: SearchOptions | None = None) -> list[RawItem]:
        return self.search_page(query, options).items

    def search_page(self, query: str, options: SearchOptions | None = None) -> SearchPage:
        if is_blank(query):
            return SearchPage.empty()
        options = options or SearchOptions()
        limit = (options.max_results or DEFAULT_MAX_RESULTS) * _SEARCH_OVERFETCH
        start = (max(options.page, 1) - 1) * limit + 1
        term = query.strip().replace('"', " ")
        xml_text = self._http.get_text(_SRU_URL, params=self._params(f'all "{term}"', limit, start))
        return parse_sru_response(xml_text)

    def get_by_id(self, item_id: str) -> RawItem:
        """Fetch one record by ARK (``ark:/12148/cb...``) or FRBNF identifier."""
        if not item_id:
            raise ValueError("BnF identifier is required")
        cql = f'bib.arkId="{ark_lookup_id(item_id)}"'
        page = parse_sru_response(self._http.get_text(_SRU_URL, params=self._params(cql, 1)))
        if not page.items:
            raise ItemNotFoundError(f"BnF record {item_id} not found")
        return page.items[0]

    @staticmethod
    def _params(cql: str, limit: int, start: int = 1) -> dict[str, object]:
        return {
            "version": "1.2",
            "operation": "searchRetrieve",
            "query": cql,
            "maximumRecords": limit,
            "startRecord": start if start > 1 else None,
            "recordSchema": "dc",
        }
