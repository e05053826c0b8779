"""
Query Normalizer

Turns raw user input into a canonical query plus a script-normalized
variant. Catalog records may be written in traditional or simplified
characters; only the curated terms below are converted, full script
conversion is not attempted.
"""

from typing import NamedTuple

from library_api.exceptions import InvalidQuery
from library_api.schemas.search import SearchQuery

# Traditional -> simplified, high-frequency subject vocabulary
SCRIPT_VARIANTS: dict[str, str] = {
    "小說": "小说",
    "兒童": "儿童",
    "數學": "数学",
    "歷史": "历史",
    "編程": "编程",
    "電腦": "电脑",
    "語言": "语言",
}


class NormalizedQuery(NamedTuple):
    canonical: str
    variant: str


def to_simplified(text: str) -> str:
    """Apply the curated substitutions; text without known terms is returned as-is."""
    for traditional, simplified in SCRIPT_VARIANTS.items():
        if traditional in text:
            text = text.replace(traditional, simplified)
    return text


def normalize(raw: str | None) -> NormalizedQuery:
    """
    Normalize a raw query.

    Raises:
        InvalidQuery: if the query is missing or blank
    """
    canonical = (raw or "").strip()
    if not canonical:
        raise InvalidQuery("Search query must not be empty")
    return NormalizedQuery(canonical=canonical, variant=to_simplified(canonical))


def clamp_page(page: int | None) -> int:
    if page is None or page < 1:
        return 1
    return page


def clamp_page_size(page_size: int | None, max_page_size: int, default: int = 20) -> int:
    if page_size is None:
        page_size = default
    return max(1, min(page_size, max_page_size))


def _blank_to_none(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def build_search_query(
    raw: str | None,
    page: int | None = None,
    page_size: int | None = None,
    language: str | None = None,
    subject: str | None = None,
    max_page_size: int = 50,
    default_page_size: int = 20,
) -> SearchQuery:
    """Normalize and clamp caller input into a SearchQuery."""
    normalized = normalize(raw)
    return SearchQuery(
        canonical=normalized.canonical,
        variant=normalized.variant,
        page=clamp_page(page),
        page_size=clamp_page_size(page_size, max_page_size, default_page_size),
        language=_blank_to_none(language),
        subject=_blank_to_none(subject),
    )
