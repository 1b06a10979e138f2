"""Link header parsing.

Format: <https://host/api/v1/courses?page=2&per_page=100>; rel="next", <...>; rel="last"

The ``page`` query parameter is either a page number or an opaque
bookmark token (e.g. ``bookmark:WzEyM10``). The token ``first`` marks
the start of a cursor-paginated listing.
"""

from __future__ import annotations

import re
from urllib.parse import parse_qs, urlsplit

SINGLE_PAGE_TOKEN = "first"

_LINK_PATTERN = re.compile(r'<([^>]+)>\s*;\s*rel="([^"]+)"')


def parse_link_header(value: str | None) -> dict[str, str]:
    """Map each relation in a Link header to its URL.

    A relation listed more than once keeps its first URL.
    """
    links: dict[str, str] = {}
    if not value:
        return links
    for url, rels in _LINK_PATTERN.findall(value):
        for rel in rels.split():
            links.setdefault(rel, url)
    return links


def get_page_url(value: str | None, rel: str) -> str | None:
    """URL for one relation of a Link header, or None."""
    return parse_link_header(value).get(rel)


def page_token(url: str | None) -> str | None:
    """The ``page`` query parameter of a URL."""
    if not url:
        return None
    values = parse_qs(urlsplit(url).query).get("page")
    return values[0] if values else None


def is_numeric_page(token: str | None) -> bool:
    """Whether a page token is a plain page number."""
    return token is not None and token.isdigit()


def page_number(url: str | None) -> int | None:
    """Numeric page of a URL, or None for bookmarks and missing pages."""
    token = page_token(url)
    return int(token) if is_numeric_page(token) else None


def build_page_url(base_url: str, has_query: bool, page: int, per_page: int) -> str:
    """URL for a numbered page of a listing.

    Args:
        base_url: Listing URL without paging parameters
        has_query: Whether base_url already carries a query string
        page: Page number (1-based)
        per_page: Page size
    """
    separator = "&" if has_query else "?"
    return f"{base_url}{separator}page={page}&per_page={per_page}"
