"""Pagination for Canvas listings.

Components:
- PaginationEngine: Batched / sequential fetch of one listing
- PaginationCursor: Page count state machine (unknown -> estimated -> known)
- ResultAccumulator: Record and field merging
- Link header helpers
"""

from .accumulator import ResultAccumulator
from .cursor import PageCountState, PaginationCursor, PaginationMode
from .engine import ListResult, PaginationEngine
from .links import (
    SINGLE_PAGE_TOKEN,
    build_page_url,
    get_page_url,
    is_numeric_page,
    page_number,
    page_token,
    parse_link_header,
)

__all__ = [
    # Engine
    "ListResult",
    "PaginationEngine",
    # State
    "PageCountState",
    "PaginationCursor",
    "PaginationMode",
    "ResultAccumulator",
    # Links
    "SINGLE_PAGE_TOKEN",
    "build_page_url",
    "get_page_url",
    "is_numeric_page",
    "page_number",
    "page_token",
    "parse_link_header",
]
