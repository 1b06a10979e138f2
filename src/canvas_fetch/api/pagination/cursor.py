"""Pagination cursor state machine.

A listing starts with one known page and an unknown page count. As
responses arrive the cursor moves through:

    UNKNOWN -> ESTIMATED -> KNOWN

The estimate only ever grows. It is lowered only by an authoritative
signal: a numeric ``last`` link, or a full page without a ``next`` link.
A ``next`` link carrying a bookmark token switches the cursor to
BOOKMARK mode for good; bookmark pages are fetched one at a time because
each cursor is only discoverable from the previous page.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from canvas_fetch.logging import get_logger

from .links import (
    SINGLE_PAGE_TOKEN,
    is_numeric_page,
    page_number,
    page_token,
    parse_link_header,
)

logger = get_logger(__name__)


class PaginationMode(StrEnum):
    """How further pages are addressed."""

    NUMERIC = "numeric"
    BOOKMARK = "bookmark"


class PageCountState(StrEnum):
    """Confidence in ``PaginationCursor.total_pages``."""

    UNKNOWN = "unknown"
    ESTIMATED = "estimated"
    KNOWN = "known"


@dataclass
class PaginationCursor:
    """Pagination state of one listing.

    ``scheduled_through`` is the highest page number already handed out
    for fetching; page 1 is always fetched first, outside the cursor.
    """

    mode: PaginationMode = PaginationMode.NUMERIC
    total_pages: int = 1
    state: PageCountState = PageCountState.UNKNOWN
    next_url: str | None = None
    scheduled_through: int = 1
    speculative_step: int = 10

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------
    @property
    def last_page_known(self) -> bool:
        """Whether total_pages is authoritative."""
        return self.state is PageCountState.KNOWN

    @property
    def is_bookmark(self) -> bool:
        """Whether the listing is cursor-paginated."""
        return self.mode is PaginationMode.BOOKMARK

    @property
    def is_single_page(self) -> bool:
        """Whether the listing is known to consist of page 1 only."""
        return (
            self.mode is PaginationMode.NUMERIC
            and self.last_page_known
            and self.total_pages <= 1
        )

    @property
    def has_more(self) -> bool:
        """Whether there are pages left to hand out."""
        if self.is_bookmark:
            return self.next_url is not None
        return self.scheduled_through < self.total_pages

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------
    def fix_last(self, total_pages: int) -> None:
        """Record the authoritative last page."""
        self.total_pages = max(1, total_pages)
        self.state = PageCountState.KNOWN
        logger.debug("Last page known: {}", self.total_pages)

    def estimate(self, total_pages: int) -> None:
        """Raise the speculative estimate to at least ``total_pages``."""
        if self.last_page_known:
            return
        self.total_pages = max(self.total_pages, total_pages)
        self.state = PageCountState.ESTIMATED

    def grow(self, step: int | None = None) -> None:
        """Speculatively extend the estimate."""
        if self.last_page_known:
            return
        self.total_pages += step or self.speculative_step
        self.state = PageCountState.ESTIMATED
        logger.debug("Speculating {} pages", self.total_pages)

    def enter_bookmark_mode(self, next_url: str) -> None:
        """Switch to sequential cursor pagination, permanently."""
        if not self.is_bookmark:
            logger.debug("Switching to bookmark pagination at {}", next_url)
        self.mode = PaginationMode.BOOKMARK
        self.next_url = next_url

    # -------------------------------------------------------------------------
    # Observations
    # -------------------------------------------------------------------------
    def observe_first_page(self, link_header: str | None) -> None:
        """Derive the initial pagination state from page 1's Link header."""
        links = parse_link_header(link_header)

        last_url = links.get("last")
        if last_url:
            token = page_token(last_url)
            if is_numeric_page(token):
                self.fix_last(int(token))  # type: ignore[arg-type]
                return
            if token == SINGLE_PAGE_TOKEN:
                # Cursor listing whose last page is its first page
                self.fix_last(1)
                return

        next_url = links.get("next")
        if not next_url:
            self.fix_last(1)
            return

        token = page_token(next_url)
        if is_numeric_page(token):
            # Start low and ramp up: next page plus one
            self.estimate(int(token) + 1)  # type: ignore[arg-type]
        else:
            self.enter_bookmark_mode(next_url)

    def observe_page(
        self,
        page: int,
        link_header: str | None,
        item_count: int,
        per_page: int,
    ) -> None:
        """Refine the page count from a later numeric page.

        Only full pages carry evidence that more pages may exist.
        """
        if self.last_page_known or self.is_bookmark or item_count < per_page:
            return

        links = parse_link_header(link_header)

        last_page = page_number(links.get("last"))
        if last_page is not None:
            self.fix_last(last_page)
            return

        next_url = links.get("next")
        if not next_url or item_count == 0:
            self.fix_last(page)
            return

        next_page = page_number(next_url)
        if next_page is None:
            self.enter_bookmark_mode(next_url)
            return

        # A full page pointing at or past the frontier extends it
        if next_page >= self.total_pages:
            self.grow()

    def observe_bookmark_page(self, link_header: str | None) -> None:
        """Advance to the cursor of the following page (None ends the listing)."""
        self.next_url = parse_link_header(link_header).get("next")

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------
    def take_pages(self, limit: int | None = None) -> list[int]:
        """Hand out the next numeric pages to fetch.

        Args:
            limit: Maximum pages to hand out (None = up to total_pages)
        """
        if self.is_bookmark:
            return []
        end = self.total_pages
        if limit is not None:
            end = min(end, self.scheduled_through + limit)
        pages = list(range(self.scheduled_through + 1, end + 1))
        self.scheduled_through = max(self.scheduled_through, end)
        return pages

    def take_bookmark(self) -> str | None:
        """Hand out the pending cursor URL, if any."""
        url, self.next_url = self.next_url, None
        return url
