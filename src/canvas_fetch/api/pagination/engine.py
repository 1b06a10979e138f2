"""Pagination engine for single-endpoint listings.

Fetches page 1, derives the pagination scheme from its Link header, then:

- numeric pages are fetched in concurrent batches of up to ``max_batch``,
  speculating past the last confirmed page and growing the estimate as
  full pages keep arriving
- bookmark pages are fetched strictly one after another

An idle ``batch_delay_ms`` separates consecutive batches.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from canvas_fetch.config import PaginationConfig
from canvas_fetch.logging import get_logger

from ..exceptions import InitialPageError
from ..retry import RetryLedger
from .accumulator import ResultAccumulator
from .cursor import PaginationCursor
from .links import build_page_url

if TYPE_CHECKING:
    from ..retry import RetryController
    from ..schemas import RequestConfig

logger = get_logger(__name__)

RequestFactory = Callable[[str], "RequestConfig"]

ListResult = list[Any] | dict[Any, dict[str, Any]]


class PaginationEngine:
    """Fetches every page of a paginated listing.

    Usage:
        engine = PaginationEngine(controller, client.create_request_config)
        users = await engine.fetch_all("https://host/api/v1/courses/1/users")
        names = await engine.fetch_all(
            "https://host/api/v1/courses/1/users", extract_field="name"
        )
    """

    def __init__(
        self,
        retry_controller: RetryController,
        request_factory: RequestFactory,
        config: PaginationConfig | None = None,
    ) -> None:
        """Initialize the pagination engine.

        Args:
            retry_controller: Controller that performs and retries requests
            request_factory: Builds a GET RequestConfig for a URL
            config: Optional pagination defaults
        """
        self._retry = retry_controller
        self._request_factory = request_factory
        self._config = config or PaginationConfig()

    async def fetch_all(
        self,
        base_url: str,
        has_query: bool = False,
        *,
        per_page: int | None = None,
        max_batch: int | None = None,
        batch_delay_ms: int | None = None,
        extract_field: str | None = None,
    ) -> ListResult:
        """Fetch all pages of a listing.

        Args:
            base_url: Listing URL without paging parameters
            has_query: Whether base_url already carries a query string
            per_page: Page size (default from config)
            max_batch: Maximum concurrent page requests per batch
            batch_delay_ms: Idle milliseconds between batches
            extract_field: When set, return {id: {field: value}} instead
                           of full records

        Returns:
            Records in arrival order, or the id-keyed field mapping

        Raises:
            InitialPageError: If page 1 cannot be fetched
        """
        per_page = per_page or self._config.per_page
        max_batch = max_batch or self._config.max_batch
        if batch_delay_ms is None:
            batch_delay_ms = self._config.batch_delay_ms

        start_time = time.monotonic()
        ledger = RetryLedger()
        accumulator = ResultAccumulator(extract_field)
        cursor = PaginationCursor(speculative_step=self._config.speculative_step)

        first_url = build_page_url(base_url, has_query, 1, per_page)
        first = await self._retry.process(self._request_factory(first_url), ledger)
        if first is None or first.data is None:
            raise InitialPageError(first_url)

        accumulator.add(first.data)
        cursor.observe_first_page(first.link_header)

        if cursor.is_single_page:
            return accumulator.result

        while cursor.has_more:
            if cursor.is_bookmark:
                await self._fetch_bookmark_page(cursor, accumulator, ledger)
            else:
                pages = cursor.take_pages(max_batch)
                await self._fetch_numeric_batch(
                    base_url, has_query, per_page, pages, cursor, accumulator, ledger
                )

            if cursor.has_more:
                await asyncio.sleep(batch_delay_ms / 1000)

        if ledger.exhausted:
            logger.warning(
                "{} page(s) of {} abandoned after {} rate-limit retries",
                len(ledger.exhausted),
                base_url,
                self._retry.config.max_retries,
            )

        logger.debug(
            "Fetched {} pages from {} ({} mode, {:.1f}s)",
            accumulator.pages,
            base_url,
            cursor.mode.value,
            time.monotonic() - start_time,
        )
        return accumulator.result

    async def _fetch_numeric_batch(
        self,
        base_url: str,
        has_query: bool,
        per_page: int,
        pages: list[int],
        cursor: PaginationCursor,
        accumulator: ResultAccumulator,
        ledger: RetryLedger,
    ) -> None:
        """Fetch a batch of numbered pages concurrently and merge them in page order."""
        configs = [
            self._request_factory(build_page_url(base_url, has_query, page, per_page))
            for page in pages
        ]
        responses = await asyncio.gather(
            *(self._retry.process(config, ledger) for config in configs)
        )

        for page, response in zip(pages, responses, strict=True):
            if response is None or response.data is None:
                logger.warning("Skipping page {} of {}", page, base_url)
                continue
            count = accumulator.add(response.data)
            cursor.observe_page(page, response.link_header, count, per_page)

    async def _fetch_bookmark_page(
        self,
        cursor: PaginationCursor,
        accumulator: ResultAccumulator,
        ledger: RetryLedger,
    ) -> None:
        """Fetch the single pending bookmark page."""
        url = cursor.take_bookmark()
        if url is None:
            return

        response = await self._retry.process(self._request_factory(url), ledger)
        if response is None or response.data is None:
            # The following cursor lives in this response, so the listing ends here
            logger.warning("Bookmark page {} failed; remaining pages are unreachable", url)
            return

        accumulator.add(response.data)
        cursor.observe_bookmark_page(response.link_header)
