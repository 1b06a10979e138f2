"""Multi-key batch aggregator.

Fetches the same listing for many keys (e.g. the enrollments of many
courses) through one shared work queue. Every key starts with a page-1
request; as responses arrive, pages discovered for a key are appended to
the tail of the queue instead of being awaited on their own, so keys
with many pages do not starve keys with few.

Failed requests are dropped with a warning. They never abort sibling keys
or pages already accumulated for the same key.
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from collections.abc import Hashable, Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from canvas_fetch.config import PaginationConfig
from canvas_fetch.logging import bind_key, get_logger

from .pagination.accumulator import ResultAccumulator
from .pagination.cursor import PaginationCursor
from .pagination.engine import ListResult, RequestFactory
from .pagination.links import build_page_url, get_page_url, page_number
from .retry import RetryLedger

if TYPE_CHECKING:
    from .retry import RetryController
    from .schemas import RequestConfig, ResponseEnvelope

logger = get_logger(__name__)

KEY_PLACEHOLDER = "<key>"


@dataclass
class KeyState:
    """Aggregation state of one key."""

    key: Hashable
    cursor: PaginationCursor
    accumulator: ResultAccumulator
    failed_urls: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class PageRequest:
    """A queued page request for one key.

    ``page`` is None for bookmark pages, which have no number.
    """

    key: Hashable
    page: int | None
    config: RequestConfig


@dataclass
class AggregationResult:
    """Result of a multi-key fetch."""

    results: dict[Hashable, ListResult] = field(default_factory=dict)
    """Accumulated records (or field mappings) per key, in input key order."""

    failed_urls: dict[Hashable, list[str]] = field(default_factory=dict)
    """URLs dropped after failing, per key (only keys with failures)."""

    total_requests: int = 0
    """Page requests dispatched, excluding retries."""

    batches: int = 0
    """Batches drained from the queue."""

    duration_seconds: float = 0.0
    """Total time taken."""

    @property
    def total_failed(self) -> int:
        """Number of dropped requests across all keys."""
        return sum(len(urls) for urls in self.failed_urls.values())

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "summary": {
                "total_keys": len(self.results),
                "total_requests": self.total_requests,
                "total_failed": self.total_failed,
                "batches": self.batches,
                "duration_seconds": round(self.duration_seconds, 2),
            },
            "results": {str(key): value for key, value in self.results.items()},
            "failed_urls": {str(key): urls for key, urls in self.failed_urls.items()},
        }


class MultiKeyAggregator:
    """Fetches one listing per key through a shared, batched queue.

    Usage:
        aggregator = MultiKeyAggregator(controller, client.create_request_config)
        enrollments = await aggregator.fetch_all_for_keys(
            "https://host/api/v1/courses/<key>/enrollments", [101, 102, 103]
        )
        for course_id, items in enrollments.items():
            print(course_id, len(items))
    """

    def __init__(
        self,
        retry_controller: RetryController,
        request_factory: RequestFactory,
        config: PaginationConfig | None = None,
    ) -> None:
        """Initialize the aggregator.

        Args:
            retry_controller: Controller that performs and retries requests
            request_factory: Builds a GET RequestConfig for a URL
            config: Optional pagination defaults
        """
        self._retry = retry_controller
        self._request_factory = request_factory
        self._config = config or PaginationConfig()

    async def fetch_all_for_keys(
        self,
        url_template: str,
        keys: Iterable[Hashable],
        has_query: bool = False,
        *,
        per_page: int | None = None,
        max_batch: int | None = None,
        batch_delay_ms: int | None = None,
        extract_field: str | None = None,
    ) -> dict[Hashable, ListResult]:
        """Fetch the listing for every key.

        Args:
            url_template: Listing URL containing the ``<key>`` placeholder
            keys: Keys substituted into the template (duplicates ignored)
            has_query: Whether the template already carries a query string
            per_page: Page size (default from config)
            max_batch: Maximum requests dispatched together
            batch_delay_ms: Idle milliseconds between batches
            extract_field: When set, accumulate {id: {field: value}}

        Returns:
            Mapping from key to its accumulated records
        """
        result = await self.aggregate(
            url_template,
            keys,
            has_query,
            per_page=per_page,
            max_batch=max_batch,
            batch_delay_ms=batch_delay_ms,
            extract_field=extract_field,
        )
        return result.results

    async def aggregate(
        self,
        url_template: str,
        keys: Iterable[Hashable],
        has_query: bool = False,
        *,
        per_page: int | None = None,
        max_batch: int | None = None,
        batch_delay_ms: int | None = None,
        extract_field: str | None = None,
    ) -> AggregationResult:
        """Same as fetch_all_for_keys(), returning failures and statistics too."""
        if KEY_PLACEHOLDER not in url_template:
            raise ValueError(f"URL template must contain {KEY_PLACEHOLDER}: {url_template}")

        per_page = per_page or self._config.per_page
        max_batch = max_batch or self._config.max_batch
        if batch_delay_ms is None:
            batch_delay_ms = self._config.multi_key_batch_delay_ms

        start_time = time.monotonic()
        result = AggregationResult()
        ledger = RetryLedger()
        states: dict[Hashable, KeyState] = {}
        queue: deque[PageRequest] = deque()

        def page_url(key: Hashable, page: int) -> str:
            base = url_template.replace(KEY_PLACEHOLDER, str(key))
            return build_page_url(base, has_query, page, per_page)

        for key in keys:
            if key in states:
                continue
            states[key] = KeyState(
                key=key,
                cursor=PaginationCursor(speculative_step=self._config.speculative_step),
                accumulator=ResultAccumulator(extract_field),
            )
            queue.append(PageRequest(key, 1, self._request_factory(page_url(key, 1))))

        while queue:
            batch = [queue.popleft() for _ in range(min(max_batch, len(queue)))]
            responses = await asyncio.gather(
                *(self._retry.process(request.config, ledger) for request in batch)
            )
            result.batches += 1
            result.total_requests += len(batch)

            for request, response in zip(batch, responses, strict=True):
                state = states[request.key]
                if response is None or response.status != 200:
                    bind_key(request.key).warning(
                        "Failed to fetch data for {}: {}",
                        request.config.url,
                        response.status if response is not None else "unknown error",
                    )
                    state.failed_urls.append(request.config.url)
                    continue

                count = state.accumulator.add(response.data)
                for page in self._discover(state, request, response, count, per_page):
                    if page is None:
                        url = state.cursor.take_bookmark()
                        if url is not None:
                            queue.append(PageRequest(state.key, None, self._request_factory(url)))
                    else:
                        queue.append(
                            PageRequest(
                                state.key, page, self._request_factory(page_url(state.key, page))
                            )
                        )

            if queue:
                await asyncio.sleep(batch_delay_ms / 1000)

        for key, state in states.items():
            result.results[key] = state.accumulator.result
            if state.failed_urls:
                result.failed_urls[key] = state.failed_urls

        result.duration_seconds = time.monotonic() - start_time
        logger.info(
            "Multi-key fetch complete: keys={}, requests={}, failed={}, batches={} ({:.1f}s)",
            len(states),
            result.total_requests,
            result.total_failed,
            result.batches,
            result.duration_seconds,
        )
        return result

    @staticmethod
    def _discover(
        state: KeyState,
        request: PageRequest,
        response: ResponseEnvelope,
        item_count: int,
        per_page: int,
    ) -> list[int | None]:
        """Update a key's cursor from a response and return pages to queue.

        Numeric pages are returned by number; a single None stands for the
        next bookmark page.
        """
        cursor = state.cursor
        link_header = response.link_header

        if request.page is None:
            cursor.observe_bookmark_page(link_header)
        elif request.page == 1:
            cursor.observe_first_page(link_header)
        else:
            current = page_number(get_page_url(link_header, "current")) or request.page
            cursor.observe_page(current, link_header, item_count, per_page)

        if cursor.is_bookmark:
            return [None] if cursor.next_url is not None else []
        return list(cursor.take_pages())
