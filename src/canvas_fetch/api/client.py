"""Async Canvas API client.

This module provides the caller-facing interface: single requests,
full-list fetches of one endpoint, multi-key list fetches, and
concurrent batches of heterogeneous requests. All of them share one
RequestScheduler, which enforces the server's request budget.
"""

from __future__ import annotations

import asyncio
from collections.abc import Hashable, Iterable, Sequence
from typing import Any

from canvas_fetch.config import Settings, get_settings
from canvas_fetch.logging import LogContext, get_logger

from .aggregator import AggregationResult, MultiKeyAggregator
from .exceptions import CanvasAuthenticationError, CanvasConfigurationError
from .pacing.scheduler import RequestScheduler
from .pagination.engine import ListResult, PaginationEngine
from .retry import RetryController, RetryLedger
from .schemas import HttpMethod, RequestConfig, ResponseEnvelope
from .transport import HttpxTransport, Transport

logger = get_logger(__name__)

BODY_METHODS = frozenset({HttpMethod.POST, HttpMethod.PUT})


def prepare_data(data: Any, prefix: str | None = None) -> Any:
    """Wrap a payload under ``prefix``, the API's form-object convention.

    Example:
        prepare_data({"user_id": 1}, "enrollment") -> {"enrollment": {"user_id": 1}}
    """
    if isinstance(data, dict):
        data = dict(data)
    if not prefix:
        return data
    return {prefix: data}


class CanvasClient:
    """Async Canvas API client with scheduling, retries and pagination.

    Usage:
        async with CanvasClient() as client:
            students = await client.get_list("courses/123/students")
            by_course = await client.get_all_for_keys(
                "courses/<key>/enrollments", [123, 456]
            )

    Or without context manager:
        client = CanvasClient(token="...", domain="https://school.instructure.com")
        assignments = await client.get_list("courses/123/assignments")
        await client.close()
    """

    def __init__(
        self,
        token: str | None = None,
        domain: str | None = None,
        *,
        transport: Transport | None = None,
        scheduler: RequestScheduler | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize the Canvas client.

        Args:
            token: Bearer token. If not provided, uses CANVAS_ACCESS_TOKEN.
            domain: API origin. If not provided, uses CANVAS_DOMAIN.
            transport: Optional transport (default: HttpxTransport)
            scheduler: Optional shared scheduler; pass the same instance to
                       several clients to make them share one request budget
            settings: Optional settings (default: cached environment settings)

        Raises:
            CanvasAuthenticationError: If no token is available.
            CanvasConfigurationError: If no domain is available.
        """
        self._settings = settings or get_settings()
        self._token = token or self._settings.canvas_access_token
        if not self._token:
            raise CanvasAuthenticationError(
                "Canvas token required. Set CANVAS_ACCESS_TOKEN environment variable."
            )
        self._domain = (domain or self._settings.canvas_domain).rstrip("/")
        if not self._domain:
            raise CanvasConfigurationError(
                "Canvas domain required. Set CANVAS_DOMAIN environment variable."
            )

        self._transport = transport or HttpxTransport(
            timeout=self._settings.scheduler.timeout_seconds
        )
        self._scheduler = scheduler or RequestScheduler(config=self._settings.scheduler)
        self._retry = RetryController(self._scheduler, self._transport, self._settings.retry)
        self._engine = PaginationEngine(
            self._retry, self.create_request_config, self._settings.pagination
        )
        self._aggregator = MultiKeyAggregator(
            self._retry, self.create_request_config, self._settings.pagination
        )

    @property
    def domain(self) -> str:
        """API origin requests are sent to."""
        return self._domain

    @property
    def scheduler(self) -> RequestScheduler:
        """The scheduler shared by every request of this client."""
        return self._scheduler

    async def close(self) -> None:
        """Close the underlying transport."""
        await self._transport.aclose()

    async def __aenter__(self) -> CanvasClient:
        """Async context manager entry."""
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Async context manager exit."""
        await self.close()

    # -------------------------------------------------------------------------
    # Request Construction
    # -------------------------------------------------------------------------
    def api_url(self, path: str) -> str:
        """Absolute URL for an API path such as ``courses/1/users``."""
        if path.startswith(("http://", "https://")):
            return path
        return f"{self._domain}/api/v1/{path.lstrip('/')}"

    def create_request_config(
        self,
        url: str,
        method: HttpMethod | str = HttpMethod.GET,
        data: Any = None,
        prefix: str | None = None,
    ) -> RequestConfig:
        """Build a request carrying the bearer credential.

        A body is attached only to POST and PUT requests.

        Args:
            url: Absolute request URL
            method: HTTP method
            data: Optional payload
            prefix: Optional key to wrap the payload under
        """
        method = HttpMethod(method.upper()) if isinstance(method, str) else method
        body = None
        if method in BODY_METHODS and data is not None:
            body = prepare_data(data, prefix)
        return RequestConfig(
            url=url,
            method=method,
            headers={
                "Authorization": f"Bearer {self._token}",
                "Content-Type": "application/json",
            },
            body=body,
        )

    # -------------------------------------------------------------------------
    # Single Requests
    # -------------------------------------------------------------------------
    async def request(
        self,
        path: str,
        method: HttpMethod | str = HttpMethod.GET,
        data: Any = None,
        prefix: str | None = None,
    ) -> ResponseEnvelope:
        """Perform one request and return its envelope as-is.

        The request is admitted by the shared scheduler but not retried;
        rate-limit and error responses are returned to the caller.
        """
        config = self.create_request_config(self.api_url(path), method, data, prefix)
        return await self._retry.send(config)

    async def handle_concurrent_requests(
        self,
        configs: Sequence[RequestConfig],
    ) -> list[ResponseEnvelope | None]:
        """Run several distinct requests concurrently with rate-limit retries.

        Args:
            configs: Requests to perform

        Returns:
            One envelope (or None on failure) per request, in input order
        """
        logger.debug("Dispatching {} concurrent requests", len(configs))
        ledger = RetryLedger()
        return list(
            await asyncio.gather(*(self._retry.process(config, ledger) for config in configs))
        )

    # -------------------------------------------------------------------------
    # Listings
    # -------------------------------------------------------------------------
    async def get_list(
        self,
        path: str,
        has_query: bool = False,
        *,
        per_page: int | None = None,
        max_batch: int | None = None,
        batch_delay_ms: int | None = None,
        extract_field: str | None = None,
    ) -> ListResult:
        """Fetch every page of one endpoint.

        Args:
            path: API path, e.g. ``courses/1/users`` (or an absolute URL)
            has_query: Whether path already carries a query string
            per_page: Page size
            max_batch: Maximum concurrent page requests
            batch_delay_ms: Idle milliseconds between batches
            extract_field: When set, return {id: {field: value}}

        Raises:
            InitialPageError: If the first page cannot be fetched
        """
        with LogContext(operation="get_list", path=path):
            return await self._engine.fetch_all(
                self.api_url(path),
                has_query,
                per_page=per_page,
                max_batch=max_batch,
                batch_delay_ms=batch_delay_ms,
                extract_field=extract_field,
            )

    async def get_all_for_keys(
        self,
        pattern: str,
        keys: Iterable[Hashable],
        has_query: bool = False,
        *,
        per_page: int | None = None,
        max_batch: int | None = None,
        batch_delay_ms: int | None = None,
        extract_field: str | None = None,
    ) -> dict[Hashable, ListResult]:
        """Fetch one listing per key.

        Args:
            pattern: API path containing ``<key>``, e.g. ``courses/<key>/users``
            keys: Values substituted for ``<key>``
            has_query: Whether pattern already carries a query string
            per_page: Page size
            max_batch: Maximum requests dispatched together
            batch_delay_ms: Idle milliseconds between batches
            extract_field: When set, accumulate {id: {field: value}}
        """
        with LogContext(operation="get_all_for_keys", path=pattern):
            return await self._aggregator.fetch_all_for_keys(
                self.api_url(pattern),
                keys,
                has_query,
                per_page=per_page,
                max_batch=max_batch,
                batch_delay_ms=batch_delay_ms,
                extract_field=extract_field,
            )

    async def aggregate_for_keys(
        self,
        pattern: str,
        keys: Iterable[Hashable],
        has_query: bool = False,
        **options: Any,
    ) -> AggregationResult:
        """Like get_all_for_keys(), with failures and statistics."""
        with LogContext(operation="aggregate_for_keys", path=pattern):
            return await self._aggregator.aggregate(
                self.api_url(pattern), keys, has_query, **options
            )

    # -------------------------------------------------------------------------
    # Convenience Methods
    # -------------------------------------------------------------------------
    async def get_submissions(
        self,
        course_id: int | str,
        assignment_ids: Sequence[int | str],
        student_ids: Sequence[int | str] | None = None,
    ) -> ListResult:
        """Fetch a course's submissions for the given assignments.

        Args:
            course_id: Course id
            assignment_ids: Assignments to include
            student_ids: Optional students to restrict to (default: all)
        """
        params = [f"assignment_ids[]={aid}" for aid in assignment_ids]
        if student_ids:
            params.extend(f"student_ids[]={sid}" for sid in student_ids)
        path = f"courses/{course_id}/students/submissions"
        if params:
            return await self.get_list(f"{path}?{'&'.join(params)}", has_query=True)
        return await self.get_list(path)
