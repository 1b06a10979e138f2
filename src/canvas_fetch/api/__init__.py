"""Canvas API client module.

This module provides:
- CanvasClient: Async client with scheduling, retries and pagination
- Request scheduling: RequestScheduler, calculate_retry_delay
- Retries: RetryController, RetryLedger
- Pagination: PaginationEngine, PaginationCursor, ResultAccumulator
- Multi-key aggregation: MultiKeyAggregator, AggregationResult
"""

from .aggregator import KEY_PLACEHOLDER, AggregationResult, MultiKeyAggregator
from .client import CanvasClient, prepare_data
from .exceptions import (
    CanvasAuthenticationError,
    CanvasClientError,
    CanvasConfigurationError,
    InitialPageError,
)
from .pacing import RequestScheduler, calculate_retry_delay, is_rate_limited
from .pagination import (
    PageCountState,
    PaginationCursor,
    PaginationEngine,
    PaginationMode,
    ResultAccumulator,
)
from .retry import RetryController, RetryLedger
from .schemas import HttpMethod, RequestConfig, ResponseEnvelope
from .transport import HttpxTransport, Transport

__all__ = [
    # Client
    "CanvasClient",
    "prepare_data",
    # Exceptions
    "CanvasAuthenticationError",
    "CanvasClientError",
    "CanvasConfigurationError",
    "InitialPageError",
    # Schemas
    "HttpMethod",
    "RequestConfig",
    "ResponseEnvelope",
    # Transport
    "HttpxTransport",
    "Transport",
    # Scheduling & retries
    "RequestScheduler",
    "RetryController",
    "RetryLedger",
    "calculate_retry_delay",
    "is_rate_limited",
    # Pagination
    "PageCountState",
    "PaginationCursor",
    "PaginationEngine",
    "PaginationMode",
    "ResultAccumulator",
    # Multi-key aggregation
    "KEY_PLACEHOLDER",
    "AggregationResult",
    "MultiKeyAggregator",
]
