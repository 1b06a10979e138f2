"""Pytest configuration and shared fixtures.

Usage Guide:
- For engine/aggregator/client tests: use ``fake_transport`` and register
  listings with ``fake_transport.add_listing(...)``
- Timing-sensitive fixtures use zero spacing and zero batch delays; tests
  that exercise spacing build their own scheduler
"""

from collections.abc import Iterator

import pytest

from canvas_fetch.api.aggregator import MultiKeyAggregator
from canvas_fetch.api.client import CanvasClient
from canvas_fetch.api.pacing.scheduler import RequestScheduler
from canvas_fetch.api.pagination.engine import PaginationEngine
from canvas_fetch.api.retry import RetryController
from canvas_fetch.config import PaginationConfig, RetryConfig, Settings, get_settings
from tests.fixtures.canvas_responses import (
    TEST_DOMAIN,
    TEST_TOKEN,
    FakeCanvasTransport,
    make_request,
)


# -----------------------------------------------------------------------------
# Configuration Fixtures
# -----------------------------------------------------------------------------
@pytest.fixture(autouse=True)
def _clear_settings_cache() -> Iterator[None]:
    """Settings are cached process-wide; start every test fresh."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def retry_config() -> RetryConfig:
    """Retry configuration with a 1 ms default delay."""
    return RetryConfig(default_delay_ms=1)


@pytest.fixture
def pagination_config() -> PaginationConfig:
    """Pagination configuration without idle time between batches."""
    return PaginationConfig(batch_delay_ms=0, multi_key_batch_delay_ms=0)


@pytest.fixture
def settings(retry_config: RetryConfig, pagination_config: PaginationConfig) -> Settings:
    """Settings isolated from the environment and .env files."""
    return Settings(
        _env_file=None,
        canvas_access_token=TEST_TOKEN,
        canvas_domain=TEST_DOMAIN,
        retry=retry_config,
        pagination=pagination_config,
    )


# -----------------------------------------------------------------------------
# Engine Fixtures
# -----------------------------------------------------------------------------
@pytest.fixture
def fake_transport() -> FakeCanvasTransport:
    """In-memory Canvas API."""
    return FakeCanvasTransport()


@pytest.fixture
def scheduler() -> RequestScheduler:
    """Scheduler with default concurrency and no spacing."""
    return RequestScheduler(max_concurrent=10, min_spacing_ms=0)


@pytest.fixture
def controller(
    scheduler: RequestScheduler,
    fake_transport: FakeCanvasTransport,
    retry_config: RetryConfig,
) -> RetryController:
    return RetryController(scheduler, fake_transport, retry_config)


@pytest.fixture
def engine(controller: RetryController, pagination_config: PaginationConfig) -> PaginationEngine:
    return PaginationEngine(controller, make_request, pagination_config)


@pytest.fixture
def aggregator(
    controller: RetryController, pagination_config: PaginationConfig
) -> MultiKeyAggregator:
    return MultiKeyAggregator(controller, make_request, pagination_config)


@pytest.fixture
def client(
    fake_transport: FakeCanvasTransport,
    scheduler: RequestScheduler,
    settings: Settings,
) -> CanvasClient:
    """Client wired to the fake transport."""
    return CanvasClient(transport=fake_transport, scheduler=scheduler, settings=settings)
