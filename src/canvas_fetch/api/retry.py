"""Retry controller for rate-limited requests.

Wraps scheduled exchanges: a rate-limit rejection is retried after a
delay computed from the response headers, up to a bounded number of
attempts per URL. Every other failure is final for that request and is
reported as ``None`` rather than raised.
"""

from __future__ import annotations

import asyncio
from collections import Counter
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from canvas_fetch.config import RetryConfig
from canvas_fetch.logging import get_logger

from .pacing.backoff import calculate_retry_delay, is_rate_limited

if TYPE_CHECKING:
    from .pacing.scheduler import RequestScheduler
    from .schemas import RequestConfig, ResponseEnvelope
    from .transport import Transport

logger = get_logger(__name__)


@dataclass
class RetryLedger:
    """Rate-limit retry counts for one logical operation.

    Keyed by request URL. A ledger belongs to a single ``get_list``,
    multi-key fetch or concurrent batch and is discarded afterwards.
    """

    counts: Counter[str] = field(default_factory=Counter)
    """Confirmed rate-limit rejections per URL."""

    exhausted: set[str] = field(default_factory=set)
    """URLs abandoned after exceeding the retry limit."""

    def record(self, url: str) -> int:
        """Count one rate-limit rejection and return the new total."""
        self.counts[url] += 1
        return self.counts[url]

    def count(self, url: str) -> int:
        """Rejections recorded so far for a URL."""
        return self.counts[url]


class RetryController:
    """Submits requests through the scheduler and retries rate limits.

    Usage:
        controller = RetryController(scheduler, transport)
        ledger = RetryLedger()
        envelope = await controller.process(config, ledger)
        if envelope is None:
            ...  # failed; already logged
    """

    def __init__(
        self,
        scheduler: RequestScheduler,
        transport: Transport,
        config: RetryConfig | None = None,
    ) -> None:
        """Initialize the retry controller.

        Args:
            scheduler: Shared scheduler that admits every attempt
            transport: Transport performing the exchanges
            config: Optional retry configuration
        """
        self._scheduler = scheduler
        self._transport = transport
        self._config = config or RetryConfig()

    @property
    def config(self) -> RetryConfig:
        """Get the retry configuration."""
        return self._config

    @property
    def scheduler(self) -> RequestScheduler:
        """The scheduler attempts are submitted to."""
        return self._scheduler

    async def send(self, config: RequestConfig) -> ResponseEnvelope:
        """Submit one attempt through the scheduler, without retry handling."""
        return await self._scheduler.submit(lambda: self._transport.exchange(config))

    async def process(
        self,
        config: RequestConfig,
        ledger: RetryLedger,
    ) -> ResponseEnvelope | None:
        """Execute a request, retrying rate-limit rejections.

        The same ``config`` is resubmitted unchanged on every attempt.

        Args:
            config: Request to perform
            ledger: Retry ledger of the owning operation

        Returns:
            The envelope for a successful (< 400) response, otherwise None
        """
        while True:
            envelope = await self.send(config)

            status = envelope.status
            if status is None:
                logger.error("Error during request to {}: no response received", config.url)
                return None

            if is_rate_limited(envelope, self._config.rate_limit_marker):
                attempt = ledger.record(config.url)
                if attempt > self._config.max_retries:
                    ledger.exhausted.add(config.url)
                    logger.error(
                        "Exceeded retry limit for {} ({} attempts)",
                        config.url,
                        self._config.max_retries,
                    )
                    return None

                delay_ms = calculate_retry_delay(envelope.headers, self._config)
                logger.warning(
                    "Rate limit reached, retrying {} in {} milliseconds (attempt {}/{})",
                    config.url,
                    delay_ms,
                    attempt,
                    self._config.max_retries,
                )
                await asyncio.sleep(delay_ms / 1000)
                continue

            if status == 403:
                logger.error(
                    "Access forbidden for {}: {}",
                    config.url,
                    envelope.error_message or "no message",
                )
                return None

            if status >= 400:
                logger.error(
                    "Request to {} failed ({}): {}",
                    config.url,
                    status,
                    envelope.error_message or "no message",
                )
                return None

            return envelope
