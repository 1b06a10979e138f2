"""Rate-limit detection and backoff delay calculation.

The API reports its request budget on every response:

- ``x-rate-limit-remaining``: budget left, may go negative once overdrawn
- ``x-request-cost``: budget consumed by the request that produced it

Algorithm:
    remaining < 0            -> |remaining| * overdraft_backoff_ms
    remaining > 0 and cost   -> ceil(budget_numerator / remaining * budget_scale_ms * cost)
    otherwise                -> default_delay_ms

The delay is a heuristic; the retry loop re-checks every attempt.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping

from canvas_fetch.config import RetryConfig

from ..schemas import ResponseEnvelope

logger = logging.getLogger(__name__)

REMAINING_HEADER = "x-rate-limit-remaining"
COST_HEADER = "x-request-cost"
RATE_LIMIT_STATUS = 403


def _header_float(headers: Mapping[str, str], name: str) -> float | None:
    raw = headers.get(name)
    if raw is None:
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if math.isnan(value):
        return None
    return value


def calculate_retry_delay(
    headers: Mapping[str, str],
    config: RetryConfig | None = None,
) -> int:
    """Milliseconds to wait before retrying a rate-limited request.

    Args:
        headers: Response headers (lower-cased names)
        config: Optional retry configuration with the formula constants

    Returns:
        Delay in whole milliseconds
    """
    config = config or RetryConfig()
    remaining = _header_float(headers, REMAINING_HEADER)
    cost = _header_float(headers, COST_HEADER)

    if remaining is not None and remaining < 0:
        backoff = math.ceil(abs(remaining) * config.overdraft_backoff_ms)
        logger.warning(
            "Exceeded rate limit to the negative (%s), backing off for %d ms",
            remaining,
            backoff,
        )
        return backoff

    if remaining is not None and remaining > 0 and cost is not None:
        return math.ceil(
            (config.budget_numerator / remaining) * config.budget_scale_ms * cost
        )

    return config.default_delay_ms


def is_rate_limited(envelope: ResponseEnvelope, marker: str = "Rate Limit Exceeded") -> bool:
    """Whether an envelope is a rate-limit rejection.

    A rejection is a 403 whose body contains ``marker`` (case-sensitive),
    checked against the text body or the JSON-serialized structured body.
    """
    if envelope.status != RATE_LIMIT_STATUS:
        return False
    return marker in envelope.body_text
