"""Request pacing for the Canvas API.

Components:
- RequestScheduler: Concurrency cap plus minimum start spacing
- calculate_retry_delay: Backoff delay from rate limit headers
- is_rate_limited: Rate-limit rejection detection
"""

from .backoff import calculate_retry_delay, is_rate_limited
from .scheduler import RequestScheduler

__all__ = [
    # Backoff
    "calculate_retry_delay",
    "is_rate_limited",
    # Scheduling
    "RequestScheduler",
]
