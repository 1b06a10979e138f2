"""Test fixtures for canvas-fetch."""

from .canvas_responses import (
    BASE,
    RATE_LIMIT_BODY,
    TEST_DOMAIN,
    TEST_TOKEN,
    FakeCanvasTransport,
    link_header,
    make_records,
    make_request,
    rate_limit_headers,
)

__all__ = [
    "BASE",
    "RATE_LIMIT_BODY",
    "TEST_DOMAIN",
    "TEST_TOKEN",
    "FakeCanvasTransport",
    "link_header",
    "make_records",
    "make_request",
    "rate_limit_headers",
]
