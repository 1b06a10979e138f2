"""Pydantic schemas for request configs and response envelopes.

A ``RequestConfig`` describes one HTTP exchange and is immutable, so a
retry always resubmits exactly what was sent the first time. A
``ResponseEnvelope`` is always produced by the transport, even when the
exchange failed before any status code was received.
"""

from __future__ import annotations

import json
from enum import StrEnum
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, field_validator


class HttpMethod(StrEnum):
    """HTTP methods accepted by the API."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"
    HEAD = "HEAD"


class RequestConfig(BaseModel):
    """A single HTTP exchange to perform.

    Headers carry the bearer credential and content type. ``body`` is
    serialized as JSON when present.
    """

    model_config = ConfigDict(frozen=True)

    url: str = Field(min_length=1, description="Absolute request URL")
    method: HttpMethod = Field(default=HttpMethod.GET, description="HTTP method")
    headers: dict[str, str] = Field(default_factory=dict, description="Request headers")
    body: Any = Field(default=None, description="Structured payload (JSON-encoded)")

    @field_validator("method", mode="before")
    @classmethod
    def _upper_method(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.upper()
        return value


class ResponseEnvelope(BaseModel):
    """Normalized result of one exchange.

    ``status`` is None when the transport failed; in that case ``headers``
    is empty and ``data`` is None.
    """

    status: int | None = Field(default=None, description="HTTP status code")
    headers: dict[str, str] = Field(
        default_factory=dict, description="Response headers, lower-cased names"
    )
    data: Any = Field(default=None, description="Parsed JSON body, or raw text")

    @field_validator("headers", mode="before")
    @classmethod
    def _lower_header_names(cls, value: Any) -> Any:
        if value is None:
            return {}
        if hasattr(value, "items"):
            return {str(k).lower(): str(v) for k, v in value.items()}
        return value

    @classmethod
    def transport_failure(cls) -> Self:
        """Envelope for an exchange that never produced a response."""
        return cls(status=None, headers={}, data=None)

    @property
    def is_transport_failure(self) -> bool:
        """Whether no HTTP response was received."""
        return self.status is None

    @property
    def ok(self) -> bool:
        """Whether the status is 2xx."""
        return self.status is not None and 200 <= self.status < 300

    @property
    def link_header(self) -> str | None:
        """Raw ``Link`` header value, if any."""
        return self.headers.get("link")

    @property
    def body_text(self) -> str:
        """Body as text; structured bodies are JSON-serialized."""
        if self.data is None:
            return ""
        if isinstance(self.data, str):
            return self.data
        try:
            return json.dumps(self.data)
        except (TypeError, ValueError):
            return str(self.data)

    @property
    def error_message(self) -> str | None:
        """Server-provided error message, when the body carries one.

        Understands ``{"errors": [{"message": ...}]}``,
        ``{"errors": {"message": ...}}`` and ``{"message": ...}``.
        """
        data = self.data
        if isinstance(data, str):
            return data or None
        if not isinstance(data, dict):
            return None

        errors = data.get("errors")
        if isinstance(errors, list):
            messages = [
                str(e["message"]) for e in errors if isinstance(e, dict) and "message" in e
            ]
            if messages:
                return "; ".join(messages)
        elif isinstance(errors, dict) and "message" in errors:
            return str(errors["message"])

        if "message" in data:
            return str(data["message"])
        return None
