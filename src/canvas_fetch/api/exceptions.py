"""Canvas client exceptions.

Only configuration problems and the loss of the first page of a list are
raised. Per-request failures inside a batch are logged and surfaced as
``None`` results instead.
"""


class CanvasClientError(Exception):
    """Base exception for Canvas client errors."""

    pass


class CanvasAuthenticationError(CanvasClientError):
    """Raised when no bearer token is available."""

    pass


class CanvasConfigurationError(CanvasClientError):
    """Raised when the API domain is not configured."""

    pass


class InitialPageError(CanvasClientError):
    """Raised when the first page of a paginated fetch cannot be obtained.

    Without page 1 there is no way to discover how the resource paginates,
    so the whole fetch is abandoned.
    """

    def __init__(self, url: str, message: str | None = None) -> None:
        super().__init__(message or f"Failed to fetch initial page: {url}")
        self.url = url
