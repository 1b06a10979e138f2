"""Rate-limited, adaptively paginating client for Canvas-style REST APIs."""

__version__ = "0.1.0"
