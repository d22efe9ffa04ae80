"""Per-second request rate limiter for HTTP services."""

__version__ = "0.1.0"
