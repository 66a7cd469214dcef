"""API routers."""

from tunebridge.api.routers import health, lookup

__all__ = ["health", "lookup"]
