"""HTTP transport for the source fetcher."""

from .app import create_app

__all__ = ["create_app"]
