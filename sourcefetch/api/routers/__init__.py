from . import health, sources

__all__ = ["health", "sources"]
