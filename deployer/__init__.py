"""Repository deploy pipeline and multi-tenant static asset server."""

__version__ = "0.1.0"
