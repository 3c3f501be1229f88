"""AI backends for memo enrichment."""

from .base import AIBackend, create_backend, get_registry, parse_tags

__all__ = ["AIBackend", "create_backend", "get_registry", "parse_tags"]
