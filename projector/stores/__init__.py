"""Persistent stores used by projector."""

from .project_cache import CacheManager

__all__ = ["CacheManager"]
