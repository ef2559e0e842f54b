from __future__ import annotations

from .ttl import CacheEntry, Clock, TTLCache

__all__ = [
    "CacheEntry",
    "Clock",
    "TTLCache",
]
