from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

type Clock = Callable[[], float]


@dataclass(frozen=True, slots=True)
class CacheEntry[V]:
    value: V
    expires_at: float


class TTLCache[K, V]:
    """In-memory key -> value cache where every entry expires after ``ttl_seconds``.

    Reads and writes are plain dictionary operations and never await, so they
    are atomic on the event loop. ``aget_or_load`` is the only path that
    awaits between reading and writing; it holds a per-key lock for the
    duration of the load so concurrent misses on one key run the loader once.

    Expired entries are dropped on every ``set`` and a key's lock is dropped
    once no load holds it, so memory follows the live keys.

    Parameters
    ----------
    ttl_seconds : float
        Lifetime of an entry.
    clock : Clock
        Monotonic time source, injectable for tests.
    """

    def __init__(self, ttl_seconds: float, *, clock: Clock = time.monotonic) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[K, CacheEntry[V]] = {}
        self._locks: dict[K, asyncio.Lock] = {}

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def get(self, key: K) -> V | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            del self._entries[key]
            return None
        return entry.value

    def set(self, key: K, value: V) -> None:
        now = self._clock()
        self._prune_expired(now)
        self._entries[key] = CacheEntry(value=value, expires_at=now + self._ttl)

    def invalidate(self, key: K) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def snapshot(self) -> dict[K, V]:
        """Copy of all live entries; expired entries are left out."""
        now = self._clock()
        return {key: entry.value for key, entry in self._entries.items() if entry.expires_at > now}

    async def aget_or_load(self, key: K, loader: Callable[[], Awaitable[V]]) -> V:
        cached = self.get(key)
        if cached is not None:
            return cached

        lock = self._locks.setdefault(key, asyncio.Lock())
        try:
            async with lock:
                # Another task may have filled the entry while we waited
                cached = self.get(key)
                if cached is not None:
                    return cached

                value = await loader()
                self.set(key, value)
                return value
        finally:
            # Waiters keep their reference to the lock and re-check the entry once they hold it
            if not lock.locked() and self._locks.get(key) is lock:
                del self._locks[key]

    def _prune_expired(self, now: float) -> None:
        expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
        for key in expired:
            del self._entries[key]

    def __len__(self) -> int:
        return len(self.snapshot())

    def __contains__(self, key: object) -> bool:
        return key in self.snapshot()
