"""Thread-safe in-memory cache with TTL support and a background sweeper."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Generic, TypeVar

LOGGER = logging.getLogger(__name__)

V = TypeVar("V")


class ReadWriteLock:
    """Many concurrent readers or a single writer, writers preferred."""

    def __init__(self) -> None:
        """Initialise the condition and counters."""
        self._condition = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer_active = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        """Hold the lock in shared mode."""
        with self._condition:
            while self._writer_active or self._writers_waiting:
                self._condition.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._condition:
                self._readers -= 1
                if self._readers == 0:
                    self._condition.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        """Hold the lock exclusively."""
        with self._condition:
            self._writers_waiting += 1
            try:
                while self._writer_active or self._readers:
                    self._condition.wait()
            finally:
                self._writers_waiting -= 1
            self._writer_active = True
        try:
            yield
        finally:
            with self._condition:
                self._writer_active = False
                self._condition.notify_all()


class CacheEntry(Generic[V]):
    """Cache entry with absolute expiration time."""

    __slots__ = ("value", "expires_at")

    def __init__(self, value: V, expires_at: float) -> None:
        """Store ``value`` until the clock passes ``expires_at``."""
        self.value = value
        self.expires_at = expires_at

    def is_expired(self, now: float) -> bool:
        """Check if the entry has expired at ``now``."""
        return now > self.expires_at


class TTLCache(Generic[V]):
    """Expiring key/value store shared across worker threads.

    Reads take the lock in shared mode and never mutate, so an expired entry
    is reported as absent until the sweeper (or an explicit
    :meth:`purge_expired`) physically removes it.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        """Initialise an empty cache using ``clock`` for expiry decisions."""
        self._clock = clock
        self._entries: dict[str, CacheEntry[V]] = {}
        self._lock = ReadWriteLock()
        self._sweeper: threading.Thread | None = None
        self._stop_sweeper = threading.Event()

    def get(self, key: str) -> tuple[V | None, bool]:
        """Return ``(value, True)`` for a live entry, else ``(None, False)``."""
        with self._lock.read():
            entry = self._entries.get(key)
            if entry is None or entry.is_expired(self._clock()):
                LOGGER.debug("Cache miss for key: %s", key)
                return None, False
            LOGGER.debug("Cache hit for key: %s", key)
            return entry.value, True

    def set(self, key: str, value: V, ttl_seconds: float) -> None:
        """Store ``value`` under ``key``, replacing any previous entry."""
        with self._lock.write():
            self._entries[key] = CacheEntry(value, self._clock() + ttl_seconds)
        LOGGER.debug("Cache set for key: %s (TTL: %ss)", key, ttl_seconds)

    def delete(self, key: str) -> bool:
        """Remove ``key``; return whether an entry existed."""
        with self._lock.write():
            return self._entries.pop(key, None) is not None

    def clear(self) -> int:
        """Remove every entry and return how many were dropped."""
        with self._lock.write():
            count = len(self._entries)
            self._entries.clear()
        LOGGER.info("Invalidated all %d cache entries", count)
        return count

    def purge_expired(self) -> int:
        """Remove all expired entries and return how many were removed."""
        with self._lock.write():
            now = self._clock()
            expired_keys = [
                key for key, entry in self._entries.items() if entry.is_expired(now)
            ]
            for key in expired_keys:
                del self._entries[key]

        if expired_keys:
            LOGGER.debug("Cleaned up %d expired cache entries", len(expired_keys))
        return len(expired_keys)

    def __len__(self) -> int:
        """Return the number of physically stored entries, expired or not."""
        with self._lock.read():
            return len(self._entries)

    # Sweeper lifecycle --------------------------------------------------------
    def start_sweeper(self, interval_seconds: float) -> None:
        """Start the background expiry sweep; a running sweeper is left alone."""
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        if self._sweeper is not None and self._sweeper.is_alive():
            return
        self._stop_sweeper.clear()
        self._sweeper = threading.Thread(
            target=self._sweep_loop,
            args=(interval_seconds,),
            name="ttl-cache-sweeper",
            daemon=True,
        )
        self._sweeper.start()
        LOGGER.info("Started cache sweeper (interval %ss)", interval_seconds)

    def stop_sweeper(self, timeout: float | None = 5.0) -> None:
        """Signal the sweeper to exit and wait for it."""
        sweeper = self._sweeper
        if sweeper is None:
            return
        self._stop_sweeper.set()
        sweeper.join(timeout)
        self._sweeper = None
        LOGGER.info("Stopped cache sweeper")

    @property
    def sweeper_running(self) -> bool:
        """Whether the background sweeper thread is alive."""
        return self._sweeper is not None and self._sweeper.is_alive()

    def close(self) -> None:
        """Stop background work; entries are kept."""
        self.stop_sweeper()

    def _sweep_loop(self, interval_seconds: float) -> None:
        while not self._stop_sweeper.wait(interval_seconds):
            try:
                self.purge_expired()
            except Exception:  # pylint: disable=broad-except
                LOGGER.exception("Cache sweep failed")


__all__ = ["CacheEntry", "ReadWriteLock", "TTLCache"]
