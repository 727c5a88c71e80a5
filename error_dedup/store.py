"""Capacity- and TTL-bounded store of cached error entries.

Entries live in an OrderedDict in insertion order. Because ``first_seen`` is
stamped at insertion, the front of the dict is always the entry with the
oldest ``first_seen``; capacity eviction pops from the front and ignores how
recently an entry was matched.
"""

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Optional

from error_dedup.keys import MAX_CONTEXT_DEPTH, derive_key
from error_dedup.models import CachedEntry
from error_dedup.similarity import DEFAULT_THRESHOLD, similarity
from error_dedup.stats import CacheStats, compute_stats

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AddResult:
    is_duplicate: bool
    entry: CachedEntry
    # last_seen of the matched entry before this occurrence; None when new.
    previous_last_seen: Optional[float] = None


class EntryStore:
    """Thread-safe dedup store with TTL expiry and oldest-first eviction."""

    def __init__(self, ttl_seconds: float = 300.0, max_size: int = 1000,
                 similarity_threshold: float = DEFAULT_THRESHOLD,
                 max_context_depth: int = MAX_CONTEXT_DEPTH,
                 key_func: Optional[Callable[[object], str]] = None,
                 time_func: Optional[Callable[[], float]] = None):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self._ttl_seconds = ttl_seconds
        self._max_size = max_size
        self._similarity_threshold = similarity_threshold
        self._max_context_depth = max_context_depth
        self._key_func = key_func or (lambda s: derive_key(s, max_context_depth))
        self._time_func = time_func or time.time
        self._entries: "OrderedDict[str, CachedEntry]" = OrderedDict()
        self._lock = threading.Lock()

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def ttl_seconds(self) -> float:
        return self._ttl_seconds

    def key_for(self, signal) -> str:
        return self._key_func(signal)

    def add_occurrence(self, signal) -> AddResult:
        """Record one occurrence of *signal*.

        An exact key hit or a similar entry is updated in place and reported
        as a duplicate. Otherwise a new entry is inserted, after which
        expired entries are swept and the oldest entries evicted down to
        max_size.
        """
        key = self._key_func(signal)
        with self._lock:
            now = self._time_func()

            entry = self._entries.get(key)
            if entry is not None:
                previous = entry.touch(now)
                return AddResult(True, entry, previous)

            similar = self._find_similar_locked(signal)
            if similar is not None:
                previous = similar.touch(now)
                logger.debug("Folded %r into similar entry %r", key, similar.key)
                return AddResult(True, similar, previous)

            entry = CachedEntry(key=key, signal=signal, first_seen=now, last_seen=now)
            self._entries[key] = entry
            self._clear_expired_locked(now)
            self._evict_overflow_locked()
            return AddResult(False, entry, None)

    def is_duplicate(self, signal) -> bool:
        """Return True if *signal* would match an entry. Does not record it."""
        key = self._key_func(signal)
        with self._lock:
            if key in self._entries:
                return True
            return self._find_similar_locked(signal) is not None

    def get(self, key: str) -> Optional[CachedEntry]:
        with self._lock:
            return self._entries.get(key)

    def remove_by_key(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def get_all(self) -> list[CachedEntry]:
        """All entries, oldest first."""
        with self._lock:
            return list(self._entries.values())

    def get_by_code(self, code: str) -> list[CachedEntry]:
        with self._lock:
            return [e for e in self._entries.values() if e.signal.code == code]

    def get_by_severity(self, level: str) -> list[CachedEntry]:
        with self._lock:
            return [e for e in self._entries.values() if e.severity == level]

    def get_most_frequent(self, limit: int = 10) -> list[CachedEntry]:
        """Entries by count descending; equal counts keep insertion order."""
        with self._lock:
            ranked = sorted(self._entries.values(), key=lambda e: e.count, reverse=True)
        return ranked[:max(limit, 0)]

    def get_most_recent(self, limit: int = 10) -> list[CachedEntry]:
        """Entries by last_seen descending."""
        with self._lock:
            ranked = sorted(self._entries.values(), key=lambda e: e.last_seen, reverse=True)
        return ranked[:max(limit, 0)]

    def clear_expired(self) -> int:
        """Remove every entry whose first_seen is older than the TTL."""
        with self._lock:
            return self._clear_expired_locked(self._time_func())

    def clear(self):
        with self._lock:
            self._entries.clear()

    def stats(self) -> CacheStats:
        with self._lock:
            snapshot = list(self._entries.values())
        return compute_stats(snapshot)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key) -> bool:
        with self._lock:
            return key in self._entries

    def _find_similar_locked(self, signal) -> Optional[CachedEntry]:
        """First entry scoring at or above the threshold, newest first.

        Must be called with self._lock held.
        """
        for entry in reversed(self._entries.values()):
            score = similarity(signal, entry.signal, self._max_context_depth)
            if score >= self._similarity_threshold:
                return entry
        return None

    def _clear_expired_locked(self, now: float) -> int:
        """Must be called with self._lock held."""
        expired = [
            key for key, entry in self._entries.items()
            if now - entry.first_seen > self._ttl_seconds
        ]
        for key in expired:
            del self._entries[key]
            logger.debug("Expired %r", key)
        return len(expired)

    def _evict_overflow_locked(self):
        """Must be called with self._lock held."""
        while len(self._entries) > self._max_size:
            key, _ = self._entries.popitem(last=False)
            logger.debug("Evicted %r (capacity %d)", key, self._max_size)
