"""Deduplication policy: turns store verdicts into log and alert decisions.

New errors are always logged and alerted. Repeats are logged on every 10th
occurrence, or when the entry had been quiet for more than five minutes, and
alerted on every 50th occurrence.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from error_dedup.config import CacheConfig
from error_dedup.models import CachedEntry
from error_dedup.scheduler import TaskHandle, ThreadScheduler
from error_dedup.stats import CacheStats
from error_dedup.store import EntryStore

logger = logging.getLogger(__name__)

LOG_EVERY = 10
ALERT_EVERY = 50
RELOG_AFTER_SECONDS = 300.0


@dataclass(frozen=True)
class DeduplicationResult:
    is_duplicate: bool
    should_log: bool
    should_alert: bool
    deduplication_key: str
    entry: Optional[CachedEntry] = None

    def to_dict(self) -> dict:
        return {
            "is_duplicate": self.is_duplicate,
            "should_log": self.should_log,
            "should_alert": self.should_alert,
            "deduplication_key": self.deduplication_key,
            "entry": self.entry.to_dict() if self.entry else None,
        }


def should_log_duplicate(entry: CachedEntry, previous_last_seen: Optional[float], now: float) -> bool:
    if entry.count % LOG_EVERY == 0:
        return True
    if previous_last_seen is None:
        return False
    return now - previous_last_seen > RELOG_AFTER_SECONDS


def should_alert_duplicate(entry: CachedEntry) -> bool:
    # count == 1 never holds for a duplicate since the store increments first.
    return entry.count == 1 or entry.count % ALERT_EVERY == 0


class DeduplicationService:
    """Owns an EntryStore and its periodic TTL sweep."""

    def __init__(self, config: Optional[CacheConfig] = None,
                 on_duplicate: Optional[Callable[[object, CachedEntry], None]] = None,
                 on_new_error: Optional[Callable[[object], None]] = None,
                 scheduler=None, time_func: Optional[Callable[[], float]] = None,
                 key_func: Optional[Callable[[object], str]] = None):
        self._config = config or CacheConfig()
        self._on_duplicate = on_duplicate
        self._on_new_error = on_new_error
        self._scheduler = scheduler or ThreadScheduler()
        self._time_func = time_func or time.time
        self._key_func = key_func
        self._cleanup_task: Optional[TaskHandle] = None
        self._closed = False
        self._store = self._build_store()
        self._start_cleanup()
        logger.info(
            "Deduplication service started (enabled=%s, ttl=%.0fs, max_size=%d, threshold=%.2f)",
            self._config.enabled, self._config.ttl_seconds,
            self._config.max_size, self._config.similarity_threshold,
        )

    @property
    def config(self) -> CacheConfig:
        return self._config

    @property
    def enabled(self) -> bool:
        return self._config.enabled

    @property
    def store(self) -> EntryStore:
        return self._store

    def process(self, signal) -> DeduplicationResult:
        """Classify one occurrence and decide whether to log and alert it."""
        key = self._store.key_for(signal)
        if not self._config.enabled:
            return DeduplicationResult(
                is_duplicate=False,
                should_log=True,
                should_alert=True,
                deduplication_key=key,
            )

        result = self._store.add_occurrence(signal)
        if result.is_duplicate:
            if self._on_duplicate is not None:
                self._on_duplicate(signal, result.entry)
            return DeduplicationResult(
                is_duplicate=True,
                should_log=should_log_duplicate(
                    result.entry, result.previous_last_seen, self._time_func()
                ),
                should_alert=should_alert_duplicate(result.entry),
                deduplication_key=key,
                entry=result.entry,
            )

        if self._on_new_error is not None:
            self._on_new_error(signal)
        return DeduplicationResult(
            is_duplicate=False,
            should_log=True,
            should_alert=True,
            deduplication_key=key,
            entry=result.entry,
        )

    def is_duplicate(self, signal) -> bool:
        return self._store.is_duplicate(signal)

    def get_stats(self) -> CacheStats:
        return self._store.stats()

    def get_most_frequent_errors(self, limit: int = 10) -> list[CachedEntry]:
        return self._store.get_most_frequent(limit)

    def get_recent_errors(self, limit: int = 10) -> list[CachedEntry]:
        return self._store.get_most_recent(limit)

    def clear_expired(self) -> int:
        return self._store.clear_expired()

    def clear(self):
        self._store.clear()

    def enable(self):
        self._config = self._config.replace(enabled=True)

    def disable(self):
        self._config = self._config.replace(enabled=False)

    def update_options(self, **changes):
        """Apply new options and rebuild the store. Cached entries are dropped.

        Accepts any CacheConfig field plus ``on_duplicate`` / ``on_new_error``.
        """
        if "on_duplicate" in changes:
            self._on_duplicate = changes.pop("on_duplicate")
        if "on_new_error" in changes:
            self._on_new_error = changes.pop("on_new_error")
        self._config = self._config.replace(**changes)
        self._stop_cleanup()
        self._store = self._build_store()
        self._start_cleanup()
        logger.info("Deduplication options updated: %s", ", ".join(sorted(changes)) or "callbacks")

    def shutdown(self):
        """Cancel the periodic sweep and release every entry. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._stop_cleanup()
        self._store.clear()
        logger.info("Deduplication service shut down")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.shutdown()

    def _build_store(self) -> EntryStore:
        return EntryStore(
            ttl_seconds=self._config.ttl_seconds,
            max_size=self._config.max_size,
            similarity_threshold=self._config.similarity_threshold,
            max_context_depth=self._config.max_context_depth,
            key_func=self._key_func,
            time_func=self._time_func,
        )

    def _start_cleanup(self):
        interval = self._config.cleanup_interval_seconds
        if self._closed or interval <= 0:
            return
        self._cleanup_task = self._scheduler.schedule_repeating(
            interval, self._sweep, name="dedup-ttl-sweep"
        )

    def _stop_cleanup(self):
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            self._cleanup_task = None

    def _sweep(self):
        removed = self._store.clear_expired()
        if removed:
            logger.info("TTL sweep removed %d expired entries", removed)
