"""Aggregate statistics over the cached entries."""

import json
from dataclasses import dataclass
from typing import Iterable, Optional

from error_dedup.models import CachedEntry, iso_timestamp


@dataclass(frozen=True)
class CacheStats:
    total_errors: int = 0
    unique_errors: int = 0
    duplicate_errors: int = 0
    hit_rate: float = 0.0
    oldest_error: Optional[float] = None
    newest_error: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "total_errors": self.total_errors,
            "unique_errors": self.unique_errors,
            "duplicate_errors": self.duplicate_errors,
            "hit_rate": round(self.hit_rate, 2),
            "oldest_error": _iso(self.oldest_error),
            "newest_error": _iso(self.newest_error),
        }


def _iso(ts: Optional[float]) -> Optional[str]:
    return iso_timestamp(ts) if ts is not None else None


def compute_stats(entries: Iterable[CachedEntry]) -> CacheStats:
    """Aggregate a snapshot of entries. Has no side effects."""
    total = 0
    unique = 0
    oldest = None
    newest = None

    for entry in entries:
        total += entry.count
        unique += 1
        if oldest is None or entry.first_seen < oldest:
            oldest = entry.first_seen
        if newest is None or entry.first_seen > newest:
            newest = entry.first_seen

    duplicates = total - unique
    return CacheStats(
        total_errors=total,
        unique_errors=unique,
        duplicate_errors=duplicates,
        hit_rate=duplicates / total if total > 0 else 0.0,
        oldest_error=oldest,
        newest_error=newest,
    )


def format_stats_text(stats: CacheStats, top: Iterable[CachedEntry] = ()) -> str:
    """Human-readable stats summary."""
    data = stats.to_dict()
    lines = []
    lines.append(f"Total errors:     {stats.total_errors}")
    lines.append(f"Unique errors:    {stats.unique_errors}")
    lines.append(f"Duplicate errors: {stats.duplicate_errors}")
    lines.append(f"Hit rate:         {stats.hit_rate:.1%}")
    if data["oldest_error"]:
        lines.append(f"Oldest error:     {data['oldest_error']}")
        lines.append(f"Newest error:     {data['newest_error']}")

    top = list(top)
    if top:
        lines.append("")
        lines.append("Most frequent:")
        for entry in top:
            lines.append(
                f"  {entry.count:6d}  [{entry.severity:8s}] {entry.signal.code}: {entry.signal.message}"
            )
    return "\n".join(lines)


def format_stats_json(stats: CacheStats, top: Iterable[CachedEntry] = ()) -> str:
    """JSON stats output."""
    return json.dumps({
        "stats": stats.to_dict(),
        "most_frequent": [entry.to_dict() for entry in top],
    }, indent=2)
