"""Signal and cached-entry models."""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

SEVERITIES = ("low", "medium", "high", "critical")


def severity_for_status(status_code: int) -> str:
    """Map an HTTP-style status code to a severity level."""
    if status_code >= 500:
        return "critical"
    if status_code >= 400:
        return "high"
    if status_code >= 300:
        return "medium"
    return "low"


def iso_timestamp(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


@dataclass(frozen=True)
class Signal:
    """One observed error occurrence."""

    code: str
    message: str
    status_code: int = 500
    context: Optional[Mapping[str, Any]] = None
    timestamp: float = field(default_factory=time.time)

    @property
    def severity(self) -> str:
        return severity_for_status(self.status_code)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Signal":
        """Build a Signal from a JSON-like mapping.

        Accepts both ``statusCode`` and ``status_code``. Raises KeyError when
        ``code`` or ``message`` is missing and TypeError when ``context`` is
        not an object.
        """
        status = data.get("status_code", data.get("statusCode", 500))
        context = data.get("context") or None
        if context is not None and not isinstance(context, Mapping):
            raise TypeError(f"context must be an object, got {type(context).__name__}")
        kwargs = {
            "code": str(data["code"]),
            "message": str(data["message"]),
            "status_code": int(status),
            "context": context,
        }
        if data.get("timestamp") is not None:
            kwargs["timestamp"] = float(data["timestamp"])
        return cls(**kwargs)

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "status_code": self.status_code,
            "severity": self.severity,
            "context": dict(self.context) if self.context else None,
            "timestamp": self.timestamp,
        }


@dataclass
class CachedEntry:
    """The cache's record of one unique error signature."""

    key: str
    signal: Any
    first_seen: float
    last_seen: float
    count: int = 1

    @property
    def severity(self) -> str:
        return severity_for_status(self.signal.status_code)

    def touch(self, now: float) -> float:
        """Record a repeat occurrence and return the previous last_seen."""
        previous = self.last_seen
        self.count += 1
        self.last_seen = max(now, self.last_seen)
        return previous

    def to_dict(self) -> dict:
        context = getattr(self.signal, "context", None)
        return {
            "key": self.key,
            "code": self.signal.code,
            "message": self.signal.message,
            "status_code": self.signal.status_code,
            "severity": self.severity,
            "context": dict(context) if context else None,
            "count": self.count,
            "first_seen": iso_timestamp(self.first_seen),
            "last_seen": iso_timestamp(self.last_seen),
        }
