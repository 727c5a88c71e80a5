"""Exact-match key derivation for error signals."""

import json
from collections.abc import Mapping
from typing import Any

MAX_CONTEXT_DEPTH = 8
DEPTH_MARKER = "<max-depth>"


def canonicalize(value: Any, max_depth: int = MAX_CONTEXT_DEPTH, _depth: int = 0) -> Any:
    """Convert *value* into a JSON-ready structure with a bounded depth.

    Mappings get string keys, sequences become lists, anything nested deeper
    than *max_depth* is replaced by ``DEPTH_MARKER``.
    """
    if _depth > max_depth:
        return DEPTH_MARKER
    if isinstance(value, Mapping):
        return {
            str(k): canonicalize(v, max_depth, _depth + 1)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple, set, frozenset)):
        items = [canonicalize(v, max_depth, _depth + 1) for v in value]
        if isinstance(value, (set, frozenset)):
            items.sort(key=repr)
        return items
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


def serialize_value(value: Any, max_depth: int = MAX_CONTEXT_DEPTH) -> str:
    """Order-independent, compact JSON for a context value."""
    return json.dumps(
        canonicalize(value, max_depth),
        sort_keys=True,
        separators=(",", ":"),
        default=str,
    )


def serialize_context(context, max_depth: int = MAX_CONTEXT_DEPTH) -> str:
    if not context:
        return ""
    return serialize_value(context, max_depth)


def derive_key(signal, max_depth: int = MAX_CONTEXT_DEPTH) -> str:
    """Return the exact-match key for *signal*: ``code:message:context``."""
    context = serialize_context(getattr(signal, "context", None), max_depth)
    return f"{signal.code}:{signal.message}:{context}"
