"""Configuration module: frozen dataclass loaded from a YAML file and environment variables."""

import dataclasses
import logging
import os
from dataclasses import dataclass

import yaml

logger = logging.getLogger(__name__)


def _parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes")


@dataclass(frozen=True)
class CacheConfig:
    enabled: bool = True
    ttl_seconds: float = 300.0
    max_size: int = 1000
    similarity_threshold: float = 0.8
    cleanup_interval_seconds: float = 60.0
    max_context_depth: int = 8

    def __post_init__(self):
        if self.max_size < 1:
            raise ValueError(f"max_size must be at least 1, got {self.max_size}")
        if not 0.0 <= self.similarity_threshold <= 1.0:
            raise ValueError(
                f"similarity_threshold must be within [0, 1], got {self.similarity_threshold}"
            )
        if self.ttl_seconds < 0:
            raise ValueError(f"ttl_seconds must be non-negative, got {self.ttl_seconds}")
        if self.cleanup_interval_seconds < 0:
            raise ValueError(
                f"cleanup_interval_seconds must be non-negative, got {self.cleanup_interval_seconds}"
            )
        if self.max_context_depth < 0:
            raise ValueError(
                f"max_context_depth must be non-negative, got {self.max_context_depth}"
            )

    def replace(self, **changes) -> "CacheConfig":
        return dataclasses.replace(self, **changes)


_ENV_VARS = {
    "enabled": ("DEDUP_ENABLED", _parse_bool),
    "ttl_seconds": ("DEDUP_TTL_SECONDS", float),
    "max_size": ("DEDUP_MAX_SIZE", int),
    "similarity_threshold": ("DEDUP_SIMILARITY_THRESHOLD", float),
    "cleanup_interval_seconds": ("DEDUP_CLEANUP_INTERVAL_SECONDS", float),
    "max_context_depth": ("DEDUP_MAX_CONTEXT_DEPTH", int),
}


def load_config(base: CacheConfig = None) -> CacheConfig:
    """Build CacheConfig from environment variables, falling back to *base*."""
    base = base or CacheConfig()
    overrides = {}
    for name, (env_var, convert) in _ENV_VARS.items():
        raw = os.environ.get(env_var)
        if raw is not None:
            overrides[name] = convert(raw)
    return base.replace(**overrides)


def load_config_file(path: str) -> CacheConfig:
    """Read the ``dedup:`` section of a YAML file, then apply env overrides.

    A missing file or invalid YAML falls back to defaults.
    """
    section = {}
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
        if isinstance(data, dict) and isinstance(data.get("dedup"), dict):
            section = data["dedup"]
    except FileNotFoundError:
        logger.info("Config file %s not found, using defaults", path)
    except yaml.YAMLError:
        logger.warning("Invalid YAML in %s, using defaults", path)

    known = {f.name for f in dataclasses.fields(CacheConfig)}
    unknown = set(section) - known
    if unknown:
        logger.warning("Ignoring unknown dedup options: %s", ", ".join(sorted(unknown)))

    values = {}
    for name in known & set(section):
        convert = _ENV_VARS[name][1]
        values[name] = convert(section[name])
    return load_config(CacheConfig(**values))
