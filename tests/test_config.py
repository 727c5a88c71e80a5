"""Tests for the config module."""

import os

import pytest

from error_dedup.config import CacheConfig, _parse_bool, load_config, load_config_file

ENV_VARS = [
    "DEDUP_ENABLED", "DEDUP_TTL_SECONDS", "DEDUP_MAX_SIZE",
    "DEDUP_SIMILARITY_THRESHOLD", "DEDUP_CLEANUP_INTERVAL_SECONDS",
    "DEDUP_MAX_CONTEXT_DEPTH",
]


@pytest.fixture
def clean_env():
    old = {k: os.environ.pop(k, None) for k in ENV_VARS}
    yield
    for k in ENV_VARS:
        os.environ.pop(k, None)
    for k, v in old.items():
        if v is not None:
            os.environ[k] = v


class TestParseBool:
    def test_true_values(self):
        for val in ("true", "True", "TRUE", "1", "yes", " true ", True):
            assert _parse_bool(val) is True

    def test_false_values(self):
        for val in ("false", "0", "no", "", "random", False):
            assert _parse_bool(val) is False


class TestCacheConfigDefaults:
    def test_defaults(self):
        cfg = CacheConfig()
        assert cfg.enabled is True
        assert cfg.ttl_seconds == 300.0
        assert cfg.max_size == 1000
        assert cfg.similarity_threshold == 0.8
        assert cfg.cleanup_interval_seconds == 60.0
        assert cfg.max_context_depth == 8

    def test_frozen(self):
        cfg = CacheConfig()
        with pytest.raises(AttributeError):
            cfg.max_size = 5

    def test_replace(self):
        cfg = CacheConfig().replace(max_size=5)
        assert cfg.max_size == 5
        assert cfg.ttl_seconds == 300.0


class TestCacheConfigValidation:
    def test_max_size_must_be_positive(self):
        with pytest.raises(ValueError):
            CacheConfig(max_size=0)

    def test_threshold_range(self):
        with pytest.raises(ValueError):
            CacheConfig(similarity_threshold=1.5)
        with pytest.raises(ValueError):
            CacheConfig(similarity_threshold=-0.1)

    def test_negative_durations(self):
        with pytest.raises(ValueError):
            CacheConfig(ttl_seconds=-1)
        with pytest.raises(ValueError):
            CacheConfig(cleanup_interval_seconds=-1)

    def test_negative_depth(self):
        with pytest.raises(ValueError):
            CacheConfig(max_context_depth=-1)


class TestLoadConfig:
    def test_defaults(self, clean_env):
        assert load_config() == CacheConfig()

    def test_env_overrides(self, clean_env):
        os.environ.update({
            "DEDUP_ENABLED": "false",
            "DEDUP_TTL_SECONDS": "60",
            "DEDUP_MAX_SIZE": "50",
            "DEDUP_SIMILARITY_THRESHOLD": "0.9",
            "DEDUP_CLEANUP_INTERVAL_SECONDS": "0",
            "DEDUP_MAX_CONTEXT_DEPTH": "4",
        })
        cfg = load_config()
        assert cfg.enabled is False
        assert cfg.ttl_seconds == 60.0
        assert cfg.max_size == 50
        assert cfg.similarity_threshold == 0.9
        assert cfg.cleanup_interval_seconds == 0.0
        assert cfg.max_context_depth == 4


class TestLoadConfigFile:
    def test_reads_dedup_section(self, clean_env, tmp_path):
        path = tmp_path / "config.yml"
        path.write_text("dedup:\n  max_size: 25\n  ttl_seconds: 120\n  enabled: false\n")
        cfg = load_config_file(str(path))
        assert cfg.max_size == 25
        assert cfg.ttl_seconds == 120.0
        assert cfg.enabled is False
        assert cfg.similarity_threshold == 0.8

    def test_env_overrides_file(self, clean_env, tmp_path):
        path = tmp_path / "config.yml"
        path.write_text("dedup:\n  max_size: 25\n")
        os.environ["DEDUP_MAX_SIZE"] = "7"
        assert load_config_file(str(path)).max_size == 7

    def test_missing_file_uses_defaults(self, clean_env, tmp_path):
        assert load_config_file(str(tmp_path / "absent.yml")) == CacheConfig()

    def test_invalid_yaml_uses_defaults(self, clean_env, tmp_path):
        path = tmp_path / "config.yml"
        path.write_text("dedup: [unclosed\n")
        assert load_config_file(str(path)) == CacheConfig()

    def test_unknown_keys_ignored(self, clean_env, tmp_path):
        path = tmp_path / "config.yml"
        path.write_text("dedup:\n  max_size: 3\n  colour: blue\n")
        assert load_config_file(str(path)).max_size == 3
