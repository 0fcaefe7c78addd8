"""Unit tests for configuration management."""

import os
import tempfile
from pathlib import Path

import pytest
import yaml

from resilient_fetch.models.config import ConfigManager, FetchClientConfig


def test_fetch_client_config_defaults():
    """Test that FetchClientConfig has correct default values."""
    config = FetchClientConfig()

    # Per-request defaults
    assert config.default_timeout == 10.0
    assert config.default_max_retries == 3
    assert config.default_headers == {"Content-Type": "application/json"}

    # Retry policy
    assert config.retry_base_delay == 1.0
    assert config.retry_max_delay is None
    assert config.retry_jitter_max == 0.0

    # Cache
    assert config.cache_ttl == 300.0
    assert config.cache_stale_grace == 300.0
    assert config.cache_max_entries == 1000

    # Circuit breaker
    assert config.circuit_breaker_failure_threshold == 5
    assert config.circuit_breaker_cooldown == 60.0

    # Health
    assert config.health_check_timeout == 5.0
    assert config.health_freshness_window == 300.0
    assert config.health_check_endpoints == []


def test_config_validators():
    """Test FetchClientConfig field validators."""
    with pytest.raises(ValueError, match="default_timeout must be positive"):
        FetchClientConfig(default_timeout=0)

    with pytest.raises(ValueError, match="circuit_breaker_cooldown must be positive"):
        FetchClientConfig(circuit_breaker_cooldown=-1.0)

    with pytest.raises(ValueError, match="default_max_retries must be >= 0"):
        FetchClientConfig(default_max_retries=-1)

    with pytest.raises(ValueError, match="circuit_breaker_failure_threshold must be at least 1"):
        FetchClientConfig(circuit_breaker_failure_threshold=0)

    with pytest.raises(ValueError, match="must start with http"):
        FetchClientConfig(health_check_endpoints=["ftp://invalid.com"])

    with pytest.raises(ValueError, match="Unknown log level"):
        FetchClientConfig(log_level="LOUD")


def test_log_level_is_normalized():
    assert FetchClientConfig(log_level="debug").log_level == "DEBUG"


def test_config_from_env():
    """Test loading configuration from environment variables."""
    env_vars = {
        "FETCH_TIMEOUT": "2.5",
        "FETCH_MAX_RETRIES": "1",
        "FETCH_CACHE_TTL": "30",
        "FETCH_CB_THRESHOLD": "7",
        "FETCH_CB_COOLDOWN": "15",
        "FETCH_LOG_LEVEL": "DEBUG",
    }

    for key, value in env_vars.items():
        os.environ[key] = value

    try:
        config = FetchClientConfig.from_env()

        assert config.default_timeout == 2.5
        assert config.default_max_retries == 1
        assert config.cache_ttl == 30.0
        assert config.circuit_breaker_failure_threshold == 7
        assert config.circuit_breaker_cooldown == 15.0
        assert config.log_level == "DEBUG"
    finally:
        for key in env_vars:
            os.environ.pop(key, None)


def test_config_manager_loads_yaml():
    """Test ConfigManager loads configuration from YAML file."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_file = Path(tmpdir) / "fetch.yaml"

        test_config = {
            "default_timeout": 3.0,
            "circuit_breaker_failure_threshold": 2,
            "health_check_endpoints": ["http://api.test/health"],
        }

        with open(config_file, 'w') as f:
            yaml.dump(test_config, f)

        config = ConfigManager(config_file).load_config()

        assert config.default_timeout == 3.0
        assert config.circuit_breaker_failure_threshold == 2
        assert config.health_check_endpoints == ["http://api.test/health"]


def test_config_manager_missing_file_uses_defaults(tmp_path):
    config = ConfigManager(tmp_path / "absent.yaml").load_config()
    assert config == FetchClientConfig()


def test_config_manager_env_overrides_yaml(tmp_path):
    """Test that environment variables override YAML configuration."""
    config_file = tmp_path / "fetch.yaml"
    with open(config_file, 'w') as f:
        yaml.dump({"cache_ttl": 60.0, "default_max_retries": 1}, f)

    os.environ["FETCH_CACHE_TTL"] = "15"
    try:
        config = ConfigManager(config_file).load_config()

        assert config.cache_ttl == 15.0
        assert config.default_max_retries == 1
    finally:
        os.environ.pop("FETCH_CACHE_TTL", None)


def test_config_manager_cli_overrides_all(tmp_path):
    """Test that CLI overrides have highest precedence."""
    config_file = tmp_path / "fetch.yaml"
    with open(config_file, 'w') as f:
        yaml.dump({"log_level": "WARNING"}, f)

    os.environ["FETCH_LOG_LEVEL"] = "ERROR"
    try:
        manager = ConfigManager(config_file)
        config = manager.load_config({"log_level": "DEBUG", "default_timeout": None})

        assert config.log_level == "DEBUG"
        assert config.default_timeout == 10.0
        assert manager.config is config
    finally:
        os.environ.pop("FETCH_LOG_LEVEL", None)
