"""Configuration management for the resilient fetch client."""

import os
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator


class FetchClientConfig(BaseModel):
    """Defaults and tunables for a FetchClient."""

    # Per-request defaults
    default_timeout: float = Field(default=10.0, description="Per-attempt timeout in seconds")
    default_max_retries: int = Field(default=3, description="Retries after the first attempt")
    default_headers: Dict[str, str] = Field(
        default={"Content-Type": "application/json"},
        description="Headers sent with every request"
    )

    # Retry backoff
    retry_base_delay: float = Field(default=1.0, description="Base delay for exponential backoff")
    retry_max_delay: Optional[float] = Field(default=None, description="Optional cap on a single backoff delay")
    retry_jitter_max: float = Field(default=0.0, description="Maximum jitter added to a backoff delay")

    # Cache
    cache_ttl: float = Field(default=300.0, description="Default freshness TTL in seconds")
    cache_stale_grace: float = Field(default=300.0, description="Seconds past TTL an entry may serve as fallback")
    cache_max_entries: int = Field(default=1000, description="Soft cap on cached entries")

    # Circuit breaker
    circuit_breaker_failure_threshold: int = Field(default=5, description="Failures before opening circuit")
    circuit_breaker_cooldown: float = Field(default=60.0, description="Cooldown period in seconds")

    # Health monitoring
    health_check_timeout: float = Field(default=5.0, description="Deadline for one health probe")
    health_freshness_window: float = Field(default=300.0, description="Age after which a healthy record is ignored")
    health_check_endpoints: List[str] = Field(default=[], description="Endpoints probed by the health monitor")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator(
        'default_timeout',
        'retry_base_delay',
        'circuit_breaker_cooldown',
        'health_check_timeout',
        'health_freshness_window'
    )
    @classmethod
    def validate_positive(cls, v: float, info) -> float:
        """Validate durations are positive."""
        if v <= 0:
            raise ValueError(f"{info.field_name} must be positive, got: {v}")
        return v

    @field_validator('default_max_retries', 'cache_ttl', 'cache_stale_grace')
    @classmethod
    def validate_non_negative(cls, v, info):
        if v < 0:
            raise ValueError(f"{info.field_name} must be >= 0, got: {v}")
        return v

    @field_validator('circuit_breaker_failure_threshold', 'cache_max_entries')
    @classmethod
    def validate_at_least_one(cls, v: int, info) -> int:
        if v < 1:
            raise ValueError(f"{info.field_name} must be at least 1, got: {v}")
        return v

    @field_validator('health_check_endpoints')
    @classmethod
    def validate_endpoints(cls, v: List[str]) -> List[str]:
        """Validate URL format."""
        for url in v:
            if not url.startswith(('http://', 'https://')):
                raise ValueError(f"URL must start with http:// or https://, got: {url}")
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    # Environment variable overrides
    @classmethod
    def from_env(cls) -> "FetchClientConfig":
        """Create configuration with environment variable overrides."""
        env_mappings = {
            "FETCH_TIMEOUT": "default_timeout",
            "FETCH_MAX_RETRIES": "default_max_retries",
            "FETCH_RETRY_BASE_DELAY": "retry_base_delay",
            "FETCH_CACHE_TTL": "cache_ttl",
            "FETCH_CACHE_STALE_GRACE": "cache_stale_grace",
            "FETCH_CB_THRESHOLD": "circuit_breaker_failure_threshold",
            "FETCH_CB_COOLDOWN": "circuit_breaker_cooldown",
            "FETCH_LOG_LEVEL": "log_level",
        }

        overrides = {}
        for env_var, field_name in env_mappings.items():
            if env_var in os.environ:
                # Pydantic coerces the string to the field type
                overrides[field_name] = os.environ[env_var]

        return cls(**overrides)


class ConfigManager:
    """Manages configuration loading with override precedence."""

    def __init__(self, config_file: Optional[Path] = None):
        self.config_file = config_file or Path("config/fetch.yaml")
        self._config: Optional[FetchClientConfig] = None

    def load_config(self, cli_overrides: Optional[Dict] = None) -> FetchClientConfig:
        """
        Load configuration with override precedence: CLI > ENV > YAML.

        Args:
            cli_overrides: Optional dictionary of CLI flag overrides

        Returns:
            Fully merged FetchClientConfig instance

        Raises:
            ValueError: If configuration validation fails
        """
        config_dict = {}

        if self.config_file.exists():
            with open(self.config_file, 'r') as f:
                yaml_config = yaml.safe_load(f)
                if yaml_config:
                    config_dict.update(yaml_config)

        base_config = FetchClientConfig(**config_dict)
        merged_dict = base_config.model_dump()

        # Only override with env values that differ from defaults
        env_dict = FetchClientConfig.from_env().model_dump()
        default_dict = FetchClientConfig().model_dump()
        for key, value in env_dict.items():
            if value != default_dict[key]:
                merged_dict[key] = value

        if cli_overrides:
            cli_overrides = {k: v for k, v in cli_overrides.items() if v is not None}
            merged_dict.update(cli_overrides)

        self._config = FetchClientConfig(**merged_dict)
        return self._config

    @property
    def config(self) -> FetchClientConfig:
        """Get the loaded configuration."""
        if self._config is None:
            self._config = self.load_config()
        return self._config
