"""Configuration management for the bulk order engine."""

import os
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from bulk_orders.errors import ConfigurationError


DEFAULT_RETRYABLE_PATTERNS = [
    "ECONNRESET",
    "ETIMEDOUT",
    "ENOTFOUND",
    "rate_limit",
    "temporary_failure",
    "stock_update_in_progress",
]


class RetryPolicy(BaseModel):
    """Retry behaviour for one dependency."""
    max_attempts: int = Field(default=3, description="Total attempts including the first call")
    initial_delay_ms: float = Field(default=1000.0, description="Delay before the second attempt")
    max_delay_ms: float = Field(default=10000.0, description="Upper bound for the backoff delay")
    backoff_multiplier: float = Field(default=2.0, description="Growth factor between attempts")
    retryable_error_patterns: List[str] = Field(
        default_factory=lambda: list(DEFAULT_RETRYABLE_PATTERNS),
        description="Error classifications that trigger a retry"
    )

    @field_validator('max_attempts')
    @classmethod
    def validate_attempts(cls, v: int) -> int:
        """Validate at least one attempt is made."""
        if v < 1:
            raise ValueError(f"max_attempts must be at least 1, got: {v}")
        return v

    @field_validator('initial_delay_ms', 'max_delay_ms')
    @classmethod
    def validate_delay(cls, v: float) -> float:
        """Validate delays are not negative."""
        if v < 0:
            raise ValueError(f"delay must not be negative, got: {v}")
        return v

    @field_validator('backoff_multiplier')
    @classmethod
    def validate_multiplier(cls, v: float) -> float:
        if v < 1.0:
            raise ValueError(f"backoff_multiplier must be >= 1.0, got: {v}")
        return v


class CircuitBreakerSettings(BaseModel):
    """Circuit breaker thresholds for one dependency."""
    failure_threshold: int = Field(default=5, description="Consecutive failures before opening")
    cooldown_seconds: float = Field(default=60.0, description="Open period before a half-open trial")

    @field_validator('failure_threshold')
    @classmethod
    def validate_threshold(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"failure_threshold must be positive, got: {v}")
        return v


class SuggesterConfig(BaseModel):
    """Alternative suggester tuning."""
    max_suggestions: int = Field(default=3, description="Maximum suggestions per product")
    min_similarity: float = Field(default=0.5, description="Minimum similarity score to suggest")
    price_tolerance_percent: float = Field(default=20.0, description="Price proximity window")
    enable_cross_brand: bool = Field(default=True, description="Score candidates from other brands")
    b2b: bool = Field(default=True, description="Use B2B weights and annotations")
    weights: Dict[str, float] = Field(default_factory=dict, description="Per-signal weight overrides")

    @field_validator('min_similarity')
    @classmethod
    def validate_similarity(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"min_similarity must be within [0, 1], got: {v}")
        return v


class CacheSettings(BaseModel):
    """Availability cache configuration."""
    enabled: bool = Field(default=True, description="Cache availability lookups")
    ttl_seconds: float = Field(default=300.0, description="Time to live per entry")
    max_size: int = Field(default=1000, description="Maximum cached SKUs")


class EngineConfig(BaseModel):
    """Main engine configuration, passed explicitly into the processor."""

    # Batching and concurrency
    batch_size: int = Field(default=50, description="Rows per batch")
    max_concurrent: int = Field(default=5, description="Concurrent availability checks per batch")
    enable_alternatives: bool = Field(default=True, description="Suggest alternatives for rejected items")
    availability_rate_limit_rps: Optional[float] = Field(
        default=None, description="Availability calls per second (unlimited when unset)"
    )
    run_timeout_seconds: Optional[float] = Field(
        default=None, description="Stop starting new batches after this many seconds"
    )

    # Dependencies
    availability_retry: RetryPolicy = Field(default_factory=RetryPolicy)
    cart_retry: RetryPolicy = Field(default_factory=RetryPolicy)
    availability_breaker: CircuitBreakerSettings = Field(default_factory=CircuitBreakerSettings)
    cart_breaker: CircuitBreakerSettings = Field(default_factory=CircuitBreakerSettings)
    suggester: SuggesterConfig = Field(default_factory=SuggesterConfig)
    cache: CacheSettings = Field(default_factory=CacheSettings)

    # Parsing
    max_rows: int = Field(default=1000, description="Maximum data rows accepted per file")
    max_file_bytes: int = Field(default=5 * 1024 * 1024, description="Maximum size of an order file in bytes")

    # HTTP gateway
    api_url: Optional[str] = Field(default=None, description="Base URL of the commerce API")
    connect_timeout: float = Field(default=3.0, description="HTTP connect timeout in seconds")
    read_timeout: float = Field(default=8.0, description="HTTP read timeout in seconds")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")

    # Output
    output_directory: str = Field(default="out", description="Output directory for reports")
    output_filename: str = Field(default="report.csv", description="Report filename")

    @field_validator('batch_size', 'max_concurrent', 'max_rows', 'max_file_bytes')
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Validate counts are positive."""
        if v <= 0:
            raise ValueError(f"value must be positive, got: {v}")
        return v

    @field_validator('run_timeout_seconds', 'availability_rate_limit_rps')
    @classmethod
    def validate_optional_positive(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v <= 0:
            raise ValueError(f"value must be positive when set, got: {v}")
        return v

    @field_validator('api_url')
    @classmethod
    def validate_url(cls, v: Optional[str]) -> Optional[str]:
        """Validate URL format."""
        if v is not None and not v.startswith(('http://', 'https://')):
            raise ValueError(f"URL must start with http:// or https://, got: {v}")
        return v

    @property
    def output_path(self) -> Path:
        """Get full output file path."""
        return Path(self.output_directory) / self.output_filename

    @classmethod
    def env_overrides(cls) -> Dict[str, object]:
        """Collect overrides from environment variables."""
        env_mappings = {
            "BULK_BATCH_SIZE": ("batch_size", int),
            "BULK_MAX_CONCURRENT": ("max_concurrent", int),
            "BULK_LOG_LEVEL": ("log_level", str),
            "BULK_RUN_TIMEOUT": ("run_timeout_seconds", float),
            "BULK_ENABLE_ALTERNATIVES": ("enable_alternatives", _parse_bool),
            "BULK_API_URL": ("api_url", str),
        }

        overrides: Dict[str, object] = {}
        for env_var, (field_name, convert) in env_mappings.items():
            if env_var in os.environ:
                overrides[field_name] = convert(os.environ[env_var])
        return overrides


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


class ConfigManager:
    """Manages configuration loading with override precedence."""

    def __init__(self, config_file: Optional[Path] = None):
        self.config_file = config_file or Path("config/config.yaml")
        self._config: Optional[EngineConfig] = None

    def load_config(self, cli_overrides: Optional[Dict] = None) -> EngineConfig:
        """
        Load configuration with override precedence: CLI > ENV > YAML.

        Args:
            cli_overrides: Optional dictionary of CLI flag overrides

        Returns:
            Fully merged EngineConfig instance

        Raises:
            ConfigurationError: If the YAML is unreadable or validation fails
        """
        config_dict: Dict[str, object] = {}

        if self.config_file.exists():
            try:
                with open(self.config_file, 'r', encoding='utf-8') as f:
                    yaml_config = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in {self.config_file}: {e}") from e
            if yaml_config:
                if not isinstance(yaml_config, dict):
                    raise ConfigurationError(f"{self.config_file} must contain a mapping")
                config_dict.update(yaml_config)

        config_dict.update(EngineConfig.env_overrides())

        if cli_overrides:
            # Filter out None values from CLI
            config_dict.update({k: v for k, v in cli_overrides.items() if v is not None})

        try:
            self._config = EngineConfig(**config_dict)
        except ValidationError as e:
            raise ConfigurationError(str(e)) from e
        return self._config

    @property
    def config(self) -> EngineConfig:
        """Get the loaded configuration."""
        if self._config is None:
            self._config = self.load_config()
        return self._config
