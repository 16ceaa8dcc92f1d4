"""Application configuration using pydantic-settings."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ControlPlaneConfig(BaseSettings):
    """Remote control plane connection configuration."""

    model_config = SettingsConfigDict(env_prefix="CONTROL_PLANE_")

    endpoint: str = Field(default="http://localhost:5000")
    token: str = Field(default="")  # static token when no session provider is wired
    timeout: float = Field(default=30.0)  # seconds, expiry surfaces as FetchError
    download_timeout: float = Field(default=120.0)  # seconds (log download)


class StoreConfig(BaseSettings):
    """Instance store resynchronization configuration.

    Only the list load is retried. Lifecycle actions are never retried.
    """

    model_config = SettingsConfigDict(env_prefix="STORE_")

    load_max_retries: int = Field(default=2)
    retry_base_delay: float = Field(default=0.5)  # seconds
    retry_max_delay: float = Field(default=5.0)  # seconds


class LogViewerConfig(BaseSettings):
    """Log viewer polling configuration."""

    model_config = SettingsConfigDict(env_prefix="LOG_VIEWER_")

    page_lines: int = Field(default=100, gt=0)  # entries requested per fetch
    refresh_interval: float = Field(default=5.0)  # seconds (auto-refresh)
    max_entries: int = Field(default=1000, gt=0)  # upper bound of the displayed window


class CircuitBreakerConfig(BaseSettings):
    """Circuit breaker thresholds for control plane calls."""

    model_config = SettingsConfigDict(env_prefix="CIRCUIT_BREAKER_")

    failure_threshold: int = Field(default=5)
    success_threshold: int = Field(default=2)
    timeout: float = Field(default=30.0)  # seconds before HALF_OPEN


class LoggingConfig(BaseSettings):
    """Logging configuration.

    Standard fields added to all logs:
    - schema_version: Log schema version for backwards compatibility
    - service: Service name (dbconsole)

    Repeat suppression:
    - rate_limit_per_minute caps one line per instance per minute
    - ERROR logs bypass it (always logged)
    """

    model_config = SettingsConfigDict(env_prefix="LOGGING_")

    level: str = Field(default="INFO")
    schema_version: str = Field(default="1.0")
    rate_limit_per_minute: int = Field(default=100)
    service_name: str = Field(default="dbconsole")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="DBCONSOLE_",
        env_nested_delimiter="__",
    )

    control_plane: ControlPlaneConfig = Field(default_factory=ControlPlaneConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    log_viewer: LogViewerConfig = Field(default_factory=LogViewerConfig)
    circuit_breaker: CircuitBreakerConfig = Field(default_factory=CircuitBreakerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


@lru_cache
def get_settings() -> Settings:
    return Settings()
