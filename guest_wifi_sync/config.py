"""
Centralized configuration management for the guest WiFi sync core.

This module provides a unified configuration system with support for:
- Environment variables
- Device connection settings (ESP32 portal, Ruckus R710)
- Sync, lookup and retry tuning
- Validation using Pydantic
"""

import os
from typing import Optional, Tuple

from pydantic import BaseModel, Field, field_validator

from .constants import MAX_BATCH_SIZE, NOT_FOUND_PHRASES, EnvironmentVariable, LogLevel
from .exceptions import ErrorCode, ValidationError


def _env(variable: EnvironmentVariable, default: str = "") -> str:
    return os.getenv(variable.value, default)


class DatabaseConfig(BaseModel):
    """
    Ledger database connection configuration.

    ``DATABASE_URL`` wins when set; otherwise the URL is assembled from the
    discrete ``DB_*`` variables.
    """

    url: Optional[str] = Field(
        default_factory=lambda: _env(EnvironmentVariable.DATABASE_URL) or None,
        description="Full SQLAlchemy URL",
    )
    db_type: str = Field(
        default_factory=lambda: _env(EnvironmentVariable.DB_TYPE, "sqlite"),
        description="sqlite or postgres",
    )
    database: str = Field(
        default_factory=lambda: _env(EnvironmentVariable.DB_NAME, "guest_wifi_sync.db"),
        description="Database name, or file path for sqlite",
    )
    host: str = Field(default_factory=lambda: _env(EnvironmentVariable.DB_HOST))
    port: str = Field(default_factory=lambda: _env(EnvironmentVariable.DB_PORT, "5432"))
    username: str = Field(default_factory=lambda: _env(EnvironmentVariable.DB_USER))
    password: str = Field(default_factory=lambda: _env(EnvironmentVariable.DB_PASSWORD))
    pool_size: int = Field(default=5, description="Connection pool size")
    max_overflow: int = Field(default=10, description="Connections beyond pool_size")
    pool_timeout: int = Field(default=30, description="Seconds to wait for a pooled connection")
    echo: bool = Field(
        default_factory=lambda: _env(EnvironmentVariable.DB_ECHO, "false").lower() == "true",
        description="Echo SQL statements",
    )
    development_mode: bool = Field(default=False, description="Allow dropping tables")

    def get_connection_string(self) -> str:
        """
        SQLAlchemy URL for this configuration.

        Raises:
            ValidationError: Incomplete postgres settings or an unknown db_type
        """
        if self.url:
            return self.url

        db_type = self.db_type.lower()
        if db_type == "sqlite":
            return f"sqlite:///{self.database}"
        if db_type == "postgres":
            if not all([self.host, self.database, self.username, self.password]):
                raise ValidationError(
                    "Missing required Postgres configuration parameters",
                    error_code=ErrorCode.MISSING_REQUIRED,
                    field="database_config",
                    value={"host": self.host, "database": self.database, "username": self.username},
                )
            return (
                f"postgresql://{self.username}:{self.password}@"
                f"{self.host}:{self.port}/{self.database}"
            )
        raise ValidationError(
            f"Unsupported database type: {self.db_type}",
            error_code=ErrorCode.INVALID_FORMAT,
            field="db_type",
            value=self.db_type,
        )

    def __repr__(self) -> str:
        """String representation with masked password."""
        return (
            f"DatabaseConfig(db_type='{self.db_type}', host='{self.host}', "
            f"database='{self.database}', username='{self.username}', "
            f"password='***', url={'***' if self.url else None})"
        )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.LOG_LEVEL.value, LogLevel.INFO.value),
        description="Logging level",
    )
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format string",
    )

    @field_validator("level")
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = {level.value for level in LogLevel}
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()


class PortalConfig(BaseModel):
    """ESP32 captive portal connection settings."""

    base_url: str = Field(
        default_factory=lambda: os.getenv(
            EnvironmentVariable.PORTAL_BASE_URL.value, "http://192.168.4.1"
        ),
        description="Portal base URL",
    )
    api_key: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.PORTAL_API_KEY.value, ""),
        description="Portal API key",
    )
    interactive_timeout: float = Field(
        default=5.0, description="Timeout in seconds for interactive lookups"
    )
    batch_timeout: float = Field(
        default=30.0, description="Timeout in seconds for batch and admin calls"
    )

    @field_validator("base_url")
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("interactive_timeout", "batch_timeout")
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Timeouts must be positive")
        return v


class R710Config(BaseModel):
    """Ruckus R710 admin session settings."""

    host: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.R710_HOST.value, "https://192.168.0.1"),
        description="R710 base URL",
    )
    username: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.R710_USERNAME.value, "admin"),
        description="Admin username",
    )
    password: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.R710_PASSWORD.value, ""),
        description="Admin password",
    )
    timeout: float = Field(default=30.0, description="Request timeout in seconds")
    verify_tls: bool = Field(
        default=False, description="Verify the appliance certificate (self-signed by default)"
    )

    @field_validator("host")
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class SyncConfig(BaseModel):
    """Batch reconciliation settings."""

    max_batch_size: int = Field(
        default=MAX_BATCH_SIZE, description="Maximum tokens per batch lookup"
    )
    not_found_phrases: Tuple[str, ...] = Field(
        default=NOT_FOUND_PHRASES,
        description="Per-token error phrases that mean the device does not know the token",
    )

    @field_validator("max_batch_size")
    def validate_batch_size(cls, v: int) -> int:
        if v < 1 or v > MAX_BATCH_SIZE:
            raise ValueError(f"max_batch_size must be between 1 and {MAX_BATCH_SIZE}")
        return v


class LookupConfig(BaseModel):
    """Debounced interactive lookup timings (milliseconds)."""

    inter_key_gap_ms: int = Field(default=80, description="Max gap between scanner keystrokes")
    idle_flush_ms: int = Field(default=150, description="Idle time before the buffer is flushed")
    debounce_ms: int = Field(default=300, description="Window coalescing lookup triggers")
    dedupe_window_ms: int = Field(default=3000, description="Window suppressing repeated queries")
    min_length: int = Field(default=4, description="Shortest query that triggers a lookup")


class RetryPolicy(BaseModel):
    """Caller-side retry policy for device-unreachable failures."""

    max_attempts: int = Field(default=3, ge=1, description="Total attempts including the first")
    backoff_base_seconds: float = Field(
        default=2.0, ge=0, description="Base for exponential backoff (seconds)"
    )
    backoff_max_seconds: float = Field(default=60.0, ge=0, description="Maximum backoff (seconds)")
    retry_on_busy: bool = Field(
        default=True, description="Retry when the device reports busy (503)"
    )


class AppConfig(BaseModel):
    """Main application configuration."""

    environment: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.APP_ENV.value, "development"),
        description="Application environment",
    )

    database: DatabaseConfig = Field(
        default_factory=DatabaseConfig, description="Database configuration"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )
    portal: PortalConfig = Field(default_factory=PortalConfig, description="ESP32 portal")
    r710: R710Config = Field(default_factory=R710Config, description="Ruckus R710")
    sync: SyncConfig = Field(default_factory=SyncConfig, description="Batch sync")
    lookup: LookupConfig = Field(default_factory=LookupConfig, description="Interactive lookup")
    retry: RetryPolicy = Field(default_factory=RetryPolicy, description="Retry policy")

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Create configuration from environment variables."""
        return cls()


# Global configuration instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def set_config(config: AppConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config


def reset_config() -> None:
    """Reset the global configuration instance."""
    global _config
    _config = None
