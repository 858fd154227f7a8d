"""Configuration management for the nodeflow workflow engine."""

import os
from typing import Optional
from pydantic import BaseModel, Field, ValidationError, field_validator
from enum import Enum

from .core.exceptions import ConfigurationError

_TRUE_VALUES = ("true", "1", "yes", "on")


class LogLevel(str, Enum):
    """Logging levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class HistoryBackend(str, Enum):
    """Where finalized run records are kept."""
    MEMORY = "memory"
    SQL = "sql"


class AppConfig(BaseModel):
    """Application configuration settings."""

    # Application settings
    app_name: str = Field(default="nodeflow", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Enable debug mode")

    # Server settings
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")

    # Run history settings
    history_backend: HistoryBackend = Field(
        default=HistoryBackend.MEMORY,
        description="Run history store backend"
    )
    database_url: str = Field(
        default="sqlite:///./nodeflow.db",
        description="Database URL of the SQL run history store"
    )
    database_echo: bool = Field(default=False, description="Enable SQLAlchemy query logging")

    # Node collaborator settings
    query_database_url: str = Field(
        default="sqlite:///:memory:",
        description="Database used by query nodes without a connection string"
    )
    storage_database_url: str = Field(
        default="sqlite:///:memory:",
        description="Database used by storage nodes without a connection string"
    )
    http_timeout: float = Field(default=30.0, description="HTTP request timeout in seconds")

    # Execution engine settings
    max_concurrent_runs: int = Field(
        default=10,
        description="Maximum number of runs executing at the same time"
    )
    node_timeout: Optional[float] = Field(
        default=None,
        description="Per-node timeout in seconds; None disables it"
    )

    # Logging settings
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")
    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log message format"
    )
    log_file: Optional[str] = Field(default=None, description="Log file path")
    log_max_size: int = Field(default=10485760, description="Maximum log file size in bytes")  # 10MB
    log_backup_count: int = Field(default=5, description="Number of log backup files to keep")
    structured_logging: bool = Field(default=False, description="Emit JSON log lines")

    @field_validator('database_url', 'query_database_url', 'storage_database_url')
    @classmethod
    def validate_database_url(cls, v):
        """Validate database URL format."""
        if not v:
            raise ValueError("Database URL cannot be empty")

        supported_schemes = ['sqlite', 'postgresql', 'postgres', 'mysql']
        scheme = v.split('://')[0].split('+')[0].lower()

        if scheme not in supported_schemes:
            raise ValueError(f"Unsupported database scheme: {scheme}. Supported: {supported_schemes}")

        return v

    @field_validator('port')
    @classmethod
    def validate_port(cls, v):
        if not 1 <= v <= 65535:
            raise ValueError("Port must be between 1 and 65535")
        return v

    @field_validator('max_concurrent_runs')
    @classmethod
    def validate_max_concurrent_runs(cls, v):
        if v < 1:
            raise ValueError("Maximum concurrent runs must be at least 1")
        return v

    @field_validator('http_timeout', 'node_timeout')
    @classmethod
    def validate_timeouts(cls, v):
        if v is not None and v <= 0:
            raise ValueError("Timeout must be positive")
        return v

    @classmethod
    def from_env(cls) -> 'AppConfig':
        """
        Create configuration from ``NODEFLOW_*`` environment variables.

        Unset or empty variables keep the field default.

        Raises:
            ConfigurationError: If a variable cannot be parsed or is out of range
        """
        values = {}
        for name, field in cls.model_fields.items():
            key = f"NODEFLOW_{name.upper()}"
            raw = os.getenv(key)
            if raw is None or raw == "":
                continue
            if field.annotation is bool:
                values[name] = raw.lower() in _TRUE_VALUES
            elif name == "history_backend":
                values[name] = raw.lower()
            elif name == "log_level":
                values[name] = raw.upper()
            else:
                values[name] = raw

        try:
            return cls(**values)
        except ValidationError as e:
            error = e.errors()[0]
            field_name = str(error["loc"][0]) if error["loc"] else None
            raise ConfigurationError(
                f"Invalid value for NODEFLOW_{(field_name or '').upper()}: {error['msg']}",
                config_key=field_name,
            ) from e


# Global configuration instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def load_config(config_file: Optional[str] = None) -> AppConfig:
    """Load configuration from a .env file and the environment."""
    global _config
    from dotenv import load_dotenv

    if config_file and os.path.exists(config_file):
        load_dotenv(config_file)
    elif os.path.exists('.env'):
        load_dotenv('.env')

    _config = AppConfig.from_env()
    return _config


def reset_config():
    """Reset the global configuration instance (mainly for testing)."""
    global _config
    _config = None


def get_testing_config() -> AppConfig:
    """Get testing configuration."""
    return AppConfig(
        debug=True,
        database_url="sqlite:///:memory:",
        log_level=LogLevel.WARNING,
        max_concurrent_runs=2,
        http_timeout=5.0,
    )
