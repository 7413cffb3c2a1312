"""
Pydantic-based configuration models for the Educademy server.

Each section is a BaseSettings model with its own environment prefix;
AppConfig aggregates them.
"""

import json
from typing import Annotated, Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode

from ..structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)


def _parse_env_list(candidate: Any) -> list[str]:
    """Parse a string from the environment as JSON list or CSV."""
    if candidate is None:
        return []
    if isinstance(candidate, list):
        return [str(item).strip() for item in candidate if str(item).strip()]
    s = str(candidate).strip()
    if not s:
        return []
    try:
        loaded = json.loads(s)
        if isinstance(loaded, list):
            return [str(item).strip() for item in loaded if str(item).strip()]
    except json.JSONDecodeError:
        pass
    return [item.strip() for item in s.split(",") if item.strip()]


class ServerConfig(BaseSettings):
    """Server network configuration."""

    host: str = Field(default="127.0.0.1", description="Server bind address")
    port: int = Field(default=5000, description="Server port")

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate port is in valid range."""
        if not 1 <= v <= 65535:
            logger.error("Invalid server port", port=v, valid_range="1-65535")
            raise ValueError("Port must be between 1 and 65535")
        return v

    model_config = {"env_prefix": "SERVER_", "case_sensitive": False, "extra": "ignore"}


class DatabaseConfig(BaseSettings):
    """Database configuration."""

    url: str = Field(
        default="postgresql+asyncpg://localhost:5432/educademy",
        description="Async SQLAlchemy database URL",
    )
    pool_size: int = Field(default=5, description="Connection pool size")
    max_overflow: int = Field(default=10, description="Maximum pool overflow")
    pool_timeout: int = Field(default=30, description="Pool checkout timeout in seconds")
    echo: bool = Field(default=False, description="Echo SQL statements")

    @field_validator("url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Require an async driver."""
        if not v:
            raise ValueError("Database URL must not be empty")
        if not v.startswith(("postgresql+asyncpg://", "sqlite+aiosqlite://")):
            raise ValueError("Database URL must use postgresql+asyncpg:// or sqlite+aiosqlite://")
        return v

    @field_validator("pool_size", "max_overflow", "pool_timeout")
    @classmethod
    def validate_pool_config(cls, v: int) -> int:
        """Validate pool settings are non-negative."""
        if v < 0:
            raise ValueError("Pool settings must be non-negative")
        return v

    model_config = {"env_prefix": "DATABASE_", "case_sensitive": False, "extra": "ignore"}


class AuthConfig(BaseSettings):
    """Token verification configuration."""

    jwt_secret: str = Field(default="dev-jwt-secret-change-me", description="HMAC secret used to verify access tokens")
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    token_expire_minutes: int = Field(default=60 * 24, description="Lifetime of tokens minted by create_access_token")

    @field_validator("jwt_algorithm")
    @classmethod
    def validate_algorithm(cls, v: str) -> str:
        """Restrict to HMAC algorithms."""
        valid = ["HS256", "HS384", "HS512"]
        if v not in valid:
            raise ValueError(f"JWT algorithm must be one of {valid}, got '{v}'")
        return v

    model_config = {"env_prefix": "AUTH_", "case_sensitive": False, "extra": "ignore"}


class RealtimeConfig(BaseSettings):
    """WebSocket gateway and connection lifecycle configuration."""

    auth_timeout_seconds: float = Field(default=30.0, description="Time allowed to complete authentication")
    heartbeat_timeout_seconds: float = Field(
        default=60.0, description="Close a connection when no frame arrives within this window"
    )
    pending_drain_limit: int | None = Field(
        default=None, description="Maximum notifications sent in a connect-time drain; None sends all"
    )
    max_idle_seconds: float = Field(default=30 * 60, description="Idle time after which the cleaner evicts a session")
    cleanup_interval_seconds: float = Field(default=5 * 60, description="Period of the connection cleaner")
    max_message_bytes: int = Field(default=64 * 1024, description="Largest inbound frame accepted")

    @field_validator("auth_timeout_seconds", "heartbeat_timeout_seconds", "max_idle_seconds", "cleanup_interval_seconds")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        """Validate timing values are positive."""
        if v <= 0:
            raise ValueError("Timing values must be positive")
        return v

    @field_validator("pending_drain_limit")
    @classmethod
    def validate_drain_limit(cls, v: int | None) -> int | None:
        """Validate the drain limit is positive when set."""
        if v is not None and v <= 0:
            raise ValueError("pending_drain_limit must be positive or unset")
        return v

    model_config = {"env_prefix": "REALTIME_", "case_sensitive": False, "extra": "ignore"}


class CacheConfig(BaseSettings):
    """Instructor view cache configuration."""

    max_size: int = Field(default=2000, description="Maximum cached entries")
    ttl_seconds: int = Field(default=300, description="Default entry lifetime")

    @field_validator("max_size", "ttl_seconds")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Validate cache sizing is positive."""
        if v <= 0:
            raise ValueError("Cache settings must be positive")
        return v

    model_config = {"env_prefix": "CACHE_", "case_sensitive": False, "extra": "ignore"}


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    environment: str = Field(default="local", description="Logging environment")
    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="key_value", description="Log format")
    audit_directory: str | None = Field(default=None, description="Directory for JSONL audit files")
    disable_logging: bool = Field(default=False, description="Disable all logging")

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate logging environment."""
        valid_environments = ["local", "unit_test", "e2e_test", "production"]
        if v not in valid_environments:
            logger.error("Invalid logging environment", environment=v, valid_environments=valid_environments)
            raise ValueError(f"Environment must be one of {valid_environments}, got '{v}'")
        return v

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}, got '{v}'")
        return v_upper

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Validate log format."""
        valid_formats = ["json", "key_value"]
        if v not in valid_formats:
            raise ValueError(f"Log format must be one of {valid_formats}, got '{v}'")
        return v

    model_config = {"env_prefix": "LOGGING_", "case_sensitive": False, "extra": "ignore"}

    def to_dict(self) -> dict[str, Any]:
        """Convert to the dict shape consumed by setup_logging."""
        return {
            "environment": self.environment,
            "level": self.level,
            "format": self.format,
            "audit_directory": self.audit_directory,
            "disable_logging": self.disable_logging,
        }


class CORSConfig(BaseSettings):
    """CORS configuration for the REST API."""

    allow_origins: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["http://localhost:5173", "http://127.0.0.1:5173"],
        description="Allowed origins",
    )
    allow_credentials: bool = Field(default=True, description="Allow credentials")
    allow_methods: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["GET", "POST", "PUT", "DELETE", "OPTIONS"], description="Allowed methods"
    )
    allow_headers: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["Authorization", "Content-Type", "X-Correlation-ID", "X-Request-ID"],
        description="Allowed headers",
    )

    @field_validator("allow_origins", "allow_methods", "allow_headers", mode="before")
    @classmethod
    def parse_list(cls, value: Any) -> list[str]:
        """Accept JSON lists or comma-separated strings."""
        return _parse_env_list(value)

    model_config = {"env_prefix": "CORS_", "case_sensitive": False, "extra": "ignore"}


class AppConfig(BaseSettings):
    """
    Composite application configuration.

    Aggregates all configuration sections. Access via get_config().
    """

    server: ServerConfig = Field(default_factory=ServerConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    realtime: RealtimeConfig = Field(default_factory=RealtimeConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    cors: CORSConfig = Field(default_factory=CORSConfig)

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "case_sensitive": False, "extra": "ignore"}
