"""
Application Configuration

Pydantic-based settings management using environment variables, an optional
.env file and an optional YAML file (path in OBSERVIO_CONFIG).

Usage:
    from observio.config import get_settings

    settings = get_settings()
    print(settings.clickhouse.host)
    print(settings.explore.default_limit)
"""

import logging
import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from dotenv import load_dotenv
from pydantic import Field, SecretStr, ValidationInfo, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

_TABLE_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")


class ClickHouseSettings(BaseSettings):
    """ClickHouse connection configuration."""

    enabled: bool = Field(
        default=True,
        description="Connect to ClickHouse at startup (explore/logs endpoints need it)",
    )
    host: str = Field(default="localhost", description="ClickHouse host")
    port: int = Field(default=8123, gt=0, le=65535, description="ClickHouse HTTP port")
    database: str = Field(default="default", description="Default database")
    user: str = Field(default="default", description="ClickHouse user")
    password: SecretStr = Field(default=SecretStr(""), description="ClickHouse password")
    secure: bool = Field(default=False, description="Use HTTPS")
    pool_size: int = Field(
        default=10,
        gt=0,
        le=100,
        description="HTTP connection pool size",
    )
    timeout: int = Field(
        default=30,
        gt=0,
        description="Server-side max_execution_time in seconds",
    )

    model_config = SettingsConfigDict(
        env_prefix="CLICKHOUSE_",
        env_file=".env",
        extra="ignore",
    )


class ExploreSettings(BaseSettings):
    """Query builder and decoder behaviour."""

    default_limit: int = Field(
        default=1000,
        gt=0,
        description="Row limit applied when a request asks for limit 0",
    )
    max_limit: int = Field(
        default=10000,
        gt=0,
        description="Largest limit a request may ask for",
    )
    decode_mode: Literal["typed", "generic"] = Field(
        default="typed",
        description="typed: normalize by engine type tag; generic: pass values through",
    )
    validate_identifiers: bool = Field(
        default=True,
        description="Check table/column names against the schema before building SQL",
    )

    model_config = SettingsConfigDict(
        env_prefix="EXPLORE_",
        env_file=".env",
        extra="ignore",
    )

    @model_validator(mode="after")
    def validate_limits(self) -> "ExploreSettings":
        """Ensure the default limit fits under the ceiling."""
        if self.default_limit > self.max_limit:
            raise ValueError(
                f"default_limit ({self.default_limit}) must not exceed "
                f"max_limit ({self.max_limit})"
            )
        return self


class LogsSettings(BaseSettings):
    """Logs endpoint configuration."""

    table: str = Field(default="otel_logs", description="Table holding OpenTelemetry logs")

    model_config = SettingsConfigDict(
        env_prefix="LOGS_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("table")
    @classmethod
    def validate_table(cls, v: str) -> str:
        """The table name is interpolated into SQL, so keep it a plain identifier."""
        if not _TABLE_NAME.match(v):
            raise ValueError("LOGS_TABLE must be a table name, optionally database-qualified")
        return v


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Application log level",
    )
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log message format",
    )
    date_format: str = Field(
        default="%Y-%m-%d %H:%M:%S",
        description="Log timestamp format",
    )
    file: Path | None = Field(
        default=None,
        description="Optional log file path (None = stdout only)",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        extra="ignore",
    )

    def configure(self) -> None:
        """Configure Python logging with these settings."""
        handlers: list[logging.Handler] = [logging.StreamHandler()]

        if self.file:
            self.file.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(self.file))

        logging.basicConfig(
            level=getattr(logging, self.level),
            format=self.format,
            datefmt=self.date_format,
            handlers=handlers,
            force=True,  # Override any existing configuration
        )


class Settings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables, the .env file and the
    YAML file named by OBSERVIO_CONFIG. Values passed as init kwargs win,
    then environment, then .env, then YAML.

    Environment Variables:
        ENVIRONMENT: Deployment environment (development, staging, production)
        API_HOST / API_PORT: Bind address for `observio serve`
        READ_TIMEOUT_SECONDS: Per-request time budget
        CORS_ORIGINS: Comma-separated allowed origins ('*' for any)
        CLICKHOUSE_*: Engine connection (see ClickHouseSettings)
        EXPLORE_*: Query builder limits and decode policy (see ExploreSettings)
        LOGS_*: Logs table (see LogsSettings)
        LOG_*: Logging configuration (see LoggingSettings)

    Example:
        >>> settings = get_settings()
        >>> settings.clickhouse.port
        8123
        >>> settings.explore.max_limit
        10000
    """

    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    app_name: str = Field(default="Observio", description="Application name")
    debug: bool = Field(default=False, description="Enable debug mode")
    api_host: str = Field(default="0.0.0.0", description="API server host")
    api_port: int = Field(default=8080, gt=0, le=65535, description="API server port")
    read_timeout_seconds: int = Field(
        default=30,
        gt=0,
        description="Requests running longer than this are cancelled",
    )
    cors_origins: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins",
    )

    # Nested settings
    clickhouse: ClickHouseSettings = Field(default_factory=ClickHouseSettings)
    explore: ExploreSettings = Field(default_factory=ExploreSettings)
    logs: LogsSettings = Field(default_factory=LogsSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls, yaml_file=os.getenv("OBSERVIO_CONFIG")),
            file_secret_settings,
        )

    @field_validator("clickhouse", "explore", "logs", "logging", mode="before")
    @classmethod
    def merge_nested_sections(cls, v: Any, info: ValidationInfo) -> Any:
        """
        Merge a section read from YAML with that section's own env variables.

        A dict is validated without running BaseSettings.__init__, so the
        section's env prefix would otherwise be ignored.
        """
        if not isinstance(v, dict):
            return v
        section_cls = cls.model_fields[info.field_name].annotation
        from_env = section_cls()
        overrides = from_env.model_dump(include=from_env.model_fields_set)
        return section_cls(**{**v, **overrides})

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @model_validator(mode="after")
    def configure_logging(self) -> "Settings":
        """Configure logging when settings are loaded."""
        self.logging.configure()
        return self

    def model_post_init(self, __context) -> None:
        """Log configuration on initialization."""
        logger = logging.getLogger(__name__)
        logger.info(
            f"Settings loaded for {self.app_name} ({self.environment})",
            extra={
                "environment": self.environment,
                "clickhouse_host": self.clickhouse.host,
                "clickhouse_pool_size": self.clickhouse.pool_size,
                "explore_default_limit": self.explore.default_limit,
            },
        )


_DOTENV_PATH = Path(__file__).resolve().parents[1] / ".env"


def _apply_dotenv_precedence() -> None:
    env_source = os.getenv("OBSERVIO_ENV_SOURCE", "dotenv").lower()
    if env_source not in {"dotenv", "envfile", "file"}:
        return
    if _DOTENV_PATH.exists():
        load_dotenv(_DOTENV_PATH, override=True)


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Singleton settings instance
    """
    _apply_dotenv_precedence()
    return Settings()


def clear_settings_cache() -> None:
    """
    Clear the settings cache.

    Useful for testing when you need to reload settings with different
    environment variables.
    """
    get_settings.cache_clear()
