"""
Configuration management for the attrition engine.

Uses pydantic-settings for type-safe environment variable handling.
Per-run attrition options live in attrition_engine.attrition.models.
"""

from enum import Enum
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppEnvironment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """
    Service settings loaded from environment variables.

    These describe where the controller runs and which cluster it talks to.
    They never change the behaviour of a single attrition run.
    """

    model_config = SettingsConfigDict(
        env_prefix="ATTRITION_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    env: AppEnvironment = Field(
        default=AppEnvironment.DEVELOPMENT,
        description="Application environment",
    )

    # Server configuration
    host: str = Field(default="127.0.0.1", description="Server host")
    port: int = Field(default=8780, ge=1024, le=65535, description="Server port")

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )

    # Live cluster connectivity
    cluster_url: str = Field(
        default="http://127.0.0.1:4500",
        description="Base URL of the cluster controller that serves the worker roster",
    )
    worker_scheme: str = Field(
        default="http",
        description="URL scheme used for worker control endpoints",
    )
    request_timeout: float = Field(
        default=5.0,
        description="Timeout in seconds for roster and reboot requests",
        gt=0,
        le=120,
    )

    # Randomness
    default_seed: int | None = Field(
        default=None,
        description="Seed for run RNGs (unset = nondeterministic)",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return upper_v

    @field_validator("worker_scheme")
    @classmethod
    def validate_worker_scheme(cls, v: str) -> str:
        if v not in ("http", "https"):
            raise ValueError(f"Invalid worker scheme: {v}")
        return v

    def get_redacted_config(self) -> dict[str, str | int | float | bool | None]:
        """
        Get configuration dict safe for logging and API responses.
        """
        return {
            "env": self.env.value,
            "host": self.host,
            "port": self.port,
            "log_level": self.log_level,
            "cluster_url": self.cluster_url,
            "request_timeout": self.request_timeout,
            "seeded": self.default_seed is not None,
        }


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure single instance throughout application.
    """
    return Settings()


def get_settings_dep() -> Settings:
    """
    Dependency for FastAPI routes to get settings.
    Allows for easy dependency override in tests.
    """
    return get_settings()
