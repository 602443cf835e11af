"""Centralized configuration management with environment-aware defaults.

This module implements the configuration system using Pydantic Settings,
providing type-safe configuration with validation and environment variable
support.

Features:
- **Type safety**: All configuration values are validated and typed
- **Environment variables**: Supports .env files and environment overrides
- **Nested configuration**: Uses __ delimiter for complex config structures
- **Caching**: Configuration is cached for performance

Configuration sources (in order of precedence):
1. Environment variables
2. .env file in project root
3. Default values in model definitions
4. Environment-based defaults (production vs development)
"""

from datetime import timedelta
from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.core.constants import CIVIL_TIME_OFFSET_HOURS, FLAT_TAX_RATE_PERCENT


class LogConfig(BaseModel):
    """Logging configuration."""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_formatter_type: Literal["console", "json"] | None = Field(
        default=None,
        description="Log output formatter. Auto-detected if not specified.",
    )
    slow_settlement_threshold_ms: int = Field(
        default=2000,
        gt=0,
        description="Threshold for slow settlement warnings (milliseconds)",
    )
    sensitive_fields: list[str] = Field(
        default_factory=lambda: [
            "password",
            "token",
            "secret",
            "api_key",
            "authorization",
        ],
        description="Field names to redact",
    )


class SettlementConfig(BaseModel):
    """Weekly settlement engine configuration."""

    civil_time_offset_hours: int = Field(
        default=CIVIL_TIME_OFFSET_HOURS,
        ge=-12,
        le=14,
        description=(
            "Fixed offset between UTC and the companies' civil time. "
            "Not DST-aware."
        ),
    )
    flat_tax_rate_percent: float = Field(
        default=FLAT_TAX_RATE_PERCENT,
        ge=0,
        le=100,
        description="Tax rate applied when a company has no tax brackets",
    )
    collaborator_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        le=300,
        description=(
            "Deadline shared by all collaborator reads of one settlement, "
            "counted from the first read"
        ),
    )
    clip_feed_window_to_now: bool = Field(
        default=True,
        description="Clip the external feed window to the current instant",
    )

    @property
    def civil_time_offset(self) -> timedelta:
        """Return the civil time offset as a timedelta."""
        return timedelta(hours=self.civil_time_offset_hours)


class Settings(BaseSettings):
    """Main settings class for the application."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Application settings
    app_name: str = Field(default="Bilan", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Environment the application is running in",
    )
    debug: bool = Field(default=True, description="Debug mode flag")

    # Logging configuration
    log_config: LogConfig = Field(
        default_factory=LogConfig, description="Logging configuration"
    )

    # Settlement engine configuration
    settlement_config: SettlementConfig = Field(
        default_factory=SettlementConfig,
        description="Weekly settlement engine configuration",
    )

    def model_post_init(self, __context: object) -> None:
        """Post initialization to set environment-based defaults."""
        super().model_post_init(__context)

        if self.log_config.log_formatter_type is None:
            self.log_config.log_formatter_type = self._detect_formatter()

    def _detect_formatter(self) -> Literal["console", "json"]:
        """Auto-detect log formatter based on environment."""
        if self.environment == "development":
            return "console"
        return "json"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
