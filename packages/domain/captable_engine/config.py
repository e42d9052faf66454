"""Engine configuration using pydantic-settings.

Settings are loaded from environment variables prefixed with ``CAPTABLE_``
(or a ``.env`` file). Every replay entry point also accepts an explicit
``EngineSettings`` instance, which takes precedence over the environment.

Examples:
    CAPTABLE_LOG_LEVEL=DEBUG
    CAPTABLE_LOG_FORMAT=json
    CAPTABLE_WARRANT_CLASSIFICATION=UNTARGETED_AS_CONVERTIBLE
"""

from enum import Enum
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LogLevel(str, Enum):
    """Log level options."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class WarrantClassification(str, Enum):
    """How warrant issuances are bucketed during replay.

    ALWAYS_WARRANT:
        Every warrant issuance goes through the warrant processor and, when
        a share count can be resolved, counts toward fully diluted.

    UNTARGETED_AS_CONVERTIBLE:
        A warrant that names no target stock class (neither on the
        transaction nor in any exercise trigger) is recorded with the
        holder's "other" convertibles and does not count toward fully
        diluted. Targeted warrants are still processed as warrants.
    """

    ALWAYS_WARRANT = "ALWAYS_WARRANT"
    UNTARGETED_AS_CONVERTIBLE = "UNTARGETED_AS_CONVERTIBLE"


class EngineSettings(BaseSettings):
    """Replay engine settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CAPTABLE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    log_level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Minimum log level",
    )

    log_format: Literal["console", "json"] = Field(
        default="console",
        description="Console output for development, JSON for production",
    )

    default_currency: str = Field(
        default="USD",
        description="ISO 4217 code used when a monetary value omits its currency",
    )

    warrant_classification: WarrantClassification = Field(
        default=WarrantClassification.ALWAYS_WARRANT,
        description="Rule for warrants that name no target stock class",
    )

    strict_references: bool = Field(
        default=False,
        description="Validate all back-references before replay and raise on failure",
    )

    @field_validator("default_currency")
    @classmethod
    def validate_currency_code(cls, v: str) -> str:
        """Validate currency code is uppercase 3-letter ISO 4217 code."""
        if not v.isupper() or len(v) != 3:
            raise ValueError(f"Currency must be 3-letter uppercase ISO 4217 code, got: {v}")
        return v


@lru_cache
def get_settings() -> EngineSettings:
    """Get cached engine settings from the environment."""
    return EngineSettings()
