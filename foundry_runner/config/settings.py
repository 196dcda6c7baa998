"""
Settings Management

Provides centralized, type-safe configuration using Pydantic.
Supports environment variables and .env files.

Design decisions:
- Using pydantic-settings for validation and type coercion
- Immutable settings after initialization (frozen model)
- Host identity variables (HOME, USER) and the legacy DEBUG_FOUNDRY /
  CONTRACTS_DIR toggles are read under their plain names; runner tunables
  use the FOUNDRY_ prefix
"""

from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from foundry_runner.core.exceptions import ConfigurationError


class RunnerSettings(BaseSettings):
    """
    Runner configuration.

    This is the single source of truth for all configuration.
    """

    model_config = SettingsConfigDict(
        env_prefix="FOUNDRY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
        frozen=True,  # Immutable after creation
    )

    # Host identity overrides
    home: str | None = Field(default=None, validation_alias="HOME")
    user: str | None = Field(default=None, validation_alias="USER")

    # Debug trace toggle
    debug: bool = Field(
        default=False,
        validation_alias=AliasChoices("DEBUG_FOUNDRY", "FOUNDRY_DEBUG"),
    )

    # Working-directory discovery
    contracts_dir: str | None = Field(
        default=None,
        validation_alias=AliasChoices("CONTRACTS_DIR", "FOUNDRY_CONTRACTS_DIR"),
    )
    project_dir_name: str = Field(default="contracts")
    marker_file: str = Field(default="foundry.toml")

    # Execution limits
    default_timeout_ms: int = Field(default=30_000, gt=0)
    max_buffer_bytes: int = Field(default=10 * 1024 * 1024, gt=0)
    version_check_timeout: float = Field(default=3.0, gt=0)

    # Spawning
    shell: str = Field(default="/bin/bash")
    allow_bare_fallback: bool = Field(
        default=True,
        description="Return the bare tool name when no verified path is found",
    )

    # Logging
    log_format: Literal["json", "text"] = "text"
    log_file: str | None = Field(default=None)


@lru_cache(maxsize=1)
def get_settings() -> RunnerSettings:
    """
    Get cached settings instance.

    Uses LRU cache to ensure only one settings instance exists.
    This is safe because settings are frozen/immutable.

    Raises:
        ConfigurationError: An environment variable holds an invalid value
    """
    try:
        return RunnerSettings()
    except ValidationError as e:
        fields = [".".join(str(part) for part in err["loc"]) for err in e.errors()]
        raise ConfigurationError(
            f"Invalid runner configuration: {', '.join(fields)}",
            context={"fields": fields},
            cause=e,
        )
