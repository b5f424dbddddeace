"""
Configuration — typed, validated settings loaded from environment/.env.

Uses pydantic-settings to:
  - Load from environment variables (12-factor app)
  - Fall back to .env file
  - Validate types and constraints at startup

All configuration errors surface when AppSettings is constructed, before
any trust material is read.

Only AppSettings is a BaseSettings instance. Sub-settings are plain BaseModel
classes populated via env_nested_delimiter="__", so TRUST_LIST__SOURCES maps
to trust_list.sources and REGISTRY__HEIGHT to registry.height. List values are
given as JSON: TRUST_LIST__SOURCES='["/data/icaopkd-002-complete.ldif"]'.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve the .env file relative to the project root (two levels above this file),
# so settings load correctly regardless of the working directory at runtime.
_ENV_FILE = Path(__file__).parent.parent.parent / ".env"


class TrustListSettings(BaseModel):
    """
    Where the trust list comes from and where its canonical forms are written.

    Each source is an `.ldif` file or a directory of them. Export paths are
    optional; when set, every refresh rewrites them.
    """

    sources: list[Path] = Field(min_length=1, description="LDIF files or directories")
    der_output: Path | None = Field(default=None, description="DER SEQUENCE OF Certificate")
    pem_output: Path | None = Field(default=None, description="PEM certificate bundle")


class RegistrySettings(BaseModel):
    """Merkle registry shape. Capacity is 2^height certificates."""

    height: int = Field(default=10, ge=1, le=24)


class SchedulerSettings(BaseModel):
    """
    Refresh schedule using a standard 5-field cron expression.

    Format: minute hour day-of-month month day-of-week
    Examples:
      "0 3 * * *"    — daily at 03:00 (default)
      "0 */6 * * *"  — every 6 hours
      "0 2 * * 1"    — every Monday at 02:00
    """

    cron: str = Field(
        default="0 3 * * *",
        description="Cron expression (5 fields: minute hour dom month dow)",
    )

    @field_validator("cron")
    @classmethod
    def validate_cron(cls, value: str) -> str:
        """Reject expressions that don't have exactly 5 space-separated fields."""
        fields = value.strip().split()
        if len(fields) != 5:
            raise ValueError(
                f"Cron expression must have exactly 5 fields "
                f"(minute hour dom month dow), got {len(fields)}: {value!r}"
            )
        return value.strip()


class AppSettings(BaseSettings):
    """
    Root application settings — aggregates all sub-settings.

    Load order (highest priority first):
      1. Environment variables
      2. .env file
      3. Default values
    """

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    trust_list: TrustListSettings
    registry: RegistrySettings = Field(default_factory=lambda: RegistrySettings())
    scheduler: SchedulerSettings = Field(default_factory=lambda: SchedulerSettings())

    run_on_startup: bool = Field(default=True)
    log_level: str = Field(default="INFO")
