"""
Configuration Management for Herd Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: Environment settings only supply defaults. The values that
change accounting results (useful life, salvage, rounding, chart of accounts)
live in CompanySettings, which is stored per company. A company that never
saved its settings gets the defaults defined here.
"""

from decimal import Decimal
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from herd_ledger.models.asset import DepreciationMethod, RoundingMode


class DepreciationDefaults(BaseSettings):
    """Company depreciation defaults."""

    model_config = SettingsConfigDict(
        env_prefix="HERD_DEPRECIATION_",
        extra="ignore"
    )

    years: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Useful life in years for assets without an override"
    )
    salvage_percent: Decimal = Field(
        default=Decimal("10"),
        ge=0,
        le=100,
        description="Salvage value as a percentage of purchase price"
    )
    method: DepreciationMethod = Field(
        default=DepreciationMethod.STRAIGHT_LINE,
        description="Method for assets registered without one"
    )
    rounding: RoundingMode = Field(
        default=RoundingMode.CENT,
        description="Precision of calculated amounts"
    )
    include_partial_months: bool = Field(
        default=False,
        description="Prorate the current month by day count"
    )
    fiscal_year_start_month: int = Field(
        default=1,
        ge=1,
        le=12,
        description="First month of the fiscal year (reconciliation anchor)"
    )


class BatchSettings(BaseSettings):
    """Batch catch-up and repair tuning."""

    model_config = SettingsConfigDict(
        env_prefix="HERD_BATCH_",
        extra="ignore"
    )

    batch_size: int = Field(
        default=50,
        ge=1,
        le=1000,
        description="Assets per batch"
    )
    pause_seconds: float = Field(
        default=0.05,
        ge=0.0,
        le=10.0,
        description="Cooperative pause between batches"
    )
    max_iterations: int = Field(
        default=10000,
        ge=1,
        description="Hard guard on the number of batches in one run"
    )
    error_report_limit: int = Field(
        default=20,
        ge=1,
        description="How many error messages a progress report keeps"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="HERD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        description="Minimum level for local structured logs"
    )
    balance_tolerance: Decimal = Field(
        default=Decimal("0.01"),
        ge=0,
        description="Largest debit/credit difference reported as balanced"
    )

    @field_validator('log_level')
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def depreciation(self) -> DepreciationDefaults:
        return DepreciationDefaults()

    @property
    def batch(self) -> BatchSettings:
        return BatchSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings groups load from the environment.

    Returns a dict of {group_name: is_valid}, plus `<group>_error`
    messages for the groups that failed. Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("depreciation", "batch", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValueError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
