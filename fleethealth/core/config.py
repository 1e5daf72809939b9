"""
Settings and environment management module for the fleet health core.

This module provides centralized configuration management using pydantic-settings,
which automatically loads settings from environment variables and .env files.

Key Features:
- Environment variable validation and type coercion
- Sensible defaults matching the dashboard's payroll calendar
- Singleton pattern via @lru_cache for efficient access

Environment Variables:
- STANDARD_PAY_OFFSET_DAYS: Days from period-end Monday to pay date for
  standard-delay drivers (default: 3, a Thursday)
- DELAYED_PAY_OFFSET_DAYS: Days from period-end Monday to pay date for
  two-week-delay drivers (default: 10)
- RETENTION_POOL_WEEKS: Payroll weeks covered by a retention pool window (default: 4)
- LIVE_TENURE_HORIZON_DAYS: How far past the live pay date the tenure cutoff is
  pushed so in-progress stubs still count (default: 3650)
- DEFAULT_CONTRACT_TYPE: Contract type assumed when a driver has none (default: LOO)
- ENABLE_AGGREGATE_CACHE: Toggle the per-view aggregate cache (default: true)

Per-rule thresholds, flag catalogs and score weights are user-editable domain
configuration and live in fleethealth.models.schemas.EngineConfig instead.

Usage:
    from fleethealth.core.config import get_settings

    settings = get_settings()
    offset = settings.standard_pay_offset_days
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    The class inherits from pydantic-settings BaseSettings which provides:
    - Automatic loading from environment variables (case-insensitive)
    - Support for .env file loading
    - Type validation and coercion

    Attributes:
        standard_pay_offset_days: Period end to pay date offset for pay delay 1.
        delayed_pay_offset_days: Period end to pay date offset for pay delay 2.
        retention_pool_weeks: Number of payroll weeks in the retention pool window.
        live_tenure_horizon_days: Days added to the live pay date for the tenure cutoff.
        default_contract_type: Contract type used when none is recorded.
        enable_aggregate_cache: Whether FleetHealthEngine memoizes team views.
    """

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        extra='ignore',
        case_sensitive=False,
    )

    # =========================================================================
    # Payroll Calendar
    # =========================================================================

    # Pay date = period-end Monday + offset. Standard drivers are paid the
    # Thursday after the period closes; delayed drivers one week later.
    standard_pay_offset_days: int = 3
    delayed_pay_offset_days: int = 10

    # =========================================================================
    # Retention / Tenure
    # =========================================================================

    # Retention resolves a pooled driver against the stubs of this many weeks
    retention_pool_weeks: int = 4

    # Live tenure cutoff: live pay date + horizon
    live_tenure_horizon_days: int = 3650

    # =========================================================================
    # Defaults
    # =========================================================================

    default_contract_type: str = 'LOO'

    enable_aggregate_cache: bool = True


@lru_cache()
def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Returns:
        Settings: The application settings instance with all configuration values.

    Note:
        To refresh settings in tests, clear the cache:
        >>> get_settings.cache_clear()
    """
    return Settings()
