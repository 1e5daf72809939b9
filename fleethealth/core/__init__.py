"""
Core infrastructure package for the fleet health core.

Provides configuration management via pydantic-settings. Re-exports the
settings class and its cached accessor so callers can write:

    from fleethealth.core import get_settings

Components Re-exported:
    Settings: Pydantic settings class with all configuration parameters
    get_settings: Function returning the cached Settings singleton
"""

from fleethealth.core.config import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
