"""
Configuration schema, defaults and loading for launch runs.
"""
from .defaults import LaunchSettings, get_default_settings
from .loader import ConfigLoader
from .validation import ConfigValidator, ValidationError

__all__ = [
    "LaunchSettings",
    "get_default_settings",
    "ConfigLoader",
    "ConfigValidator",
    "ValidationError",
]
