"""
Configuration package for the LP hedging bot.

This package provides configuration management with support for YAML/JSON files,
environment variable overrides, and Pydantic-based validation.
"""

from .config_manager import (
    ConfigManager,
    ConfigurationError,
    HedgeBotConfig,
    VenueSettings,
    HedgeSettings,
    BotSettings,
    ExposureSettings,
    LoggingSettings,
    LogLevel,
    load_config,
    mask_secret,
)

__all__ = [
    'ConfigManager',
    'ConfigurationError',
    'HedgeBotConfig',
    'VenueSettings',
    'HedgeSettings',
    'BotSettings',
    'ExposureSettings',
    'LoggingSettings',
    'LogLevel',
    'load_config',
    'mask_secret',
]
