"""
Configuration Manager for the LP hedging bot.

This module provides centralized configuration management with support for:
- YAML and JSON configuration files
- Environment variable overrides (including a local .env file)
- Pydantic-based validation
- Default values for optional parameters
"""

import os
import json
import yaml
from pathlib import Path
from typing import Optional, Union, Dict, Any
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from enum import Enum


class ConfigurationError(Exception):
    """Raised when configuration cannot be loaded or is invalid. Fatal at startup."""


class LogLevel(str, Enum):
    """Supported log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class VenueSettings(BaseModel):
    """Perpetuals venue connection settings."""
    api_url: str = Field(
        default="https://api.hyperliquid.xyz",
        description="Venue REST API base URL"
    )
    signing_key: Optional[str] = Field(default=None, description="Shared secret for request signing")
    nonce_header: str = Field(default="X-HL-Nonce", description="Header carrying the request nonce")
    signature_header: str = Field(default="X-HL-Signature", description="Header carrying the signature")
    request_timeout: float = Field(default=30.0, gt=0, description="Hard timeout per attempt in seconds")
    max_attempts: int = Field(default=3, ge=1, description="Attempts per request for transient failures")
    retry_delay_base: float = Field(default=1.0, gt=0, description="First backoff delay in seconds")
    retry_delay_max: float = Field(default=10.0, gt=0, description="Backoff cap in seconds")

    @field_validator('api_url')
    @classmethod
    def validate_api_url(cls, v):
        if not v.startswith(('http://', 'https://')):
            raise ValueError("api_url must start with http:// or https://")
        return v

    @field_validator('signing_key')
    @classmethod
    def validate_signing_key(cls, v):
        if v is not None and not v.strip():
            raise ValueError("signing_key cannot be blank")
        return v


class HedgeSettings(BaseModel):
    """Hedge policy settings."""
    pair_ticker: str = Field(default="PENDLE-USDT", description="LP pair ticker")
    asset: Optional[str] = Field(
        default=None,
        description="Perpetual to hedge with; derived from pair_ticker when unset"
    )
    rebalance_threshold: float = Field(
        default=0.05, gt=0, lt=1,
        description="Relative deviation that triggers a rebalance"
    )
    funding_tolerance: float = Field(
        default=0.005, gt=0, lt=1,
        description="Maximum absolute period funding rate for growing the hedge"
    )

    @property
    def hedge_asset(self) -> str:
        """Perpetual ticker, e.g. 'PENDLE-PERP' for pair 'PENDLE-USDT'."""
        if self.asset:
            return self.asset
        return f"{self.pair_ticker.split('-')[0]}-PERP"


class BotSettings(BaseModel):
    """Tick driver settings."""
    check_interval_ms: int = Field(
        default=60000, ge=5000,
        description="Interval between ticks in milliseconds"
    )
    tick_timeout_multiplier: float = Field(
        default=3.0, gt=0,
        description="Tick deadline as a multiple of the check interval"
    )
    max_consecutive_errors: int = Field(
        default=5, ge=1,
        description="Failed ticks in a row before the bot re-initializes"
    )
    error_history_size: int = Field(
        default=50, ge=1,
        description="Number of recent errors kept in memory"
    )


class ExposureSettings(BaseModel):
    """Exposure source settings."""
    static_usd_value: Optional[float] = Field(
        default=None, ge=0,
        description="Fixed exposure in USD (manual operation)"
    )


class LoggingSettings(BaseModel):
    """Logging settings."""
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")
    log_file: Optional[str] = Field(default=None, description="Path to JSON log file")
    colors: bool = Field(default=True, description="Colored console output")

    def to_logging_config(self) -> Dict[str, Any]:
        """Dictionary understood by ``setup_logging``."""
        config: Dict[str, Any] = {
            'level': self.log_level.value,
            'console': True,
            'console_config': {'colors': self.colors},
            'file': self.log_file is not None,
        }
        if self.log_file:
            path = Path(self.log_file)
            config['file_config'] = {
                'directory': str(path.parent),
                'filename': path.name,
            }
        return {'logging': config}


class HedgeBotConfig(BaseModel):
    """Complete bot configuration."""
    venue: VenueSettings = Field(default_factory=VenueSettings)
    hedge: HedgeSettings = Field(default_factory=HedgeSettings)
    bot: BotSettings = Field(default_factory=BotSettings)
    exposure: ExposureSettings = Field(default_factory=ExposureSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


class ConfigManager:
    """
    Configuration manager for the hedging bot.

    Handles loading configuration from YAML/JSON files with support for:
    - Environment variable overrides
    - Validation using Pydantic models
    - Default values for optional parameters

    Environment Variables:
        HEDGE_API_URL: Venue API base URL
        HEDGE_SIGNING_KEY: Request signing secret
        HEDGE_PAIR_TICKER: LP pair ticker (e.g. PENDLE-USDT)
        HEDGE_ASSET: Perpetual ticker override
        HEDGE_REBALANCE_THRESHOLD_PCT: Rebalance threshold in percent
        HEDGE_FUNDING_TOLERANCE_PCT: Funding tolerance in percent
        HEDGE_CHECK_INTERVAL_MS: Tick interval in milliseconds
        HEDGE_REQUEST_TIMEOUT: Per-attempt timeout in seconds
        HEDGE_STATIC_EXPOSURE_USD: Fixed exposure in USD
        HEDGE_LOG_LEVEL: Log level
        HEDGE_LOG_FILE: JSON log file path
    """

    # Environment variable -> (section, key, type)
    ENV_MAPPINGS = {
        'HEDGE_API_URL': ('venue', 'api_url', str),
        'HEDGE_SIGNING_KEY': ('venue', 'signing_key', str),
        'HEDGE_REQUEST_TIMEOUT': ('venue', 'request_timeout', float),
        'HEDGE_PAIR_TICKER': ('hedge', 'pair_ticker', str),
        'HEDGE_ASSET': ('hedge', 'asset', str),
        'HEDGE_REBALANCE_THRESHOLD_PCT': ('hedge', 'rebalance_threshold', 'percent'),
        'HEDGE_FUNDING_TOLERANCE_PCT': ('hedge', 'funding_tolerance', 'percent'),
        'HEDGE_CHECK_INTERVAL_MS': ('bot', 'check_interval_ms', int),
        'HEDGE_STATIC_EXPOSURE_USD': ('exposure', 'static_usd_value', float),
        'HEDGE_LOG_LEVEL': ('logging', 'log_level', str),
        'HEDGE_LOG_FILE': ('logging', 'log_file', str),
    }

    def __init__(self, config_path: Optional[Union[str, Path]] = None, use_dotenv: bool = True):
        """
        Initialize the configuration manager.

        Args:
            config_path: Path to configuration file (YAML or JSON). When
                omitted, configuration comes from defaults and environment.
            use_dotenv: Load a ``.env`` file into the environment first.
        """
        self._config_path: Optional[Path] = Path(config_path) if config_path else None
        self._config: Optional[HedgeBotConfig] = None
        self._raw_config: Dict[str, Any] = {}
        self._use_dotenv = use_dotenv

    def load_config(self, config_path: Optional[Union[str, Path]] = None) -> HedgeBotConfig:
        """
        Load configuration.

        Returns:
            HedgeBotConfig: Validated configuration object

        Raises:
            ConfigurationError: If the file is missing, unreadable or the
                resulting configuration fails validation
        """
        if config_path:
            self._config_path = Path(config_path)

        if self._use_dotenv:
            load_dotenv()

        if self._config_path:
            if not self._config_path.exists():
                raise ConfigurationError(
                    f"Configuration file not found: {self._config_path}"
                )
            self._raw_config = self._load_file(self._config_path)
        else:
            self._raw_config = {}

        self._apply_env_overrides()

        try:
            self._config = HedgeBotConfig(**self._raw_config)
        except PydanticValidationError as e:
            raise ConfigurationError(f"Configuration validation failed: {e}") from e

        return self._config

    def _load_file(self, path: Path) -> Dict[str, Any]:
        """Load configuration from file based on extension."""
        suffix = path.suffix.lower()

        try:
            with open(path, 'r', encoding='utf-8') as f:
                if suffix in ['.yaml', '.yml']:
                    data = yaml.safe_load(f) or {}
                elif suffix == '.json':
                    data = json.load(f)
                else:
                    raise ConfigurationError(
                        f"Unsupported configuration format: {suffix}. "
                        "Use .yaml, .yml, or .json"
                    )
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML format: {e}") from e
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON format: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError("Configuration root must be a mapping")
        return data

    def _apply_env_overrides(self) -> None:
        """Environment variables take precedence over file configuration."""
        for env_var, (section, key, kind) in self.ENV_MAPPINGS.items():
            value = os.getenv(env_var)
            if value is None or value == '':
                continue

            section_data = self._raw_config.get(section)
            if not isinstance(section_data, dict):
                section_data = {}
                self._raw_config[section] = section_data

            section_data[key] = self._convert_env_value(env_var, value, kind)

    @staticmethod
    def _convert_env_value(env_var: str, value: str, kind) -> Union[str, int, float]:
        if kind is str:
            return value
        try:
            if kind == 'percent':
                return float(value) / 100
            return kind(value)
        except ValueError:
            raise ConfigurationError(
                f"Environment variable {env_var} must be a number, got: {value}"
            )

    def get_config(self) -> HedgeBotConfig:
        if not self._config:
            raise ConfigurationError("No configuration loaded. Call load_config() first.")
        return self._config

    @property
    def is_loaded(self) -> bool:
        return self._config is not None


def load_config(config_path: Optional[Union[str, Path]] = None) -> HedgeBotConfig:
    """
    Load configuration from file and environment.

    Args:
        config_path: Path to configuration file, or None for environment only

    Returns:
        HedgeBotConfig: Validated configuration object
    """
    manager = ConfigManager(config_path)
    return manager.load_config()


def mask_secret(secret: Optional[str], visible_chars: int = 4) -> str:
    """Mask a credential for display in logs."""
    if not secret or len(secret) <= visible_chars * 2:
        return '******'
    mask = '*' * max(len(secret) - visible_chars * 2, 6)
    return f"{secret[:visible_chars]}{mask}{secret[-visible_chars:]}"
