"""
Exchange package for the LP hedging bot.

This package provides a resilient REST client for the perpetuals venue with:
- HMAC request signing
- Per-request timeouts
- Retries with exponential backoff for transient failures
- Typed decoding of market data and positions
- Order placement that reports failures as results instead of raising
"""

from .exceptions import (
    ExchangeError,
    NetworkError,
    ApiError,
    ValidationError,
    MarketNotFoundError,
    SigningError,
    error_details,
)

from .models import (
    HedgePosition,
    MarketData,
    OrderKind,
    OrderRequest,
    OrderResult,
    OrderSide,
    PositionSide,
    POSITION_FIELD_DEFAULTS,
    decode_market,
    decode_position,
)

from .signing import RequestSigner

from .exchange_client import ExchangeClient, ExchangeClientConfig

__all__ = [
    # Exceptions
    'ExchangeError',
    'NetworkError',
    'ApiError',
    'ValidationError',
    'MarketNotFoundError',
    'SigningError',
    'error_details',
    # Models
    'HedgePosition',
    'MarketData',
    'OrderKind',
    'OrderRequest',
    'OrderResult',
    'OrderSide',
    'PositionSide',
    'POSITION_FIELD_DEFAULTS',
    'decode_market',
    'decode_position',
    # Signing
    'RequestSigner',
    # Exchange Client
    'ExchangeClient',
    'ExchangeClientConfig',
]
