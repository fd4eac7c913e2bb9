"""
Custom exceptions for the exchange client module.

This module defines the error taxonomy used when talking to the perpetuals
venue. The split matters for the retry policy:

- NetworkError is transient and retried with backoff
- ApiError, ValidationError and SigningError are fatal for the request
"""

from typing import Any, Dict, Optional


class ExchangeError(Exception):
    """Base exception for all exchange-related errors."""

    retryable = False

    def __init__(self, message: str, error_code: str = None, details: dict = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def __str__(self) -> str:
        if self.error_code:
            return f"[{self.error_code}] {self.message}"
        return self.message


class NetworkError(ExchangeError):
    """
    Exception raised for network-related errors.

    These errors are typically transient and can be retried.
    Examples: connection resets, DNS failures, request timeouts.
    """

    retryable = True

    def __init__(self, message: str = "Network error occurred", details: dict = None):
        super().__init__(message, error_code="NETWORK_ERROR", details=details)


class ApiError(ExchangeError):
    """
    Exception raised when the venue answered but reported a failure.

    Covers non-2xx HTTP responses and business errors such as
    insufficient margin. Never retried.
    """

    def __init__(
        self,
        message: str = "API error",
        status: Optional[int] = None,
        body: Optional[str] = None,
        details: dict = None
    ):
        super().__init__(message, error_code="API_ERROR", details=details)
        self.status = status
        self.body = body


class ValidationError(ExchangeError):
    """
    Exception raised for malformed or missing response payloads.

    Examples: body that is not JSON, a JSON null body, a response
    without the expected list field.
    """

    def __init__(self, message: str = "Invalid response", details: dict = None):
        super().__init__(message, error_code="VALIDATION_ERROR", details=details)


class MarketNotFoundError(ValidationError):
    """Exception raised when the market list has no entry for the asset."""

    def __init__(self, asset: str, details: dict = None):
        super().__init__(f"Market not found for asset: {asset}", details=details)
        self.error_code = "MARKET_NOT_FOUND"
        self.asset = asset


class SigningError(ExchangeError):
    """
    Exception raised when a request could not be signed.

    Fatal for the single request and never retried; kept distinct from
    transport failures so a bad credential is not mistaken for an outage.
    """

    def __init__(self, message: str = "Request signing failed", details: dict = None):
        super().__init__(message, error_code="SIGNING_ERROR", details=details)


def error_details(error: BaseException) -> Dict[str, Any]:
    """Flatten an exception into a dict suitable for log records."""
    details: Dict[str, Any] = {'error_type': type(error).__name__, 'message': str(error)}
    if isinstance(error, ExchangeError):
        details['error_code'] = error.error_code
        details.update(error.details)
    return details
