"""
Exchange client module for the perpetuals venue.

This module provides an aiohttp-based client for the venue's REST API.
It includes:
- HMAC request signing for mutating calls
- Per-attempt timeout enforcement
- Classification of transient vs fatal failures
- Retry with exponential backoff for transient failures
- Typed market data, position and order operations
"""

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import aiohttp

from .exceptions import (
    ExchangeError,
    NetworkError,
    ApiError,
    ValidationError,
    MarketNotFoundError,
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
    decode_market,
    decode_position,
)
from .signing import RequestSigner
from ..utils import get_logger, LogCategory

logger = get_logger(__name__)

# Substrings that mark an otherwise unclassified error as transient.
NETWORK_ERROR_LABELS = ('network', 'abort', 'timeout', 'timed out', 'connection')


@dataclass
class ExchangeClientConfig:
    """Configuration for the exchange client."""

    api_url: str = 'https://api.hyperliquid.xyz'
    signing_key: Optional[str] = None
    nonce_header: str = 'X-HL-Nonce'
    signature_header: str = 'X-HL-Signature'

    # Retry settings
    max_attempts: int = 3
    retry_delay_base: float = 1.0
    retry_delay_max: float = 10.0

    # Hard timeout per attempt (in seconds)
    timeout: float = 30.0


class ExchangeClient:
    """
    REST client for the perpetuals venue.

    Read operations (market data, positions) raise ExchangeError subclasses
    so callers can tell stale data from empty data. ``place_order`` and the
    helpers built on it never raise; every outcome is an OrderResult.

    Example:
        ```python
        async with ExchangeClient(ExchangeClientConfig(signing_key='...')) as client:
            market = await client.get_market_data('PENDLE-PERP')
            result = await client.open_short_position('PENDLE-PERP', 150.0)
        ```
    """

    def __init__(
        self,
        config: Optional[ExchangeClientConfig] = None,
        session: Optional[aiohttp.ClientSession] = None
    ):
        """
        Initialize the exchange client.

        Args:
            config: Client configuration. Uses defaults if not provided.
            session: Optional pre-built session. The client does not close
                sessions it did not create.
        """
        self.config = config or ExchangeClientConfig()
        self.signer = RequestSigner(
            self.config.signing_key or '',
            nonce_header=self.config.nonce_header,
            signature_header=self.config.signature_header,
        )
        self._session = session
        self._owns_session = session is None

    @classmethod
    def from_config(cls, config: Any) -> 'ExchangeClient':
        """
        Create an ExchangeClient from a HedgeBotConfig.

        Args:
            config: Configuration object with a ``venue`` section.
        """
        venue = config.venue
        client_config = ExchangeClientConfig(
            api_url=venue.api_url,
            signing_key=venue.signing_key,
            nonce_header=venue.nonce_header,
            signature_header=venue.signature_header,
            max_attempts=venue.max_attempts,
            retry_delay_base=venue.retry_delay_base,
            retry_delay_max=venue.retry_delay_max,
            timeout=venue.request_timeout,
        )
        return cls(client_config)

    async def __aenter__(self) -> 'ExchangeClient':
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def connect(self) -> None:
        """Create the HTTP session if one was not supplied."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.config.timeout)
            )
            self._owns_session = True
            logger.info(f"Exchange session opened for {self.config.api_url}")

    async def close(self) -> None:
        """Close the HTTP session if this client created it."""
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
            logger.info("Exchange session closed")
        if self._owns_session:
            self._session = None

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _calculate_backoff_delay(self, attempt: int) -> float:
        """Backoff before the next attempt, ``attempt`` being 1-based."""
        delay = self.config.retry_delay_base * (2 ** (attempt - 1))
        return min(delay, self.config.retry_delay_max)

    async def _sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    async def request(
        self,
        endpoint: str,
        method: str = 'GET',
        body: Optional[Dict[str, Any]] = None,
        max_attempts: Optional[int] = None
    ) -> Any:
        """
        Send a request, retrying transient failures.

        Args:
            endpoint: Path appended to the API base URL.
            method: 'GET' or 'POST'. POST requests are signed.
            body: JSON body for POST requests.
            max_attempts: Overrides the configured attempt count.

        Returns:
            The decoded JSON body (never None).

        Raises:
            NetworkError: After the last transient failure.
            ApiError: On a non-2xx response.
            ValidationError: On a malformed or empty body.
            SigningError: If the request could not be signed.
        """
        attempts = max_attempts if max_attempts is not None else self.config.max_attempts
        if attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        method = method.upper()
        url = f"{self.config.api_url.rstrip('/')}{endpoint}"
        serialized = None
        if method != 'GET':
            serialized = json.dumps(body if body is not None else {}, separators=(',', ':'))

        for attempt in range(1, attempts + 1):
            headers = {'Content-Type': 'application/json'}
            try:
                if serialized is not None:
                    headers.update(self.signer.signed_headers(serialized))
                return await self._attempt(method, url, headers, serialized)

            except NetworkError as e:
                if attempt < attempts:
                    delay = self._calculate_backoff_delay(attempt)
                    logger.warning(
                        f"Network error on {method} {endpoint}, retrying in "
                        f"{delay * 1000:.0f}ms ({attempt}/{attempts}): {e}"
                    )
                    await self._sleep(delay)
                    continue
                logger.error(f"{method} {endpoint} failed after {attempt} attempts: {e}")
                raise

            except ExchangeError as e:
                # Fatal: no retry
                logger.error(f"{method} {endpoint} failed: {e}")
                raise

        # attempts >= 1 guarantees the loop returned or raised
        raise NetworkError(f"{method} {endpoint} failed for unknown reason")

    async def _attempt(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        data: Optional[str]
    ) -> Any:
        """Run one attempt and decode its body."""
        if self._session is None or self._session.closed:
            await self.connect()

        try:
            status, text = await asyncio.wait_for(
                self._send(method, url, headers, data),
                timeout=self.config.timeout
            )
        except asyncio.TimeoutError as e:
            raise NetworkError(
                f"Request timed out after {self.config.timeout}s",
                details={'url': url}
            ) from e
        except (aiohttp.ClientConnectionError, aiohttp.ClientPayloadError) as e:
            raise NetworkError(
                f"Network error: {e}",
                details={'url': url, 'original_error': str(e)}
            ) from e
        except (aiohttp.ClientError, OSError) as e:
            if _has_network_label(e) or isinstance(e, OSError):
                raise NetworkError(
                    f"Network error: {e}",
                    details={'url': url, 'original_error': str(e)}
                ) from e
            raise ApiError(
                f"Request failed: {e}",
                details={'url': url, 'original_error': str(e)}
            ) from e

        if not 200 <= status < 300:
            raise ApiError(
                f"API error: {status} - {text}",
                status=status,
                body=text,
                details={'url': url}
            )

        return _decode_body(text, url)

    async def _send(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        data: Optional[str]
    ):
        async with self._session.request(method, url, headers=headers, data=data) as response:
            try:
                text = await response.text()
            except UnicodeDecodeError as e:
                if 200 <= response.status < 300:
                    raise ValidationError(
                        f"API returned an undecodable body: {e}",
                        details={'url': url}
                    ) from e
                text = (await response.read()).decode('utf-8', errors='replace')
            return response.status, text

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    async def get_market_data(self, asset: str) -> MarketData:
        """
        Get mark price and funding rate for ``asset``.

        Raises:
            MarketNotFoundError: If the market list has no such asset.
            ExchangeError: On transport or response-shape failures.
        """
        try:
            response = await self.request('/market/data', 'GET')
            markets = response.get('markets') if isinstance(response, dict) else None
            if not isinstance(markets, list):
                raise ValidationError(
                    "Market data response has no 'markets' list",
                    details={'asset': asset}
                )

            for row in markets:
                if isinstance(row, dict) and row.get('coin') == asset:
                    return decode_market(asset, row)

            raise MarketNotFoundError(asset)
        except ExchangeError as e:
            logger.error(f"Failed to get market data for {asset}: {e}")
            raise

    async def get_positions(self) -> List[HedgePosition]:
        """
        Get all open positions.

        A response without a ``positions`` list means no positions. Rows
        that are not objects are skipped.
        """
        try:
            response = await self.request('/user/positions', 'GET')
            if not isinstance(response, dict):
                raise ValidationError("Positions response is not an object")

            rows = response.get('positions')
            if rows is None:
                return []
            if not isinstance(rows, list):
                logger.warning(f"Positions field is not a list, treating as no positions: {rows!r}")
                return []

            positions = []
            for row in rows:
                if not isinstance(row, dict):
                    logger.warning(f"Skipping malformed position row: {row!r}")
                    continue
                positions.append(decode_position(row))
            return positions
        except ExchangeError as e:
            logger.error(f"Failed to get positions: {e}")
            raise

    async def get_position(self, asset: str) -> Optional[HedgePosition]:
        """Get the position for ``asset`` or None if there is none."""
        positions = await self.get_positions()
        for position in positions:
            if position.asset == asset:
                return position
        return None

    # ------------------------------------------------------------------
    # Trading operations
    # ------------------------------------------------------------------

    async def place_order(self, order: OrderRequest) -> OrderResult:
        """
        Place an order.

        Never raises: transport, signing and venue-reported failures all
        come back as a failed OrderResult.
        """
        if not _is_valid_size(order.size_usd):
            return OrderResult.failed(
                f"Invalid order size: {order.size_usd}", error_code='INVALID_ORDER'
            )

        try:
            response = await self.request('/trade', 'POST', order.to_payload())
        except ExchangeError as e:
            logger.error(f"Failed to place order: {e}", extra={
                'category': LogCategory.ORDERS.value,
                'data': error_details(e),
            })
            return OrderResult.failed(e.message, error_code=e.error_code)
        except Exception as e:
            logger.error(f"Unexpected error placing order: {e}", exc_info=True)
            return OrderResult.failed(str(e) or type(e).__name__, error_code='UNEXPECTED_ERROR')

        if isinstance(response, dict) and response.get('status') == 'success':
            order_id = response.get('id')
            logger.log_order_event({
                'asset': order.asset,
                'side': order.side.value,
                'size_usd': order.size_usd,
                'order_type': order.order_kind.value,
                'reduce_only': order.reduce_only,
                'order_id': order_id,
            }, msg=f"Order placed successfully for {order.asset}")
            return OrderResult.ok(
                order_id=str(order_id) if order_id is not None else None,
                order=order
            )

        error = response.get('error') if isinstance(response, dict) else None
        logger.warning(f"Venue rejected order for {order.asset}: {error or 'Unknown error'}")
        return OrderResult.failed(str(error) if error else 'Unknown error', error_code='API_ERROR')

    async def open_short_position(self, asset: str, size_usd: float) -> OrderResult:
        """Market order to open or increase a short."""
        return await self.place_order(OrderRequest(
            asset=asset,
            side=OrderSide.SELL,
            size_usd=size_usd,
            price=None,
            order_kind=OrderKind.MARKET,
            reduce_only=False,
        ))

    async def reduce_short_position(self, asset: str, size_usd: float) -> OrderResult:
        """Reduce-only market order that shrinks a short."""
        return await self.place_order(OrderRequest(
            asset=asset,
            side=OrderSide.BUY,
            size_usd=size_usd,
            price=None,
            order_kind=OrderKind.MARKET,
            reduce_only=True,
        ))

    async def close_position(self, asset: str) -> OrderResult:
        """
        Close the whole position for ``asset``.

        No position, or a position of exactly zero size, is a successful
        no-op.
        """
        try:
            position = await self.get_position(asset)
        except ExchangeError as e:
            return OrderResult.failed(
                f"Could not read position before close: {e.message}",
                error_code=e.error_code
            )

        if position is None or position.signed_size_usd == 0:
            logger.info(f"No open position for {asset}, nothing to close")
            return OrderResult.ok()

        side = OrderSide.SELL if position.side is PositionSide.LONG else OrderSide.BUY
        return await self.place_order(OrderRequest(
            asset=asset,
            side=side,
            size_usd=position.size_usd,
            price=None,
            order_kind=OrderKind.MARKET,
            reduce_only=True,
        ))


def _has_network_label(error: BaseException) -> bool:
    message = str(error).lower()
    return any(label in message for label in NETWORK_ERROR_LABELS)


def _is_valid_size(size: float) -> bool:
    try:
        return size > 0 and size != float('inf')
    except TypeError:
        return False


def _decode_body(text: str, url: str) -> Any:
    """Decode a JSON body; empty, null or malformed bodies are fatal."""
    if text is None or not text.strip():
        raise ValidationError("API returned an empty body", details={'url': url})
    try:
        data = json.loads(text)
    except ValueError as e:
        raise ValidationError(
            f"API returned malformed JSON: {e}",
            details={'url': url, 'body': text[:200]}
        ) from e
    if data is None:
        raise ValidationError("API returned an empty body (null)", details={'url': url})
    return data
