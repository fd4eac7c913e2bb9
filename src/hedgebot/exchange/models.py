"""
Venue-facing data types and the typed decoding step for raw responses.

Raw rows from the venue are loosely typed: numbers arrive as strings,
fields may be missing or null. ``decode_position`` and ``decode_market``
turn them into fixed types, applying the defaults listed in
``POSITION_FIELD_DEFAULTS`` one field at a time so a single bad field never
fails the whole call.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional


class OrderSide(Enum):
    """Order side enumeration."""
    BUY = "BUY"
    SELL = "SELL"


class OrderKind(Enum):
    """Order type enumeration."""
    MARKET = "MARKET"
    LIMIT = "LIMIT"


class PositionSide(Enum):
    """Position direction, always derived from the sign of the size."""
    LONG = "LONG"
    SHORT = "SHORT"
    FLAT = "FLAT"


@dataclass(frozen=True)
class MarketData:
    """Mark price and funding for one perpetual market."""
    asset: str
    price: float
    funding_rate: float  # period rate (daily), signed


@dataclass(frozen=True)
class HedgePosition:
    """
    A perpetual position on the venue.

    ``signed_size_usd`` is positive for long and negative for short. It is
    the only source of truth for direction; ``side`` is derived from it.
    """
    asset: str
    signed_size_usd: float
    entry_price: float = 0.0
    mark_price: float = 0.0
    margin_usd: float = 0.0
    unrealized_pnl: float = 0.0
    liquidation_price: float = 0.0
    leverage: float = 1.0

    @property
    def size_usd(self) -> float:
        """Unsigned size as shown to the user."""
        return abs(self.signed_size_usd)

    @property
    def side(self) -> PositionSide:
        if self.signed_size_usd > 0:
            return PositionSide.LONG
        if self.signed_size_usd < 0:
            return PositionSide.SHORT
        return PositionSide.FLAT

    @property
    def is_empty(self) -> bool:
        return self.signed_size_usd == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'asset': self.asset,
            'side': self.side.value,
            'size_usd': self.size_usd,
            'signed_size_usd': self.signed_size_usd,
            'entry_price': self.entry_price,
            'mark_price': self.mark_price,
            'margin_usd': self.margin_usd,
            'unrealized_pnl': self.unrealized_pnl,
            'liquidation_price': self.liquidation_price,
            'leverage': self.leverage,
        }


@dataclass(frozen=True)
class OrderRequest:
    """Order to be sent to the venue. Size is expressed in USD."""
    asset: str
    side: OrderSide
    size_usd: float
    price: Optional[float] = None  # None for market orders
    order_kind: OrderKind = OrderKind.MARKET
    reduce_only: bool = False

    def to_payload(self) -> Dict[str, Any]:
        """Build the venue-specific body for the trade endpoint."""
        return {
            'action': {
                'type': self.order_kind.value.lower(),
                'coin': self.asset,
                'side': self.side.value,
                'size': str(self.size_usd),
                'price': str(self.price) if self.price is not None else None,
                'reduceOnly': self.reduce_only,
            }
        }


@dataclass(frozen=True)
class OrderResult:
    """
    Tagged outcome of an order placement.

    Exactly one of ``order_id``/``error`` is meaningful depending on
    ``success``. A successful no-op (nothing to close) carries neither an
    order nor an id.
    """
    success: bool
    order_id: Optional[str] = None
    order: Optional[OrderRequest] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    @classmethod
    def ok(cls, order_id: Optional[str] = None, order: Optional[OrderRequest] = None) -> 'OrderResult':
        return cls(success=True, order_id=order_id, order=order)

    @classmethod
    def failed(cls, error: str, error_code: Optional[str] = None) -> 'OrderResult':
        return cls(success=False, error=error, error_code=error_code)


# Defaults applied by decode_position when a field is missing, null or
# not a number. Keys are the venue's field names.
POSITION_FIELD_DEFAULTS: Dict[str, float] = {
    'size': 0.0,
    'entryPrice': 0.0,
    'markPrice': 0.0,
    'margin': 0.0,
    'unrealizedPnl': 0.0,
    'liquidationPrice': 0.0,
    'leverage': 1.0,
}


def parse_float(value: Any, default: float) -> float:
    """Parse a venue number, returning ``default`` for anything unusable."""
    if value is None or isinstance(value, bool):
        return default
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(parsed):
        return default
    return parsed


def decode_position(row: Mapping[str, Any]) -> HedgePosition:
    """
    Decode one raw position row.

    Any upstream ``side`` field is ignored; direction comes from the sign
    of ``size`` only.
    """
    def field(name: str) -> float:
        return parse_float(row.get(name), POSITION_FIELD_DEFAULTS[name])

    return HedgePosition(
        asset=str(row.get('coin') or ''),
        signed_size_usd=field('size'),
        entry_price=field('entryPrice'),
        mark_price=field('markPrice'),
        margin_usd=field('margin'),
        unrealized_pnl=field('unrealizedPnl'),
        liquidation_price=field('liquidationPrice'),
        leverage=field('leverage'),
    )


def decode_market(asset: str, row: Mapping[str, Any]) -> MarketData:
    """Decode one raw market row (``mark`` and ``funding`` fields)."""
    return MarketData(
        asset=asset,
        price=parse_float(row.get('mark'), 0.0),
        funding_rate=parse_float(row.get('funding'), 0.0),
    )
