"""
Exposure sources.

An exposure source tells the bot how much USD of the hedged asset the LP
position currently holds. How that number is produced (on-chain read,
subgraph, cache) is up to the source.
"""

import inspect
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Mapping, Union

from ..hedge.models import Exposure

ExposureFetch = Callable[[], Union[Any, Awaitable[Any]]]


class ExposureSource(ABC):
    """Supplies the current exposure once per tick."""

    @abstractmethod
    async def get_exposure(self) -> Exposure:
        """Return the current exposure. May raise on read failure."""


class StaticExposureSource(ExposureSource):
    """Fixed exposure, for manual operation and dry runs."""

    def __init__(self, asset: str, usd_value: float, price: float = 0.0):
        self._exposure = Exposure(asset=asset, usd_value=usd_value, price=price)

    async def get_exposure(self) -> Exposure:
        return self._exposure

    def set_usd_value(self, usd_value: float) -> None:
        self._exposure = Exposure(
            asset=self._exposure.asset,
            usd_value=usd_value,
            price=self._exposure.price
        )


class CallableExposureSource(ExposureSource):
    """
    Adapts a plain function or coroutine function.

    The callable may return an Exposure, a ``(usd_value, price)`` tuple or a
    mapping with ``usdValue``/``usd_value`` and ``price`` keys.
    """

    def __init__(self, asset: str, fetch: ExposureFetch):
        self.asset = asset
        self._fetch = fetch

    async def get_exposure(self) -> Exposure:
        raw = self._fetch()
        if inspect.isawaitable(raw):
            raw = await raw
        return self._coerce(raw)

    def _coerce(self, raw: Any) -> Exposure:
        if isinstance(raw, Exposure):
            return raw
        if isinstance(raw, Mapping):
            usd_value = raw.get('usdValue', raw.get('usd_value'))
            if usd_value is None:
                raise ValueError("Exposure mapping has no usdValue")
            return Exposure(
                asset=str(raw.get('assetSymbol', self.asset)),
                usd_value=float(usd_value),
                price=float(raw.get('price', 0.0))
            )
        if isinstance(raw, tuple) and len(raw) == 2:
            usd_value, price = raw
            return Exposure(asset=self.asset, usd_value=float(usd_value), price=float(price))
        raise TypeError(f"Unsupported exposure value: {raw!r}")
