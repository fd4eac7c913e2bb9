"""
Shared fixtures: fake aiohttp session, exchange client and bot config.

No test talks to the network. The exchange client receives a FakeSession
that replays a scripted list of outcomes and records every request.
"""

import json
import sys
from pathlib import Path
from typing import Any, List

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from hedgebot.config import HedgeBotConfig
from hedgebot.exchange import ExchangeClient, ExchangeClientConfig


class FakeResponse:
    """Stand-in for aiohttp.ClientResponse used as an async context manager."""

    def __init__(self, status: int, body: Any):
        self.status = status
        self._body = body

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def read(self) -> bytes:
        if isinstance(self._body, bytes):
            return self._body
        return (await self.text()).encode('utf-8')

    async def text(self) -> str:
        # aiohttp decodes strictly
        if isinstance(self._body, bytes):
            return self._body.decode('utf-8')
        if isinstance(self._body, str):
            return self._body
        return json.dumps(self._body)


class _RaisingContext:
    def __init__(self, error: BaseException):
        self._error = error

    async def __aenter__(self):
        raise self._error

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """
    Replays scripted outcomes in order.

    Each outcome is either an exception instance (raised when the request
    is entered) or a ``(status, body)`` tuple where ``body`` is a string or
    a JSON-serializable value.
    """

    def __init__(self, outcomes: List[Any]):
        self.outcomes = list(outcomes)
        self.requests: List[dict] = []
        self.closed = False

    def request(self, method, url, headers=None, data=None):
        self.requests.append({
            'method': method,
            'url': url,
            'headers': dict(headers or {}),
            'data': data,
        })
        if not self.outcomes:
            raise AssertionError(f"Unexpected request: {method} {url}")
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            return _RaisingContext(outcome)
        status, body = outcome
        return FakeResponse(status, body)

    async def close(self):
        self.closed = True


def market_response(coin: str = 'PENDLE-PERP', mark: Any = 4.2, funding: Any = 0.0001) -> dict:
    return {'markets': [
        {'coin': 'BTC-PERP', 'mark': 65000.0, 'funding': 0.0002},
        {'coin': coin, 'mark': mark, 'funding': funding},
    ]}


def positions_response(*rows: dict) -> dict:
    return {'positions': list(rows)}


def make_client(outcomes: List[Any], **overrides) -> ExchangeClient:
    """Exchange client wired to a FakeSession with backoff sleeps recorded."""
    params = {'api_url': 'https://venue.test', 'signing_key': 'test-secret'}
    params.update(overrides)
    client = ExchangeClient(ExchangeClientConfig(**params), session=FakeSession(outcomes))
    client.sleeps = []

    async def record_sleep(seconds: float) -> None:
        client.sleeps.append(seconds)

    client._sleep = record_sleep
    return client


@pytest.fixture
def bot_config() -> HedgeBotConfig:
    return HedgeBotConfig(
        venue={'api_url': 'https://venue.test', 'signing_key': 'test-secret'},
        hedge={'pair_ticker': 'PENDLE-USDT', 'rebalance_threshold': 0.05, 'funding_tolerance': 0.005},
        bot={'check_interval_ms': 5000, 'max_consecutive_errors': 3, 'error_history_size': 10},
        exposure={'static_usd_value': 1000.0},
    )
