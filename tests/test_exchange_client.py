"""Tests for the venue exchange client (no network calls)."""

import asyncio
import hashlib
import hmac
import json

import aiohttp
import pytest

from conftest import FakeSession, make_client, market_response, positions_response
from hedgebot.exchange import (
    ApiError,
    ExchangeClient,
    ExchangeClientConfig,
    MarketNotFoundError,
    NetworkError,
    OrderKind,
    OrderRequest,
    OrderSide,
    PositionSide,
    ValidationError,
)

ASSET = 'PENDLE-PERP'


class TestBackoff:

    def test_delays_double_and_cap(self):
        client = ExchangeClient(ExchangeClientConfig())
        delays = [client._calculate_backoff_delay(n) for n in range(1, 7)]
        assert delays == [1.0, 2.0, 4.0, 8.0, 10.0, 10.0]


class TestRequestRetry:

    @pytest.mark.asyncio
    async def test_two_transient_failures_then_success(self):
        client = make_client([
            aiohttp.ClientConnectionError("connection reset"),
            asyncio.TimeoutError(),
            (200, market_response()),
        ])

        market = await client.get_market_data(ASSET)

        assert market.price == 4.2
        assert len(client._session.requests) == 3
        assert client.sleeps == [1.0, 2.0]
        assert sum(client.sleeps) >= 3.0

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        client = make_client([aiohttp.ClientConnectionError("connection refused")] * 3)

        with pytest.raises(NetworkError):
            await client.request('/market/data')

        assert len(client._session.requests) == 3
        assert client.sleeps == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_backoff_capped_for_many_attempts(self):
        client = make_client([OSError("network unreachable")] * 6, max_attempts=6)

        with pytest.raises(NetworkError):
            await client.request('/market/data')

        assert client.sleeps == [1.0, 2.0, 4.0, 8.0, 10.0]

    @pytest.mark.asyncio
    async def test_non_2xx_is_fatal(self):
        client = make_client([(500, 'internal error'), (200, market_response())])

        with pytest.raises(ApiError) as exc_info:
            await client.request('/market/data')

        assert exc_info.value.status == 500
        assert 'API error: 500 - internal error' in str(exc_info.value)
        assert len(client._session.requests) == 1
        assert client.sleeps == []

    @pytest.mark.asyncio
    async def test_undecodable_error_body_stays_an_api_error(self):
        client = make_client([(502, b'bad \xff gateway')])

        with pytest.raises(ApiError) as exc_info:
            await client.request('/market/data')

        assert exc_info.value.status == 502
        assert client.sleeps == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", ['', '   ', 'null', '{not json', b'\xff\xfe{"markets": []}'])
    async def test_empty_or_malformed_body_is_fatal(self, body):
        client = make_client([(200, body), (200, market_response())])

        with pytest.raises(ValidationError):
            await client.request('/market/data')

        assert len(client._session.requests) == 1

    @pytest.mark.asyncio
    async def test_unlabelled_client_error_is_fatal(self):
        client = make_client([aiohttp.ClientError("bad request shape"), (200, {})])

        with pytest.raises(ApiError):
            await client.request('/market/data')

        assert client.sleeps == []

    @pytest.mark.asyncio
    async def test_attempts_must_be_positive(self):
        client = make_client([])
        with pytest.raises(ValueError):
            await client.request('/market/data', max_attempts=0)


class TestSigning:

    @pytest.mark.asyncio
    async def test_get_is_not_signed(self):
        client = make_client([(200, market_response())])
        await client.get_market_data(ASSET)

        sent = client._session.requests[0]
        assert sent['method'] == 'GET'
        assert sent['url'] == 'https://venue.test/market/data'
        assert 'X-HL-Signature' not in sent['headers']
        assert 'X-HL-Nonce' not in sent['headers']
        assert sent['data'] is None

    @pytest.mark.asyncio
    async def test_post_signs_the_sent_bytes(self):
        client = make_client([(200, {'status': 'success', 'id': 'abc'})])
        await client.open_short_position(ASSET, 150.0)

        sent = client._session.requests[0]
        nonce = sent['headers']['X-HL-Nonce']
        expected = hmac.new(
            b'test-secret', f"{nonce}{sent['data']}".encode('utf-8'), hashlib.sha256
        ).hexdigest()
        assert sent['headers']['X-HL-Signature'] == expected
        assert sent['url'] == 'https://venue.test/trade'

    @pytest.mark.asyncio
    async def test_each_attempt_gets_a_fresh_signature(self):
        client = make_client([
            aiohttp.ClientConnectionError("connection reset"),
            (200, {'status': 'success', 'id': 'abc'}),
        ])
        await client.open_short_position(ASSET, 150.0)

        first, second = client._session.requests
        assert first['data'] == second['data']
        assert int(second['headers']['X-HL-Nonce']) >= int(first['headers']['X-HL-Nonce'])

    @pytest.mark.asyncio
    async def test_missing_key_fails_order_without_request(self):
        client = make_client([], signing_key=None)
        result = await client.open_short_position(ASSET, 150.0)

        assert not result.success
        assert result.error_code == 'SIGNING_ERROR'
        assert client._session.requests == []


class TestMarketData:

    @pytest.mark.asyncio
    async def test_decodes_mark_and_funding(self):
        client = make_client([(200, market_response(mark='4.5', funding='-0.002'))])
        market = await client.get_market_data(ASSET)

        assert market.asset == ASSET
        assert market.price == 4.5
        assert market.funding_rate == -0.002

    @pytest.mark.asyncio
    async def test_unknown_asset(self):
        client = make_client([(200, market_response())])

        with pytest.raises(MarketNotFoundError) as exc_info:
            await client.get_market_data('DOGE-PERP')

        assert 'Market not found for asset: DOGE-PERP' in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_missing_markets_list(self):
        client = make_client([(200, {'data': []})])
        with pytest.raises(ValidationError):
            await client.get_market_data(ASSET)

    @pytest.mark.asyncio
    async def test_missing_numbers_default_to_zero(self):
        client = make_client([(200, {'markets': [{'coin': ASSET}]})])
        market = await client.get_market_data(ASSET)
        assert market.price == 0.0
        assert market.funding_rate == 0.0


class TestPositions:

    @pytest.mark.asyncio
    async def test_missing_positions_field_is_empty(self):
        client = make_client([(200, {})])
        assert await client.get_positions() == []

    @pytest.mark.asyncio
    async def test_positions_not_a_list_is_empty(self):
        client = make_client([(200, {'positions': 'nope'})])
        assert await client.get_positions() == []

    @pytest.mark.asyncio
    async def test_non_object_response(self):
        client = make_client([(200, [1, 2])])
        with pytest.raises(ValidationError):
            await client.get_positions()

    @pytest.mark.asyncio
    async def test_defaults_for_missing_fields(self):
        client = make_client([(200, positions_response({'coin': ASSET, 'size': '-120.5'}))])
        position = await client.get_position(ASSET)

        assert position.signed_size_usd == -120.5
        assert position.size_usd == 120.5
        assert position.side is PositionSide.SHORT
        assert position.entry_price == 0.0
        assert position.mark_price == 0.0
        assert position.margin_usd == 0.0
        assert position.unrealized_pnl == 0.0
        assert position.liquidation_price == 0.0
        assert position.leverage == 1.0

    @pytest.mark.asyncio
    async def test_upstream_side_is_ignored(self):
        client = make_client([(200, positions_response({'coin': ASSET, 'size': 50, 'side': 'short'}))])
        position = await client.get_position(ASSET)
        assert position.side is PositionSide.LONG

    @pytest.mark.asyncio
    async def test_unparseable_field_defaults(self):
        client = make_client([(200, positions_response(
            {'coin': ASSET, 'size': -10, 'leverage': 'abc', 'entryPrice': None}
        ))])
        position = await client.get_position(ASSET)
        assert position.leverage == 1.0
        assert position.entry_price == 0.0

    @pytest.mark.asyncio
    async def test_other_assets_are_ignored(self):
        client = make_client([(200, positions_response({'coin': 'BTC-PERP', 'size': -1}))])
        assert await client.get_position(ASSET) is None


class TestOrders:

    @pytest.mark.asyncio
    async def test_open_short_payload(self):
        client = make_client([(200, {'status': 'success', 'id': 42})])
        result = await client.open_short_position(ASSET, 150.0)

        assert result.success
        assert result.order_id == '42'
        body = json.loads(client._session.requests[0]['data'])
        assert body == {'action': {
            'type': 'market',
            'coin': ASSET,
            'side': 'SELL',
            'size': '150.0',
            'price': None,
            'reduceOnly': False,
        }}

    @pytest.mark.asyncio
    async def test_reduce_short_is_reduce_only_buy(self):
        client = make_client([(200, {'status': 'success', 'id': 'x'})])
        result = await client.reduce_short_position(ASSET, 20.0)

        assert result.success
        action = json.loads(client._session.requests[0]['data'])['action']
        assert action['side'] == 'BUY'
        assert action['reduceOnly'] is True

    @pytest.mark.asyncio
    async def test_venue_rejection_is_a_failed_result(self):
        client = make_client([(200, {'status': 'error', 'error': 'Insufficient margin'})])
        result = await client.open_short_position(ASSET, 150.0)

        assert not result.success
        assert result.error == 'Insufficient margin'
        assert result.error_code == 'API_ERROR'

    @pytest.mark.asyncio
    async def test_rejection_without_message(self):
        client = make_client([(200, {'status': 'error'})])
        result = await client.open_short_position(ASSET, 150.0)
        assert result.error == 'Unknown error'

    @pytest.mark.asyncio
    async def test_transport_failure_never_raises(self):
        client = make_client([aiohttp.ClientConnectionError("connection reset")] * 3)
        result = await client.open_short_position(ASSET, 150.0)

        assert not result.success
        assert result.error_code == 'NETWORK_ERROR'

    @pytest.mark.asyncio
    @pytest.mark.parametrize("size", [0, -5, float('nan'), float('inf')])
    async def test_invalid_size_rejected_locally(self, size):
        client = make_client([])
        result = await client.place_order(OrderRequest(ASSET, OrderSide.SELL, size))

        assert not result.success
        assert result.error_code == 'INVALID_ORDER'
        assert client._session.requests == []

    @pytest.mark.asyncio
    async def test_limit_order_payload(self):
        client = make_client([(200, {'status': 'success', 'id': 'L1'})])
        await client.place_order(OrderRequest(
            ASSET, OrderSide.SELL, 10.0, price=4.25, order_kind=OrderKind.LIMIT
        ))
        action = json.loads(client._session.requests[0]['data'])['action']
        assert action['type'] == 'limit'
        assert action['price'] == '4.25'


class TestClosePosition:

    @pytest.mark.asyncio
    async def test_no_position_is_noop_success(self):
        client = make_client([(200, positions_response())])
        result = await client.close_position(ASSET)

        assert result.success
        assert result.order_id is None
        assert len(client._session.requests) == 1

    @pytest.mark.asyncio
    async def test_zero_size_is_noop_success(self):
        client = make_client([(200, positions_response({'coin': ASSET, 'size': 0}))])
        result = await client.close_position(ASSET)
        assert result.success
        assert len(client._session.requests) == 1

    @pytest.mark.asyncio
    async def test_short_is_closed_with_reduce_only_buy(self):
        client = make_client([
            (200, positions_response({'coin': ASSET, 'size': -75})),
            (200, {'status': 'success', 'id': 'c1'}),
        ])
        result = await client.close_position(ASSET)

        assert result.success
        action = json.loads(client._session.requests[1]['data'])['action']
        assert action['side'] == 'BUY'
        assert action['size'] == '75.0'
        assert action['reduceOnly'] is True

    @pytest.mark.asyncio
    async def test_long_is_closed_with_sell(self):
        client = make_client([
            (200, positions_response({'coin': ASSET, 'size': 30})),
            (200, {'status': 'success', 'id': 'c2'}),
        ])
        await client.close_position(ASSET)
        action = json.loads(client._session.requests[1]['data'])['action']
        assert action['side'] == 'SELL'

    @pytest.mark.asyncio
    async def test_read_failure_is_a_failed_result(self):
        client = make_client([(503, 'unavailable')])
        result = await client.close_position(ASSET)
        assert not result.success
        assert result.error_code == 'API_ERROR'


class TestSessionLifecycle:

    @pytest.mark.asyncio
    async def test_injected_session_is_not_closed(self):
        session = FakeSession([])
        client = ExchangeClient(ExchangeClientConfig(signing_key='k'), session=session)
        await client.close()
        assert not session.closed
