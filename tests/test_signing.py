"""Tests for request signing and the exchange error types."""

import hashlib
import hmac

import pytest

from hedgebot.exchange import (
    ApiError,
    ExchangeError,
    MarketNotFoundError,
    NetworkError,
    RequestSigner,
    SigningError,
    ValidationError,
    error_details,
)


class FakeClock:
    def __init__(self, *times):
        self.times = list(times)

    def __call__(self):
        return self.times.pop(0)


def test_signature_is_hmac_sha256_of_nonce_and_body():
    signer = RequestSigner('secret', clock=FakeClock(1700000000.123))
    headers = signer.signed_headers('{"a":1}')

    assert headers['X-HL-Nonce'] == '1700000000123'
    expected = hmac.new(b'secret', b'1700000000123{"a":1}', hashlib.sha256).hexdigest()
    assert headers['X-HL-Signature'] == expected


def test_header_names_are_configurable():
    signer = RequestSigner('secret', nonce_header='X-Nonce', signature_header='X-Sig')
    headers = signer.signed_headers('{}')
    assert set(headers) == {'X-Nonce', 'X-Sig'}


def test_nonce_never_goes_backwards():
    signer = RequestSigner('secret', clock=FakeClock(100.0, 99.0, 101.0))
    nonces = [int(signer.next_nonce()) for _ in range(3)]
    assert nonces == [100000, 100000, 101000]


def test_empty_key_raises_signing_error():
    with pytest.raises(SigningError):
        RequestSigner('').sign('payload')


class TestErrors:

    def test_str_includes_code(self):
        assert str(ExchangeError('boom', error_code='X')) == '[X] boom'
        assert str(ExchangeError('boom')) == 'boom'

    def test_only_network_errors_are_retryable(self):
        assert NetworkError().retryable
        assert not ApiError().retryable
        assert not ValidationError().retryable
        assert not SigningError().retryable

    def test_market_not_found_is_a_validation_error(self):
        error = MarketNotFoundError('PENDLE-PERP')
        assert isinstance(error, ValidationError)
        assert error.error_code == 'MARKET_NOT_FOUND'
        assert error.asset == 'PENDLE-PERP'

    def test_api_error_keeps_status_and_body(self):
        error = ApiError('API error: 429 - slow down', status=429, body='slow down')
        assert error.status == 429
        assert error.body == 'slow down'

    def test_error_details(self):
        details = error_details(NetworkError('reset', details={'url': 'u'}))
        assert details['error_type'] == 'NetworkError'
        assert details['error_code'] == 'NETWORK_ERROR'
        assert details['url'] == 'u'

        assert error_details(RuntimeError('x')) == {'error_type': 'RuntimeError', 'message': 'x'}
