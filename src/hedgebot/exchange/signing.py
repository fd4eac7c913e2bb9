"""
Request signing for mutating venue calls.

The signature is an HMAC-SHA256 hex digest over ``nonce + payload`` where
the nonce is the current time in milliseconds. Field order and encoding
follow the venue's reference client; confirm them against the venue before
switching endpoints.
"""

import hashlib
import hmac
import threading
import time
from typing import Callable, Dict, Optional

from .exceptions import SigningError


class RequestSigner:
    """
    Produces nonces and signatures for POST requests.

    Nonces never go backwards within one signer, even if the wall clock
    does.
    """

    def __init__(
        self,
        signing_key: str,
        nonce_header: str = 'X-HL-Nonce',
        signature_header: str = 'X-HL-Signature',
        clock: Optional[Callable[[], float]] = None
    ):
        self._signing_key = signing_key
        self.nonce_header = nonce_header
        self.signature_header = signature_header
        self._clock = clock or time.time
        self._last_nonce = 0
        self._lock = threading.Lock()

    def next_nonce(self) -> str:
        """Current time in ms as a string, monotonically non-decreasing."""
        with self._lock:
            now_ms = int(self._clock() * 1000)
            if now_ms < self._last_nonce:
                now_ms = self._last_nonce
            self._last_nonce = now_ms
            return str(now_ms)

    def sign(self, payload: str) -> str:
        """
        Sign ``payload`` with the configured key.

        Raises:
            SigningError: If the key is missing or the payload cannot be
                encoded.
        """
        if not self._signing_key:
            raise SigningError("No signing key configured")
        try:
            key = self._signing_key.encode('utf-8')
            digest = hmac.new(key, payload.encode('utf-8'), hashlib.sha256)
            return digest.hexdigest()
        except (TypeError, ValueError, AttributeError) as e:
            raise SigningError(
                f"Request signing failed: {e}",
                details={'original_error': str(e)}
            ) from e

    def signed_headers(self, serialized_body: str) -> Dict[str, str]:
        """Return the nonce and signature headers for one request body."""
        nonce = self.next_nonce()
        signature = self.sign(f"{nonce}{serialized_body}")
        return {
            self.nonce_header: nonce,
            self.signature_header: signature,
        }
