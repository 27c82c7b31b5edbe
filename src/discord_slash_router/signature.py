"""Ed25519 request signature validation."""

from __future__ import annotations

from collections.abc import Mapping

from nacl.exceptions import CryptoError
from nacl.signing import VerifyKey

from .errors import AuthenticationError
from .logging import get_logger

logger = get_logger(__name__)

SIGNATURE_HEADER = "X-Signature-Ed25519"
TIMESTAMP_HEADER = "X-Signature-Timestamp"


def _load_key(public_key: str) -> VerifyKey | None:
    try:
        return VerifyKey(bytes.fromhex(public_key))
    except (ValueError, TypeError, CryptoError):
        return None


def verify_signature(
    public_key: str | VerifyKey, signature: str, timestamp: str, body: bytes
) -> bool:
    """Check a detached signature over ``timestamp + body``.

    Malformed hex, wrong key or signature lengths and bad signatures all
    verify false.
    """
    key = public_key if isinstance(public_key, VerifyKey) else _load_key(public_key)
    if key is None:
        return False
    try:
        key.verify(timestamp.encode() + body, bytes.fromhex(signature))
    except (ValueError, TypeError, CryptoError):
        return False
    return True


class SignatureValidator:
    def __init__(self, public_key: str) -> None:
        self._key = _load_key(public_key) if public_key else None
        if public_key and self._key is None:
            logger.error("signature.invalid_public_key")

    def validate(self, headers: Mapping[str, str], body: bytes) -> bytes:
        """Return ``body`` when the request is signed by the configured key.

        Raises:
            AuthenticationError: signature headers are missing or the
                signature does not verify.
        """
        if self._key is None:
            raise AuthenticationError("public key is not configured")
        signature = headers.get(SIGNATURE_HEADER)
        timestamp = headers.get(TIMESTAMP_HEADER)
        if not signature or timestamp is None:
            raise AuthenticationError("missing signature headers")
        if not verify_signature(self._key, signature, timestamp, body):
            raise AuthenticationError("invalid request signature")
        return body
