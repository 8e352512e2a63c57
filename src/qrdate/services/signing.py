"""Signing message construction, signing and verification.

The signing message is the exact byte string handed to the signature
primitive. Three constructions exist and each is a distinct SigningMode:

    bare:       b"1646109781467"
    salted:     b"1646109781467" + salt            (no separator)
    versioned:  b"t=1646109781467&v=1"

build_signing_message() is the only place these bytes are produced; the
signer and the verifier both go through it. Any change to the byte layout
invalidates every signature ever issued.
"""

from __future__ import annotations

import logging
import secrets
import time
from enum import Enum
from typing import Any

from cryptography.exceptions import InvalidSignature

from qrdate.core.errors import InvalidArgumentError, SigningError
from qrdate.services.encoding import b64url_decode, b64url_encode
from qrdate.services.keys import PRIVATE_KEY_TYPES, PUBLIC_KEY_TYPES

logger = logging.getLogger(__name__)

# Signing message format versions understood by this implementation
SUPPORTED_VERSIONS = frozenset({1})
CURRENT_VERSION = 1

# Default salt size: 32 bytes, 43 base64url characters
DEFAULT_ENTROPY_LENGTH = 32


class SigningMode(str, Enum):
    """Construction rule for the signing message.

    Values:
        BARE: decimal timestamp only
        SALTED: decimal timestamp immediately followed by the salt string
        VERSIONED: "t=<timestamp>&v=<version>"
    """

    BARE = "bare"
    SALTED = "salted"
    VERSIONED = "versioned"

    @classmethod
    def infer(cls, salt: str | None, version: int | None) -> SigningMode:
        """Select the mode implied by the fields carried alongside a signature."""
        if version is not None:
            return cls.VERSIONED
        if salt is not None:
            return cls.SALTED
        return cls.BARE


def format_timestamp(timestamp: int) -> str:
    """Render a millisecond timestamp as plain decimal.

    Raises:
        InvalidArgumentError: If the timestamp is not a non-negative int.
    """
    if isinstance(timestamp, bool) or not isinstance(timestamp, int):
        msg = f"timestamp must be an int, got {type(timestamp).__name__}"
        raise InvalidArgumentError(msg, argument="timestamp")
    if timestamp < 0:
        msg = "timestamp must not be negative"
        raise InvalidArgumentError(msg, argument="timestamp")
    return str(timestamp)


def build_signing_message(
    mode: SigningMode,
    timestamp: int,
    *,
    salt: str | None = None,
    version: int | None = None,
) -> bytes:
    """Build the bytes to be signed for a QR Date.

    Args:
        mode: Message construction rule.
        timestamp: Milliseconds since the UNIX epoch.
        salt: Base64url salt, required for SALTED.
        version: Format version, required for VERSIONED.

    Returns:
        UTF-8 encoded signing message.

    Raises:
        InvalidArgumentError: If a field required by the mode is missing or
            the version is not supported.
    """
    ts = format_timestamp(timestamp)

    if mode is SigningMode.BARE:
        message = ts
    elif mode is SigningMode.SALTED:
        if not salt:
            msg = "salt is required for salted signing messages"
            raise InvalidArgumentError(msg, argument="salt")
        message = f"{ts}{salt}"
    elif mode is SigningMode.VERSIONED:
        if version is None:
            msg = "version is required for versioned signing messages"
            raise InvalidArgumentError(msg, argument="version")
        if isinstance(version, bool) or version not in SUPPORTED_VERSIONS:
            msg = f"Unsupported version: {version!r}"
            raise InvalidArgumentError(msg, argument="version")
        message = f"t={ts}&v={version}"
    else:
        msg = f"Unknown signing mode: {mode!r}"
        raise InvalidArgumentError(msg, argument="mode")

    return message.encode("utf-8")


def sign(message: bytes, private_key: Any) -> str:
    """Sign a message and return the signature as base64url.

    EdDSA hashes internally, so the message is passed to the primitive
    as is. Signatures are deterministic for a given (message, key).

    Args:
        message: Signing message from build_signing_message().
        private_key: Private key object (see normalize_private_key).

    Returns:
        Unpadded base64url signature.

    Raises:
        SigningError: If the key is not a supported private key.
    """
    if not isinstance(private_key, PRIVATE_KEY_TYPES):
        msg = f"Unsupported signing key type: {type(private_key).__name__}"
        raise SigningError(msg)
    signature = b64url_encode(private_key.sign(message))
    logger.debug("Signed %d-byte message", len(message))
    return signature


def verify(message: bytes, public_key: Any, signature: str) -> bool:
    """Verify a base64url signature over a message.

    Never raises for a malformed signature or an unusable key; both are
    reported as False, same as a signature that does not match.

    Args:
        message: Signing message from build_signing_message().
        public_key: Public key object (see normalize_public_key).
        signature: Unpadded base64url signature.

    Returns:
        True if the signature is valid for the message and key.
    """
    if not isinstance(public_key, PUBLIC_KEY_TYPES) or not isinstance(signature, str):
        return False
    try:
        public_key.verify(b64url_decode(signature), message)
    except (InvalidSignature, ValueError):
        return False
    return True


def generate_salt(entropy_length: int = DEFAULT_ENTROPY_LENGTH) -> str:
    """Generate a fresh random salt as unpadded base64url.

    Args:
        entropy_length: Number of random bytes.

    Raises:
        InvalidArgumentError: If entropy_length is not a positive int.
    """
    if isinstance(entropy_length, bool) or not isinstance(entropy_length, int):
        msg = "entropy_length must be an int"
        raise InvalidArgumentError(msg, argument="entropy_length")
    if entropy_length < 1:
        msg = "entropy_length must be at least 1"
        raise InvalidArgumentError(msg, argument="entropy_length")
    return b64url_encode(secrets.token_bytes(entropy_length))


def current_timestamp() -> int:
    """Current wall-clock time in milliseconds since the UNIX epoch."""
    return time.time_ns() // 1_000_000
