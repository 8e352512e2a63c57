"""Public key fingerprints for static QR Date URLs.

A fingerprint is a short lookup key for a public key:

    fingerprint = base64url(sha256(utf8(SPKI PEM export of the public key)))

The PEM text hashed is always the canonical export produced by the
`cryptography` library (64-column body, trailing newline), never the text a
caller happened to supply, so reformatted PEM yields the same fingerprint.
Changing this construction breaks every published static URL; bump
FINGERPRINT_VERSION if it ever has to change.

A fingerprint identifies a key, it does not vouch for one. Callers must
trust the binding between fingerprint and key separately.
"""

from __future__ import annotations

import hashlib
import hmac
from typing import Any

from qrdate.services.encoding import b64url_encode
from qrdate.services.keys import (
    KeyAlgorithm,
    KeyEncoding,
    export_public_key,
    normalize_public_key,
)

FINGERPRINT_VERSION = 1

# SHA-256 digest rendered as unpadded base64url
FINGERPRINT_LENGTH = 43


def create_fingerprint(
    public_key: Any,
    algorithm: KeyAlgorithm = KeyAlgorithm.ED25519,
) -> str:
    """Compute the fingerprint of a public key.

    Args:
        public_key: Public key object or any input accepted by normalize_public_key.
        algorithm: Algorithm the key must belong to.

    Returns:
        43-character base64url SHA-256 fingerprint.

    Raises:
        KeyFormatError: If the public key is invalid.
    """
    key = normalize_public_key(public_key, algorithm)
    canonical_pem = export_public_key(key, KeyEncoding.PEM)
    return b64url_encode(hashlib.sha256(canonical_pem.encode("utf-8")).digest())


def fingerprints_match(expected: str, actual: str) -> bool:
    """Compare two fingerprints in constant time."""
    return hmac.compare_digest(expected.encode("utf-8"), actual.encode("utf-8"))
