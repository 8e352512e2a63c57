"""Base64url helpers shared by the QR Date services.

Signatures, salts, fingerprints and DER key material all travel as
URL-safe base64 without padding.
"""

from __future__ import annotations

import base64
import binascii
import re

_B64URL_RE = re.compile(r"[A-Za-z0-9_-]*")


def b64url_encode(data: bytes) -> str:
    """Encode bytes as URL-safe base64 without padding."""
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def b64url_decode(text: str) -> bytes:
    """Decode URL-safe base64, with or without padding.

    Unlike base64.urlsafe_b64decode, characters outside the URL-safe
    alphabet are rejected instead of being silently discarded, and so is
    text that does not re-encode to itself.

    Raises:
        ValueError: If the text is not valid base64url.
    """
    stripped = text.rstrip("=")
    if not _B64URL_RE.fullmatch(stripped):
        msg = "Invalid base64url text"
        raise ValueError(msg)
    padded = stripped + "=" * (-len(stripped) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded)
    except binascii.Error as e:
        msg = f"Invalid base64url text: {e}"
        raise ValueError(msg) from e
    # Unused trailing bits must be zero so each byte string has one spelling
    if b64url_encode(raw) != stripped:
        msg = "Non-canonical base64url text"
        raise ValueError(msg)
    return raw
