"""Error taxonomy for QR Date operations.

Every failure raised by this package derives from QRDateError:

- InvalidArgumentError: a required argument is missing or unusable (caller bug)
- KeyFormatError: key material cannot be parsed for the selected algorithm
- SigningError: the signing key is not a usable private key
- MalformedURLError: a QR Date URL is structurally invalid
- KeyNotFoundError: a fingerprint is not present in a trust store

A failed verification is not an error. Verification functions return False
for forged, tampered or otherwise invalid codes.
"""

from __future__ import annotations


class QRDateError(Exception):
    """Base exception for QR Date errors."""

    pass


class InvalidArgumentError(QRDateError, ValueError):
    """Raised when a required argument is missing or invalid."""

    def __init__(self, message: str, argument: str | None = None) -> None:
        super().__init__(message)
        self.argument = argument


class KeyFormatError(QRDateError):
    """Raised when key material cannot be parsed.

    Attributes:
        kind: Which key was being parsed ("private" or "public").
    """

    def __init__(self, message: str, kind: str | None = None) -> None:
        super().__init__(message)
        self.kind = kind


class SigningError(QRDateError):
    """Raised when signing fails because of a key/algorithm mismatch."""

    pass


class MalformedURLError(QRDateError):
    """Raised when a QR Date URL cannot be decoded.

    Attributes:
        field: Query field that caused the failure, if any.
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class KeyNotFoundError(QRDateError):
    """Raised when a fingerprint is not present in a trust store."""

    def __init__(self, fingerprint: str) -> None:
        super().__init__(f"Key not found for fingerprint: {fingerprint}")
        self.fingerprint = fingerprint
