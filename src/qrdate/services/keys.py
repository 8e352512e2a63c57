"""Key normalization, export and generation.

Keys reach the QR Date engine in loosely typed forms: PEM text, base64url
encoded DER (the PEM body with the header/footer stripped), raw DER bytes,
raw algorithm-sized key bytes, or an already-parsed key object from the
`cryptography` library. Everything is resolved here, once, into a key
object of the selected algorithm; the rest of the package only ever sees
those key objects.

Base64url text is turned back into PEM exactly the way the QR Date key
format expects: re-encoded as standard base64, wrapped at 64 columns and
framed with the PRIVATE KEY / PUBLIC KEY header and footer.
"""

from __future__ import annotations

import base64
import logging
import textwrap
from dataclasses import dataclass
from enum import Enum
from typing import Any

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric.ed448 import Ed448PrivateKey, Ed448PublicKey
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    PublicFormat,
    load_der_private_key,
    load_der_public_key,
    load_pem_private_key,
    load_pem_public_key,
)

from qrdate.core.errors import KeyFormatError
from qrdate.services.encoding import b64url_decode, b64url_encode

logger = logging.getLogger(__name__)

PRIVATE_KEY_LABEL = "PRIVATE KEY"
PUBLIC_KEY_LABEL = "PUBLIC KEY"
PRIVATE_KEY_HEADER = f"-----BEGIN {PRIVATE_KEY_LABEL}-----"
PUBLIC_KEY_HEADER = f"-----BEGIN {PUBLIC_KEY_LABEL}-----"

# PEM bodies are wrapped at 64 characters per RFC 7468
PEM_LINE_LENGTH = 64

PrivateKey = Ed25519PrivateKey | Ed448PrivateKey
PublicKey = Ed25519PublicKey | Ed448PublicKey

PRIVATE_KEY_TYPES = (Ed25519PrivateKey, Ed448PrivateKey)
PUBLIC_KEY_TYPES = (Ed25519PublicKey, Ed448PublicKey)

# Errors cryptography raises for unparseable or unsupported key material
_KEY_PARSE_ERRORS = (ValueError, TypeError, UnsupportedAlgorithm)


class KeyAlgorithm(str, Enum):
    """Asymmetric signature algorithm used for QR Dates.

    Both algorithms are EdDSA variants that hash the message internally,
    so signing takes the message bytes directly with no pre-hash step.

    Values:
        ED25519: Ed25519 (default, recommended)
        ED448: Ed448
    """

    ED25519 = "ed25519"
    ED448 = "ed448"

    @property
    def private_key_type(self) -> type:
        """Private key class for this algorithm."""
        return Ed25519PrivateKey if self is KeyAlgorithm.ED25519 else Ed448PrivateKey

    @property
    def public_key_type(self) -> type:
        """Public key class for this algorithm."""
        return Ed25519PublicKey if self is KeyAlgorithm.ED25519 else Ed448PublicKey

    @property
    def raw_key_size(self) -> int:
        """Size in bytes of a raw (non-DER) private or public key."""
        return 32 if self is KeyAlgorithm.ED25519 else 57

    def generate(self) -> PrivateKey:
        """Generate a fresh private key."""
        return self.private_key_type.generate()


class KeyEncoding(str, Enum):
    """Textual key encodings accepted and produced by this package.

    Values:
        PEM: PKCS#8 (private) or SubjectPublicKeyInfo (public) PEM text
        BASE64URL_DER: the same DER structures as unpadded base64url
    """

    PEM = "pem"
    BASE64URL_DER = "base64url_der"


@dataclass(frozen=True, slots=True)
class KeyPair:
    """A private/public key pair.

    Attributes:
        private_key: PKCS#8 PEM text, or a private key object.
        public_key: SPKI PEM text, or a public key object.
    """

    private_key: Any
    public_key: Any


def wrap_pem(der: bytes, label: str) -> str:
    """Frame DER bytes as PEM text with the given label."""
    body = base64.b64encode(der).decode("ascii")
    lines = textwrap.wrap(body, PEM_LINE_LENGTH)
    return "\n".join([f"-----BEGIN {label}-----", *lines, f"-----END {label}-----"]) + "\n"


def normalize_private_key(
    key: Any,
    algorithm: KeyAlgorithm = KeyAlgorithm.ED25519,
) -> PrivateKey:
    """Resolve private key input into a private key object.

    Args:
        key: PEM text, base64url DER text, DER or raw bytes, or a key object.
        algorithm: Algorithm the key must belong to.

    Returns:
        Private key object of the selected algorithm.

    Raises:
        KeyFormatError: If the key cannot be parsed, is a public key,
            or belongs to another algorithm.
    """
    return _normalize(key, algorithm, private=True)


def normalize_public_key(
    key: Any,
    algorithm: KeyAlgorithm = KeyAlgorithm.ED25519,
) -> PublicKey:
    """Resolve public key input into a public key object.

    Args:
        key: PEM text, base64url DER text, DER or raw bytes, or a key object.
        algorithm: Algorithm the key must belong to.

    Returns:
        Public key object of the selected algorithm.

    Raises:
        KeyFormatError: If the key cannot be parsed, is a private key,
            or belongs to another algorithm.
    """
    return _normalize(key, algorithm, private=False)


def derive_public_key(
    private_key: Any,
    algorithm: KeyAlgorithm = KeyAlgorithm.ED25519,
) -> PublicKey:
    """Derive the public key from private key input."""
    return normalize_private_key(private_key, algorithm).public_key()


def export_public_key(
    key: PublicKey,
    encoding: KeyEncoding = KeyEncoding.BASE64URL_DER,
) -> str:
    """Export a public key as SPKI PEM or base64url DER."""
    if encoding is KeyEncoding.PEM:
        return key.public_bytes(Encoding.PEM, PublicFormat.SubjectPublicKeyInfo).decode("ascii")
    return b64url_encode(key.public_bytes(Encoding.DER, PublicFormat.SubjectPublicKeyInfo))


def export_private_key(
    key: PrivateKey,
    encoding: KeyEncoding = KeyEncoding.PEM,
) -> str:
    """Export a private key as unencrypted PKCS#8 PEM or base64url DER."""
    if encoding is KeyEncoding.PEM:
        return key.private_bytes(Encoding.PEM, PrivateFormat.PKCS8, NoEncryption()).decode("ascii")
    return b64url_encode(key.private_bytes(Encoding.DER, PrivateFormat.PKCS8, NoEncryption()))


def generate_key_pair(
    algorithm: KeyAlgorithm = KeyAlgorithm.ED25519,
    *,
    as_text: bool = True,
) -> KeyPair:
    """Generate a key pair compatible with normalize_private_key/normalize_public_key.

    Args:
        algorithm: Algorithm to generate a key for.
        as_text: Return PEM text (default) instead of key objects.

    Returns:
        KeyPair with PKCS#8 / SPKI PEM text or key objects.
    """
    private_key = algorithm.generate()
    public_key = private_key.public_key()
    logger.debug("Generated %s key pair", algorithm.value)
    if as_text:
        return KeyPair(
            private_key=export_private_key(private_key, KeyEncoding.PEM),
            public_key=export_public_key(public_key, KeyEncoding.PEM),
        )
    return KeyPair(private_key=private_key, public_key=public_key)


def _normalize(key: Any, algorithm: KeyAlgorithm, *, private: bool) -> Any:
    kind = "private" if private else "public"
    expected = algorithm.private_key_type if private else algorithm.public_key_type

    if key is None:
        raise KeyFormatError(f"No {kind} key supplied", kind=kind)

    if isinstance(key, PRIVATE_KEY_TYPES + PUBLIC_KEY_TYPES):
        parsed = key
    elif isinstance(key, str):
        parsed = _parse_text(key.strip(), algorithm, private=private)
    elif isinstance(key, bytes | bytearray | memoryview):
        parsed = _parse_binary(bytes(key), algorithm, private=private)
    else:
        raise KeyFormatError(
            f"Unsupported {kind} key input type: {type(key).__name__}",
            kind=kind,
        )

    if not isinstance(parsed, expected):
        raise KeyFormatError(
            f"Expected an {algorithm.value} {kind} key, got {type(parsed).__name__}",
            kind=kind,
        )
    return parsed


def _parse_text(text: str, algorithm: KeyAlgorithm, *, private: bool) -> Any:
    kind = "private" if private else "public"
    header = PRIVATE_KEY_HEADER if private else PUBLIC_KEY_HEADER

    if text.startswith(header):
        pem = text.encode("ascii", errors="replace")
    else:
        # Bare base64url body: rebuild the PEM envelope around it
        try:
            raw = b64url_decode(text)
        except ValueError as e:
            raise KeyFormatError(f"Invalid {kind} key text: {e}", kind=kind) from e
        if len(raw) == algorithm.raw_key_size:
            return _load_raw(raw, algorithm, private=private)
        pem = wrap_pem(raw, PRIVATE_KEY_LABEL if private else PUBLIC_KEY_LABEL).encode("ascii")

    try:
        if private:
            return load_pem_private_key(pem, password=None)
        return load_pem_public_key(pem)
    except _KEY_PARSE_ERRORS as e:
        raise KeyFormatError(f"Unable to parse {kind} key: {e}", kind=kind) from e


def _parse_binary(data: bytes, algorithm: KeyAlgorithm, *, private: bool) -> Any:
    kind = "private" if private else "public"

    if data.lstrip().startswith(b"-----BEGIN"):
        try:
            text = data.decode("ascii")
        except UnicodeDecodeError as e:
            raise KeyFormatError(f"Invalid {kind} key PEM text", kind=kind) from e
        return _parse_text(text.strip(), algorithm, private=private)

    if len(data) == algorithm.raw_key_size:
        return _load_raw(data, algorithm, private=private)

    try:
        if private:
            return load_der_private_key(data, password=None)
        return load_der_public_key(data)
    except _KEY_PARSE_ERRORS as e:
        raise KeyFormatError(f"Unable to parse {kind} key: {e}", kind=kind) from e


def _load_raw(raw: bytes, algorithm: KeyAlgorithm, *, private: bool) -> Any:
    kind = "private" if private else "public"
    key_type = algorithm.private_key_type if private else algorithm.public_key_type
    try:
        if private:
            return key_type.from_private_bytes(raw)
        return key_type.from_public_bytes(raw)
    except _KEY_PARSE_ERRORS as e:
        raise KeyFormatError(f"Invalid raw {algorithm.value} {kind} key: {e}", kind=kind) from e
