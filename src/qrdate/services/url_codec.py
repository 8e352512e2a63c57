"""QR Date URL encoding and decoding.

Three URL shapes exist. The shape is chosen by the caller when encoding
and recognized from scheme and fields when decoding:

    dynamic               https://host/path?s=<sig>&t=<ts>[&e=<salt>][&v=<version>]
    static_fingerprint    qrdate://v?s=<sig>&t=<ts>&f=<fingerprint>[&v=<version>]
    static_embedded_key   qrdate://v?s=<sig>&t=<ts>&e=<salt>&p=<public key>

The query names s, t, e, f, v and p are reserved. Unknown query parameters
are ignored on decode and never influence verification. Parameter order is
irrelevant on decode.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Protocol
from urllib.parse import parse_qsl, urlencode, urlsplit

from qrdate.core.errors import InvalidArgumentError, MalformedURLError
from qrdate.services.signing import SUPPORTED_VERSIONS, format_timestamp

logger = logging.getLogger(__name__)

STATIC_SCHEME = "qrdate"
STATIC_HOST = "v"
STATIC_URL_BASE = f"{STATIC_SCHEME}://{STATIC_HOST}"

DYNAMIC_SCHEMES = frozenset({"http", "https"})

PARAM_SIGNATURE = "s"
PARAM_TIMESTAMP = "t"
PARAM_SALT = "e"
PARAM_FINGERPRINT = "f"
PARAM_VERSION = "v"
PARAM_PUBLIC_KEY = "p"

RESERVED_PARAMS = frozenset(
    {
        PARAM_SIGNATURE,
        PARAM_TIMESTAMP,
        PARAM_SALT,
        PARAM_FINGERPRINT,
        PARAM_VERSION,
        PARAM_PUBLIC_KEY,
    }
)

_TIMESTAMP_RE = re.compile(r"0|[1-9][0-9]*")
_VERSION_RE = re.compile(r"[1-9][0-9]*")


class UrlShape(str, Enum):
    """Layout of a QR Date URL.

    Values:
        DYNAMIC: caller-supplied http(s) base, key obtained out of band
        STATIC_FINGERPRINT: qrdate://v with the signer's key fingerprint
        STATIC_EMBEDDED_KEY: qrdate://v carrying the public key itself
    """

    DYNAMIC = "dynamic"
    STATIC_FINGERPRINT = "static_fingerprint"
    STATIC_EMBEDDED_KEY = "static_embedded_key"


_REQUIRED_PARAMS: dict[UrlShape, tuple[str, ...]] = {
    UrlShape.DYNAMIC: (PARAM_SIGNATURE, PARAM_TIMESTAMP),
    UrlShape.STATIC_FINGERPRINT: (PARAM_SIGNATURE, PARAM_TIMESTAMP, PARAM_FINGERPRINT),
    UrlShape.STATIC_EMBEDDED_KEY: (
        PARAM_SIGNATURE,
        PARAM_TIMESTAMP,
        PARAM_SALT,
        PARAM_PUBLIC_KEY,
    ),
}

_OPTIONAL_PARAMS: dict[UrlShape, tuple[str, ...]] = {
    UrlShape.DYNAMIC: (PARAM_SALT, PARAM_VERSION),
    UrlShape.STATIC_FINGERPRINT: (PARAM_VERSION,),
    UrlShape.STATIC_EMBEDDED_KEY: (),
}


@dataclass(frozen=True, slots=True)
class QRDateFields:
    """Everything a QR Date URL carries.

    Attributes:
        shape: URL shape.
        timestamp: Milliseconds since the UNIX epoch.
        signature: Base64url signature.
        salt: Base64url salt (dynamic, static_embedded_key).
        version: Signing message version (dynamic, static_fingerprint).
        fingerprint: Public key fingerprint (static_fingerprint).
        public_key: Base64url SPKI DER public key (static_embedded_key).
        url_base: Origin + path (dynamic only, None otherwise). Normalized
            with normalize_url_base on construction.
    """

    shape: UrlShape
    timestamp: int
    signature: str
    salt: str | None = None
    version: int | None = None
    fingerprint: str | None = None
    public_key: str | None = None
    url_base: str | None = None

    def __post_init__(self) -> None:
        try:
            object.__setattr__(self, "shape", UrlShape(self.shape))
        except ValueError as e:
            msg = f"Unknown URL shape: {self.shape!r}"
            raise InvalidArgumentError(msg, argument="shape") from e
        if self.shape is not UrlShape.DYNAMIC:
            object.__setattr__(self, "url_base", None)
        elif self.url_base is not None:
            object.__setattr__(self, "url_base", normalize_url_base(self.url_base))


class UrlFormatter(Protocol):
    """Strategy that turns QR Date fields into a URL string."""

    def format_url(self, fields: QRDateFields) -> str:
        """Return the URL for the given fields."""
        ...


class DefaultUrlFormatter:
    """Formatter producing the standard QR Date URL shapes."""

    def format_url(self, fields: QRDateFields) -> str:
        return encode_url(fields)


def normalize_url_base(url_base: str | None) -> str:
    """Reduce a dynamic URL base to origin + path.

    Scheme and host are lowercased. Userinfo, query string and fragment
    are dropped, and an empty path becomes "/".

    Raises:
        InvalidArgumentError: If the base is not an absolute http(s) URL.
    """
    if not url_base:
        msg = "url_base is required for dynamic QR Date URLs"
        raise InvalidArgumentError(msg, argument="url_base")
    try:
        parts = urlsplit(url_base.strip())
    except ValueError as e:
        msg = f"Invalid url_base: {e}"
        raise InvalidArgumentError(msg, argument="url_base") from e

    scheme = parts.scheme.lower()
    host = _host(parts.netloc)
    if scheme not in DYNAMIC_SCHEMES or not host:
        msg = f"url_base must be an absolute http(s) URL, got {url_base!r}"
        raise InvalidArgumentError(msg, argument="url_base")
    return f"{scheme}://{host}{parts.path or '/'}"


def encode_url(fields: QRDateFields) -> str:
    """Encode QR Date fields as a URL of the requested shape.

    Args:
        fields: Fields to encode. url_base is only used for dynamic URLs.

    Returns:
        The QR Date URL.

    Raises:
        InvalidArgumentError: If a field required by the shape is missing,
            or salt and version are both set.
    """
    if not fields.signature:
        msg = "signature is required"
        raise InvalidArgumentError(msg, argument="signature")
    if fields.salt is not None and fields.version is not None:
        msg = "salt and version are mutually exclusive"
        raise InvalidArgumentError(msg, argument="version")
    if fields.version is not None and fields.version not in SUPPORTED_VERSIONS:
        msg = f"Unsupported version: {fields.version!r}"
        raise InvalidArgumentError(msg, argument="version")

    params = [
        (PARAM_SIGNATURE, fields.signature),
        (PARAM_TIMESTAMP, format_timestamp(fields.timestamp)),
    ]

    if fields.shape is UrlShape.DYNAMIC:
        base = normalize_url_base(fields.url_base)
        if fields.salt is not None:
            params.append((PARAM_SALT, fields.salt))
    elif fields.shape is UrlShape.STATIC_FINGERPRINT:
        base = STATIC_URL_BASE
        _require(fields.fingerprint, "fingerprint", fields.shape)
        params.append((PARAM_FINGERPRINT, fields.fingerprint))
    else:
        base = STATIC_URL_BASE
        _require(fields.salt, "salt", fields.shape)
        _require(fields.public_key, "public_key", fields.shape)
        params.append((PARAM_SALT, fields.salt))
        params.append((PARAM_PUBLIC_KEY, fields.public_key))

    if fields.version is not None and PARAM_VERSION in _OPTIONAL_PARAMS[fields.shape]:
        params.append((PARAM_VERSION, str(fields.version)))

    return f"{base}?{urlencode(params)}"


def decode_url(url: str) -> QRDateFields:
    """Decode a QR Date URL back into its fields.

    Args:
        url: A dynamic, static_fingerprint or static_embedded_key URL.

    Returns:
        The decoded fields.

    Raises:
        MalformedURLError: If the URL has an unknown scheme or host, lacks a
            required field, repeats or blanks a reserved field, or carries an
            invalid timestamp or version.
    """
    if not isinstance(url, str) or not url.strip():
        msg = "QR Date URL is empty"
        raise MalformedURLError(msg)
    try:
        parts = urlsplit(url.strip())
    except ValueError as e:
        msg = f"Unparseable QR Date URL: {e}"
        raise MalformedURLError(msg) from e

    params = _parse_query(parts.query)
    scheme = parts.scheme.lower()
    url_base = None

    if scheme in DYNAMIC_SCHEMES:
        host = _host(parts.netloc)
        if not host:
            msg = "Dynamic QR Date URL has no host"
            raise MalformedURLError(msg)
        shape = UrlShape.DYNAMIC
        url_base = f"{scheme}://{host}{parts.path or '/'}"
    elif scheme == STATIC_SCHEME:
        if parts.netloc != STATIC_HOST:
            msg = f"Static QR Date URL must use host '{STATIC_HOST}', got {parts.netloc!r}"
            raise MalformedURLError(msg)
        if PARAM_PUBLIC_KEY in params:
            shape = UrlShape.STATIC_EMBEDDED_KEY
        else:
            shape = UrlShape.STATIC_FINGERPRINT
    else:
        msg = f"Unsupported QR Date URL scheme: {parts.scheme!r}"
        raise MalformedURLError(msg)

    for name in _REQUIRED_PARAMS[shape]:
        if name not in params:
            msg = f"Missing required field '{name}' for {shape.value} URL"
            raise MalformedURLError(msg, field=name)

    allowed = _REQUIRED_PARAMS[shape] + _OPTIONAL_PARAMS[shape]
    salt = params.get(PARAM_SALT) if PARAM_SALT in allowed else None
    version = None
    if PARAM_VERSION in allowed and PARAM_VERSION in params:
        version = _parse_version(params[PARAM_VERSION])
    if salt is not None and version is not None:
        msg = "Fields 'e' and 'v' are mutually exclusive"
        raise MalformedURLError(msg, field=PARAM_VERSION)

    fields = QRDateFields(
        shape=shape,
        timestamp=_parse_timestamp(params[PARAM_TIMESTAMP]),
        signature=params[PARAM_SIGNATURE],
        salt=salt,
        version=version,
        fingerprint=params.get(PARAM_FINGERPRINT) if PARAM_FINGERPRINT in allowed else None,
        public_key=params.get(PARAM_PUBLIC_KEY) if PARAM_PUBLIC_KEY in allowed else None,
        url_base=url_base,
    )
    logger.debug("Decoded %s QR Date URL (t=%d)", shape.value, fields.timestamp)
    return fields


def _host(netloc: str) -> str:
    return netloc.rsplit("@", 1)[-1].lower()


def _require(value: str | None, name: str, shape: UrlShape) -> None:
    if not value:
        msg = f"{name} is required for {shape.value} URLs"
        raise InvalidArgumentError(msg, argument=name)


def _parse_query(query: str) -> dict[str, str]:
    params: dict[str, str] = {}
    for name, value in parse_qsl(query, keep_blank_values=True):
        if name not in RESERVED_PARAMS:
            continue
        if name in params:
            msg = f"Field '{name}' appears more than once"
            raise MalformedURLError(msg, field=name)
        if not value:
            msg = f"Field '{name}' is empty"
            raise MalformedURLError(msg, field=name)
        params[name] = value
    return params


def _parse_timestamp(value: str) -> int:
    if not _TIMESTAMP_RE.fullmatch(value):
        msg = f"Timestamp must be a decimal integer without leading zeros, got {value!r}"
        raise MalformedURLError(msg, field=PARAM_TIMESTAMP)
    return int(value)


def _parse_version(value: str) -> int:
    if not _VERSION_RE.fullmatch(value) or int(value) not in SUPPORTED_VERSIONS:
        msg = f"Unsupported version: {value!r}"
        raise MalformedURLError(msg, field=PARAM_VERSION)
    return int(value)
