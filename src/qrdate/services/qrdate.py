"""QR Date creation and verification.

This module orchestrates the other services:

    create:  key normalization -> timestamp (+ salt) -> sign -> encode URL
    verify:  key normalization [-> fingerprint check] -> verify signature

It is the only place that reads the system clock or the random source.
Everything else in the package is a pure function of its inputs.

Example:
    keys = generate_key_pair()
    qrdate = create_qrdate(keys.private_key, url_base="https://example.com/v")
    assert verify_qrdate_url(qrdate.url, public_key=keys.public_key)
"""

from __future__ import annotations

import hmac
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from qrdate.core.errors import InvalidArgumentError, KeyFormatError
from qrdate.core.settings import get_settings
from qrdate.services.fingerprint import create_fingerprint, fingerprints_match
from qrdate.services.keys import (
    KeyAlgorithm,
    KeyEncoding,
    PublicKey,
    derive_public_key,
    export_public_key,
    normalize_private_key,
    normalize_public_key,
)
from qrdate.services.signing import (
    CURRENT_VERSION,
    DEFAULT_ENTROPY_LENGTH,
    SigningMode,
    build_signing_message,
    current_timestamp,
    generate_salt,
    sign,
    verify,
)
from qrdate.services.url_codec import (
    DefaultUrlFormatter,
    QRDateFields,
    UrlFormatter,
    UrlShape,
    decode_url,
    encode_url,
)

if TYPE_CHECKING:
    from qrdate.core.config import Settings
    from qrdate.services.trust_store import TrustStore

logger = logging.getLogger(__name__)

_DEFAULT_FORMATTER = DefaultUrlFormatter()

# Signing mode used when the caller does not pick one
DEFAULT_MODES: dict[UrlShape, SigningMode] = {
    UrlShape.DYNAMIC: SigningMode.SALTED,
    UrlShape.STATIC_FINGERPRINT: SigningMode.BARE,
    UrlShape.STATIC_EMBEDDED_KEY: SigningMode.SALTED,
}

# Static URLs can only carry the fields their shape defines
ALLOWED_MODES: dict[UrlShape, frozenset[SigningMode]] = {
    UrlShape.DYNAMIC: frozenset(SigningMode),
    UrlShape.STATIC_FINGERPRINT: frozenset({SigningMode.BARE, SigningMode.VERSIONED}),
    UrlShape.STATIC_EMBEDDED_KEY: frozenset({SigningMode.SALTED}),
}


@dataclass(frozen=True, slots=True)
class QRDate:
    """A freshly signed QR Date.

    Attributes:
        timestamp: Signed time in milliseconds since the UNIX epoch.
        signature: Base64url signature over the signing message.
        url: URL to put in the QR code.
        shape: URL shape of `url`.
        mode: Signing message construction used.
        salt: Base64url salt (salted mode only).
        version: Signing message version (versioned mode only).
        fingerprint: Signer key fingerprint (static shapes only).
        public_key: Signer public key, base64url SPKI DER (static shapes only).
    """

    timestamp: int
    signature: str
    url: str
    shape: UrlShape
    mode: SigningMode
    salt: str | None = None
    version: int | None = None
    fingerprint: str | None = None
    public_key: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "timestamp": self.timestamp,
            "signature": self.signature,
            "url": self.url,
            "shape": self.shape.value,
            "mode": self.mode.value,
            "salt": self.salt,
            "version": self.version,
            "fingerprint": self.fingerprint,
            "public_key": self.public_key,
        }


@dataclass
class QRDateServiceConfig:
    """Configuration for the QR Date service.

    Attributes:
        algorithm: Signature algorithm keys must belong to.
        entropy_length: Salt size in bytes for salted mode.
        version: Version written into versioned signing messages.
        signing_mode: Mode used when create() gets none and the shape
            allows it; otherwise the shape default (see DEFAULT_MODES).
        url_base: Default base for dynamic URLs.
        private_key: Default signing key for create().
    """

    algorithm: KeyAlgorithm = KeyAlgorithm.ED25519
    entropy_length: int = DEFAULT_ENTROPY_LENGTH
    version: int = CURRENT_VERSION
    signing_mode: SigningMode | None = None
    url_base: str | None = None
    private_key: Any = field(default=None, repr=False)


class QRDateService:
    """Creates and verifies QR Dates.

    The service holds configuration only; every call is independent and
    safe to run concurrently.

    Example:
        service = QRDateService(QRDateServiceConfig(url_base="https://example.com/v"))
        qrdate = service.create(private_key_pem)
        service.verify_url(qrdate.url, public_key=public_key_pem)
    """

    def __init__(
        self,
        config: QRDateServiceConfig | None = None,
        *,
        formatter: UrlFormatter | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            config: Service configuration (defaults apply when omitted).
            formatter: Default URL formatter for dynamic and static
                fingerprint URLs.
        """
        self._config = config or QRDateServiceConfig()
        self._formatter = formatter

    @property
    def config(self) -> QRDateServiceConfig:
        return self._config

    def create(
        self,
        private_key: Any = None,
        *,
        url_base: str | None = None,
        formatter: UrlFormatter | None = None,
        shape: UrlShape = UrlShape.DYNAMIC,
        mode: SigningMode | None = None,
        entropy_length: int | None = None,
    ) -> QRDate:
        """Sign the current time and encode it as a QR Date URL.

        Args:
            private_key: Signing key in any accepted input form; falls back
                to the configured key.
            url_base: Base for dynamic URLs (https://host/path).
            formatter: Formatter overriding URL encoding for this call.
            shape: URL shape to produce.
            mode: Signing message construction; defaults per shape.
            entropy_length: Salt size in bytes for salted mode.

        Returns:
            The new QRDate.

        Raises:
            InvalidArgumentError: If url_base/formatter or the private key is
                missing, or the mode/formatter does not fit the shape.
            KeyFormatError: If the private key cannot be parsed.
        """
        shape = UrlShape(shape)
        url_base = url_base or self._config.url_base
        if shape is UrlShape.STATIC_EMBEDDED_KEY and formatter is not None:
            msg = "A custom formatter cannot be used for static_embedded_key URLs"
            raise InvalidArgumentError(msg, argument="formatter")
        formatter = formatter or self._formatter
        if shape is UrlShape.DYNAMIC and not url_base and formatter is None:
            msg = "url_base or formatter is required"
            raise InvalidArgumentError(msg, argument="url_base")

        if private_key is None:
            private_key = self._config.private_key
        if private_key is None:
            msg = "private_key is required"
            raise InvalidArgumentError(msg, argument="private_key")

        if mode is None:
            configured = self._config.signing_mode
            mode = configured if configured in ALLOWED_MODES[shape] else DEFAULT_MODES[shape]
        mode = SigningMode(mode)
        if mode not in ALLOWED_MODES[shape]:
            msg = f"Signing mode {mode.value} cannot be used with {shape.value} URLs"
            raise InvalidArgumentError(msg, argument="mode")

        key = normalize_private_key(private_key, self._config.algorithm)

        timestamp = current_timestamp()
        salt = None
        version = None
        if mode is SigningMode.SALTED:
            if entropy_length is None:
                entropy_length = self._config.entropy_length
            salt = generate_salt(entropy_length)
        elif mode is SigningMode.VERSIONED:
            version = self._config.version

        # Key material only goes into static URLs
        public_key = None
        fingerprint = None
        if shape is not UrlShape.DYNAMIC:
            public = key.public_key()
            public_key = export_public_key(public, KeyEncoding.BASE64URL_DER)
            fingerprint = create_fingerprint(public, self._config.algorithm)

        message = build_signing_message(mode, timestamp, salt=salt, version=version)
        signature = sign(message, key)

        fields = QRDateFields(
            shape=shape,
            timestamp=timestamp,
            signature=signature,
            salt=salt,
            version=version,
            fingerprint=fingerprint if shape is UrlShape.STATIC_FINGERPRINT else None,
            public_key=public_key if shape is UrlShape.STATIC_EMBEDDED_KEY else None,
            url_base=url_base or None,
        )
        if shape is UrlShape.STATIC_EMBEDDED_KEY:
            url = encode_url(fields)
        else:
            url = (formatter or _DEFAULT_FORMATTER).format_url(fields)

        logger.debug(
            "Created QR Date: shape=%s, mode=%s, t=%d",
            shape.value,
            mode.value,
            timestamp,
        )

        return QRDate(
            timestamp=timestamp,
            signature=signature,
            url=url,
            shape=shape,
            mode=mode,
            salt=salt,
            version=version,
            fingerprint=fingerprint,
            public_key=public_key,
        )

    def verify(
        self,
        *,
        timestamp: int | None,
        signature: str | None,
        salt: str | None = None,
        version: int | None = None,
        fingerprint: str | None = None,
        public_key: Any = None,
        private_key: Any = None,
        mode: SigningMode | None = None,
    ) -> bool:
        """Verify the signature of a QR Date.

        When a fingerprint is given it must match the fingerprint of the
        verifying key before the signature is checked. A mismatch is
        reported as False, the same as a bad signature.

        Args:
            timestamp: Signed timestamp.
            signature: Base64url signature.
            salt: Salt for salted mode.
            version: Version for versioned mode.
            fingerprint: Expected key fingerprint (static fingerprint URLs).
            public_key: Verifying key in any accepted input form.
            private_key: Used to derive the verifying key when no public
                key is given.
            mode: Signing message construction; inferred from salt/version
                when omitted.

        Returns:
            True if the QR Date is authentic.

        Raises:
            InvalidArgumentError: If timestamp, signature, a mode-specific
                field or both keys are missing.
            KeyFormatError: If the supplied key cannot be parsed.
        """
        if timestamp is None:
            msg = "timestamp is required"
            raise InvalidArgumentError(msg, argument="timestamp")
        if not signature:
            msg = "signature is required"
            raise InvalidArgumentError(msg, argument="signature")
        if public_key is None and private_key is None:
            msg = "private_key or public_key is required"
            raise InvalidArgumentError(msg, argument="public_key")

        mode = SigningMode(mode) if mode is not None else SigningMode.infer(salt, version)
        message = build_signing_message(mode, timestamp, salt=salt, version=version)

        if public_key is not None:
            key = normalize_public_key(public_key, self._config.algorithm)
        else:
            key = derive_public_key(private_key, self._config.algorithm)

        if fingerprint is not None and not fingerprints_match(
            create_fingerprint(key, self._config.algorithm), fingerprint
        ):
            logger.debug("QR Date verification failed: t=%d", timestamp)
            return False

        valid = verify(message, key, signature)
        if not valid:
            logger.debug("QR Date verification failed: t=%d", timestamp)
        return valid

    def verify_url(
        self,
        url: str,
        *,
        public_key: Any = None,
        private_key: Any = None,
        trust_store: TrustStore | None = None,
    ) -> bool:
        """Decode a QR Date URL and verify it.

        - dynamic: verified against the supplied key.
        - static_fingerprint: verified against the supplied key, or the key
          the trust store holds for the URL's fingerprint.
        - static_embedded_key: verified against the embedded key. If a key is
          also supplied, the embedded key must be that key.

        Returns:
            True if the QR Date is authentic.

        Raises:
            MalformedURLError: If the URL cannot be decoded.
            InvalidArgumentError: If no key source is available for the shape.
            KeyFormatError: If a supplied key cannot be parsed.
        """
        fields = decode_url(url)
        common = {
            "timestamp": fields.timestamp,
            "signature": fields.signature,
            "salt": fields.salt,
            "version": fields.version,
        }

        if fields.shape is UrlShape.STATIC_EMBEDDED_KEY:
            try:
                embedded = normalize_public_key(fields.public_key, self._config.algorithm)
            except KeyFormatError:
                logger.debug("QR Date verification failed: unusable embedded key")
                return False
            expected = self._resolve_public_key(public_key, private_key)
            if expected is not None and not _same_public_key(expected, embedded):
                logger.debug("QR Date verification failed: t=%d", fields.timestamp)
                return False
            return self.verify(**common, public_key=embedded, mode=SigningMode.SALTED)

        if fields.shape is UrlShape.STATIC_FINGERPRINT:
            key = self._resolve_public_key(public_key, private_key)
            if key is None:
                if trust_store is None:
                    msg = "public_key, private_key or trust_store is required"
                    raise InvalidArgumentError(msg, argument="public_key")
                key = trust_store.lookup(fields.fingerprint)
                if key is None:
                    logger.debug("QR Date verification failed: untrusted fingerprint")
                    return False
            return self.verify(**common, fingerprint=fields.fingerprint, public_key=key)

        return self.verify(**common, public_key=public_key, private_key=private_key)

    def _resolve_public_key(self, public_key: Any, private_key: Any) -> PublicKey | None:
        if public_key is not None:
            return normalize_public_key(public_key, self._config.algorithm)
        if private_key is not None:
            return derive_public_key(private_key, self._config.algorithm)
        return None


def _same_public_key(a: PublicKey, b: PublicKey) -> bool:
    return hmac.compare_digest(
        export_public_key(a).encode("ascii"),
        export_public_key(b).encode("ascii"),
    )


def create_qrdate_service(
    settings: Settings | None = None,
    *,
    formatter: UrlFormatter | None = None,
) -> QRDateService:
    """Create a QR Date service configured from settings.

    Args:
        settings: Settings to use; loaded from the environment when omitted.
        formatter: Default URL formatter.

    Returns:
        Configured QRDateService.
    """
    settings = settings or get_settings()
    return QRDateService(settings.to_service_config(), formatter=formatter)


def create_qrdate(private_key: Any, **kwargs: Any) -> QRDate:
    """Create a QR Date with default configuration. See QRDateService.create."""
    return QRDateService().create(private_key, **kwargs)


def verify_qrdate(**kwargs: Any) -> bool:
    """Verify a QR Date with default configuration. See QRDateService.verify."""
    return QRDateService().verify(**kwargs)


def verify_qrdate_url(url: str, **kwargs: Any) -> bool:
    """Verify a QR Date URL with default configuration. See QRDateService.verify_url."""
    return QRDateService().verify_url(url, **kwargs)


def create_dynamic_qrdate(
    private_key: Any,
    url_base: str | None = None,
    *,
    formatter: UrlFormatter | None = None,
    mode: SigningMode | None = None,
    entropy_length: int | None = None,
) -> QRDate:
    """Create a dynamic QR Date (https URL, key obtained out of band)."""
    return QRDateService().create(
        private_key,
        url_base=url_base,
        formatter=formatter,
        shape=UrlShape.DYNAMIC,
        mode=mode,
        entropy_length=entropy_length,
    )


def create_static_qrdate(
    private_key: Any,
    *,
    embed_public_key: bool = False,
    formatter: UrlFormatter | None = None,
    mode: SigningMode | None = None,
    entropy_length: int | None = None,
) -> QRDate:
    """Create a static qrdate:// QR Date.

    Args:
        private_key: Signing key.
        embed_public_key: Carry the public key itself instead of its
            fingerprint.
        formatter: Custom formatter (fingerprint URLs only).
        mode: Signing message construction.
        entropy_length: Salt size in bytes for salted mode.
    """
    shape = UrlShape.STATIC_EMBEDDED_KEY if embed_public_key else UrlShape.STATIC_FINGERPRINT
    return QRDateService().create(
        private_key,
        formatter=formatter,
        shape=shape,
        mode=mode,
        entropy_length=entropy_length,
    )


def verify_dynamic_qrdate(
    *,
    timestamp: int | None,
    signature: str | None,
    salt: str | None = None,
    version: int | None = None,
    public_key: Any = None,
    private_key: Any = None,
) -> bool:
    """Verify a dynamic QR Date from its individual fields."""
    return QRDateService().verify(
        timestamp=timestamp,
        signature=signature,
        salt=salt,
        version=version,
        public_key=public_key,
        private_key=private_key,
    )


def verify_static_qrdate(
    *,
    timestamp: int | None,
    signature: str | None,
    fingerprint: str | None,
    version: int | None = None,
    public_key: Any = None,
    private_key: Any = None,
) -> bool:
    """Verify a static fingerprint QR Date from its individual fields.

    Raises:
        InvalidArgumentError: If the fingerprint is missing.
    """
    if not fingerprint:
        msg = "fingerprint is required"
        raise InvalidArgumentError(msg, argument="fingerprint")
    return QRDateService().verify(
        timestamp=timestamp,
        signature=signature,
        version=version,
        fingerprint=fingerprint,
        public_key=public_key,
        private_key=private_key,
    )
