"""QR Date - signed timestamps you can put in a QR code.

A QR Date is a millisecond timestamp signed with an Ed25519 key and
encoded as a URL. Anyone holding the public key can check that the code
was issued by the key holder at that time and not altered since.
"""

from qrdate.core.errors import (
    InvalidArgumentError,
    KeyFormatError,
    KeyNotFoundError,
    MalformedURLError,
    QRDateError,
    SigningError,
)
from qrdate.services.fingerprint import create_fingerprint
from qrdate.services.keys import KeyAlgorithm, KeyPair, generate_key_pair
from qrdate.services.qrdate import (
    QRDate,
    QRDateService,
    QRDateServiceConfig,
    create_dynamic_qrdate,
    create_qrdate,
    create_qrdate_service,
    create_static_qrdate,
    verify_dynamic_qrdate,
    verify_qrdate,
    verify_qrdate_url,
    verify_static_qrdate,
)
from qrdate.services.signing import SigningMode
from qrdate.services.trust_store import TrustStore
from qrdate.services.url_codec import QRDateFields, UrlFormatter, UrlShape, decode_url, encode_url

__version__ = "0.1.0"
__all__ = [
    "InvalidArgumentError",
    "KeyAlgorithm",
    "KeyFormatError",
    "KeyNotFoundError",
    "KeyPair",
    "MalformedURLError",
    "QRDate",
    "QRDateError",
    "QRDateFields",
    "QRDateService",
    "QRDateServiceConfig",
    "SigningError",
    "SigningMode",
    "TrustStore",
    "UrlFormatter",
    "UrlShape",
    "__version__",
    "create_dynamic_qrdate",
    "create_fingerprint",
    "create_qrdate",
    "create_qrdate_service",
    "create_static_qrdate",
    "decode_url",
    "encode_url",
    "generate_key_pair",
    "verify_dynamic_qrdate",
    "verify_qrdate",
    "verify_qrdate_url",
    "verify_static_qrdate",
]
