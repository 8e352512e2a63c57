"""In-memory trust store for static fingerprint verification.

Static fingerprint URLs only name a key. A verifier keeps the public keys
it trusts indexed by fingerprint and resolves the fingerprint from a
scanned URL against that index. Adding a key to the store is the act of
trusting it; nothing here is persisted.
"""

from __future__ import annotations

import logging
from typing import Any

from qrdate.core.errors import KeyNotFoundError
from qrdate.services.fingerprint import create_fingerprint
from qrdate.services.keys import KeyAlgorithm, PublicKey, normalize_public_key

logger = logging.getLogger(__name__)


class TrustStore:
    """Fingerprint-indexed set of trusted public keys.

    Example:
        store = TrustStore()
        fingerprint = store.add(public_key_pem)
        assert store.lookup(fingerprint) is not None
    """

    def __init__(
        self,
        keys: list[Any] | None = None,
        *,
        algorithm: KeyAlgorithm = KeyAlgorithm.ED25519,
    ) -> None:
        """Initialize the store.

        Args:
            keys: Public keys to trust initially, in any accepted input form.
            algorithm: Algorithm all stored keys must belong to.
        """
        self._algorithm = algorithm
        self._keys: dict[str, PublicKey] = {}
        for key in keys or []:
            self.add(key)

    @property
    def algorithm(self) -> KeyAlgorithm:
        return self._algorithm

    def add(self, public_key: Any) -> str:
        """Trust a public key.

        Returns:
            The key's fingerprint.

        Raises:
            KeyFormatError: If the key cannot be parsed.
        """
        key = normalize_public_key(public_key, self._algorithm)
        fingerprint = create_fingerprint(key, self._algorithm)
        self._keys[fingerprint] = key
        logger.debug("Trusted key added: fingerprint=%s", fingerprint[:8])
        return fingerprint

    def remove(self, fingerprint: str) -> None:
        """Stop trusting a key.

        Raises:
            KeyNotFoundError: If the fingerprint is unknown.
        """
        if self._keys.pop(fingerprint, None) is None:
            raise KeyNotFoundError(fingerprint)
        logger.debug("Trusted key removed: fingerprint=%s", fingerprint[:8])

    def lookup(self, fingerprint: str) -> PublicKey | None:
        """Return the trusted key for a fingerprint, or None."""
        return self._keys.get(fingerprint)

    def get(self, fingerprint: str) -> PublicKey:
        """Return the trusted key for a fingerprint.

        Raises:
            KeyNotFoundError: If the fingerprint is unknown.
        """
        key = self._keys.get(fingerprint)
        if key is None:
            raise KeyNotFoundError(fingerprint)
        return key

    def fingerprints(self) -> list[str]:
        return list(self._keys)

    def __contains__(self, fingerprint: object) -> bool:
        return fingerprint in self._keys

    def __len__(self) -> int:
        return len(self._keys)
