"""Tests for public key fingerprints."""

import base64
import hashlib

import pytest
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from qrdate.core.errors import KeyFormatError
from qrdate.services.fingerprint import (
    FINGERPRINT_LENGTH,
    FINGERPRINT_VERSION,
    create_fingerprint,
    fingerprints_match,
)
from qrdate.services.keys import (
    KeyAlgorithm,
    KeyEncoding,
    derive_public_key,
    export_public_key,
    normalize_public_key,
)


class TestCreateFingerprint:
    """Tests for create_fingerprint."""

    def test_version(self):
        """Test the fingerprint construction version."""
        assert FINGERPRINT_VERSION == 1

    def test_length_and_alphabet(self, key_pair):
        """Test that a fingerprint is 43 base64url characters."""
        fingerprint = create_fingerprint(key_pair.public_key)
        assert len(fingerprint) == FINGERPRINT_LENGTH == 43
        assert "=" not in fingerprint
        assert "+" not in fingerprint
        assert "/" not in fingerprint

    def test_construction(self, key_pair):
        """Test that the fingerprint is SHA-256 over the canonical SPKI PEM."""
        key = normalize_public_key(key_pair.public_key)
        pem = key.public_bytes(Encoding.PEM, PublicFormat.SubjectPublicKeyInfo)
        expected = base64.urlsafe_b64encode(hashlib.sha256(pem).digest()).decode().rstrip("=")
        assert create_fingerprint(key) == expected

    def test_deterministic(self, bare_vector):
        """Test that the same key always yields the same fingerprint."""
        public_key = derive_public_key(bare_vector["private_key"])
        assert create_fingerprint(public_key) == create_fingerprint(public_key)

    def test_independent_of_input_form(self, key_pair):
        """Test that PEM, base64url DER and key object inputs agree."""
        key = normalize_public_key(key_pair.public_key)
        from_pem = create_fingerprint(key_pair.public_key)
        from_der = create_fingerprint(export_public_key(key, KeyEncoding.BASE64URL_DER))
        from_object = create_fingerprint(key)
        assert from_pem == from_der == from_object

    def test_reformatted_pem(self, key_pair):
        """Test that surrounding whitespace in the PEM does not change the fingerprint."""
        padded = f"\n\n{key_pair.public_key}\n\n"
        assert create_fingerprint(padded) == create_fingerprint(key_pair.public_key)

    def test_distinct_keys_distinct_fingerprints(self, key_pair, other_key_pair):
        """Test that different keys have different fingerprints."""
        assert create_fingerprint(key_pair.public_key) != create_fingerprint(
            other_key_pair.public_key
        )

    def test_not_constant(self, bare_vector, key_pair):
        """Test that fingerprints actually depend on the key material."""
        fingerprint = create_fingerprint(derive_public_key(bare_vector["private_key"]))
        assert fingerprint != "soyUshlcjtJZ8LQVqu4_ObCykgpFN2EUmfoESVaReiE"
        assert fingerprint != create_fingerprint(key_pair.public_key)

    def test_ed448(self, ed448_key_pair):
        """Test fingerprinting an Ed448 key."""
        fingerprint = create_fingerprint(ed448_key_pair.public_key, KeyAlgorithm.ED448)
        assert len(fingerprint) == 43

    def test_mangled_key(self):
        """Test that a mangled public key raises KeyFormatError."""
        with pytest.raises(KeyFormatError):
            create_fingerprint("23 skidoo")


class TestFingerprintsMatch:
    """Tests for fingerprints_match."""

    def test_match(self, key_pair):
        """Test that equal fingerprints match."""
        fingerprint = create_fingerprint(key_pair.public_key)
        assert fingerprints_match(fingerprint, fingerprint)

    def test_mismatch(self, key_pair, other_key_pair):
        """Test that different fingerprints do not match."""
        assert not fingerprints_match(
            create_fingerprint(key_pair.public_key),
            create_fingerprint(other_key_pair.public_key),
        )

    def test_different_lengths(self):
        """Test that fingerprints of different length do not match."""
        assert not fingerprints_match("abc", "abcd")
