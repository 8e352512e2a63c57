"""Tests for the base64url helpers."""

import pytest

from qrdate.services.encoding import b64url_decode, b64url_encode


class TestB64UrlEncode:
    """Tests for b64url_encode."""

    def test_no_padding(self):
        """Test that padding is stripped."""
        assert b64url_encode(b"a") == "YQ"
        assert b64url_encode(b"ab") == "YWI"
        assert b64url_encode(b"abc") == "YWJj"

    def test_url_safe_alphabet(self):
        """Test that - and _ replace + and /."""
        assert b64url_encode(b"\xfb\xff") == "-_8"

    def test_empty(self):
        """Test encoding empty bytes."""
        assert b64url_encode(b"") == ""


class TestB64UrlDecode:
    """Tests for b64url_decode."""

    def test_unpadded(self):
        """Test decoding unpadded text."""
        assert b64url_decode("YWI") == b"ab"

    def test_padded(self):
        """Test that padding is tolerated."""
        assert b64url_decode("YWI=") == b"ab"

    def test_url_safe_alphabet(self):
        """Test decoding - and _."""
        assert b64url_decode("-_8") == b"\xfb\xff"

    @pytest.mark.parametrize("text", ["+/8", "YW I", "YW\nI", "YWI!", "A"])
    def test_rejects_invalid_text(self, text):
        """Test that characters outside the alphabet and bad lengths are rejected."""
        with pytest.raises(ValueError):
            b64url_decode(text)

    def test_signature_length(self):
        """Test that a 64-byte signature is 86 characters."""
        signature = b64url_encode(bytes(range(64)))
        assert len(signature) == 86
        assert b64url_decode(signature) == bytes(range(64))

    @pytest.mark.parametrize("text", ["YR", "YWJ", "YWJ="])
    def test_rejects_non_canonical_text(self, text):
        """Test that nonzero unused trailing bits are rejected."""
        with pytest.raises(ValueError, match="Non-canonical"):
            b64url_decode(text)

    def test_signature_last_char_variant(self):
        """Test that only one spelling of a signature's last character decodes."""
        signature = b64url_encode(bytes(range(64)))
        assert signature[-1] in "AQgw"
        variant = signature[:-1] + chr(ord(signature[-1]) + 1)
        with pytest.raises(ValueError, match="Non-canonical"):
            b64url_decode(variant)
