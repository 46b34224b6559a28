"""
Unit tests for the identity encryption codec.
"""

import re

import pytest

from imagesign.errors import DecryptionFailed, MalformedToken
from imagesign.identity import (
    derive_key,
    decrypt_identity,
    encrypt_identity,
    parse_token,
)

TOKEN_RE = re.compile(r"^[0-9a-f]{32}:(?:[0-9a-f]{32})+$")


class TestEncryptIdentity:
    """Tests for encrypt_identity()."""

    def test_round_trip(self):
        """decrypt(encrypt(x)) returns x."""
        token = encrypt_identity("alice@example.com", "secret")
        assert decrypt_identity(token, "secret") == "alice@example.com"

    def test_token_format(self):
        """Token is iv_hex:ciphertext_hex with block-sized ciphertext."""
        token = encrypt_identity("alice@example.com", "secret")
        assert TOKEN_RE.match(token)

    def test_fresh_iv_per_call(self):
        """Encrypting the same identity twice gives different tokens."""
        first = encrypt_identity("alice@example.com", "secret")
        second = encrypt_identity("alice@example.com", "secret")
        assert first != second
        assert first.split(":")[0] != second.split(":")[0]

    def test_plaintext_not_in_token(self):
        """The token does not leak the identity."""
        token = encrypt_identity("alice@example.com", "secret")
        assert "alice" not in token
        assert "alice".encode().hex() not in token

    def test_unicode_identity(self):
        """Non-ASCII identities survive the round trip."""
        token = encrypt_identity("zoë@exämple.com", "secret")
        assert decrypt_identity(token, "secret") == "zoë@exämple.com"

    def test_block_aligned_identity(self):
        """A 16-byte identity gets a full padding block."""
        token = encrypt_identity("a" * 16, "secret")
        assert len(token.split(":")[1]) == 64
        assert decrypt_identity(token, "secret") == "a" * 16


class TestDecryptIdentity:
    """Tests for decrypt_identity()."""

    def test_wrong_secret_fails(self):
        """A different secret cannot decrypt the token."""
        token = encrypt_identity("alice@example.com", "secret")
        with pytest.raises(DecryptionFailed):
            decrypt_identity(token, "other-secret")

    def test_tampered_ciphertext_fails(self):
        """Flipping the byte that feeds the final padding byte breaks the padding."""
        # 17 bytes of identity -> two blocks; the last plaintext byte is 0x0f.
        token = encrypt_identity("alice@example.com", "secret")
        iv_hex, ct_hex = token.split(":")
        flipped = int(ct_hex[30:32], 16) ^ 0xFF
        tampered = f"{iv_hex}:{ct_hex[:30]}{flipped:02x}{ct_hex[32:]}"
        with pytest.raises(DecryptionFailed):
            decrypt_identity(tampered, "secret")

    @pytest.mark.parametrize(
        "token",
        [
            "",
            "nocolon",
            "a:b:c",
            ":00",
            "00:",
            "zz" * 16 + ":" + "00" * 16,
            "00" * 8 + ":" + "00" * 16,
            "00" * 16 + ":" + "00" * 15,
        ],
    )
    def test_malformed_token(self, token):
        """Structurally invalid tokens raise MalformedToken."""
        with pytest.raises(MalformedToken):
            decrypt_identity(token, "secret")

    def test_non_string_token(self):
        """Non-string input is malformed."""
        with pytest.raises(MalformedToken):
            parse_token(None)


class TestDeriveKey:
    """Tests for derive_key()."""

    def test_key_length(self):
        assert len(derive_key("secret")) == 32

    def test_deterministic(self):
        """The same secret always derives the same key."""
        assert derive_key("secret") == derive_key("secret")
        assert derive_key("secret") != derive_key("other-secret")

    def test_empty_secret_rejected(self):
        with pytest.raises(ValueError):
            derive_key("")
