"""
Password hashing tests
"""
import base64

import pytest

from luukahead.app.security.hashing import (
    PasswordNotSetError,
    generate_salt,
    hash_password,
    verify_password,
)


class TestHashPassword:
    """Storage format and determinism"""

    def test_format_is_salt_colon_digest(self):
        stored = hash_password("secret1")
        salt_b64, digest_b64 = stored.split(":")

        assert len(base64.b64decode(salt_b64)) == 16
        assert len(base64.b64decode(digest_b64)) == 32

    def test_same_salt_same_hash(self):
        salt = generate_salt()
        assert hash_password("secret1", salt) == hash_password("secret1", salt)

    def test_fresh_salt_per_call(self):
        assert hash_password("secret1") != hash_password("secret1")

    def test_known_pbkdf2_vector(self):
        import hashlib

        salt = b"\x00" * 16
        expected = base64.b64encode(hashlib.pbkdf2_hmac("sha256", b"pw", salt, 100_000, 32)).decode()
        assert hash_password("pw", salt).endswith(":" + expected)


class TestVerifyPassword:
    """Verification, wrong passwords and OAuth-only accounts"""

    @pytest.mark.parametrize("password", ["secret1", "pässwörd", "a" * 255])
    def test_correct_password_verifies(self, password):
        assert verify_password(password, hash_password(password)) is True

    def test_wrong_password_rejected(self):
        stored = hash_password("secret1")
        assert verify_password("wrong", stored) is False
        assert verify_password("secret2", stored) is False

    @pytest.mark.parametrize("stored", [None, ""])
    def test_missing_hash_raises_dedicated_error(self, stored):
        with pytest.raises(PasswordNotSetError):
            verify_password("secret1", stored)

    @pytest.mark.parametrize("stored", ["no-separator", ":abc", "abc:", "not base64!:AAAA"])
    def test_malformed_hash_rejected_without_crash(self, stored):
        assert verify_password("secret1", stored) is False
