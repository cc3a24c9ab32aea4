"""
Unit tests for password hashing and bearer tokens.

Tests cover:
- argon2 and bcrypt hashing round trips
- Token issue and verification
- Expired, tampered and subject-less tokens
"""

import jwt
import pytest

from config import get_settings
from errors import TokenExpired, TokenInvalid
from security import ALGORITHMS, hash_password, issue_token, verify_password, verify_token


class TestPasswordHashing:
    """Tests for hash_password / verify_password."""

    def test_argon2_is_default(self):
        """New hashes use argon2id unless configured otherwise."""
        password_hash, algo = hash_password("secret123")
        assert algo == "argon2"
        assert password_hash.startswith("$argon2id$")
        assert verify_password("secret123", password_hash, algo)

    def test_argon2_rejects_wrong_password(self):
        password_hash, algo = hash_password("secret123")
        assert not verify_password("secret124", password_hash, algo)

    def test_bcrypt_round_trip(self):
        """bcrypt stays selectable and verifies with its own algo tag."""
        password_hash, algo = hash_password("secret123", algo="bcrypt")
        assert algo == "bcrypt"
        assert verify_password("secret123", password_hash, "bcrypt")
        assert not verify_password("nope", password_hash, "bcrypt")

    def test_hashes_are_salted(self):
        first, _ = hash_password("secret123")
        second, _ = hash_password("secret123")
        assert first != second

    def test_missing_hash_never_verifies(self):
        assert not verify_password("secret123", None)
        assert not verify_password("secret123", "")

    def test_malformed_hash_never_verifies(self):
        assert not verify_password("secret123", "not-a-hash", "argon2")
        assert not verify_password("secret123", "not-a-hash", "bcrypt")

    def test_unknown_algorithm(self):
        with pytest.raises(ValueError):
            hash_password("secret123", algo="md5")

    @pytest.mark.parametrize("algo", ALGORITHMS)
    def test_every_supported_algorithm_verifies(self, algo):
        password_hash, used = hash_password("secret123", algo=algo)
        assert used == algo
        assert verify_password("secret123", password_hash, used)


class TestTokens:
    """Tests for issue_token / verify_token."""

    def test_round_trip(self):
        token = issue_token("64b7f0c2a1b2c3d4e5f60718")
        assert verify_token(token) == "64b7f0c2a1b2c3d4e5f60718"

    def test_expired_token(self):
        token = issue_token("64b7f0c2a1b2c3d4e5f60718", minutes=-1)
        with pytest.raises(TokenExpired):
            verify_token(token)

    def test_wrong_secret(self):
        settings = get_settings()
        token = jwt.encode({"sub": "abc", "exp": 9999999999}, "other-secret", algorithm=settings.jwt_algorithm)
        with pytest.raises(TokenInvalid):
            verify_token(token)

    def test_garbage_token(self):
        with pytest.raises(TokenInvalid):
            verify_token("not.a.token")

    def test_missing_subject(self):
        settings = get_settings()
        token = jwt.encode({"exp": 9999999999}, settings.jwt_secret, algorithm=settings.jwt_algorithm)
        with pytest.raises(TokenInvalid):
            verify_token(token)

    def test_expired_and_invalid_are_both_unauthenticated(self):
        """Both token failures map to a 401."""
        assert TokenExpired().status_code == 401
        assert TokenInvalid().status_code == 401
