"""
Unit tests for registration, login and profile updates.
"""

import pytest

import accounts
from errors import DuplicateIdentity, InvalidCredential, WeakCredential


class TestRegister:
    """Tests for accounts.register."""

    def test_register_normalizes_identity(self, db):
        user, token = accounts.register(db, "  Alice ", "Alice@Example.COM", "secret123")
        assert user["username"] == "alice"
        assert user["email"] == "alice@example.com"
        assert token
        stored = db["users"].find_one({"_id": user["_id"]})
        assert stored["passwordHash"] != "secret123"
        assert stored["algo"] == "argon2"

    def test_short_password(self, db):
        with pytest.raises(WeakCredential):
            accounts.register(db, "alice", "alice@example.com", "12345")

    def test_bad_username_length(self, db):
        with pytest.raises(WeakCredential):
            accounts.register(db, "al", "alice@example.com", "secret123")
        with pytest.raises(WeakCredential):
            accounts.register(db, "a" * 31, "alice@example.com", "secret123")

    def test_bad_email(self, db):
        with pytest.raises(WeakCredential):
            accounts.register(db, "alice", "not-an-email", "secret123")

    def test_duplicate_email_ignores_case(self, db):
        accounts.register(db, "alice", "alice@example.com", "secret123")
        with pytest.raises(DuplicateIdentity) as info:
            accounts.register(db, "alice2", "ALICE@example.com", "secret123")
        assert info.value.field_name == "email"
        assert db["users"].count_documents({}) == 1

    def test_duplicate_username(self, db):
        accounts.register(db, "alice", "alice@example.com", "secret123")
        with pytest.raises(DuplicateIdentity) as info:
            accounts.register(db, "ALICE", "other@example.com", "secret123")
        assert info.value.field_name == "username"


class TestVerifyCredentials:
    """Tests for accounts.verify_credentials."""

    def test_login_succeeds(self, db):
        accounts.register(db, "alice", "alice@example.com", "secret123")
        user, token = accounts.verify_credentials(db, "Alice@Example.com", "secret123")
        assert user["username"] == "alice"
        assert token

    def test_failures_are_indistinguishable(self, db):
        """Unknown email and wrong password produce the same error."""
        accounts.register(db, "alice", "alice@example.com", "secret123")
        with pytest.raises(InvalidCredential) as unknown:
            accounts.verify_credentials(db, "nobody@example.com", "secret123")
        with pytest.raises(InvalidCredential) as wrong:
            accounts.verify_credentials(db, "alice@example.com", "wrong-password")
        assert unknown.value.to_dict() == wrong.value.to_dict()
        assert unknown.value.status_code == wrong.value.status_code == 401


class TestUpdateProfile:
    """Tests for accounts.update_profile."""

    def test_update_username(self, db):
        user, _ = accounts.register(db, "alice", "alice@example.com", "secret123")
        updated = accounts.update_profile(db, user["_id"], username="Alicia")
        assert updated["username"] == "alicia"
        assert "passwordHash" not in updated

    def test_update_to_taken_email(self, db):
        accounts.register(db, "alice", "alice@example.com", "secret123")
        bob, _ = accounts.register(db, "bob", "bob@example.com", "secret123")
        with pytest.raises(DuplicateIdentity):
            accounts.update_profile(db, bob["_id"], email="ALICE@example.com")

    def test_keeping_own_email_is_allowed(self, db):
        user, _ = accounts.register(db, "alice", "alice@example.com", "secret123")
        updated = accounts.update_profile(db, user["_id"], email="alice@example.com")
        assert updated["email"] == "alice@example.com"

    def test_public_profile_hides_email_on_request(self, db):
        user, _ = accounts.register(db, "alice", "alice@example.com", "secret123")
        assert "email" in accounts.public_profile(user)
        assert "email" not in accounts.public_profile(user, include_email=False)
