from __future__ import annotations

import json

import bcrypt
import pytest

from casetracker.auth import DEMO_EMAIL, DEMO_PASSWORD, DEMO_USERNAME, AuthService, PasswordHasher, validate_email
from casetracker.storage import CURRENT_USER_KEY, USERS_KEY, MemoryKeyValueStore


@pytest.mark.parametrize(
    ("email", "valid"),
    [("lawyer@firm.in", True), ("a.b@c.co", True), ("no-at-sign.com", False), ("x@y", False), ("", False)],
)
def test_validate_email(email, valid):
    assert validate_email(email) is valid


@pytest.mark.parametrize(
    ("username", "email", "password", "error"),
    [
        ("ab", "ab@example.com", "secret1", "Username must be at least 3 characters"),
        ("advocate", "not-an-email", "secret1", "Invalid email format"),
        ("advocate", "adv@example.com", "12345", "Password must be at least 6 characters"),
    ],
)
def test_register_rejects_invalid_input(auth, kv, username, email, password, error):
    result = auth.register(username, email, password)

    assert result.success is False
    assert result.error == error
    assert kv.get(USERS_KEY) is None


def test_register_rejects_duplicates(auth):
    assert auth.register("advocate", "adv@example.com", "secret1").success

    taken_name = auth.register("advocate", "other@example.com", "secret1")
    taken_email = auth.register("another", "adv@example.com", "secret1")

    assert taken_name.error == "Username already exists"
    assert taken_email.error == "Email already exists"
    assert len(auth.users()) == 1


def test_register_hashes_password_and_logs_in(auth, kv, clock):
    result = auth.register("advocate", "adv@example.com", "secret1")

    assert result.success is True
    assert result.user.username == "advocate"
    assert result.user.password is None

    stored = json.loads(kv.get(USERS_KEY))[0]
    assert stored["password"] != "secret1"
    assert stored["password"].startswith("$2b$04$")
    assert stored["createdAt"] == clock.now.isoformat()

    session = json.loads(kv.get(CURRENT_USER_KEY))
    assert "password" not in session
    assert auth.current_user().id == result.user.id


def test_login_by_username_or_email(auth):
    user = auth.register("advocate", "adv@example.com", "secret1").user
    auth.logout()
    assert auth.current_user() is None

    assert auth.login("advocate", "secret1") is True
    assert auth.current_user().id == user.id
    auth.logout()

    assert auth.login("adv@example.com", "secret1") is True
    assert auth.current_user().email == "adv@example.com"


def test_login_rejects_bad_credentials(auth):
    auth.register("advocate", "adv@example.com", "secret1")
    auth.logout()

    assert auth.login("advocate", "wrong-pass") is False
    assert auth.login("nobody", "secret1") is False
    assert auth.current_user() is None


def test_hasher_uses_bcrypt_and_rejects_unknown_formats():
    hasher = PasswordHasher(rounds=4)
    stored = hasher.hash("secret1")

    assert bcrypt.checkpw(b"secret1", stored.encode())
    assert hasher.verify("secret1", stored) is True
    assert hasher.verify("secret2", stored) is False
    assert hasher.verify("secret1", "secret1") is False
    assert hasher.verify("secret1", None) is False
    assert hasher.hash("secret1") != stored


def test_hasher_accepts_passwords_past_the_bcrypt_limit():
    hasher = PasswordHasher(rounds=4)
    passphrase = "correct horse battery staple " * 4

    assert hasher.verify(passphrase, hasher.hash(passphrase)) is True


def test_ensure_default_user_seeds_once(auth, kv):
    assert auth.ensure_default_user() is True
    assert auth.ensure_default_user() is False

    (user,) = auth.users()
    assert (user.username, user.email) == (DEMO_USERNAME, DEMO_EMAIL)
    assert auth.login(DEMO_USERNAME, DEMO_PASSWORD) is True


def test_ensure_default_user_leaves_existing_registry_alone(auth):
    auth.register("advocate", "adv@example.com", "secret1")

    assert auth.ensure_default_user() is False
    assert [user.username for user in auth.users()] == ["advocate"]


def test_register_reports_storage_failure(clock):
    store = MemoryKeyValueStore(quota_bytes=50)
    service = AuthService(store, PasswordHasher(rounds=4), clock=clock)

    result = service.register("advocate", "adv@example.com", "secret1")

    assert result.success is False
    assert result.error == "Failed to save user"
    assert service.current_user() is None
