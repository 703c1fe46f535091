from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

import bcrypt

from casetracker.dates import utcnow
from casetracker.errors import StorageError
from casetracker.storage import (
    CURRENT_USER_KEY,
    USERS_KEY,
    KeyValueStore,
    read_json,
    write_json,
)
from casetracker.types import User, user_from_dict, user_to_dict

logger = logging.getLogger(__name__)

_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

DEMO_USERNAME = "admin"
DEMO_EMAIL = "admin@legalmanager.com"
DEMO_PASSWORD = "password123"


def validate_email(email: str) -> bool:
    return bool(_EMAIL_PATTERN.match(email or ""))


class PasswordHasher:
    """bcrypt credential hashing; `rounds` is the bcrypt cost factor."""

    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds

    def hash(self, password: str) -> str:
        return bcrypt.hashpw(_encode(password), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, password: str, stored: str | None) -> bool:
        if not stored:
            return False
        try:
            return bcrypt.checkpw(_encode(password), stored.encode("utf-8"))
        except ValueError:
            logger.warning("Stored credential has an unrecognised format")
            return False


def _encode(password: str) -> bytes:
    # bcrypt only reads the first 72 bytes
    return password.encode("utf-8")[:72]


@dataclass
class RegistrationResult:
    success: bool
    error: str | None = None
    user: User | None = None


class AuthService:
    """
    Minimal account registry over the key-value store.

    The session is the `current_user` record; it never carries the credential hash.
    """

    def __init__(
        self,
        store: KeyValueStore,
        hasher: PasswordHasher | None = None,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.hasher = hasher or PasswordHasher()
        self.clock = clock

    def users(self) -> list[User]:
        users: list[User] = []
        for payload in read_json(self.store, USERS_KEY, []):
            try:
                users.append(user_from_dict(payload))
            except (KeyError, TypeError):
                logger.warning("Skipping malformed user record")
        return users

    def register(self, username: str, email: str, password: str) -> RegistrationResult:
        username = (username or "").strip()
        email = (email or "").strip()

        if len(username) < 3:
            return RegistrationResult(False, "Username must be at least 3 characters")
        if not validate_email(email):
            return RegistrationResult(False, "Invalid email format")
        if not password or len(password) < 6:
            return RegistrationResult(False, "Password must be at least 6 characters")

        users = self.users()
        if any(user.username == username for user in users):
            return RegistrationResult(False, "Username already exists")
        if any(user.email == email for user in users):
            return RegistrationResult(False, "Email already exists")

        user = User(
            id=str(uuid.uuid4()),
            username=username,
            email=email,
            password=self.hasher.hash(password),
            created_at=self.clock(),
        )
        users.append(user)
        try:
            write_json(self.store, USERS_KEY, [user_to_dict(item) for item in users])
        except StorageError:
            logger.exception("Failed to save user", extra={"username": username})
            return RegistrationResult(False, "Failed to save user")

        logger.info("Registered user", extra={"user_id": user.id})
        self.set_current_user(user)
        return RegistrationResult(True, user=self.current_user())

    def login(self, identifier: str, password: str) -> bool:
        identifier = (identifier or "").strip()
        for user in self.users():
            if identifier in (user.username, user.email) and self.hasher.verify(password, user.password):
                return self.set_current_user(user)
        logger.info("Rejected login", extra={"identifier": identifier})
        return False

    def logout(self) -> None:
        self.set_current_user(None)

    def current_user(self) -> User | None:
        payload = read_json(self.store, CURRENT_USER_KEY, None)
        if not payload:
            return None
        try:
            return user_from_dict(payload)
        except (KeyError, TypeError):
            logger.warning("Discarding malformed current user record")
            return None

    def set_current_user(self, user: User | None) -> bool:
        try:
            if user is None:
                self.store.delete(CURRENT_USER_KEY)
            else:
                write_json(self.store, CURRENT_USER_KEY, user_to_dict(user, include_password=False))
        except StorageError:
            logger.exception("Failed to set current user")
            return False
        return True

    def ensure_default_user(self) -> bool:
        """Seed the demo `admin` account when no users exist yet."""

        if self.store.get(USERS_KEY) is not None:
            return False
        user = User(
            id=str(uuid.uuid4()),
            username=DEMO_USERNAME,
            email=DEMO_EMAIL,
            password=self.hasher.hash(DEMO_PASSWORD),
            created_at=self.clock(),
        )
        try:
            write_json(self.store, USERS_KEY, [user_to_dict(user)])
        except StorageError:
            logger.exception("Failed to seed demo user")
            return False
        return True
