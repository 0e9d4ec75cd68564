"""
Simple authentication with hashed passwords.

A demo credential check: the user table is static and passwords are only
sha256-hashed. The signed-in user is persisted in local storage.
"""

import hashlib
from typing import Optional

from loguru import logger

from ..models import User
from ..store.local_storage import LocalStorage

CURRENT_USER_KEY = "current_user"
CURRENT_USER_VERSION = 1

# Passwords: admin123, demo123
USERS = [
    {
        "id": "1",
        "username": "admin",
        "password_hash": "240be518fabd2724ddb6f04eeb1da5967448d7e831c08c8fa822809f74c720a9",
        "name": "Admin User",
        "email": "admin@figuroai.com",
    },
    {
        "id": "2",
        "username": "demo",
        "password_hash": "d3ad9315b7be5dd53b31a273b3b3aba5defe700808305aa16a3062b76658a791",
        "name": "Demo User",
        "email": "demo@figuroai.com",
    },
]


def hash_password(password: str) -> str:
    """Hex sha256 of a password (for adding users to the table)."""
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


class AuthService:
    """Credential check and current-user persistence."""

    def __init__(self, storage: LocalStorage):
        self.storage = storage

    def authenticate(self, username: str, password: str) -> Optional[User]:
        """
        Check credentials against the user table.

        Returns:
            The user without credentials, or None
        """
        password_hash = hash_password(password)
        for row in USERS:
            if row["username"].lower() == username.strip().lower() and row["password_hash"] == password_hash:
                return User(id=row["id"], username=row["username"], name=row["name"], email=row["email"])
        logger.info(f"Failed login for {username!r}")
        return None

    def current_user(self) -> Optional[User]:
        """Get the signed-in user, if any."""
        record = self.storage.get(CURRENT_USER_KEY)
        if not isinstance(record, dict):
            return None
        if record.get("version") != CURRENT_USER_VERSION:
            logger.warning(f"Ignoring current user record with version {record.get('version')}")
            return None
        try:
            return User.from_dict(record["user"])
        except (KeyError, TypeError) as e:
            logger.warning(f"Corrupt current user record: {e}")
            return None

    def save_current_user(self, user: User) -> None:
        self.storage.set(CURRENT_USER_KEY, {"version": CURRENT_USER_VERSION, "user": user.to_dict()})

    def logout(self) -> None:
        self.storage.remove(CURRENT_USER_KEY)
