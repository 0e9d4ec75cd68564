"""Tests for figuro.services.auth_service."""

import pytest

from figuro.models import User
from figuro.services import AuthService
from figuro.services.auth_service import CURRENT_USER_KEY, hash_password


@pytest.fixture
def auth(storage):
    return AuthService(storage)


def test_authenticate_demo_user(auth):
    user = auth.authenticate("demo", "demo123")
    assert user == User(id="2", username="demo", name="Demo User", email="demo@figuroai.com")


def test_username_is_case_insensitive(auth):
    assert auth.authenticate("  Admin ", "admin123").id == "1"


def test_wrong_password(auth):
    assert auth.authenticate("demo", "demo") is None
    assert auth.authenticate("nobody", "demo123") is None


def test_hash_password_is_sha256_hex():
    assert hash_password("admin123") == "240be518fabd2724ddb6f04eeb1da5967448d7e831c08c8fa822809f74c720a9"


def test_current_user_persists(auth, storage):
    user = auth.authenticate("demo", "demo123")
    auth.save_current_user(user)

    assert AuthService(storage).current_user() == user


def test_current_user_version_mismatch(auth, storage):
    storage.set(CURRENT_USER_KEY, {"version": 7, "user": {"id": "2", "username": "demo"}})
    assert auth.current_user() is None


def test_logout(auth):
    auth.save_current_user(auth.authenticate("demo", "demo123"))
    auth.logout()
    assert auth.current_user() is None
