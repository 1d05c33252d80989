"""Tests for password hashing and JWT helpers (app/auth/security.py)"""
from datetime import timedelta

from app.auth.security import (
    hash_password,
    verify_password,
    create_access_token,
    create_refresh_token,
    create_token_pair,
    verify_token,
)


def test_password_roundtrip():
    hashed = hash_password("correct horse battery")
    assert hashed != "correct horse battery"
    assert verify_password("correct horse battery", hashed) is True
    assert verify_password("wrong", hashed) is False


def test_long_passwords_are_not_truncated():
    base = "x" * 80
    hashed = hash_password(base + "a")
    assert verify_password(base + "b", hashed) is False


def test_malformed_hash_does_not_raise():
    assert verify_password("anything", "not-a-bcrypt-hash") is False


def test_token_pair_types():
    pair = create_token_pair(42)

    access = verify_token(pair["access_token"])
    refresh = verify_token(pair["refresh_token"], expected_type="refresh")

    assert access["sub"] == "42"
    assert refresh["sub"] == "42"


def test_wrong_token_type_rejected():
    refresh = create_refresh_token({"sub": "1"})
    assert verify_token(refresh, expected_type="access") is None


def test_expired_token_rejected():
    token = create_access_token({"sub": "1"}, expires_delta=timedelta(seconds=-1))
    assert verify_token(token) is None


def test_garbage_token_rejected():
    assert verify_token("not.a.jwt") is None
