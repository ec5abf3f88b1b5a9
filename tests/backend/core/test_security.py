"""Tests for security utilities."""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from jose import jwt

from backend.config import settings
from backend.core.security import (
    ExpiredTokenError,
    InvalidTokenError,
    create_access_token,
    generate_reset_token,
    hash_password,
    hash_reset_token,
    verify_access_token,
    verify_password,
)


def _claims(token: str) -> dict:
    """Decode a token with the application key, skipping the expiry check."""
    return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm], options={"verify_exp": False})


def test_hash_password():
    """Test that password hashing works correctly."""
    password = "Test_password_123"
    hashed = hash_password(password)

    assert hashed is not None
    assert isinstance(hashed, str)
    assert hashed != password
    assert hashed.startswith("$2b$10$")  # bcrypt hash format with cost 10


def test_hash_password_uses_fresh_salt():
    """Test that hashing the same password twice gives different hashes."""
    password = "Test_password_123"

    first = hash_password(password)
    second = hash_password(password)

    assert first != second
    assert verify_password(password, first) is True
    assert verify_password(password, second) is True


def test_verify_password_success():
    """Test that password verification succeeds with correct password."""
    password = "Test_password_123"
    hashed = hash_password(password)

    assert verify_password(password, hashed) is True


def test_verify_password_failure():
    """Test that password verification fails with incorrect password."""
    hashed = hash_password("Test_password_123")

    assert verify_password("wrong_password", hashed) is False


def test_verify_password_with_malformed_hash():
    """Test that a corrupt stored hash never verifies."""
    assert verify_password("Test_password_123", "not-a-bcrypt-hash") is False


def test_hash_password_long_password():
    """Test that passwords beyond bcrypt's 72 byte limit still hash and verify."""
    password = "A1!" + "x" * 100
    hashed = hash_password(password)

    assert verify_password(password, hashed) is True


def test_create_access_token():
    """Test that access token is created successfully."""
    token = create_access_token("user_id_123")

    assert token is not None
    assert isinstance(token, str)
    assert len(token) > 0


def test_create_access_token_contains_subject_and_role():
    """Test that access token carries subject and role claims."""
    token = create_access_token("user_id_123", role="admin")
    decoded = _claims(token)

    assert decoded is not None
    assert decoded["sub"] == "user_id_123"
    assert decoded["role"] == "admin"
    assert "exp" in decoded


def test_create_access_token_without_role():
    """Test that role is omitted when not given."""
    decoded = _claims(create_access_token("user_id_123"))

    assert decoded is not None
    assert "role" not in decoded


def test_default_token_expiration_is_one_hour():
    """Test that the default TTL is 60 minutes."""
    decoded = _claims(create_access_token("user_id_123"))

    assert decoded is not None
    exp_datetime = datetime.fromtimestamp(decoded["exp"], tz=timezone.utc)
    minutes_left = (exp_datetime - datetime.now(timezone.utc)).total_seconds() / 60
    assert 59 <= minutes_left <= 61


def test_token_expiration_time():
    """Test that token expiration is set correctly for a custom TTL."""
    token = create_access_token("user_id_123", expires_delta=timedelta(days=7))
    decoded = _claims(token)

    assert decoded is not None
    exp_datetime = datetime.fromtimestamp(decoded["exp"], tz=timezone.utc)
    days_left = (exp_datetime - datetime.now(timezone.utc)).total_seconds() / 86400
    assert 6.99 <= days_left <= 7.01


def test_verify_access_token_success():
    """Test that a valid token yields its claims."""
    claims = verify_access_token(create_access_token("user_id_123", role="user"))

    assert claims.subject == "user_id_123"
    assert claims.role == "user"


def test_verify_access_token_expired():
    """Test that an expired token raises ExpiredTokenError."""
    token = create_access_token("user_id_123", expires_delta=timedelta(seconds=-1))

    with pytest.raises(ExpiredTokenError):
        verify_access_token(token)


def test_verify_access_token_invalid():
    """Test that garbage raises InvalidTokenError."""
    with pytest.raises(InvalidTokenError):
        verify_access_token("invalid_token_string")


def test_verify_access_token_wrong_secret():
    """Test that a token signed with another secret is rejected."""
    token = create_access_token("user_id_123")

    with patch("backend.core.security.settings") as mock_settings:
        mock_settings.secret_key = "wrong_secret_key"
        mock_settings.algorithm = "HS256"

        with pytest.raises(InvalidTokenError):
            verify_access_token(token)


def test_generate_reset_token():
    """Test that reset tokens are 40 hex characters and unique."""
    first = generate_reset_token()
    second = generate_reset_token()

    assert len(first) == 40
    int(first, 16)
    assert first != second


def test_hash_reset_token_is_stable():
    """Test that the stored digest is deterministic and differs from the token."""
    token = generate_reset_token()

    assert hash_reset_token(token) == hash_reset_token(token)
    assert hash_reset_token(token) != token
    assert len(hash_reset_token(token)) == 64
