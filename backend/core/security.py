"""Security utilities for password hashing, JWT tokens and reset tokens."""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from bcrypt import checkpw, gensalt, hashpw
from jose import ExpiredSignatureError, JWTError, jwt

from backend.config import settings

BCRYPT_ROUNDS = 10
# bcrypt only looks at the first 72 bytes of the secret
_BCRYPT_MAX_BYTES = 72
RESET_TOKEN_BYTES = 20


class TokenError(Exception):
    """Base exception for bearer token verification failures."""

    pass


class InvalidTokenError(TokenError):
    """Raised when a token is malformed, tampered with or missing its subject."""

    pass


class ExpiredTokenError(TokenError):
    """Raised when a token's ``exp`` claim is in the past."""

    pass


@dataclass(frozen=True)
class TokenClaims:
    """Verified identity carried by an access token."""

    subject: str
    role: str | None = None


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    """Hash a password using bcrypt.

    Args:
        password: Plain text password to hash

    Returns:
        Hashed password as a string

    Example:
        ```python
        from backend.core.security import hash_password

        hashed = hash_password("my_password")
        ```
    """
    return hashpw(_password_bytes(password), gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a hash.

    Args:
        plain_password: Plain text password to verify
        hashed_password: Hashed password to compare against

    Returns:
        True if password matches, False otherwise (including unparseable hashes)
    """
    try:
        return checkpw(_password_bytes(plain_password), hashed_password.encode("utf-8"))
    except ValueError:
        return False


def create_access_token(
    subject: str,
    role: str | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a JWT access token.

    Args:
        subject: Identifier of the user the token is issued to
        role: Optional role claim
        expires_delta: Optional custom expiration time. If not provided, uses default from settings

    Returns:
        Encoded JWT token string

    Example:
        ```python
        from backend.core.security import create_access_token

        token = create_access_token(user.id, role=user.role)
        ```
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.access_token_expire_minutes)

    now = datetime.now(timezone.utc)
    to_encode: dict[str, Any] = {"sub": subject, "iat": now, "exp": now + expires_delta}
    if role is not None:
        to_encode["role"] = role

    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def verify_access_token(token: str) -> TokenClaims:
    """Verify a JWT access token and return its claims.

    Args:
        token: JWT token string

    Returns:
        TokenClaims: Subject and optional role

    Raises:
        ExpiredTokenError: If the token has expired
        InvalidTokenError: If the signature or structure is invalid
    """
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except ExpiredSignatureError as e:
        raise ExpiredTokenError("Token has expired") from e
    except JWTError as e:
        raise InvalidTokenError("Token could not be verified") from e

    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        raise InvalidTokenError("Token has no subject")

    return TokenClaims(subject=subject, role=payload.get("role"))


def generate_reset_token() -> str:
    """Generate an opaque password reset token (20 random bytes, hex-encoded)."""
    return secrets.token_hex(RESET_TOKEN_BYTES)


def hash_reset_token(token: str) -> str:
    """Digest a reset token for storage and lookup."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
