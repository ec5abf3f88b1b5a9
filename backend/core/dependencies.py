"""FastAPI dependencies for authentication, authorization and shared services."""

import logging
from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from backend.core.errors import AuthenticationError, AuthorizationError
from backend.core.rate_limit import SlidingWindowRateLimiter
from backend.core.security import TokenError, verify_access_token
from backend.database import get_db
from backend.models.user import User

logger = logging.getLogger(__name__)

NO_TOKEN_MESSAGE = "Not authorized, no token provided"
INVALID_TOKEN_MESSAGE = "Invalid token, authentication failed"

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    db: Annotated[Session, Depends(get_db)],
) -> User:
    """Resolve the acting user from the ``Authorization: Bearer`` header.

    Args:
        credentials: Parsed bearer credentials, if any
        db: Database session

    Returns:
        User: The authenticated, active user

    Raises:
        AuthenticationError: If no token is sent, the token fails verification
            (bad signature, expired, malformed), or its subject no longer exists
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError(NO_TOKEN_MESSAGE)

    try:
        claims = verify_access_token(credentials.credentials)
    except TokenError as e:
        logger.info(f"Rejected bearer token: {e}")
        raise AuthenticationError(INVALID_TOKEN_MESSAGE) from e

    user = db.query(User).filter(User.id == claims.subject).first()
    if user is None or not user.active:
        logger.info(f"Bearer token subject {claims.subject} is missing or deactivated")
        raise AuthenticationError(INVALID_TOKEN_MESSAGE)

    return user


def ensure_self_or_admin(actor: User, target_id: str, message: str = "Access denied") -> None:
    """Allow the action only for the target user themselves or an admin.

    Raises:
        AuthorizationError: If the actor is neither
    """
    if actor.id != target_id and not actor.is_admin:
        raise AuthorizationError(message)


def get_client_address(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def get_reset_password_limiter(request: Request) -> SlidingWindowRateLimiter:
    """Rate limiter for password reset requests, owned by the running application."""
    return request.app.state.reset_password_limiter
