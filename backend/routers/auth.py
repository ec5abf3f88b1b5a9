"""Authentication router: signup, signin, signout and password reset."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, Request, Response, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.config import settings
from backend.core.dependencies import get_client_address, get_current_user, get_reset_password_limiter
from backend.core.email import EmailSender, deliver_password_reset, get_email_sender
from backend.core.errors import (
    AuthenticationError,
    AuthorizationError,
    BadRequestError,
    ConflictError,
    NotFoundError,
    RateLimitedError,
)
from backend.core.rate_limit import SlidingWindowRateLimiter
from backend.core.security import (
    create_access_token,
    generate_reset_token,
    hash_password,
    hash_reset_token,
    verify_password,
)
from backend.core.validation import is_valid_reset_token
from backend.database import get_db
from backend.models.user import User
from backend.schemas.auth import (
    ForgotPasswordRequest,
    LoginResponse,
    ResetPasswordRequest,
    SignupResponse,
    UserLogin,
    UserSignup,
)
from backend.schemas.common import MessageResponse
from backend.schemas.user import UserResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

INVALID_CREDENTIALS_MESSAGE = "Invalid credentials"
INVALID_RESET_TOKEN_MESSAGE = "Invalid or expired password reset token."

# Verified against when the email is unknown so both failure paths cost one bcrypt check
_DUMMY_PASSWORD_HASH = hash_password("dummy-password-for-timing")


@router.post("/signup", response_model=SignupResponse, status_code=status.HTTP_201_CREATED)
async def signup(
    user_data: UserSignup,
    db: Annotated[Session, Depends(get_db)],
) -> SignupResponse:
    """Create a new user account.

    Args:
        user_data: Validated signup data (name, email, password, optional role)
        db: Database session

    Returns:
        SignupResponse: Created user information and an access token

    Raises:
        ConflictError: If email already exists
    """
    existing_user = db.query(User).filter(User.email == user_data.email).first()
    if existing_user:
        raise ConflictError("This email is already in use. Try logging in instead.")

    new_user = User(
        email=user_data.email,
        name=user_data.name,
        password_hash=hash_password(user_data.password),
        role=user_data.role,
    )

    db.add(new_user)
    try:
        db.commit()
    except IntegrityError as e:
        # Concurrent signup with the same email won the race
        db.rollback()
        raise ConflictError("This email is already in use. Try logging in instead.") from e
    db.refresh(new_user)

    logger.info(f"User {new_user.id} registered with role {new_user.role}")

    return SignupResponse(
        message="User registered successfully.",
        user=UserResponse.model_validate(new_user),
        token=create_access_token(new_user.id, role=new_user.role),
    )


@router.post("/signin", response_model=LoginResponse, status_code=status.HTTP_200_OK)
async def signin(
    credentials: UserLogin,
    db: Annotated[Session, Depends(get_db)],
) -> LoginResponse:
    """Authenticate user and return access token.

    Unknown email and wrong password produce the same response.

    Args:
        credentials: Signin data (email, password, rememberMe)
        db: Database session

    Returns:
        LoginResponse: Access token and user information

    Raises:
        AuthenticationError: If email or password is invalid
        AuthorizationError: If the account has been deactivated
    """
    user = db.query(User).filter(User.email == credentials.email).first()
    if user is None:
        verify_password(credentials.password, _DUMMY_PASSWORD_HASH)
        logger.warning("Signin failed for unknown email")
        raise AuthenticationError(INVALID_CREDENTIALS_MESSAGE)

    if not verify_password(credentials.password, user.password_hash):
        logger.warning(f"Signin failed for user {user.id}: wrong password")
        raise AuthenticationError(INVALID_CREDENTIALS_MESSAGE)

    if not user.active:
        raise AuthorizationError("This account has been deactivated.")

    if credentials.remember_me:
        expires_delta = timedelta(days=settings.remember_me_expire_days)
    else:
        expires_delta = timedelta(minutes=settings.access_token_expire_minutes)

    token = create_access_token(user.id, role=user.role, expires_delta=expires_delta)

    return LoginResponse(
        message=f"Welcome back, {user.name}!",
        token=token,
        expires_in=int(expires_delta.total_seconds()),
        user=UserResponse.model_validate(user),
    )


@router.get("/signout", response_model=MessageResponse)
async def signout(
    response: Response,
    current_user: Annotated[User, Depends(get_current_user)],
) -> MessageResponse:
    """Sign the user out.

    Tokens are stateless, so this only confirms the token is still valid and
    clears the ``token`` cookie a browser client may hold.
    """
    response.delete_cookie("token")
    logger.info(f"User {current_user.id} signed out")
    return MessageResponse(message="User signed out successfully")


@router.post("/reset-password", response_model=MessageResponse)
async def forgot_password(
    request: Request,
    reset_request: ForgotPasswordRequest,
    background_tasks: BackgroundTasks,
    db: Annotated[Session, Depends(get_db)],
    limiter: Annotated[SlidingWindowRateLimiter, Depends(get_reset_password_limiter)],
    email_sender: Annotated[EmailSender, Depends(get_email_sender)],
) -> MessageResponse:
    """Issue a password reset token and email the reset link.

    Raises:
        RateLimitedError: If the client address exceeded the request limit
        NotFoundError: If no account uses the email
    """
    client_address = get_client_address(request)
    if not limiter.hit(client_address):
        logger.warning(f"Password reset rate limit exceeded for {client_address}")
        raise RateLimitedError(
            "Too many requests. Please try again later.",
            retry_after=limiter.retry_after(client_address),
        )

    user = db.query(User).filter(User.email == reset_request.email).first()
    if user is None:
        raise NotFoundError("No account found with this email.")

    token = generate_reset_token()
    user.reset_password_token = hash_reset_token(token)
    user.reset_password_expires = datetime.now(timezone.utc) + timedelta(
        minutes=settings.reset_token_expire_minutes
    )
    db.commit()

    background_tasks.add_task(deliver_password_reset, email_sender, user.email, token)
    logger.info(f"Password reset token issued for user {user.id}")

    return MessageResponse(message="Password reset email sent. Check your inbox.")


@router.post("/reset-password/{token}", response_model=MessageResponse)
async def reset_password(
    token: str,
    reset_data: ResetPasswordRequest,
    db: Annotated[Session, Depends(get_db)],
) -> MessageResponse:
    """Set a new password using an emailed reset token.

    Raises:
        BadRequestError: If the token is unknown, malformed or expired
        AuthorizationError: If the account has been deactivated
    """
    if not is_valid_reset_token(token):
        raise BadRequestError(INVALID_RESET_TOKEN_MESSAGE)

    user = (
        db.query(User)
        .filter(
            User.reset_password_token == hash_reset_token(token),
            User.reset_password_expires > datetime.now(timezone.utc),
        )
        .first()
    )
    if user is None:
        raise BadRequestError(INVALID_RESET_TOKEN_MESSAGE)

    if not user.active:
        raise AuthorizationError("This account has been deactivated.")

    user.password_hash = hash_password(reset_data.new_password)
    user.reset_password_token = None
    user.reset_password_expires = None
    db.commit()

    logger.info(f"Password reset completed for user {user.id}")

    return MessageResponse(message="Password reset successfully. You can now sign in.")
