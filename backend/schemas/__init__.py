"""Pydantic schemas package."""

from backend.schemas.auth import (
    ForgotPasswordRequest,
    LoginResponse,
    ResetPasswordRequest,
    SignupResponse,
    UserLogin,
    UserSignup,
)
from backend.schemas.common import MessageResponse
from backend.schemas.user import UserListResponse, UserResponse, UserSummary, UserUpdate

__all__ = [
    "ForgotPasswordRequest",
    "LoginResponse",
    "MessageResponse",
    "ResetPasswordRequest",
    "SignupResponse",
    "UserListResponse",
    "UserLogin",
    "UserResponse",
    "UserSignup",
    "UserSummary",
    "UserUpdate",
]
