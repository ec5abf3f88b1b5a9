"""Authentication schemas."""

from typing import Literal

from pydantic import Field, field_validator

from backend.core.validation import (
    validate_email,
    validate_name,
    validate_password,
    validate_reset_password,
)
from backend.schemas.common import CamelModel
from backend.schemas.user import UserResponse


class UserSignup(CamelModel):
    """User signup request schema."""

    name: str
    email: str
    password: str
    role: Literal["user", "admin"] = "user"

    @field_validator("name")
    @classmethod
    def check_name(cls, v: str) -> str:
        """Trim and validate the account name."""
        return validate_name(v)

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        """Normalize and validate the email address."""
        return validate_email(v)

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        """Enforce the password policy."""
        return validate_password(v)


class UserLogin(CamelModel):
    """User signin request schema."""

    email: str
    password: str
    remember_me: bool = False

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        return validate_email(v)

    @field_validator("password")
    @classmethod
    def check_password_present(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Password is required")
        return v


class ForgotPasswordRequest(CamelModel):
    """Password reset request schema."""

    email: str

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        return validate_email(v)


class ResetPasswordRequest(CamelModel):
    """Password reset completion schema."""

    new_password: str

    @field_validator("new_password")
    @classmethod
    def check_new_password(cls, v: str) -> str:
        return validate_reset_password(v)


class SignupResponse(CamelModel):
    """Signup response schema with the created user and an access token."""

    message: str
    user: UserResponse
    token: str


class LoginResponse(CamelModel):
    """Signin response schema with token and user info."""

    message: str
    token: str
    token_type: str = "bearer"
    expires_in: int = Field(description="Token lifetime in seconds")
    user: UserResponse
