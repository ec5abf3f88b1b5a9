"""User profile and directory schemas."""

from datetime import datetime

from pydantic import ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from backend.core.validation import (
    validate_bio,
    validate_display_name,
    validate_email,
    validate_interests,
    validate_name,
    validate_role,
)
from backend.schemas.common import CamelModel


class UserResponse(CamelModel):
    """User response schema. The password hash and reset fields are never exposed."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: str
    name: str
    email: str
    role: str
    display_name: str = ""
    bio: str = ""
    interests: list[str] = []
    profile_picture: str = ""
    active: bool = True
    is_private: bool = False
    created_at: datetime
    updated_at: datetime


class UserSummary(CamelModel):
    """Compact user entry for follower/following lists."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: str
    name: str
    profile_picture: str = ""


class UserListResponse(CamelModel):
    """Paginated directory listing."""

    users: list[UserResponse]
    total_users: int
    current_page: int
    total_pages: int


class UserDetailResponse(CamelModel):
    user: UserResponse


class UserUpdate(CamelModel):
    """Accepted profile update fields. Unknown keys are ignored."""

    name: str | None = None
    email: str | None = None
    display_name: str | None = None
    bio: str | None = None
    interests: list[str] | None = None
    profile_picture: str | None = None
    is_private: bool | None = None
    # Admin only
    role: str | None = None
    active: bool | None = None

    @field_validator("name")
    @classmethod
    def check_name(cls, v: str | None) -> str | None:
        return validate_name(v) if v is not None else None

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str | None) -> str | None:
        return validate_email(v) if v is not None else None

    @field_validator("display_name")
    @classmethod
    def check_display_name(cls, v: str | None) -> str | None:
        return validate_display_name(v) if v is not None else None

    @field_validator("bio")
    @classmethod
    def check_bio(cls, v: str | None) -> str | None:
        return validate_bio(v) if v is not None else None

    @field_validator("interests", mode="before")
    @classmethod
    def split_interests(cls, v: object) -> object:
        """Accept a comma separated string as well as a list."""
        if isinstance(v, str):
            return v.split(",")
        return v

    @field_validator("interests")
    @classmethod
    def check_interests(cls, v: list[str] | None) -> list[str] | None:
        return validate_interests(v) if v is not None else None

    @field_validator("profile_picture")
    @classmethod
    def check_profile_picture(cls, v: str | None) -> str | None:
        """Only site-relative paths or http(s) URLs may be stored."""
        if v is None:
            return None
        v = v.strip()
        if v and not (v.startswith("/") or v.startswith("http://") or v.startswith("https://")):
            raise ValueError("Profile picture must be a URL or an uploaded file")
        if len(v) > 2048:
            raise ValueError("Profile picture URL is too long")
        return v

    @field_validator("role")
    @classmethod
    def check_role(cls, v: str | None) -> str | None:
        return validate_role(v) if v is not None else None


class UserUpdateResponse(CamelModel):
    message: str
    user: UserResponse


class FollowersResponse(CamelModel):
    followers: list[UserSummary]
    total: int


class FollowingResponse(CamelModel):
    following: list[UserSummary]
    total: int
