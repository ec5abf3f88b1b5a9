"""Follow router: follow/unfollow and follower/following lists."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.core.dependencies import get_current_user
from backend.core.errors import AuthorizationError, BadRequestError, ConflictError, NotFoundError
from backend.core.validation import is_valid_object_id
from backend.database import get_db
from backend.models.user import User
from backend.schemas.common import MessageResponse
from backend.schemas.user import FollowersResponse, FollowingResponse, UserSummary

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["follow"])


def _get_target(db: Session, user_id: str) -> User:
    """Load the user a follow operation or list refers to.

    Raises:
        BadRequestError: If the id is malformed
        NotFoundError: If no active user has the id
    """
    if not is_valid_object_id(user_id):
        raise BadRequestError("Invalid user ID.")
    user = db.query(User).filter(User.id == user_id).first()
    if user is None or not user.active:
        raise NotFoundError("User not found.")
    return user


def _can_view_connections(viewer: User, owner: User) -> bool:
    """Private accounts expose their lists only to themselves, their followers and admins."""
    if not owner.is_private or viewer.id == owner.id or viewer.is_admin:
        return True
    return viewer in owner.followers


@router.post("/follow/{user_id}", response_model=MessageResponse)
async def follow_user(
    user_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> MessageResponse:
    """Follow another user.

    Raises:
        BadRequestError: If the id is malformed or the caller targets themselves
        NotFoundError: If the user does not exist
        ConflictError: If the caller already follows the user
    """
    if user_id == current_user.id:
        raise BadRequestError("You cannot follow yourself.")

    target = _get_target(db, user_id)

    if target in current_user.following:
        raise ConflictError("You are already following this user.")

    current_user.following.append(target)
    try:
        db.commit()
    except IntegrityError as e:
        # A concurrent request stored the same follow first
        db.rollback()
        raise ConflictError("You are already following this user.") from e

    logger.info(f"User {current_user.id} followed {target.id}")
    return MessageResponse(message=f"You are now following {target.name}.")


@router.delete("/follow/{user_id}", response_model=MessageResponse)
async def unfollow_user(
    user_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> MessageResponse:
    """Stop following a user.

    Raises:
        BadRequestError: If the id is malformed, the caller targets themselves,
            or the caller does not follow the user
        NotFoundError: If the user does not exist
    """
    if user_id == current_user.id:
        raise BadRequestError("You cannot unfollow yourself.")

    target = _get_target(db, user_id)

    if target not in current_user.following:
        raise BadRequestError("You are not following this user.")

    current_user.following.remove(target)
    db.commit()

    logger.info(f"User {current_user.id} unfollowed {target.id}")
    return MessageResponse(message=f"You have unfollowed {target.name}.")


@router.get("/users/{user_id}/followers", response_model=FollowersResponse)
async def get_followers(
    user_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> FollowersResponse:
    """List the users following ``user_id``.

    Raises:
        AuthorizationError: If the account is private and the caller may not see it
    """
    owner = _get_target(db, user_id)
    if not _can_view_connections(current_user, owner):
        raise AuthorizationError("This user's followers list is private.")

    followers = [UserSummary.model_validate(user) for user in owner.followers if user.active]
    return FollowersResponse(followers=followers, total=len(followers))


@router.get("/users/{user_id}/following", response_model=FollowingResponse)
async def get_following(
    user_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> FollowingResponse:
    """List the users ``user_id`` follows.

    Raises:
        AuthorizationError: If the account is private and the caller may not see it
    """
    owner = _get_target(db, user_id)
    if not _can_view_connections(current_user, owner):
        raise AuthorizationError("This user's following list is private.")

    following = [UserSummary.model_validate(user) for user in owner.following if user.active]
    return FollowingResponse(following=following, total=len(following))
