"""Users router: directory listing, profile read, update and delete."""

import logging
import math
from typing import Annotated, Any, Literal

from fastapi import APIRouter, Depends, Query, Request, status
from pydantic import ValidationError
from sqlalchemy import or_
from sqlalchemy.orm import Session
from starlette.datastructures import UploadFile

from backend.config import settings
from backend.core.dependencies import ensure_self_or_admin, get_current_user
from backend.core.errors import (
    AuthorizationError,
    BadRequestError,
    ConflictError,
    InternalError,
    NotAcceptableError,
    NotFoundError,
    ValidationFailed,
)
from backend.core.file_processing import FileValidationError, validate_profile_picture
from backend.core.storage import Storage, StorageError, get_storage
from backend.core.validation import contains_markup, is_valid_object_id, validate_search_query
from backend.database import get_db
from backend.models.user import User
from backend.schemas.common import MessageResponse
from backend.schemas.user import (
    UserDetailResponse,
    UserListResponse,
    UserResponse,
    UserUpdate,
    UserUpdateResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])

DEFAULT_SORT = "-createdAt"
SORT_FIELDS = {
    "name": User.name,
    "email": User.email,
    "role": User.role,
    "displayName": User.display_name,
    "display_name": User.display_name,
    "createdAt": User.created_at,
    "created_at": User.created_at,
    "updatedAt": User.updated_at,
    "updated_at": User.updated_at,
}
ADMIN_ONLY_FIELDS = ("role", "active")
PROFILE_PICTURE_FIELDS = ("profilePicture", "profile_picture")


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _rejects_json(request: Request) -> bool:
    """True when the client only accepts XML."""
    accept = request.headers.get("accept", "").lower()
    return "xml" in accept and "json" not in accept and "*/*" not in accept


def _get_user_or_404(db: Session, user_id: str) -> User:
    """Load a user by id; malformed ids are reported as missing."""
    user = None
    if is_valid_object_id(user_id):
        user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise NotFoundError("User not found")
    return user


@router.get("", response_model=UserListResponse)
async def list_users(
    request: Request,
    db: Annotated[Session, Depends(get_db)],
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
    sort: str = DEFAULT_SORT,
    role: Literal["user", "admin"] | None = None,
    active: bool | None = None,
    search: str | None = None,
) -> UserListResponse:
    """List users with filtering, search, sorting and pagination.

    Args:
        request: Incoming request, used for content negotiation
        db: Database session
        page: 1-based page number
        limit: Page size
        sort: Field to sort by, prefixed with ``-`` for descending order
        role: Only users with this role
        active: Only active or only deactivated users
        search: Case-insensitive substring matched against name, email and display name

    Returns:
        UserListResponse: Page of users with totals

    Raises:
        NotAcceptableError: If the client only accepts XML
        BadRequestError: If the search query or sort field is invalid
        NotFoundError: If no user matches
    """
    if _rejects_json(request):
        raise NotAcceptableError("XML format is not supported. Use application/json.")

    query = db.query(User)

    if role is not None:
        query = query.filter(User.role == role)
    if active is not None:
        query = query.filter(User.active == active)

    if search is not None:
        try:
            term = validate_search_query(search)
        except ValueError as e:
            raise BadRequestError(str(e)) from e
        pattern = f"%{_escape_like(term)}%"
        query = query.filter(
            or_(
                User.name.ilike(pattern, escape="\\"),
                User.email.ilike(pattern, escape="\\"),
                User.display_name.ilike(pattern, escape="\\"),
            )
        )

    descending = sort.startswith("-")
    sort_column = SORT_FIELDS.get(sort.lstrip("-"))
    if sort_column is None:
        raise BadRequestError(f"Invalid sort field: {sort.lstrip('-')}")
    order = sort_column.desc() if descending else sort_column.asc()

    total_users = query.count()
    if total_users == 0:
        raise NotFoundError("No users found")

    users = query.order_by(order, User.id.asc()).offset((page - 1) * limit).limit(limit).all()

    return UserListResponse(
        users=[UserResponse.model_validate(user) for user in users],
        total_users=total_users,
        current_page=page,
        total_pages=math.ceil(total_users / limit),
    )


@router.get("/{user_id}", response_model=UserDetailResponse)
async def get_user(
    user_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> UserDetailResponse:
    """Get a user profile by ID.

    Raises:
        BadRequestError: If the id carries markup
        NotFoundError: If the id is malformed or no such user exists
    """
    if contains_markup(user_id):
        raise BadRequestError("Invalid user ID")

    user = _get_user_or_404(db, user_id)
    return UserDetailResponse(user=UserResponse.model_validate(user))


async def _read_update_payload(request: Request) -> tuple[dict[str, Any], UploadFile | None]:
    """Read an update body sent as JSON or as a (multipart) form.

    Returns:
        The submitted fields and the uploaded profile picture, if any
    """
    content_type = request.headers.get("content-type", "")

    if content_type.startswith(("multipart/form-data", "application/x-www-form-urlencoded")):
        form = await request.form()
        payload: dict[str, Any] = {}
        upload = None
        for key in form.keys():
            values = form.getlist(key)
            if key in PROFILE_PICTURE_FIELDS and isinstance(values[-1], UploadFile):
                # Browsers send an empty part when no file was chosen
                if values[-1].filename:
                    upload = values[-1]
                continue
            text_values = [value for value in values if isinstance(value, str)]
            if not text_values:
                continue
            if key == "interests" and len(text_values) > 1:
                payload[key] = text_values
            else:
                payload[key] = text_values[-1]
        return payload, upload

    body = await request.body()
    if not body.strip():
        return {}, None
    try:
        payload = await request.json()
    except ValueError as e:
        raise BadRequestError("Request body must be valid JSON") from e
    if not isinstance(payload, dict):
        raise BadRequestError("Request body must be a JSON object")
    return payload, None


@router.put("/{user_id}", response_model=UserUpdateResponse)
async def update_user(
    user_id: str,
    request: Request,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
    storage: Annotated[Storage, Depends(get_storage)],
) -> UserUpdateResponse:
    """Update a user profile.

    Accepts JSON or multipart form data. A ``profilePicture`` file part is
    validated (JPEG/PNG, size limit) and stored; its path becomes the new
    profile picture.

    Raises:
        AuthorizationError: If the caller is neither the user nor an admin, or a
            non-admin tries to change role or active status
        BadRequestError: If a password is submitted or the upload is rejected
        ValidationFailed: If any field violates its rules
        NotFoundError: If the user does not exist
    """
    ensure_self_or_admin(current_user, user_id, "Unauthorized to update this profile.")

    payload, upload = await _read_update_payload(request)

    if "password" in payload:
        raise BadRequestError("Password update not allowed")
    payload.pop("id", None)
    payload.pop("_id", None)

    try:
        changes = UserUpdate.model_validate(payload)
    except ValidationError as e:
        raise ValidationFailed.from_pydantic(e) from e

    updates = {field: value for field, value in changes.model_dump(exclude_unset=True).items() if value is not None}

    if any(field in updates for field in ADMIN_ONLY_FIELDS) and not current_user.is_admin:
        raise AuthorizationError("Only administrators can change role or active status.")

    user = _get_user_or_404(db, user_id)

    if "email" in updates and updates["email"] != user.email:
        taken = db.query(User).filter(User.email == updates["email"], User.id != user.id).first()
        if taken:
            raise ConflictError("This email is already in use.")

    previous_picture = user.profile_picture
    if upload is not None:
        # One byte past the limit is enough for the size check to reject it
        content = await upload.read(settings.max_profile_picture_bytes + 1)
        try:
            validate_profile_picture(content, upload.filename or "", upload.content_type)
        except FileValidationError as e:
            raise BadRequestError(str(e)) from e

        try:
            relative_path = storage.save(user.id, upload.filename, content)
        except StorageError as e:
            logger.error(f"Profile picture upload failed for user {user.id}: {e}")
            raise InternalError("File upload failed. Please try again.") from e
        updates["profile_picture"] = storage.public_url(relative_path)

    for field, value in updates.items():
        setattr(user, field, value)

    db.commit()
    db.refresh(user)

    if user.profile_picture != previous_picture:
        _remove_stored_picture(storage, previous_picture)

    logger.info(f"User {user.id} updated by {current_user.id}: {sorted(updates)}")

    return UserUpdateResponse(
        message="Profile updated successfully",
        user=UserResponse.model_validate(user),
    )


def _remove_stored_picture(storage: Storage, picture_url: str | None) -> None:
    """Best-effort removal of a picture file this storage owns."""
    relative_path = storage.relative_path_from_url(picture_url or "")
    if relative_path is None:
        return
    try:
        storage.delete(relative_path)
    except StorageError as e:
        logger.warning(f"Could not remove stored picture {relative_path}: {e}")


@router.delete("/{user_id}", response_model=MessageResponse, status_code=status.HTTP_200_OK)
async def delete_user(
    user_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
    storage: Annotated[Storage, Depends(get_storage)],
) -> MessageResponse:
    """Delete a user account.

    Follow relationships in both directions are removed with the account.

    Raises:
        BadRequestError: If the id is malformed
        AuthorizationError: If the caller is neither the user nor an admin
        NotFoundError: If the user does not exist
    """
    if not is_valid_object_id(user_id):
        raise BadRequestError("Invalid user ID")

    ensure_self_or_admin(current_user, user_id)

    user = _get_user_or_404(db, user_id)
    actor_id = current_user.id
    picture = user.profile_picture

    db.delete(user)
    db.commit()

    _remove_stored_picture(storage, picture)

    if actor_id == user_id:
        logger.info(f"User {user_id} deleted their account")
        return MessageResponse(message="Your account has been deleted")

    logger.info(f"User {user_id} deleted by admin {actor_id}")
    return MessageResponse(message="User deleted successfully")
