"""Profile picture upload validation."""

from backend.config import settings

# Allowed image types: content type -> accepted extensions
ALLOWED_IMAGE_TYPES = {
    "image/jpeg": (".jpg", ".jpeg"),
    "image/png": (".png",),
}

_JPEG_SIGNATURE = b"\xff\xd8\xff"
_PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"

INVALID_TYPE_MESSAGE = "Invalid file type. Only JPG and PNG are allowed."


class FileValidationError(Exception):
    """Raised when file validation fails."""

    pass


def validate_filename(filename: str) -> None:
    """Validate filename format and extension.

    Args:
        filename: Filename to validate

    Raises:
        FileValidationError: If filename is invalid
    """
    if not filename or not filename.strip():
        raise FileValidationError("Filename is required")

    # Check for path traversal attempts
    if ".." in filename or "/" in filename or "\\" in filename:
        raise FileValidationError("Filename contains invalid characters")

    filename_lower = filename.lower()
    allowed_extensions = [ext for extensions in ALLOWED_IMAGE_TYPES.values() for ext in extensions]
    if not any(filename_lower.endswith(ext) for ext in allowed_extensions):
        raise FileValidationError(INVALID_TYPE_MESSAGE)


def validate_file_size(content: bytes, max_size: int | None = None) -> None:
    """Validate file size.

    Args:
        content: File content as bytes
        max_size: Limit in bytes, defaults to MAX_PROFILE_PICTURE_BYTES

    Raises:
        FileValidationError: If file is empty or exceeds the maximum
    """
    if max_size is None:
        max_size = settings.max_profile_picture_bytes
    if not content:
        raise FileValidationError("Uploaded file is empty.")
    if len(content) > max_size:
        max_mb = max_size / (1024 * 1024)
        raise FileValidationError(f"File too large. Maximum size is {max_mb:g}MB.")


def validate_image_content(content: bytes, content_type: str | None) -> None:
    """Check the declared content type and the file signature agree on JPEG or PNG."""
    if content_type not in ALLOWED_IMAGE_TYPES:
        raise FileValidationError(INVALID_TYPE_MESSAGE)

    signature = _JPEG_SIGNATURE if content_type == "image/jpeg" else _PNG_SIGNATURE
    if not content.startswith(signature):
        raise FileValidationError(INVALID_TYPE_MESSAGE)


def validate_profile_picture(content: bytes, filename: str, content_type: str | None) -> None:
    """Validate an uploaded profile picture.

    Args:
        content: File content as bytes
        filename: Client supplied filename
        content_type: Declared MIME type

    Raises:
        FileValidationError: If validation fails
    """
    validate_filename(filename)
    validate_file_size(content)
    validate_image_content(content, content_type)
