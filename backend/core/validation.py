"""Field-level validation rules shared by request schemas and routers.

Each ``validate_*`` function returns the normalized value or raises
``ValueError`` carrying the user-facing message, so they can be used directly
inside pydantic ``field_validator``s.
"""

import re
import unicodedata

from email_validator import EmailNotValidError, validate_email as check_email_syntax

NAME_MAX_LENGTH = 255
EMAIL_MAX_LENGTH = 254
PASSWORD_MIN_LENGTH = 8
RESET_PASSWORD_MAX_LENGTH = 64
BIO_MAX_LENGTH = 150
DISPLAY_NAME_MAX_LENGTH = 255
MAX_INTERESTS = 20
INTEREST_MAX_LENGTH = 50

ROLES = ("user", "admin")

OBJECT_ID_PATTERN = re.compile(r"^[0-9a-f]{32}$")
RESET_TOKEN_PATTERN = re.compile(r"^[0-9a-f]{40}$")
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MARKUP_PATTERN = re.compile(r"<\s*/?\s*[a-z!][^>]*>|<\s*script|javascript\s*:", re.IGNORECASE)
SEARCH_FORBIDDEN_PATTERN = re.compile(r"[<>;]")
SEARCH_ALLOWED_PATTERN = re.compile(r"^[\w@.\-'\s]+$")
SPECIAL_CHARACTER_PATTERN = re.compile(r"[^A-Za-z0-9\s]")

NAME_EXTRA_CHARACTERS = frozenset(" -'.")

PASSWORD_COMPLEXITY_MESSAGE = (
    "Password must contain at least one uppercase letter, one lowercase letter, "
    "one number, and one special character"
)


def _is_name_character(char: str) -> bool:
    if char in NAME_EXTRA_CHARACTERS or char.isspace():
        return True
    # Letters, combining marks and digits from any script
    return unicodedata.category(char)[0] in ("L", "M", "N")


def contains_markup(value: str) -> bool:
    return bool(MARKUP_PATTERN.search(value))


def validate_name(value: str) -> str:
    """Trim and validate a display name for a user account."""
    name = value.strip()
    if not name:
        raise ValueError("Name is required")
    if len(name) > NAME_MAX_LENGTH:
        raise ValueError(f"Name is too long. Max {NAME_MAX_LENGTH} characters allowed.")
    if contains_markup(name):
        raise ValueError("Name contains disallowed markup.")
    if not all(_is_name_character(char) for char in name):
        raise ValueError("Invalid name format. Name can contain letters, numbers, and spaces.")
    return name


def normalize_email(value: str) -> str:
    return value.strip().lower()


def validate_email(value: str) -> str:
    """Normalize (trim, lowercase) and validate an email address."""
    email = normalize_email(value)
    if not email:
        raise ValueError("Email is required")
    if len(email) > EMAIL_MAX_LENGTH:
        raise ValueError("Invalid email length.")
    if not EMAIL_PATTERN.match(email) or ".." in email:
        raise ValueError("Invalid email format")
    try:
        check_email_syntax(email, check_deliverability=False, allow_smtputf8=False)
    except EmailNotValidError as e:
        raise ValueError("Invalid email format") from e
    return email


def validate_password(value: str) -> str:
    """Check a new password against the length and complexity policy."""
    if not value or not value.strip():
        raise ValueError("Password is required")
    if len(value) < PASSWORD_MIN_LENGTH:
        raise ValueError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long")
    if not (
        re.search(r"[a-z]", value)
        and re.search(r"[A-Z]", value)
        and re.search(r"\d", value)
        and SPECIAL_CHARACTER_PATTERN.search(value)
    ):
        raise ValueError(PASSWORD_COMPLEXITY_MESSAGE)
    return value


def validate_reset_password(value: str) -> str:
    """Password policy for the reset path: 8-64 characters, no whitespace, complex."""
    if not value:
        raise ValueError("New password is required.")
    if any(char.isspace() for char in value):
        raise ValueError("Password must not contain spaces.")
    if len(value) > RESET_PASSWORD_MAX_LENGTH:
        raise ValueError(f"Password must be at most {RESET_PASSWORD_MAX_LENGTH} characters long")
    return validate_password(value)


def validate_bio(value: str) -> str:
    bio = value.strip()
    if len(bio) > BIO_MAX_LENGTH:
        raise ValueError(f"Bio must be at most {BIO_MAX_LENGTH} characters")
    if contains_markup(bio):
        raise ValueError("Bio contains disallowed markup.")
    return bio


def validate_display_name(value: str) -> str:
    display_name = value.strip()
    if len(display_name) > DISPLAY_NAME_MAX_LENGTH:
        raise ValueError(f"Display name is too long. Max {DISPLAY_NAME_MAX_LENGTH} characters allowed.")
    if contains_markup(display_name):
        raise ValueError("Display name contains disallowed markup.")
    return display_name


def validate_interests(values: list[str]) -> list[str]:
    """Trim interests, drop blanks and duplicates, and enforce size limits."""
    interests: list[str] = []
    for value in values:
        interest = value.strip()
        if not interest or interest in interests:
            continue
        if len(interest) > INTEREST_MAX_LENGTH:
            raise ValueError(f"Each interest must be at most {INTEREST_MAX_LENGTH} characters")
        if contains_markup(interest):
            raise ValueError("Interests contain disallowed markup.")
        interests.append(interest)
    if len(interests) > MAX_INTERESTS:
        raise ValueError(f"At most {MAX_INTERESTS} interests are allowed")
    return interests


def validate_role(value: str) -> str:
    if value not in ROLES:
        raise ValueError("Role must be either 'user' or 'admin'")
    return value


def validate_search_query(value: str) -> str:
    """Sanitize a directory search string.

    Raises:
        ValueError: "Invalid input" for markup/statement characters, otherwise
            "Invalid search query." for blank input or characters outside the allow-list
    """
    if SEARCH_FORBIDDEN_PATTERN.search(value):
        raise ValueError("Invalid input")
    query = value.strip()
    if not query or not SEARCH_ALLOWED_PATTERN.match(query):
        raise ValueError("Invalid search query.")
    return query


def is_valid_object_id(value: str) -> bool:
    """Return True when ``value`` has the shape of a stored user identifier."""
    return bool(OBJECT_ID_PATTERN.fullmatch(value))


def is_valid_reset_token(value: str) -> bool:
    """Return True when ``value`` has the shape of an issued reset token."""
    return bool(RESET_TOKEN_PATTERN.fullmatch(value))
