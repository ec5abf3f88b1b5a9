"""Application configuration using Pydantic Settings."""

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Calculate project root: config.py is in backend/, so go up one level
_CONFIG_DIR = Path(__file__).resolve().parent
_PROJECT_ROOT = _CONFIG_DIR.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=str(_PROJECT_ROOT / "backend" / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="Skeleton Social API", description="Application name")
    app_env: str = Field(default="development", description="Application environment")
    log_level: str = Field(default="INFO", description="Root log level")

    # Security
    secret_key: str = Field(
        ...,
        description="Secret key for JWT tokens",
        alias="SECRET_KEY",
    )
    algorithm: str = Field(default="HS256", description="JWT algorithm")
    access_token_expire_minutes: int = Field(default=60, description="Access token expiration in minutes")
    remember_me_expire_days: int = Field(default=7, description="Access token expiration when 'remember me' is set")

    # Database
    database_url: str = Field(
        ...,
        description="Database connection URL (PostgreSQL or SQLite)",
        alias="DATABASE_URL",
    )

    # Frontend
    frontend_url: str = Field(
        default="http://localhost:5173",
        description="Origin of the client application, used for CORS and reset links",
        alias="FRONTEND_URL",
    )

    # Password reset
    reset_token_expire_minutes: int = Field(default=60, description="Password reset token lifetime")
    reset_password_rate_limit: int = Field(
        default=3,
        description="Password reset requests allowed per client address within the window",
    )
    reset_password_rate_window_seconds: int = Field(default=60, description="Rate limit window in seconds")

    # Uploads
    upload_dir: str = Field(
        default=str(_PROJECT_ROOT / "uploads"),
        description="Directory where profile pictures are stored",
        alias="UPLOAD_DIR",
    )
    max_profile_picture_bytes: int = Field(default=5 * 1024 * 1024, description="Profile picture size limit")

    # Email
    smtp_host: str | None = Field(default=None, description="SMTP server host; unset logs emails instead")
    smtp_port: int = Field(default=587, description="SMTP server port")
    smtp_username: str | None = Field(default=None, description="SMTP login")
    smtp_password: str | None = Field(default=None, description="SMTP password")
    smtp_use_tls: bool = Field(default=True, description="Issue STARTTLS before login")
    email_from: str = Field(default="no-reply@localhost", description="Sender address for outgoing email")

    @field_validator("database_url", mode="before")
    @classmethod
    def validate_database_url(cls, v: str | None) -> str:
        """Validate and normalize database URL."""
        if v is None or v == "":
            raise ValueError("DATABASE_URL is required")
        return v.strip()

    @field_validator("app_env", mode="before")
    @classmethod
    def normalize_app_env(cls, v: str) -> str:
        """Normalize app environment to lowercase."""
        if isinstance(v, str):
            return v.lower().strip()
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """Normalize log level to upper case."""
        if isinstance(v, str):
            return v.upper().strip()
        return v

    @field_validator("frontend_url", mode="before")
    @classmethod
    def normalize_frontend_url(cls, v: str) -> str:
        """Strip whitespace and any trailing slash."""
        if isinstance(v, str):
            return v.strip().rstrip("/")
        return v


def get_settings() -> Settings:
    """Get application settings instance.

    Returns:
        Settings: Application settings instance

    Example:
        ```python
        from backend.config import get_settings

        settings = get_settings()
        print(settings.database_url)
        ```
    """
    return Settings()


# Global settings instance
settings = get_settings()
