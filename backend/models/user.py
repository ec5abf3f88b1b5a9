"""User model."""

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import JSON, Boolean, CheckConstraint, Column, DateTime, ForeignKey, String, Table, Text
from sqlalchemy.orm import relationship

from backend.database import Base


def generate_user_id() -> str:
    """Return a new opaque 32-character hex identifier."""
    return uuid4().hex


follows = Table(
    "follows",
    Base.metadata,
    Column(
        "follower_id",
        String(32),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "followed_id",
        String(32),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    ),
    Column(
        "created_at",
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    ),
    CheckConstraint("follower_id <> followed_id", name="ck_follows_not_self"),
)


class User(Base):
    """User model for authentication, profiles and the follow graph."""

    __tablename__ = "users"

    id = Column(String(32), primary_key=True, default=generate_user_id)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    role = Column(String(50), default="user", nullable=False)
    password_hash = Column(String(255), nullable=False)

    # Profile
    display_name = Column(String(255), default="", nullable=False)
    bio = Column(String(150), default="", nullable=False)
    interests = Column(JSON, default=list, nullable=False)
    profile_picture = Column(Text, default="", nullable=False)
    active = Column(Boolean, default=True, nullable=False)
    is_private = Column(Boolean, default=False, nullable=False)

    # Password reset; the token column holds a SHA-256 digest, never the emailed token
    reset_password_token = Column(String(64), nullable=True, index=True)
    reset_password_expires = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # Relationships
    following = relationship(
        "User",
        secondary=follows,
        primaryjoin=lambda: User.id == follows.c.follower_id,
        secondaryjoin=lambda: User.id == follows.c.followed_id,
        back_populates="followers",
    )
    followers = relationship(
        "User",
        secondary=follows,
        primaryjoin=lambda: User.id == follows.c.followed_id,
        secondaryjoin=lambda: User.id == follows.c.follower_id,
        back_populates="following",
    )

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def __repr__(self) -> str:
        """String representation of User."""
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
