"""Database models package."""

from backend.models.user import User, follows

__all__ = ["User", "follows"]
