"""File storage for uploaded profile pictures."""

import os
import time
from pathlib import Path

from backend.config import get_settings

settings = get_settings()

# URL prefix the storage directory is served under
UPLOADS_URL_PREFIX = "/uploads"


class StorageError(Exception):
    """Base exception for storage operations."""

    pass


class FileNotFoundError(StorageError):
    """Raised when a file is not found in storage."""

    pass


class Storage:
    """Abstract storage interface for file operations."""

    def save(self, user_id: str, filename: str, content: bytes) -> str:
        """Save file content to storage.

        Args:
            user_id: ID of the owning user
            filename: Original filename
            content: File content as bytes

        Returns:
            str: Storage-relative path of the saved file

        Raises:
            StorageError: If file cannot be saved
        """
        raise NotImplementedError

    def delete(self, relative_path: str) -> None:
        """Delete file from storage.

        Raises:
            FileNotFoundError: If file is not found
            StorageError: If file cannot be deleted
        """
        raise NotImplementedError

    def exists(self, relative_path: str) -> bool:
        raise NotImplementedError

    def public_url(self, relative_path: str) -> str:
        """Path clients use to fetch a stored file."""
        return f"{UPLOADS_URL_PREFIX}/{relative_path}"

    def relative_path_from_url(self, url: str) -> str | None:
        """Inverse of ``public_url``; None for URLs this storage does not own."""
        prefix = f"{UPLOADS_URL_PREFIX}/"
        if not url or not url.startswith(prefix):
            return None
        return url[len(prefix) :]


class LocalStorage(Storage):
    """Local file system storage implementation."""

    def __init__(self, base_path: str | Path | None = None):
        """Initialize local storage.

        Args:
            base_path: Base directory for file storage. Defaults to UPLOAD_DIR.
        """
        if base_path is None:
            base_path = settings.upload_dir
        self.base_path = Path(base_path).resolve()
        self.base_path.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def _sanitize_filename(filename: str) -> str:
        """Sanitize filename to prevent directory traversal and other security issues.

        Args:
            filename: Original filename

        Returns:
            str: Sanitized filename
        """
        # Remove path components
        filename = os.path.basename(filename)
        # Remove any remaining path separators
        filename = filename.replace("/", "_").replace("\\", "_")
        # Remove null bytes
        filename = filename.replace("\x00", "")
        # Limit length
        if len(filename) > 200:
            name, ext = os.path.splitext(filename)
            filename = name[: 200 - len(ext)] + ext
        return filename

    def _resolve(self, relative_path: str) -> Path:
        """Resolve a storage-relative path, refusing anything outside base_path."""
        file_path = (self.base_path / relative_path).resolve()
        if self.base_path not in file_path.parents:
            raise StorageError(f"Path escapes storage directory: {relative_path}")
        return file_path

    def save(self, user_id: str, filename: str, content: bytes) -> str:
        """Save file content under ``<base_path>/<user_id>/<timestamp>-<filename>``."""
        safe_filename = f"{int(time.time() * 1000)}-{self._sanitize_filename(filename)}"
        relative_path = f"{self._sanitize_filename(user_id)}/{safe_filename}"
        file_path = self._resolve(relative_path)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            file_path.write_bytes(content)
            return relative_path
        except OSError as e:
            raise StorageError(f"Failed to save file: {e}") from e

    def delete(self, relative_path: str) -> None:
        file_path = self._resolve(relative_path)

        if not file_path.exists():
            raise FileNotFoundError(f"File not found: {relative_path}")

        try:
            file_path.unlink()
            # Clean up the per-user directory once it is empty
            try:
                file_path.parent.rmdir()
            except OSError:
                # Directory not empty or other error, ignore
                pass
        except OSError as e:
            raise StorageError(f"Failed to delete file: {e}") from e

    def exists(self, relative_path: str) -> bool:
        try:
            return self._resolve(relative_path).exists()
        except StorageError:
            return False


# Global storage instance
_storage: Storage | None = None


def get_storage() -> Storage:
    """Get storage instance.

    Returns:
        Storage: Storage instance (singleton)

    Example:
        ```python
        from backend.core.storage import get_storage

        storage = get_storage()
        relative_path = storage.save(user.id, "avatar.png", content)
        ```
    """
    global _storage
    if _storage is None:
        _storage = LocalStorage()
    return _storage
