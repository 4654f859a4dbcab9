"""Object storage for uploaded videos, backed by a local directory."""

from __future__ import annotations

from pathlib import Path
from urllib.parse import quote

from ..config import get_media_dir, get_public_base_url
from ..errors import MediaIOError


class LocalStorage:
    """
    Stores objects under a root directory and serves them from base_url.

    Object paths are flat keys; anything that would escape the root is
    rejected.
    """

    def __init__(self, root: Path | None = None, base_url: str | None = None):
        self.root = Path(root) if root is not None else get_media_dir()
        self.base_url = (base_url or f"{get_public_base_url()}/media").rstrip("/")

    def _resolve(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if not target.is_relative_to(self.root.resolve()):
            raise MediaIOError(f"Invalid storage path: {path}")
        return target

    def upload(self, path: str, data: bytes, content_type: str | None = None) -> str:
        """Store data at path and return the storage reference."""
        target = self._resolve(path)
        if target.exists():
            raise MediaIOError(f"Object already exists: {path}")
        target.parent.mkdir(parents=True, exist_ok=True)
        try:
            target.write_bytes(data)
        except OSError as e:
            raise MediaIOError(f"Failed to store {path}: {e}") from e
        return path

    def download(self, path: str) -> bytes:
        """Read the object at path."""
        target = self._resolve(path)
        try:
            return target.read_bytes()
        except FileNotFoundError as e:
            raise MediaIOError(f"Object not found in storage: {path}", code="file_not_found") from e
        except OSError as e:
            raise MediaIOError(f"Failed to read {path}: {e}") from e

    def get_public_url(self, path: str) -> str:
        return f"{self.base_url}/{quote(path)}"

    def delete(self, path: str) -> None:
        """Delete the object at path; raises MediaIOError on failure."""
        target = self._resolve(path)
        try:
            target.unlink()
        except OSError as e:
            raise MediaIOError(f"Failed to delete {path}: {e}") from e
