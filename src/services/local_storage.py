"""
Local persistence adapter - keyed JSON blobs on the local filesystem.

The durable store for anonymous users and the fallback when the remote API
is unreachable. Every key lives in its own file under a per-origin directory
and each write replaces the whole blob atomically.

No lock is taken across processes sharing the directory: concurrent writers
follow last-writer-wins, same as several browser tabs sharing localStorage.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional, Union
from urllib.parse import quote, unquote

from src.utils.config import AppConfig
from src.utils.errors import PersistenceError
from src.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)

_SUFFIX = ".json"


class StorageKeys:
    """Well-known keys, one JSON array blob per entity kind."""
    FAVORITES = "choiceProperties_favorites"
    OWNED_PROPERTIES = "choiceProperties_ownedProperties"
    OWNER_APPLICATIONS = "choiceProperties_ownerApplications"
    SAVED_SEARCHES = "choiceProperties_savedSearches"
    APPLICATIONS = "choiceProperties_applications"
    CONTACT_MESSAGES = "choiceProperties_messages"
    SESSION = "choiceProperties_session"


class LocalStorage:
    """File-backed equivalent of browser localStorage."""

    def __init__(
        self,
        directory: Union[str, Path, None] = None,
        quota_bytes: int = AppConfig.LOCAL_STORAGE_QUOTA_BYTES,
    ):
        self.directory = Path(directory) if directory is not None else AppConfig.STORAGE_DIR
        self.quota_bytes = quota_bytes

    def _path(self, key: str) -> Path:
        if not key:
            raise ValueError("Storage key must not be empty")
        return self.directory / f"{quote(key, safe='')}{_SUFFIX}"

    def _used_bytes(self, exclude: Path) -> int:
        if not self.directory.exists():
            return 0
        total = 0
        for entry in self.directory.iterdir():
            if entry.suffix == _SUFFIX and entry != exclude:
                total += entry.stat().st_size
        return total

    def keys(self) -> list[str]:
        """List stored keys."""
        if not self.directory.exists():
            return []
        return sorted(
            unquote(entry.name[:-len(_SUFFIX)])
            for entry in self.directory.iterdir()
            if entry.suffix == _SUFFIX
        )

    def get_item(self, key: str) -> Optional[str]:
        """Return the raw stored string, or None when the key is absent."""
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def set_item(self, key: str, value: str) -> None:
        """
        Store ``value`` under ``key`` in a single atomic write.

        Raises PersistenceError when the quota would be exceeded or the write
        fails; the previous value is left intact in both cases.
        """
        path = self._path(key)
        encoded = value.encode("utf-8")

        used = self._used_bytes(exclude=path)
        if used + len(encoded) > self.quota_bytes:
            logger.warning(
                "Local storage quota exceeded",
                storage_key=key,
                used_bytes=used,
                write_bytes=len(encoded),
                quota_bytes=self.quota_bytes
            )
            raise PersistenceError(f"Storage quota exceeded while saving '{key}'")

        tmp_name = None
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=".tmp-", suffix=".part")
            with os.fdopen(fd, "wb") as tmp:
                tmp.write(encoded)
            os.replace(tmp_name, path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            logger.error("Local storage write failed", storage_key=key, error=str(e))
            raise PersistenceError(f"Failed to save '{key}': {e}") from e

    def remove_item(self, key: str) -> None:
        """Delete a key; missing keys are ignored."""
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise PersistenceError(f"Failed to remove '{key}': {e}") from e

    def read_json(self, key: str, default: Any = None) -> Any:
        """Parse the blob under ``key``; absent or corrupt blobs read as ``default``."""
        raw = self.get_item(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Discarding corrupt local storage blob", storage_key=key)
            return default

    def write_json(self, key: str, value: Any) -> None:
        """Serialise ``value`` and store it atomically."""
        self.set_item(key, json.dumps(value, separators=(",", ":")))
