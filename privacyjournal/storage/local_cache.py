"""
Local key/value caches holding the fallback copy of journal records.

All implementations are synchronous and store JSON strings under the same
keys, so the store is agnostic to which one it was given:

    journal-entries       JSON list of entries
    journal-folders       JSON list of folders
    journal-profile       JSON object
    journal-vector-index  JSON envelope of embeddings
    journal-flows         JSON list of guided flows
    journal-chats         JSON list of chat sessions
    journal-local-only    ids of records written while the remote was down
"""

import logging
import os
import re
from pathlib import Path
from typing import Dict, Optional, Protocol

import redis

from ..utils.logging import log_event
from .exceptions import LocalStorageExhausted

logger = logging.getLogger(__name__)

ENTRIES_KEY = "journal-entries"
FOLDERS_KEY = "journal-folders"
PROFILE_KEY = "journal-profile"
VECTOR_INDEX_KEY = "journal-vector-index"
FLOWS_KEY = "journal-flows"
CHATS_KEY = "journal-chats"
LOCAL_ONLY_KEY = "journal-local-only"


class LocalCache(Protocol):
    """Synchronous string key/value store."""

    def get(self, key: str) -> Optional[str]: ...

    def put(self, key: str, value: str) -> None:
        """Store a value; raises ``LocalStorageExhausted`` if it cannot."""
        ...

    def remove(self, key: str) -> None: ...


class InMemoryLocalCache:
    """Process-local cache, lost on restart."""

    def __init__(self, quota_bytes: Optional[int] = None):
        self._data: Dict[str, str] = {}
        self.quota_bytes = quota_bytes

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def put(self, key: str, value: str) -> None:
        if self.quota_bytes is not None:
            used = sum(len(v.encode("utf-8")) for k, v in self._data.items() if k != key)
            if used + len(value.encode("utf-8")) > self.quota_bytes:
                raise LocalStorageExhausted(
                    f"In-memory cache quota of {self.quota_bytes} bytes exceeded",
                    {"key": key},
                )
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class FileLocalCache:
    """
    One file per key in a directory, bounded by a byte quota.

    Writes go to a temporary file first and are renamed into place, so a
    failed write never leaves a truncated value behind.
    """

    def __init__(self, directory: Path, quota_bytes: int = 5 * 1024 * 1024):
        self.directory = Path(directory)
        self.quota_bytes = quota_bytes

    def _path_for(self, key: str) -> Path:
        safe = re.sub(r"[^a-zA-Z0-9_.-]", "_", key)
        return self.directory / f"{safe}.json"

    def _used_bytes(self, excluding: Path) -> int:
        if not self.directory.exists():
            return 0
        return sum(
            p.stat().st_size
            for p in self.directory.glob("*.json")
            if p.is_file() and p != excluding
        )

    def get(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            log_event(
                "local_cache_read_failed",
                {"path": str(path), "error": str(e)},
                level=logging.WARNING,
            )
            return None

    def put(self, key: str, value: str) -> None:
        path = self._path_for(key)
        encoded = value.encode("utf-8")
        if self._used_bytes(path) + len(encoded) > self.quota_bytes:
            raise LocalStorageExhausted(
                f"Local cache quota of {self.quota_bytes} bytes exceeded",
                {"key": key, "size": len(encoded)},
            )

        tmp_path = path.with_suffix(".json.tmp")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            tmp_path.write_bytes(encoded)
            os.replace(tmp_path, path)
        except OSError as e:
            raise LocalStorageExhausted(
                f"Failed to write local cache: {e}", {"key": key}
            ) from e

    def remove(self, key: str) -> None:
        try:
            self._path_for(key).unlink()
        except FileNotFoundError:
            pass


class RedisLocalCache:
    """Cache backed by a Redis server, using the synchronous client."""

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379",
        client: Optional[redis.Redis] = None,
        key_prefix: str = "privacyjournal",
    ):
        self.redis_url = redis_url
        self.key_prefix = key_prefix
        self.client = client or redis.Redis.from_url(
            redis_url,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=5,
        )

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}:{key}"

    def get(self, key: str) -> Optional[str]:
        try:
            value = self.client.get(self._key(key))
        except redis.RedisError as e:
            log_event(
                "local_cache_read_failed",
                {"backend": "redis", "error": str(e)},
                level=logging.WARNING,
            )
            return None
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    def put(self, key: str, value: str) -> None:
        try:
            self.client.set(self._key(key), value)
        except redis.RedisError as e:
            raise LocalStorageExhausted(
                f"Failed to write Redis cache: {e}", {"key": key}
            ) from e

    def remove(self, key: str) -> None:
        try:
            self.client.delete(self._key(key))
        except redis.RedisError as e:
            log_event(
                "local_cache_remove_failed",
                {"backend": "redis", "error": str(e)},
                level=logging.WARNING,
            )


def create_local_cache(
    backend: str,
    cache_path: Optional[Path] = None,
    quota_bytes: int = 5 * 1024 * 1024,
    redis_url: str = "redis://localhost:6379",
) -> LocalCache:
    """Build the cache named by the ``cache_backend`` setting."""
    if backend == "memory":
        return InMemoryLocalCache()
    if backend == "file":
        if cache_path is None:
            raise ValueError("cache_path is required for the file cache")
        return FileLocalCache(cache_path, quota_bytes)
    if backend == "redis":
        return RedisLocalCache(redis_url)
    raise ValueError(f"Unknown cache backend: {backend}")
