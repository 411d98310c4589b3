"""
Backend-with-fallback access shared by the document store and vector index.

The remote repository is authoritative while the mode is ``REMOTE``; the
local cache shadows it and takes over while the mode is ``LOCAL_ONLY``.
Remote helpers raise ``BackendUnreachable`` for any failure that should
send the caller to the cache, so an operation reads as::

    if await backend.resolve_mode() == BackendMode.REMOTE:
        try:
            return await remote_path()
        except BackendUnreachable as e:
            backend.downgrade(e.message)
    return local_path()
"""

import json
import logging
from typing import Any, Dict, List, Optional, Set

from ..models import BackendMode
from ..utils.logging import log_event
from ..utils.result import Failure
from .exceptions import (
    BackendUnreachable,
    ConcurrencyConflict,
    LocalStorageExhausted,
    NotFoundError,
)
from .local_cache import LOCAL_ONLY_KEY, LocalCache
from .provisioning import ProvisioningStateMachine
from .remote.types import (
    RemoteErrorKind,
    RemoteFile,
    RemoteFileInfo,
    RemoteRepositoryClient,
    failure_kind,
)

logger = logging.getLogger(__name__)


def _unreachable(result: Failure, path: str) -> BackendUnreachable:
    return BackendUnreachable(
        str(result.error),
        {"path": path, "error_kind": failure_kind(result).value},
    )


class StorageBackend:
    """Remote file access with mode tracking and a local cache fallback."""

    def __init__(
        self,
        client: RemoteRepositoryClient,
        cache: LocalCache,
        provisioning: ProvisioningStateMachine,
    ):
        self.client = client
        self.cache = cache
        self.provisioning = provisioning
        self._mode = BackendMode.UNCHECKED

    @property
    def mode(self) -> BackendMode:
        return self._mode

    @property
    def owner(self) -> str:
        return self.provisioning.owner

    @property
    def repo_name(self) -> str:
        return self.provisioning.repo_name

    def _set_mode(self, mode: BackendMode, reason: str) -> None:
        if mode != self._mode:
            log_event(
                "backend_mode_changed",
                {
                    "mode": mode.value,
                    "previous": self._mode.value,
                    "repository": self.repo_name,
                    "reason": reason,
                },
                level=logging.INFO if mode == BackendMode.REMOTE else logging.WARNING,
            )
        self._mode = mode

    async def resolve_mode(self) -> BackendMode:
        """Re-derive the mode; an unavailable remote is checked again."""
        if await self.provisioning.ensure_ready():
            self._set_mode(BackendMode.REMOTE, "repository_ready")
        else:
            self._set_mode(BackendMode.LOCAL_ONLY, "provisioning_failed")
        return self._mode

    def downgrade(self, reason: str) -> None:
        """Switch to the cache after a remote failure mid-operation."""
        self._set_mode(BackendMode.LOCAL_ONLY, reason)
        self.provisioning.invalidate()

    # Remote helpers

    async def get_file(self, path: str) -> Optional[RemoteFile]:
        """Fetch a file; None if it does not exist."""
        result = await self.client.get_file(self.owner, self.repo_name, path)
        if result.is_success():
            return result.unwrap()
        if failure_kind(result) == RemoteErrorKind.NOT_FOUND:
            return None
        raise _unreachable(result, path)

    async def put_file(
        self, path: str, content: bytes, message: str, sha: Optional[str] = None
    ) -> str:
        """
        Write a file, returning its new sha.

        Raises:
            ConcurrencyConflict: ``sha`` is stale, or missing for an existing file
            BackendUnreachable: Any other failure
        """
        result = await self.client.put_file(
            self.owner, self.repo_name, path, content, message, sha=sha
        )
        if result.is_success():
            return result.unwrap()
        if failure_kind(result) == RemoteErrorKind.CONFLICT:
            raise ConcurrencyConflict(str(result.error), {"path": path})
        raise _unreachable(result, path)

    async def delete_file(self, path: str, sha: str, message: str) -> None:
        """
        Raises:
            NotFoundError: The file is already gone
            ConcurrencyConflict: ``sha`` is stale
            BackendUnreachable: Any other failure
        """
        result = await self.client.delete_file(
            self.owner, self.repo_name, path, sha, message
        )
        if result.is_success():
            return
        kind = failure_kind(result)
        if kind == RemoteErrorKind.NOT_FOUND:
            raise NotFoundError(str(result.error), {"path": path})
        if kind == RemoteErrorKind.CONFLICT:
            raise ConcurrencyConflict(str(result.error), {"path": path})
        raise _unreachable(result, path)

    async def list_files(self, path: str = "") -> List[RemoteFileInfo]:
        """List a directory; a missing directory is empty."""
        result = await self.client.list_files(self.owner, self.repo_name, path)
        if result.is_success():
            return result.unwrap()
        if failure_kind(result) == RemoteErrorKind.NOT_FOUND:
            return []
        raise _unreachable(result, path or "/")

    # Cache helpers

    def cache_get_json(self, key: str, default: Any = None) -> Any:
        raw = self.cache.get(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            log_event(
                "local_cache_corrupt",
                {"path": key, "error": str(e)},
                level=logging.WARNING,
            )
            return default

    def cache_put_json(self, key: str, value: Any) -> None:
        """Write to the cache as the authoritative copy; exhaustion propagates."""
        try:
            self.cache.put(key, json.dumps(value, ensure_ascii=False))
        except LocalStorageExhausted as e:
            log_event(
                "local_storage_exhausted",
                {"path": key, "error": e.message},
                level=logging.ERROR,
            )
            raise

    def mirror_json(self, key: str, value: Any) -> None:
        """Refresh the shadow copy; the remote already holds the data."""
        try:
            self.cache.put(key, json.dumps(value, ensure_ascii=False))
        except LocalStorageExhausted as e:
            log_event(
                "local_cache_mirror_failed",
                {"path": key, "error": e.message},
                level=logging.WARNING,
            )

    # Records that exist only in the cache
    #
    # Anything written while the mode is LOCAL_ONLY is remembered here until
    # it reaches the remote, so a later remote listing does not wipe it from
    # the cache and ``retry_remote_connection`` can still migrate it.

    def _local_only_state(self) -> Dict[str, Any]:
        state = self.cache_get_json(LOCAL_ONLY_KEY, default={})
        if not isinstance(state, dict):
            state = {}
        records = state.get("records")
        blobs = state.get("blobs")
        return {
            "records": records if isinstance(records, dict) else {},
            "blobs": blobs if isinstance(blobs, list) else [],
        }

    def local_only_ids(self, key: str) -> Set[str]:
        ids = self._local_only_state()["records"].get(key)
        return set(ids) if isinstance(ids, list) else set()

    def is_local_only_blob(self, key: str) -> bool:
        return key in self._local_only_state()["blobs"]

    def mark_local_only(self, key: str, record_id: Optional[str] = None) -> None:
        """
        Remember that a record (or the whole blob when ``record_id`` is
        None) was written to the cache only.

        Raises:
            LocalStorageExhausted: The marker could not be stored
        """
        state = self._local_only_state()
        if record_id is None:
            if key in state["blobs"]:
                return
            state["blobs"].append(key)
        else:
            ids = state["records"].setdefault(key, [])
            if record_id in ids:
                return
            ids.append(record_id)
        self.cache_put_json(LOCAL_ONLY_KEY, state)

    def forget_local_only(self, key: str, record_id: Optional[str] = None) -> None:
        """Drop a marker once the remote holds (or no longer needs) the record."""
        state = self._local_only_state()
        if record_id is None:
            if key not in state["blobs"]:
                return
            state["blobs"].remove(key)
        else:
            ids = state["records"].get(key) or []
            if record_id not in ids:
                return
            ids.remove(record_id)
        self.mirror_json(LOCAL_ONLY_KEY, state)

    def clear_local_only(self) -> None:
        self.cache.remove(LOCAL_ONLY_KEY)

    def mirror_listing(self, key: str, remote_items: List[Dict[str, Any]]) -> None:
        """
        Mirror a complete remote listing into the cache.

        Cached records marked local-only are kept, and replace the remote
        copy of the same id, since they are the most recent write.
        """
        merged = {item["id"]: item for item in remote_items}
        local_only = self.local_only_ids(key)
        if local_only:
            cached = self.cache_get_json(key, default=[])
            for item in cached if isinstance(cached, list) else []:
                if isinstance(item, dict) and item.get("id") in local_only:
                    merged[item["id"]] = item
            log_event(
                "local_only_records_kept",
                {"path": key, "count": len(local_only)},
                level=logging.DEBUG,
            )
        self.mirror_json(key, list(merged.values()))

    # Single-blob records

    async def read_blob(self, path: str, cache_key: str) -> Any:
        """
        Read one JSON record, or None if it does not exist.

        A remote hit is mirrored into the cache unless the cached copy was
        written while the remote was unavailable.
        """
        if await self.resolve_mode() == BackendMode.REMOTE:
            try:
                remote = await self.get_file(path)
                if remote is None:
                    return None
                try:
                    value = json.loads(remote.content.decode("utf-8"))
                except (UnicodeDecodeError, json.JSONDecodeError) as e:
                    log_event(
                        "remote_blob_corrupt",
                        {"path": path, "error": str(e)},
                        level=logging.WARNING,
                    )
                    return None
                if not self.is_local_only_blob(cache_key):
                    self.mirror_json(cache_key, value)
                return value
            except BackendUnreachable as e:
                self.downgrade(e.message)
        return self.cache_get_json(cache_key)

    async def write_blob(self, path: str, cache_key: str, value: Any, message: str) -> bool:
        """
        Write one JSON record.

        Returns:
            False on a concurrency conflict, True otherwise

        Raises:
            LocalStorageExhausted: The cache is authoritative and rejected the write
        """
        if await self.resolve_mode() == BackendMode.REMOTE:
            try:
                current = await self.get_file(path)
                await self.put_file(
                    path,
                    json.dumps(value, ensure_ascii=False).encode("utf-8"),
                    message,
                    sha=current.sha if current else None,
                )
                self.mirror_json(cache_key, value)
                self.forget_local_only(cache_key)
                return True
            except ConcurrencyConflict:
                log_event(
                    "blob_write_conflict", {"path": path}, level=logging.WARNING
                )
                return False
            except BackendUnreachable as e:
                self.downgrade(e.message)
        self.cache_put_json(cache_key, value)
        self.mark_local_only(cache_key)
        return True
