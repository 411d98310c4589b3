"""
JSON record collections: one remote file per record, one cached list per
collection.

Folders, guided flows and chat sessions are all stored this way:

    remote  <directory>/<id>.json
    cache   <cache_key> -> JSON list of every record

Remote failures raise ``BackendUnreachable`` inside the collection and are
answered from the cache after a downgrade, exactly like entries.
"""

import logging
from typing import Any, Callable, Generic, List, Optional, Tuple, Type, TypeVar

from pydantic import ValidationError

from ..models import BackendMode
from ..models.core import JournalRecord
from ..utils.logging import log_event
from .backend import StorageBackend
from .exceptions import BackendUnreachable, ConcurrencyConflict, NotFoundError

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=JournalRecord)

# (remote path, encoded content, commit message)
MigrationItem = Tuple[str, bytes, str]


class RecordCollection(Generic[R]):
    """
    CRUD over one directory of JSON records with a local cache fallback.

    Args:
        backend: Shared backend of the owning store
        model: Pydantic record type, must have an ``id`` field
        directory: Remote directory holding ``<id>.json`` files
        cache_key: Cache key of the mirrored list
        label: Human-readable record kind for commit messages and logs
        sort_key: Listing order
    """

    def __init__(
        self,
        backend: StorageBackend,
        model: Type[R],
        directory: str,
        cache_key: str,
        label: str,
        sort_key: Callable[[R], Any],
    ):
        self.backend = backend
        self.model = model
        self.directory = directory
        self.cache_key = cache_key
        self.label = label
        self.sort_key = sort_key

    def path_for(self, record_id: str) -> str:
        return f"{self.directory}/{record_id}.json"

    @staticmethod
    def encode(record: R) -> bytes:
        return record.model_dump_json(by_alias=True, exclude_none=True, indent=2).encode(
            "utf-8"
        )

    def _parse(self, content: bytes, record_id: str) -> Optional[R]:
        try:
            return self.model.model_validate_json(content)
        except ValidationError as e:
            log_event(
                "record_decode_failed",
                {"collection": self.label, "record_id": record_id, "error": str(e)[:200]},
                level=logging.WARNING,
            )
            return None

    # Cached copy

    def local_records(self) -> List[R]:
        raw = self.backend.cache_get_json(self.cache_key, default=[])
        records: List[R] = []
        for item in raw if isinstance(raw, list) else []:
            try:
                records.append(self.model.model_validate(item))
            except ValidationError as e:
                log_event(
                    "local_record_invalid",
                    {"collection": self.label, "error": str(e)[:200]},
                    level=logging.WARNING,
                )
        return sorted(records, key=self.sort_key)

    def _store_local(self, records: List[R]) -> None:
        """Write the cache as the authoritative copy."""
        self.backend.cache_put_json(self.cache_key, [r.to_json_dict() for r in records])

    def _mirror_record(self, record: R) -> None:
        records = [r for r in self.local_records() if r.id != record.id]
        records.append(record)
        self.backend.mirror_json(self.cache_key, [r.to_json_dict() for r in records])
        self.backend.forget_local_only(self.cache_key, record.id)

    def _mirror_removed(self, record_id: str) -> None:
        records = self.local_records()
        remaining = [r for r in records if r.id != record_id]
        if len(remaining) != len(records):
            self.backend.mirror_json(self.cache_key, [r.to_json_dict() for r in remaining])
        self.backend.forget_local_only(self.cache_key, record_id)

    # Operations

    async def load(self) -> List[R]:
        """Every record in ``sort_key`` order; unparseable files are skipped."""
        backend = self.backend
        if await backend.resolve_mode() == BackendMode.REMOTE:
            try:
                records: List[R] = []
                for info in await backend.list_files(self.directory):
                    if info.type != "file" or not info.name.endswith(".json"):
                        continue
                    remote = await backend.get_file(info.path)
                    if remote is None:
                        continue
                    record = self._parse(remote.content, info.name[: -len(".json")])
                    if record is not None:
                        records.append(record)
                records.sort(key=self.sort_key)
                backend.mirror_listing(self.cache_key, [r.to_json_dict() for r in records])
                return records
            except BackendUnreachable as e:
                backend.downgrade(e.message)
        return self.local_records()

    async def read(self, record_id: str) -> Optional[R]:
        backend = self.backend
        if await backend.resolve_mode() == BackendMode.REMOTE:
            try:
                remote = await backend.get_file(self.path_for(record_id))
                if remote is None:
                    return None
                return self._parse(remote.content, record_id)
            except BackendUnreachable as e:
                backend.downgrade(e.message)
        return next((r for r in self.local_records() if r.id == record_id), None)

    async def write(self, record: R, create: bool, title: str) -> Optional[R]:
        """
        Persist a record.

        Returns:
            The record, or None if an update target is missing or the
            remote file changed underneath us

        Raises:
            LocalStorageExhausted: Local-only mode and the cache is full
        """
        backend = self.backend
        path = self.path_for(record.id)
        verb = "Create" if create else "Update"

        if await backend.resolve_mode() == BackendMode.REMOTE:
            try:
                sha = None
                if not create:
                    remote = await backend.get_file(path)
                    if remote is None:
                        return None
                    sha = remote.sha
                try:
                    await backend.put_file(
                        path, self.encode(record), f"{verb} {self.label}: {title}", sha=sha
                    )
                except ConcurrencyConflict:
                    log_event(
                        "record_write_conflict",
                        {"collection": self.label, "record_id": record.id},
                        level=logging.WARNING,
                    )
                    return None
                self._mirror_record(record)
                return record
            except BackendUnreachable as e:
                backend.downgrade(e.message)

        records = self.local_records()
        for position, existing in enumerate(records):
            if existing.id == record.id:
                records[position] = record
                break
        else:
            if not create:
                return None
            records.append(record)
        self._store_local(records)
        backend.mark_local_only(self.cache_key, record.id)
        return record

    async def remove(self, record_id: str) -> bool:
        """
        Returns:
            True if the record was deleted, False if absent or on a conflict
        """
        backend = self.backend
        path = self.path_for(record_id)

        if await backend.resolve_mode() == BackendMode.REMOTE:
            try:
                remote = await backend.get_file(path)
                if remote is None:
                    return False
                try:
                    await backend.delete_file(
                        path, remote.sha, f"Delete {self.label}: {record_id}"
                    )
                except (ConcurrencyConflict, NotFoundError) as e:
                    log_event(
                        "record_delete_rejected",
                        {
                            "collection": self.label,
                            "record_id": record_id,
                            "reason": e.error_type,
                        },
                        level=logging.WARNING,
                    )
                    return False
                self._mirror_removed(record_id)
                return True
            except BackendUnreachable as e:
                backend.downgrade(e.message)

        records = self.local_records()
        remaining = [r for r in records if r.id != record_id]
        if len(remaining) == len(records):
            return False
        self._store_local(remaining)
        backend.forget_local_only(self.cache_key, record_id)
        return True

    def migration_items(self, title: Callable[[R], str]) -> List[MigrationItem]:
        """Cached records as files to push into a fresh repository."""
        return [
            (self.path_for(r.id), self.encode(r), f"Migrate {self.label}: {title(r)}")
            for r in self.local_records()
        ]
