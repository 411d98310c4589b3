"""
Journal store for entries, folders, guided flows, chat sessions and the user
profile. Records live in a private GitHub repository, with a local cache
fallback and a semantic index over entries.

Every operation resolves the backend mode first, works against the remote
repository when it is usable and against the local cache otherwise. A remote
failure mid-operation downgrades the store to local-only mode and replays the
same logical operation against the cache.

Expected conditions (not found, unreachable remote, unavailable embeddings,
stale version tokens) come back as ``None``, ``False`` or ``[]``. Callers
only see ``IdentityUnverified``, ``LocalStorageExhausted`` and
``CycleDetected``.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from ..embeddings.base import EmbeddingProvider
from ..models import (
    BackendMode,
    BackendStatus,
    ChatMessage,
    ChatSession,
    Entry,
    Flow,
    FlowStep,
    Folder,
    RebuildSummary,
    Repository,
    SearchHit,
    UserProfile,
)
from ..utils.logging import log_event, track
from . import entry_codec
from .backend import StorageBackend
from .exceptions import (
    BackendUnreachable,
    ConcurrencyConflict,
    CycleDetected,
    FormatError,
    IdentityUnverified,
    JournalStoreError,
    NotFoundError,
)
from .local_cache import (
    CHATS_KEY,
    ENTRIES_KEY,
    FLOWS_KEY,
    FOLDERS_KEY,
    PROFILE_KEY,
    VECTOR_INDEX_KEY,
    LocalCache,
)
from .provisioning import DEFAULT_REPO_PREFIX, RETRY_REPO_PREFIX, ProvisioningStateMachine
from .records import MigrationItem, RecordCollection
from .remote.types import RemoteRepositoryClient
from .vector_index import (
    VECTOR_INDEX_PATH,
    ProgressCallback,
    VectorIndex,
    entry_embedding_text,
)

logger = logging.getLogger(__name__)

FOLDERS_DIR = "folders"
FLOWS_DIR = "flows"
CHATS_DIR = "chats"
PROFILE_PATH = "profile.json"
UNKNOWN_FOLDER_NAME = "unknown"
ID_COLLISION_RETRIES = 3


class _Unchanged:
    def __repr__(self) -> str:
        return "UNCHANGED"


UNCHANGED: Any = _Unchanged()


def _epoch_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def _iso_from_ms(instant_ms: int) -> str:
    return (
        datetime.fromtimestamp(instant_ms / 1000, tz=timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


def entry_id_from_timestamp(iso_timestamp: str) -> str:
    """``2024-05-01T10:20:30.123Z`` -> ``2024-05-01T10-20-30-123Z``."""
    return iso_timestamp.replace(":", "-").replace(".", "-")


def _entry_path(entry_id: str) -> str:
    return f"{entry_id}.md"


def _is_reserved_id(entry_id: str) -> bool:
    return entry_id.lower() == "readme"


def _created_sort_key(entry: Entry) -> datetime:
    try:
        parsed = datetime.fromisoformat(entry.created_at.replace("Z", "+00:00"))
    except ValueError:
        return datetime.min.replace(tzinfo=timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _newest_first(entries: List[Entry]) -> List[Entry]:
    return sorted(entries, key=_created_sort_key, reverse=True)


def _by_created_at(record: Any) -> str:
    return record.created_at


def _format_answer(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "Yes" if value else "No"
    return str(value)


def render_flow_responses(flow: Flow, answers: Dict[str, Any], submitted_at: str) -> str:
    """Entry body for one completed run of a flow."""
    lines = [f"Flow: {flow.title}", f"Date: {submitted_at}", ""]
    for number, step in enumerate(flow.steps, start=1):
        lines.append(f"## {number}. {step.prompt}")
        if step.description:
            lines.append(step.description)
        lines.append(f"Answer: {_format_answer(answers.get(step.id))}")
        lines.append("")
    return "\n".join(lines) + "\n"


class JournalStore:
    """
    Document store and semantic search over one journal.

    Collaborators are injected; the store is unusable until
    ``initialize(identity)`` has been called.
    """

    def __init__(
        self,
        client: RemoteRepositoryClient,
        cache: LocalCache,
        embedder: EmbeddingProvider,
        repo_prefix: str = DEFAULT_REPO_PREFIX,
        retry_prefix: str = RETRY_REPO_PREFIX,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.client = client
        self.cache = cache
        self.embedder = embedder
        self.repo_prefix = repo_prefix
        self.retry_prefix = retry_prefix
        self._clock = clock or _epoch_ms
        self._last_instant_ms = 0

        self._provisioning: Optional[ProvisioningStateMachine] = None
        self._backend: Optional[StorageBackend] = None
        self._index: Optional[VectorIndex] = None
        self._folders: Optional[RecordCollection[Folder]] = None
        self._flows: Optional[RecordCollection[Flow]] = None
        self._chats: Optional[RecordCollection[ChatSession]] = None

    def initialize(self, identity: str) -> None:
        """Bind the store to an account; the remote is checked on first use."""
        self._provisioning = ProvisioningStateMachine(
            self.client,
            identity,
            repo_prefix=self.repo_prefix,
            retry_prefix=self.retry_prefix,
            clock=self._clock,
        )
        self._backend = StorageBackend(self.client, self.cache, self._provisioning)
        self._index = VectorIndex(self._backend, self.embedder)
        self._folders = RecordCollection(
            self._backend, Folder, FOLDERS_DIR, FOLDERS_KEY, "folder", _by_created_at
        )
        self._flows = RecordCollection(
            self._backend, Flow, FLOWS_DIR, FLOWS_KEY, "flow", _by_created_at
        )
        self._chats = RecordCollection(
            self._backend, ChatSession, CHATS_DIR, CHATS_KEY, "chat session", _by_created_at
        )
        log_event(
            "journal_store_initialized",
            {"repository": self._provisioning.repo_name},
        )

    # State

    @property
    def is_initialized(self) -> bool:
        return self._backend is not None

    @property
    def mode(self) -> BackendMode:
        if self._backend is None:
            return BackendMode.UNCHECKED
        return self._backend.mode

    @property
    def current_repository(self) -> Optional[str]:
        if self._provisioning is None:
            return None
        return self._provisioning.repo_name

    def status(self) -> BackendStatus:
        if self._provisioning is None:
            return BackendStatus(
                mode=BackendMode.UNCHECKED,
                repository=None,
                owner=None,
                provisioning_state="unchecked",
            )
        return BackendStatus(
            mode=self.mode,
            repository=self._provisioning.repo_name,
            owner=self._provisioning.owner,
            provisioning_state=self._provisioning.state.value,
            provisioning_history=[s.value for s in self._provisioning.history],
        )

    def _require_backend(self) -> StorageBackend:
        if self._backend is None:
            raise IdentityUnverified("Journal store used before initialize(identity)")
        return self._backend

    def _require_index(self) -> VectorIndex:
        self._require_backend()
        return self._index

    def _folder_records(self) -> RecordCollection[Folder]:
        self._require_backend()
        return self._folders

    def _next_instant(self) -> int:
        """Current time in ms, strictly after every instant issued before."""
        instant = max(self._clock(), self._last_instant_ms + 1)
        self._last_instant_ms = instant
        return instant

    def _now_iso(self) -> str:
        return _iso_from_ms(self._next_instant())

    # Local entry copy

    def _local_entries(self) -> List[Entry]:
        raw = self._require_backend().cache_get_json(ENTRIES_KEY, default=[])
        entries: List[Entry] = []
        for item in raw if isinstance(raw, list) else []:
            try:
                entries.append(Entry.model_validate(item))
            except ValidationError as e:
                log_event(
                    "local_entry_invalid",
                    {"error": str(e)[:200]},
                    level=logging.WARNING,
                )
        return entries

    def _store_local_entries(self, entries: List[Entry], authoritative: bool) -> None:
        backend = self._require_backend()
        payload = [e.to_json_dict() for e in entries]
        if authoritative:
            backend.cache_put_json(ENTRIES_KEY, payload)
        else:
            backend.mirror_json(ENTRIES_KEY, payload)

    def _mirror_entry(self, entry: Entry) -> None:
        entries = [e for e in self._local_entries() if e.id != entry.id]
        entries.append(entry)
        self._store_local_entries(entries, authoritative=False)
        self._require_backend().forget_local_only(ENTRIES_KEY, entry.id)

    def _mirror_entry_removed(self, entry_id: str) -> None:
        entries = self._local_entries()
        remaining = [e for e in entries if e.id != entry_id]
        if len(remaining) != len(entries):
            self._store_local_entries(remaining, authoritative=False)
        self._require_backend().forget_local_only(ENTRIES_KEY, entry_id)

    async def _index_entry(self, entry: Entry) -> None:
        try:
            await self._require_index().upsert(
                entry.id, entry_embedding_text(entry.title, entry.content)
            )
        except JournalStoreError as e:
            log_event(
                "vector_index_update_failed",
                {"entry_id": entry.id, "error": e.message},
                level=logging.WARNING,
            )

    async def _unindex_entry(self, entry_id: str) -> None:
        try:
            await self._require_index().remove(entry_id)
        except JournalStoreError as e:
            log_event(
                "vector_index_update_failed",
                {"entry_id": entry_id, "error": e.message},
                level=logging.WARNING,
            )

    # Entries

    @track(operation="entry_create", include_args=["folder_id"])
    async def create_entry(
        self, title: str, content: str, folder_id: Optional[str] = None
    ) -> Entry:
        """
        Create an entry with a fresh timestamp-derived ID.

        Raises:
            IdentityUnverified: ``initialize`` was not called
            LocalStorageExhausted: Local-only mode and the cache is full
        """
        backend = self._require_backend()

        def new_entry() -> Entry:
            now = self._now_iso()
            return Entry(
                id=entry_id_from_timestamp(now),
                title=title,
                content=content,
                created_at=now,
                updated_at=now,
                folder_id=folder_id,
            )

        entry = new_entry()
        if await backend.resolve_mode() == BackendMode.REMOTE:
            try:
                for _ in range(ID_COLLISION_RETRIES):
                    try:
                        await backend.put_file(
                            _entry_path(entry.id),
                            entry_codec.encode(entry),
                            f"Create journal entry: {title}",
                        )
                        break
                    except ConcurrencyConflict:
                        # A file with this ID already exists
                        entry = new_entry()
                else:
                    raise BackendUnreachable(
                        "Could not allocate a free entry ID", {"entry_id": entry.id}
                    )
                self._mirror_entry(entry)
                await self._index_entry(entry)
                log_event(
                    "entry_created",
                    {"entry_id": entry.id, "backend": "remote"},
                    level=logging.DEBUG,
                )
                return entry
            except BackendUnreachable as e:
                backend.downgrade(e.message)

        entries = self._local_entries()
        entries.append(entry)
        self._store_local_entries(entries, authoritative=True)
        backend.mark_local_only(ENTRIES_KEY, entry.id)
        await self._index_entry(entry)
        log_event(
            "entry_created",
            {"entry_id": entry.id, "backend": "local"},
            level=logging.DEBUG,
        )
        return entry

    @track(operation="entry_list", include_args=False, frequency="medium_frequency")
    async def get_all_entries(self) -> List[Entry]:
        """All entries, newest first. Unparseable files are skipped."""
        backend = self._require_backend()

        if await backend.resolve_mode() == BackendMode.REMOTE:
            try:
                entries: List[Entry] = []
                for info in await backend.list_files(""):
                    if info.type != "file" or not info.name.endswith(".md"):
                        continue
                    entry_id = info.name[: -len(".md")]
                    if _is_reserved_id(entry_id):
                        continue
                    remote = await backend.get_file(info.path)
                    if remote is None:
                        continue
                    try:
                        entries.append(entry_codec.decode(remote.content, entry_id))
                    except FormatError as e:
                        log_event(
                            "entry_decode_failed",
                            {"entry_id": entry_id, "error": e.message},
                            level=logging.WARNING,
                        )
                entries = _newest_first(entries)
                backend.mirror_listing(ENTRIES_KEY, [e.to_json_dict() for e in entries])
                return entries
            except BackendUnreachable as e:
                backend.downgrade(e.message)

        return _newest_first(self._local_entries())

    @track(
        operation="entry_get",
        include_args=["entry_id"],
        frequency="high_frequency",
    )
    async def get_entry_by_id(self, entry_id: str) -> Optional[Entry]:
        backend = self._require_backend()
        if _is_reserved_id(entry_id):
            return None

        if await backend.resolve_mode() == BackendMode.REMOTE:
            try:
                remote = await backend.get_file(_entry_path(entry_id))
                if remote is None:
                    return None
                try:
                    return entry_codec.decode(remote.content, entry_id)
                except FormatError as e:
                    log_event(
                        "entry_decode_failed",
                        {"entry_id": entry_id, "error": e.message},
                        level=logging.WARNING,
                    )
                    return None
            except BackendUnreachable as e:
                backend.downgrade(e.message)

        return next((e for e in self._local_entries() if e.id == entry_id), None)

    @track(operation="entry_update", include_args=["entry_id"])
    async def update_entry(
        self,
        entry_id: str,
        title: str,
        content: str,
        folder_id: Any = UNCHANGED,
    ) -> Optional[Entry]:
        """
        Replace an entry's title and content, and optionally its folder.

        Pass ``folder_id=None`` to clear the folder; omit it to keep the
        current one.

        Returns:
            The updated entry, or None if it does not exist or the file
            changed underneath us
        """
        backend = self._require_backend()
        if _is_reserved_id(entry_id):
            return None

        def apply(existing: Entry) -> Entry:
            changes: Dict[str, Any] = {
                "title": title,
                "content": content,
                "updated_at": self._now_iso(),
            }
            if folder_id is not UNCHANGED:
                changes["folder_id"] = folder_id
            return existing.model_copy(update=changes)

        if await backend.resolve_mode() == BackendMode.REMOTE:
            try:
                remote = await backend.get_file(_entry_path(entry_id))
                if remote is None:
                    return None
                try:
                    existing = entry_codec.decode(remote.content, entry_id)
                except FormatError as e:
                    log_event(
                        "entry_decode_failed",
                        {"entry_id": entry_id, "error": e.message},
                        level=logging.WARNING,
                    )
                    return None
                updated = apply(existing)
                try:
                    await backend.put_file(
                        _entry_path(entry_id),
                        entry_codec.encode(updated),
                        f"Update journal entry: {title}",
                        sha=remote.sha,
                    )
                except ConcurrencyConflict:
                    log_event(
                        "entry_update_conflict",
                        {"entry_id": entry_id},
                        level=logging.WARNING,
                    )
                    return None
                self._mirror_entry(updated)
                await self._index_entry(updated)
                return updated
            except BackendUnreachable as e:
                backend.downgrade(e.message)

        entries = self._local_entries()
        for position, existing in enumerate(entries):
            if existing.id == entry_id:
                updated = apply(existing)
                entries[position] = updated
                self._store_local_entries(entries, authoritative=True)
                backend.mark_local_only(ENTRIES_KEY, entry_id)
                await self._index_entry(updated)
                return updated
        return None

    @track(operation="entry_delete", include_args=["entry_id"])
    async def delete_entry(self, entry_id: str) -> bool:
        """
        Returns:
            True if the entry was deleted, False if absent or on a conflict
        """
        backend = self._require_backend()
        if _is_reserved_id(entry_id):
            return False

        if await backend.resolve_mode() == BackendMode.REMOTE:
            try:
                remote = await backend.get_file(_entry_path(entry_id))
                if remote is None:
                    return False
                try:
                    await backend.delete_file(
                        _entry_path(entry_id),
                        remote.sha,
                        f"Delete journal entry: {entry_id}",
                    )
                except (ConcurrencyConflict, NotFoundError) as e:
                    log_event(
                        "entry_delete_rejected",
                        {"entry_id": entry_id, "reason": e.error_type},
                        level=logging.WARNING,
                    )
                    return False
                self._mirror_entry_removed(entry_id)
                await self._unindex_entry(entry_id)
                return True
            except BackendUnreachable as e:
                backend.downgrade(e.message)

        entries = self._local_entries()
        remaining = [e for e in entries if e.id != entry_id]
        if len(remaining) == len(entries):
            return False
        self._store_local_entries(remaining, authoritative=True)
        backend.forget_local_only(ENTRIES_KEY, entry_id)
        await self._unindex_entry(entry_id)
        return True

    # Folders

    @track(operation="folder_create", include_args=["name", "parent_id"])
    async def create_folder(
        self,
        name: str,
        description: Optional[str] = None,
        parent_id: Optional[str] = None,
        color: Optional[str] = None,
    ) -> Optional[Folder]:
        now = self._now_iso()
        folder = Folder(
            id=str(uuid.uuid4()),
            name=name,
            description=description,
            color=color,
            parent_id=parent_id,
            created_at=now,
            updated_at=now,
        )
        return await self._folder_records().write(folder, create=True, title=name)

    @track(operation="folder_list", include_args=False, frequency="medium_frequency")
    async def get_all_folders(self) -> List[Folder]:
        return await self._folder_records().load()

    @track(operation="folder_get", include_args=["folder_id"], frequency="high_frequency")
    async def get_folder_by_id(self, folder_id: str) -> Optional[Folder]:
        return await self._folder_records().read(folder_id)

    @track(operation="folder_update", include_args=["folder_id"])
    async def update_folder(
        self,
        folder_id: str,
        name: str,
        description: Any = UNCHANGED,
        color: Any = UNCHANGED,
    ) -> Optional[Folder]:
        """
        Rename a folder. ``description`` and ``color`` are kept unless
        passed; pass None to clear them.
        """
        existing = await self._folder_records().read(folder_id)
        if existing is None:
            return None
        changes: Dict[str, Any] = {"name": name, "updated_at": self._now_iso()}
        if description is not UNCHANGED:
            changes["description"] = description
        if color is not UNCHANGED:
            changes["color"] = color
        updated = existing.model_copy(update=changes)
        return await self._folder_records().write(updated, create=False, title=name)

    @track(operation="folder_delete", include_args=["folder_id"])
    async def delete_folder(self, folder_id: str) -> bool:
        """
        Delete a folder; its subfolders move up to its parent.

        Entries keep their ``folder_id`` and render as "unknown" afterwards.
        """
        folders = await self._folder_records().load()
        target = next((f for f in folders if f.id == folder_id), None)
        if target is None:
            return False
        if not await self._folder_records().remove(folder_id):
            return False

        for child in folders:
            if child.parent_id == folder_id:
                await self._folder_records().write(
                    child.model_copy(
                        update={"parent_id": target.parent_id, "updated_at": self._now_iso()}
                    ),
                    create=False,
                    title=child.name,
                )
        return True

    @track(operation="folder_move", include_args=["folder_id", "new_parent_id"])
    async def move_folder(
        self, folder_id: str, new_parent_id: Optional[str]
    ) -> Optional[Folder]:
        """
        Re-parent a folder; ``None`` makes it a root folder.

        Returns None if either folder is missing or the move would make the
        folder its own ancestor.
        """
        folders = {f.id: f for f in await self._folder_records().load()}
        folder = folders.get(folder_id)
        if folder is None:
            return None

        if new_parent_id is not None:
            if new_parent_id not in folders:
                return None
            ancestor: Optional[str] = new_parent_id
            seen = set()
            while ancestor is not None and ancestor not in seen:
                if ancestor == folder_id:
                    log_event(
                        "folder_move_rejected",
                        {"folder_id": folder_id, "reason": "cycle"},
                        level=logging.WARNING,
                    )
                    return None
                seen.add(ancestor)
                parent = folders.get(ancestor)
                ancestor = parent.parent_id if parent else None

        moved = folder.model_copy(
            update={"parent_id": new_parent_id, "updated_at": self._now_iso()}
        )
        return await self._folder_records().write(moved, create=False, title=moved.name)

    async def get_root_folders(self) -> List[Folder]:
        """Folders without a parent, or whose parent no longer exists."""
        folders = await self._folder_records().load()
        ids = {f.id for f in folders}
        return [f for f in folders if f.parent_id is None or f.parent_id not in ids]

    async def get_subfolders(self, parent_id: str) -> List[Folder]:
        return [f for f in await self._folder_records().load() if f.parent_id == parent_id]

    async def get_folder_path(self, folder_id: str) -> List[Folder]:
        """
        Folders from the root down to ``folder_id``.

        Raises:
            CycleDetected: The parent chain revisits a folder
        """
        folders = {f.id: f for f in await self._folder_records().load()}
        path: List[Folder] = []
        visited = set()
        current = folders.get(folder_id)
        while current is not None:
            if current.id in visited:
                log_event(
                    "folder_cycle_detected",
                    {"folder_id": folder_id, "reason": current.id},
                    level=logging.ERROR,
                )
                raise CycleDetected(folder_id, current.id)
            visited.add(current.id)
            path.append(current)
            current = folders.get(current.parent_id) if current.parent_id else None
        path.reverse()
        return path

    async def resolve_folder_name(self, folder_id: Optional[str]) -> Optional[str]:
        """Display name for an entry's folder; "unknown" for a dangling ID."""
        if folder_id is None:
            return None
        folder = await self._folder_records().read(folder_id)
        return folder.name if folder else UNKNOWN_FOLDER_NAME

    # Flows

    @track(operation="flow_list", include_args=False, frequency="medium_frequency")
    async def get_all_flows(self) -> List[Flow]:
        """Every flow, oldest first."""
        self._require_backend()
        return await self._flows.load()

    @track(operation="flow_get", include_args=["flow_id"], frequency="high_frequency")
    async def get_flow_by_id(self, flow_id: str) -> Optional[Flow]:
        self._require_backend()
        return await self._flows.read(flow_id)

    @track(operation="flow_create", include_args=["title"])
    async def create_flow(
        self,
        title: str,
        description: Optional[str] = None,
        steps: Optional[List[FlowStep]] = None,
    ) -> Optional[Flow]:
        self._require_backend()
        now = self._now_iso()
        flow = Flow(
            id=str(uuid.uuid4()),
            title=title,
            description=description,
            steps=list(steps or []),
            created_at=now,
            updated_at=now,
        )
        return await self._flows.write(flow, create=True, title=title)

    @track(operation="flow_update", include_args=["flow_id"])
    async def update_flow(
        self,
        flow_id: str,
        title: str,
        description: Any = UNCHANGED,
        steps: Any = UNCHANGED,
    ) -> Optional[Flow]:
        """Retitle a flow; ``description`` and ``steps`` are kept unless passed."""
        self._require_backend()
        existing = await self._flows.read(flow_id)
        if existing is None:
            return None
        changes: Dict[str, Any] = {"title": title, "updated_at": self._now_iso()}
        if description is not UNCHANGED:
            changes["description"] = description
        if steps is not UNCHANGED:
            changes["steps"] = list(steps or [])
        updated = existing.model_copy(update=changes)
        return await self._flows.write(updated, create=False, title=title)

    @track(operation="flow_delete", include_args=["flow_id"])
    async def delete_flow(self, flow_id: str) -> bool:
        self._require_backend()
        return await self._flows.remove(flow_id)

    @track(operation="flow_responses_create", include_args=["flow_id"])
    async def submit_flow_responses(
        self, flow_id: str, answers: Dict[str, Any]
    ) -> Optional[Entry]:
        """
        Record one run of a flow as a journal entry.

        ``answers`` maps step IDs to values; unanswered steps are kept with
        an empty answer.

        Returns:
            The created entry, or None if the flow does not exist
        """
        flow = await self.get_flow_by_id(flow_id)
        if flow is None:
            return None
        submitted_at = _iso_from_ms(self._clock())
        return await self.create_entry(
            f"{flow.title} - {submitted_at[:10]}",
            render_flow_responses(flow, answers, submitted_at),
        )

    # Chat sessions

    @track(operation="chat_list", include_args=False, frequency="medium_frequency")
    async def get_all_chat_sessions(self) -> List[ChatSession]:
        """Every chat session, newest first."""
        self._require_backend()
        return list(reversed(await self._chats.load()))

    @track(operation="chat_get", include_args=["session_id"], frequency="high_frequency")
    async def get_chat_session(self, session_id: str) -> Optional[ChatSession]:
        self._require_backend()
        return await self._chats.read(session_id)

    @track(operation="chat_create", include_args=["title"])
    async def create_chat_session(self, title: Optional[str] = None) -> Optional[ChatSession]:
        """Start an empty session; the title defaults to ``Chat <timestamp>``."""
        self._require_backend()
        now = self._now_iso()
        session = ChatSession(
            id=str(uuid.uuid4()),
            title=title or f"Chat {now[:19].replace('T', ' ')}",
            messages=[],
            created_at=now,
            updated_at=now,
        )
        return await self._chats.write(session, create=True, title=session.title)

    @track(operation="chat_message_update", include_args=["session_id", "role"])
    async def append_message_to_session(
        self, session_id: str, role: str, content: str
    ) -> Optional[ChatSession]:
        """
        Append a message stamped with the current time.

        Returns:
            The updated session, or None if it does not exist or the file
            changed underneath us
        """
        self._require_backend()
        existing = await self._chats.read(session_id)
        if existing is None:
            return None
        now = self._now_iso()
        message = ChatMessage(role=role, content=content, timestamp=now)
        updated = existing.model_copy(
            update={"messages": [*existing.messages, message], "updated_at": now}
        )
        return await self._chats.write(updated, create=False, title=existing.title)

    @track(operation="chat_delete", include_args=["session_id"])
    async def delete_chat_session(self, session_id: str) -> bool:
        self._require_backend()
        return await self._chats.remove(session_id)

    # Profile

    @track(operation="profile_get", include_args=False)
    async def get_user_profile(self) -> Optional[UserProfile]:
        blob = await self._require_backend().read_blob(PROFILE_PATH, PROFILE_KEY)
        if not isinstance(blob, dict):
            return None
        try:
            return UserProfile.model_validate(blob)
        except ValidationError as e:
            log_event(
                "profile_decode_failed",
                {"error": str(e)[:200]},
                level=logging.WARNING,
            )
            return None

    @track(operation="profile_update", include_args=False)
    async def save_user_profile(self, profile: UserProfile) -> Optional[UserProfile]:
        """
        Returns:
            The stored profile, or None on a concurrent write conflict
        """
        stored = profile.model_copy(update={"updated_at": self._now_iso()})
        saved = await self._require_backend().write_blob(
            PROFILE_PATH, PROFILE_KEY, stored.to_json_dict(), "Update user profile"
        )
        return stored if saved else None

    # Repositories

    async def list_journal_repositories(self) -> List[Repository]:
        self._require_backend()
        return await self._provisioning.list_journal_repositories()

    def select_repository(self, name: str) -> None:
        """Use an existing repository from now on."""
        self._require_backend()
        self._provisioning.select_repository(name)

    @track(operation="repository_create", include_args=["custom_name"])
    async def create_repository(self, custom_name: Optional[str] = None) -> Optional[str]:
        """
        Create a journal repository and select it.

        Returns:
            The repository name, or None if it could not be created
        """
        self._require_backend()
        return await self._provisioning.create_repository(custom_name)

    @track(operation="repository_migrate", include_args=False)
    async def retry_remote_connection(self) -> bool:
        """
        Create a fresh, uniquely named repository and migrate every record
        held in the local cache into it.

        Returns:
            True if the repository was created and the migration completed
        """
        backend = self._require_backend()
        if not await self._provisioning.force_unique_repository():
            backend.downgrade("retry_failed")
            return False
        await backend.resolve_mode()

        entries = self._local_entries()
        items: List[MigrationItem] = [
            (
                _entry_path(entry.id),
                entry_codec.encode(entry),
                f"Migrate journal entry: {entry.title}",
            )
            for entry in entries
        ]
        items += self._folders.migration_items(lambda folder: folder.name)
        items += self._flows.migration_items(lambda flow: flow.title)
        items += self._chats.migration_items(lambda session: session.title)
        for path, key in ((PROFILE_PATH, PROFILE_KEY), (VECTOR_INDEX_PATH, VECTOR_INDEX_KEY)):
            raw = self.cache.get(key)
            if raw is not None:
                items.append((path, raw.encode("utf-8"), f"Migrate {path}"))

        migrated = 0
        try:
            for path, content, message in items:
                if await self._migrate_file(path, content, message):
                    migrated += 1
        except BackendUnreachable as e:
            backend.downgrade(e.message)
            log_event(
                "local_records_migration_failed",
                {"count": migrated, "error": e.message},
                level=logging.ERROR,
            )
            return False

        backend.clear_local_only()
        log_event(
            "local_records_migrated",
            {"count": migrated, "repository": backend.repo_name},
        )
        return True

    async def _migrate_file(self, path: str, content: bytes, message: str) -> bool:
        try:
            await self._require_backend().put_file(path, content, message)
            return True
        except ConcurrencyConflict:
            log_event(
                "migration_record_skipped",
                {"path": path, "reason": "exists"},
                level=logging.WARNING,
            )
            return False

    # Search

    @track(operation="semantic_search", include_args=["query", "k"])
    async def semantic_search_with_scores(self, query: str, k: int = 5) -> List[SearchHit]:
        """Entries most similar to ``query`` with their scores, best first."""
        ranked = await self._require_index().search(query, k)
        if not ranked:
            return []

        entries = {e.id: e for e in await self.get_all_entries()}
        hits = [
            SearchHit(entry=entries[r.entry_id], score=r.score)
            for r in ranked
            if r.entry_id in entries
        ]
        if len(hits) < len(ranked):
            log_event(
                "semantic_search_stale_ids",
                {"count": len(ranked) - len(hits)},
                level=logging.DEBUG,
            )
        return hits

    async def semantic_search(self, query: str, k: int = 5) -> List[Entry]:
        return [hit.entry for hit in await self.semantic_search_with_scores(query, k)]

    @track(operation="vector_index_rebuild_all", include_args=False)
    async def rebuild_vector_index(
        self, on_progress: Optional[ProgressCallback] = None
    ) -> RebuildSummary:
        """Index every entry that is not indexed yet."""
        index = self._require_index()
        entries = await self.get_all_entries()
        return await index.rebuild(entries, on_progress)
