"""
Structured exception hierarchy for the journal store.

Most of these conditions are handled inside the store and turned into plain
return values; the classes still exist so that every condition has one name
in logs and in HTTP error bodies. Only ``IdentityUnverified``,
``LocalStorageExhausted`` and ``CycleDetected`` ever reach store callers.
"""

from typing import Any, Dict, Optional


class JournalStoreError(Exception):
    """
    Base exception for all journal store errors.

    Attributes:
        message: Human-readable error message
        error_type: Categorization of the error
        recoverable: Whether retrying can succeed
        metadata: Additional context about the error
    """

    error_type = "journal_store_error"
    recoverable = False

    def __init__(self, message: str, metadata: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.metadata = metadata or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for serialization."""
        return {
            "success": False,
            "error": self.message,
            "error_type": self.error_type,
            "recoverable": self.recoverable,
            "metadata": self.metadata,
        }


class IdentityUnverified(JournalStoreError):
    """An operation ran before the store was given an identity."""

    error_type = "identity_unverified"


class BackendUnreachable(JournalStoreError):
    """Network or transport failure talking to the remote backend."""

    error_type = "backend_unreachable"
    recoverable = True


class NotFoundError(JournalStoreError):
    """A file, repository or record does not exist."""

    error_type = "not_found"


class NameConflict(JournalStoreError):
    """A repository with the requested name already exists."""

    error_type = "name_conflict"
    recoverable = True


class ConcurrencyConflict(JournalStoreError):
    """A write or delete used a stale version token."""

    error_type = "concurrency_conflict"


class FormatError(JournalStoreError):
    """A stored payload could not be parsed."""

    error_type = "format_error"

    def __init__(
        self,
        message: str,
        record_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, metadata)
        self.record_id = record_id
        if record_id is not None:
            self.metadata.setdefault("record_id", record_id)


class EmbeddingUnavailable(JournalStoreError):
    """No API key, or the embedding provider failed."""

    error_type = "embedding_unavailable"
    recoverable = True


class LocalStorageExhausted(JournalStoreError):
    """
    A write to the local cache failed.

    There is no further fallback, so this is surfaced to the user.
    """

    error_type = "local_storage_exhausted"

    USER_MESSAGE = (
        "Failed to save journal data. Local storage might be full or unavailable."
    )

    def get_user_message(self) -> str:
        return self.USER_MESSAGE


class CycleDetected(JournalStoreError):
    """A folder's parent chain revisits a folder."""

    error_type = "cycle_detected"

    def __init__(self, folder_id: str, revisited_id: str):
        super().__init__(
            f"Folder parent chain starting at {folder_id!r} revisits {revisited_id!r}",
            {"folder_id": folder_id, "revisited_id": revisited_id},
        )
        self.folder_id = folder_id
        self.revisited_id = revisited_id
