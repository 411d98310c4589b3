"""
Core data models for the private journal store.

Records serialize with camelCase keys (``createdAt``, ``folderId``) so the
JSON written to the backing repository and the local cache matches the
stored file format.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Literal, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 with millisecond precision and a Z suffix."""
    return (
        datetime.now(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


class BackendMode(str, Enum):
    """Which backend serves store operations right now."""

    UNCHECKED = "unchecked"
    REMOTE = "remote"
    LOCAL_ONLY = "local_only"


class JournalRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_json_dict(self) -> Dict:
        """Serialize with camelCase keys, omitting unset optional fields."""
        return self.model_dump(by_alias=True, exclude_none=True)


class Entry(JournalRecord):
    """A single journal note."""

    id: str = Field(description="Timestamp-derived entry ID, immutable")
    title: str = Field(description="Entry title")
    content: str = Field(description="Body text, stored verbatim")
    created_at: str = Field(alias="createdAt", description="ISO-8601 creation time")
    updated_at: str = Field(alias="updatedAt", description="ISO-8601 update time")
    folder_id: Optional[str] = Field(
        default=None, alias="folderId", description="Weak reference to a folder"
    )


class Folder(JournalRecord):
    """A named, optionally nested grouping of entries."""

    id: str = Field(description="Generated folder ID")
    name: str = Field(description="Display name")
    description: Optional[str] = Field(default=None)
    color: Optional[str] = Field(default=None, description="Opaque display hint")
    parent_id: Optional[str] = Field(
        default=None, alias="parentId", description="Weak reference to the parent"
    )
    created_at: str = Field(alias="createdAt")
    updated_at: str = Field(alias="updatedAt")


class UserProfile(JournalRecord):
    """Free-form profile metadata stored alongside the journal."""

    name: Optional[str] = None
    bio: Optional[str] = None
    additional_info: Optional[str] = Field(default=None, alias="additionalInfo")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")


class Repository(JournalRecord):
    """What the remote reports about a repository."""

    name: str
    full_name: str = Field(alias="fullName")
    owner: str
    private: bool = True
    description: Optional[str] = None
    html_url: Optional[str] = Field(default=None, alias="htmlUrl")


FlowStepType = Literal["boolean", "range", "number", "text", "journal"]
ChatRole = Literal["user", "assistant", "system"]


class FlowStep(JournalRecord):
    """One question of a guided flow."""

    id: str
    prompt: str = ""
    type: FlowStepType = "text"
    description: Optional[str] = None
    min: Optional[float] = None
    max: Optional[float] = None
    step: Optional[float] = None


class Flow(JournalRecord):
    """A reusable sequence of prompts whose answers become an entry."""

    id: str
    title: str
    description: Optional[str] = None
    steps: List[FlowStep] = Field(default_factory=list)
    created_at: str = Field(alias="createdAt")
    updated_at: str = Field(alias="updatedAt")


class ChatMessage(JournalRecord):
    role: ChatRole
    content: str
    timestamp: str


class ChatSession(JournalRecord):
    """A saved conversation with the journal assistant."""

    id: str
    title: str
    messages: List[ChatMessage] = Field(default_factory=list)
    created_at: str = Field(alias="createdAt")
    updated_at: str = Field(alias="updatedAt")


class RankedId(NamedTuple):
    """An indexed entry id with its similarity to a query."""

    entry_id: str
    score: float


class RebuildSummary(BaseModel):
    """Outcome of a vector index rebuild."""

    processed: int = Field(description="Entries visited, including skipped ones")
    errors: int = Field(description="Entries whose embedding could not be obtained")


class SearchHit(BaseModel):
    """A semantic search result resolved to its entry."""

    entry: Entry
    score: float


class BackendStatus(BaseModel):
    """Observable backend state of a store."""

    mode: BackendMode
    repository: Optional[str]
    owner: Optional[str]
    provisioning_state: str
    provisioning_history: List[str] = Field(default_factory=list)
