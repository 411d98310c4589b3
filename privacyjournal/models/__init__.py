"""
Pydantic models for the private journal store.
"""

from .core import (
    BackendMode,
    BackendStatus,
    ChatMessage,
    ChatSession,
    Entry,
    Flow,
    FlowStep,
    Folder,
    RankedId,
    RebuildSummary,
    Repository,
    SearchHit,
    UserProfile,
    utc_now_iso,
)

__all__ = [
    "BackendMode",
    "BackendStatus",
    "ChatMessage",
    "ChatSession",
    "Entry",
    "Flow",
    "FlowStep",
    "Folder",
    "RankedId",
    "RebuildSummary",
    "Repository",
    "SearchHit",
    "UserProfile",
    "utc_now_iso",
]
