"""
Journal storage: remote repository, local cache fallback and vector index.
"""

from .document_store import UNCHANGED, JournalStore
from .exceptions import (
    BackendUnreachable,
    ConcurrencyConflict,
    CycleDetected,
    EmbeddingUnavailable,
    FormatError,
    IdentityUnverified,
    JournalStoreError,
    LocalStorageExhausted,
    NameConflict,
    NotFoundError,
)
from .local_cache import FileLocalCache, InMemoryLocalCache, RedisLocalCache, create_local_cache
from .vector_index import VectorIndex, cosine_similarity

__all__ = [
    "UNCHANGED",
    "JournalStore",
    "VectorIndex",
    "cosine_similarity",
    "FileLocalCache",
    "InMemoryLocalCache",
    "RedisLocalCache",
    "create_local_cache",
    "BackendUnreachable",
    "ConcurrencyConflict",
    "CycleDetected",
    "EmbeddingUnavailable",
    "FormatError",
    "IdentityUnverified",
    "JournalStoreError",
    "LocalStorageExhausted",
    "NameConflict",
    "NotFoundError",
]
