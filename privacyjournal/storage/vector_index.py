"""
Persisted entry-id -> embedding map with exhaustive cosine ranking.

The whole map is stored as one JSON blob through the storage backend:

    {"version": 1, "model": "openai:text-embedding-3-small",
     "vectors": {"<entry id>": [0.12, -0.03, ...]}}

A blob written under a different embedding model is treated as empty. A bare
``{id: vector}`` mapping from older data is accepted as untagged.

Concurrent index-wide saves can lose an update, so ``rebuild`` should be run
as an exclusive, user-initiated action.
"""

import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Union

import numpy as np

from ..embeddings.base import EmbeddingProvider
from ..models import Entry, RankedId, RebuildSummary
from ..utils.logging import log_event, track
from .backend import StorageBackend
from .local_cache import VECTOR_INDEX_KEY

logger = logging.getLogger(__name__)

VECTOR_INDEX_PATH = "vector-index.json"
INDEX_FORMAT_VERSION = 1

ProgressCallback = Callable[[int, int], Union[None, Awaitable[None]]]


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine of the angle between two equal-length vectors.

    Returns 0.0 when either vector has zero magnitude. The result is clamped
    to [-1, 1] to absorb floating point error.

    Raises:
        ValueError: The vectors differ in length
    """
    if len(a) != len(b):
        raise ValueError(f"Vector lengths differ: {len(a)} != {len(b)}")

    vec_a = np.asarray(a, dtype=np.float64)
    vec_b = np.asarray(b, dtype=np.float64)
    norm_a = np.linalg.norm(vec_a)
    norm_b = np.linalg.norm(vec_b)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    similarity = np.dot(vec_a, vec_b) / (norm_a * norm_b)
    return float(np.clip(similarity, -1.0, 1.0))


def entry_embedding_text(title: str, content: str) -> str:
    """Text embedded for an entry."""
    return f"{title}\n\n{content}"


def _is_vector(value: Any) -> bool:
    return isinstance(value, list) and all(
        isinstance(x, (int, float)) and not isinstance(x, bool) for x in value
    )


class VectorIndex:
    """Embedding index for semantic search over journal entries."""

    def __init__(self, backend: StorageBackend, embedder: EmbeddingProvider):
        self.backend = backend
        self.embedder = embedder

    async def _load(self) -> Dict[str, List[float]]:
        blob = await self.backend.read_blob(VECTOR_INDEX_PATH, VECTOR_INDEX_KEY)
        if not isinstance(blob, dict):
            return {}

        if "vectors" in blob and "version" in blob:
            model = blob.get("model")
            if model != self.embedder.identifier:
                log_event(
                    "vector_index_model_mismatch",
                    {"stored_model": model, "model": self.embedder.identifier},
                    level=logging.WARNING,
                )
                return {}
            raw = blob.get("vectors")
            if raw is None:
                raw = {}
        else:
            raw = blob

        if not isinstance(raw, dict):
            log_event(
                "vector_index_malformed",
                {"error": f"vectors is a {type(raw).__name__}, expected an object"},
                level=logging.WARNING,
            )
            return {}

        vectors: Dict[str, List[float]] = {}
        for entry_id, vector in raw.items():
            if _is_vector(vector):
                vectors[entry_id] = [float(x) for x in vector]
        if len(vectors) < len(raw):
            log_event(
                "vector_index_entries_skipped",
                {"count": len(raw) - len(vectors)},
                level=logging.WARNING,
            )
        return vectors

    async def _save(self, vectors: Dict[str, List[float]]) -> bool:
        envelope = {
            "version": INDEX_FORMAT_VERSION,
            "model": self.embedder.identifier,
            "vectors": vectors,
        }
        saved = await self.backend.write_blob(
            VECTOR_INDEX_PATH, VECTOR_INDEX_KEY, envelope, "Update vector index"
        )
        log_event(
            "vector_index_saved",
            {"count": len(vectors), "backend": self.backend.mode.value},
            level=logging.DEBUG,
        )
        return saved

    @track(operation="vector_index_upsert", include_args=["entry_id"], emit_events=False)
    async def upsert(self, entry_id: str, text: str) -> None:
        """Embed ``text`` and store it under ``entry_id``; no-op if unavailable."""
        vector = await self.embedder.embed(text)
        if vector is None:
            log_event(
                "vector_index_upsert_skipped",
                {"entry_id": entry_id, "reason": "embedding_unavailable"},
                level=logging.DEBUG,
            )
            return

        vectors = await self._load()
        vectors[entry_id] = list(vector)
        await self._save(vectors)

    @track(operation="vector_index_remove", include_args=["entry_id"], emit_events=False)
    async def remove(self, entry_id: str) -> None:
        vectors = await self._load()
        if entry_id not in vectors:
            return
        del vectors[entry_id]
        await self._save(vectors)

    @track(
        operation="vector_index_search",
        include_args=["k"],
        frequency="high_frequency",
    )
    async def search(self, query: str, k: int) -> List[RankedId]:
        """
        Rank indexed ids by similarity to ``query``.

        Returns:
            At most ``k`` results by non-increasing score; ties keep index
            order. Empty when the query cannot be embedded.
        """
        if k <= 0:
            return []

        query_vector = await self.embedder.embed(query)
        if query_vector is None:
            log_event(
                "semantic_search_unavailable",
                {"reason": "embedding_unavailable"},
                level=logging.WARNING,
            )
            return []

        vectors = await self._load()
        scored: List[RankedId] = []
        skipped = 0
        for entry_id, vector in vectors.items():
            if len(vector) != len(query_vector):
                skipped += 1
                continue
            scored.append(RankedId(entry_id, cosine_similarity(query_vector, vector)))

        if skipped:
            log_event(
                "vector_dimension_mismatch",
                {"count": skipped, "expected": len(query_vector)},
                level=logging.WARNING,
            )

        # sort() is stable, so equal scores keep insertion order
        scored.sort(key=lambda ranked: ranked.score, reverse=True)
        return scored[:k]

    @track(operation="vector_index_rebuild", include_args=False)
    async def rebuild(
        self,
        entries: Iterable[Entry],
        on_progress: Optional[ProgressCallback] = None,
    ) -> RebuildSummary:
        """
        Embed every entry not yet in the index.

        Entries are processed sequentially. A failed embedding is counted in
        ``errors`` and the run continues. Progress is reported after every
        entry as ``(processed_so_far, total)``; the callback may be sync or
        async. The index is persisted once, at the end, and only if
        something was added.
        """
        entries = list(entries)
        total = len(entries)
        vectors = await self._load()

        processed = 0
        errors = 0
        added = 0
        for entry in entries:
            if entry.id not in vectors:
                vector = await self.embedder.embed(
                    entry_embedding_text(entry.title, entry.content)
                )
                if vector is None:
                    errors += 1
                    log_event(
                        "vector_index_entry_failed",
                        {"entry_id": entry.id, "reason": "embedding_unavailable"},
                        level=logging.WARNING,
                    )
                else:
                    vectors[entry.id] = list(vector)
                    added += 1

            processed += 1
            if on_progress is not None:
                outcome = on_progress(processed, total)
                if inspect.isawaitable(outcome):
                    await outcome

        if added:
            await self._save(vectors)

        log_event(
            "vector_index_rebuilt",
            {"processed": processed, "errors": errors, "count": added},
        )
        return RebuildSummary(processed=processed, errors=errors)
