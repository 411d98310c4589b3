from typing import Dict, List, Optional, Set

KEYWORDS = ("cat", "dog", "sea", "work")


class ScriptedEmbeddingProvider:
    """
    Deterministic embeddings for tests.

    Texts in ``vectors`` get that vector; anything else gets keyword counts
    plus a constant component. Texts containing a ``fail_markers`` string,
    or every text while ``unavailable`` is set, yield None.
    """

    def __init__(
        self,
        vectors: Optional[Dict[str, List[float]]] = None,
        identifier: str = "test:keywords",
    ):
        self.vectors = dict(vectors or {})
        self.identifier = identifier
        self.fail_markers: Set[str] = set()
        self.unavailable = False
        self.calls: List[str] = []

    async def embed(self, text: str) -> Optional[List[float]]:
        self.calls.append(text)
        if self.unavailable:
            return None
        if any(marker in text for marker in self.fail_markers):
            return None
        if text in self.vectors:
            return list(self.vectors[text])
        lowered = text.lower()
        return [float(lowered.count(word)) for word in KEYWORDS] + [1.0]
