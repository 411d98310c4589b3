"""
Embedding provider interface.
"""

from typing import List, Optional, Protocol


class EmbeddingProvider(Protocol):
    """
    Text to vector service.

    ``identifier`` names the embedding space (provider and model); vectors
    from different identifiers are never compared.
    """

    identifier: str

    async def embed(self, text: str) -> Optional[List[float]]:
        """Return the embedding, or None when it cannot be obtained."""
        ...
