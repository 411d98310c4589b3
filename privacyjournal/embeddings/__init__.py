"""
Text embedding providers used by the vector index.
"""

from .base import EmbeddingProvider
from .openai_embeddings import OpenAIEmbeddingProvider

__all__ = ["EmbeddingProvider", "OpenAIEmbeddingProvider"]
