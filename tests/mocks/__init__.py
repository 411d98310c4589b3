from tests.mocks.clock import ManualClock
from tests.mocks.embeddings import ScriptedEmbeddingProvider
from tests.mocks.github import FakeGitHubClient
from tests.mocks.http import FakeResponse, FakeSession
from tests.mocks.redis_client import FakeRedis

__all__ = [
    "FakeGitHubClient",
    "FakeRedis",
    "FakeResponse",
    "FakeSession",
    "ManualClock",
    "ScriptedEmbeddingProvider",
]
