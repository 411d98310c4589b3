from contextlib import asynccontextmanager
from unittest.mock import patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from privacyjournal.config import Settings
from privacyjournal.server.application_server import JournalServer
from privacyjournal.storage import InMemoryLocalCache, JournalStore
from tests.mocks import FakeGitHubClient, ManualClock, ScriptedEmbeddingProvider


def _create_test_client(journal_server: JournalServer) -> TestClient:
    from privacyjournal.server.api import dependencies
    from privacyjournal.server.main import create_app

    dependencies.set_server_instance(journal_server)

    @asynccontextmanager
    async def mock_lifespan(app: FastAPI):
        yield

    with patch("privacyjournal.server.main.server", journal_server):
        with patch("privacyjournal.server.main.lifespan", mock_lifespan):
            app = create_app()
            return TestClient(app)


@pytest.fixture
def github() -> FakeGitHubClient:
    return FakeGitHubClient(login="alice")


@pytest.fixture
def embedder() -> ScriptedEmbeddingProvider:
    return ScriptedEmbeddingProvider()


@pytest.fixture
def cache() -> InMemoryLocalCache:
    return InMemoryLocalCache()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def store(github, cache, embedder, clock) -> JournalStore:
    journal_store = JournalStore(github, cache, embedder, clock=clock)
    journal_store.initialize("alice")
    return journal_store


@pytest.fixture
def settings() -> Settings:
    return Settings(cache_backend="memory", search_default_limit=5)


@pytest.fixture
def journal_server(settings, store) -> JournalServer:
    return JournalServer(settings=settings, store=store)


@pytest.fixture
def client(journal_server) -> TestClient:
    return _create_test_client(journal_server)


@pytest.fixture
def uninitialized_client(settings) -> TestClient:
    return _create_test_client(JournalServer(settings=settings, store=None))
