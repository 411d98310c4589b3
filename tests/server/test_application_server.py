import pytest

from privacyjournal.config import Settings
from privacyjournal.server.application_server import JournalServer
from privacyjournal.storage import InMemoryLocalCache
from privacyjournal.storage.exceptions import IdentityUnverified


class TestJournalServer:
    @pytest.mark.asyncio
    async def test_initialize_with_configured_username(self):
        server = JournalServer(
            settings=Settings(cache_backend="memory", github_username="bob.smith")
        )

        await server.initialize()
        try:
            store = server.get_store()
            assert store.current_repository == "privacy-journal-entries-bob-smith"
            assert isinstance(store.cache, InMemoryLocalCache)
            assert store.embedder.identifier == "openai:text-embedding-3-small"
        finally:
            await server.cleanup()

    @pytest.mark.asyncio
    async def test_without_identity_store_is_unavailable(self):
        server = JournalServer(
            settings=Settings(cache_backend="memory", github_username=None, github_token=None)
        )

        await server.initialize()
        try:
            with pytest.raises(IdentityUnverified):
                server.get_store()
        finally:
            await server.cleanup()

    @pytest.mark.asyncio
    async def test_prebuilt_store_is_kept(self, store):
        server = JournalServer(settings=Settings(cache_backend="memory"), store=store)

        await server.initialize()

        assert server.get_store() is store
        assert server.client is None
