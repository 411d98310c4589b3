"""
Application server owning the journal store and its collaborators.
"""

import logging
from typing import Optional

from ..config import Settings, get_settings
from ..embeddings import OpenAIEmbeddingProvider
from ..storage import JournalStore, create_local_cache
from ..storage.exceptions import IdentityUnverified
from ..storage.remote import GitHubRepositoryClient
from ..utils.logging import log_event


class JournalServer:
    """
    Builds the journal store from settings and manages its lifecycle.

    A prebuilt store can be passed in, in which case ``initialize`` and
    ``cleanup`` leave it alone.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        store: Optional[JournalStore] = None,
    ):
        self.settings = settings or get_settings()
        self.store: Optional[JournalStore] = store
        self.client: Optional[GitHubRepositoryClient] = None
        self.embedder: Optional[OpenAIEmbeddingProvider] = None

    async def initialize(self) -> None:
        if self.store is not None:
            return

        settings = self.settings
        self.client = GitHubRepositoryClient(
            token=settings.github_token,
            api_url=settings.github_api_url,
            timeout_seconds=settings.request_timeout_seconds,
        )
        await self.client.initialize()

        self.embedder = OpenAIEmbeddingProvider(
            api_key=settings.openai_api_key,
            model=settings.embedding_model,
            base_url=settings.openai_base_url,
            timeout_seconds=settings.request_timeout_seconds,
        )
        cache = create_local_cache(
            settings.cache_backend,
            cache_path=settings.cache_path,
            quota_bytes=settings.cache_quota_bytes,
            redis_url=settings.redis_url,
        )
        self.store = JournalStore(
            self.client,
            cache,
            self.embedder,
            repo_prefix=settings.repo_prefix,
            retry_prefix=settings.retry_repo_prefix,
        )

        identity = await self._resolve_identity()
        if identity:
            self.store.initialize(identity)
        else:
            log_event(
                "journal_identity_missing",
                {"reason": "no username configured and token login failed"},
                level=logging.WARNING,
            )

        log_event(
            "journal_server_initialized",
            {
                "backend": settings.cache_backend,
                "repository": self.store.current_repository,
            },
        )

    async def _resolve_identity(self) -> Optional[str]:
        if self.settings.github_username:
            return self.settings.github_username
        if not self.settings.github_token:
            return None
        result = await self.client.get_authenticated_login()
        return result.unwrap_or(None)

    async def cleanup(self) -> None:
        if self.client is not None:
            await self.client.cleanup()
        if self.embedder is not None:
            await self.embedder.cleanup()
        log_event("journal_server_stopped", level=logging.DEBUG)

    def get_store(self) -> JournalStore:
        """
        Raises:
            IdentityUnverified: The store has no identity yet
        """
        if self.store is None or not self.store.is_initialized:
            raise IdentityUnverified("No journal identity has been configured")
        return self.store
