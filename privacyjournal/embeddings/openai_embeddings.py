"""
OpenAI-compatible embeddings provider.

Calls ``POST {base_url}/embeddings`` over a pooled aiohttp session. Any
failure, including a missing API key, yields ``None`` so indexing and search
degrade instead of failing.
"""

import asyncio
import logging
from typing import Dict, List, Optional

import aiohttp

from ..utils.http_session import HTTPSessionMixin
from ..utils.logging import log_event, track

logger = logging.getLogger(__name__)

DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"


class OpenAIEmbeddingProvider(HTTPSessionMixin):
    """Embeds text with an OpenAI embeddings model."""

    def __init__(
        self,
        api_key: Optional[str],
        model: str = DEFAULT_EMBEDDING_MODEL,
        base_url: str = "https://api.openai.com/v1",
        timeout_seconds: int = 30,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        super().__init__(session)
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds

    @property
    def identifier(self) -> str:
        return f"openai:{self.model}"

    def _build_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _open_default_session(self) -> None:
        self._initialize_session(
            timeout_seconds=self.timeout_seconds,
            headers=self._build_headers(),
        )

    async def cleanup(self) -> None:
        await self._cleanup_session()

    @track(
        operation="openai_embed",
        include_args=False,
        frequency="medium_frequency",
        emit_events=False,
    )
    async def embed(self, text: str) -> Optional[List[float]]:
        if not self.api_key:
            log_event(
                "embedding_unavailable",
                {"reason": "missing_api_key"},
                level=logging.DEBUG,
            )
            return None

        session = self._ensure_session()
        try:
            async with session.post(
                f"{self.base_url}/embeddings",
                json={"model": self.model, "input": text},
            ) as response:
                if response.status != 200:
                    error_text = await response.text()
                    log_event(
                        "embedding_request_failed",
                        {
                            "status": response.status,
                            "error": error_text[:300],
                            "model": self.model,
                        },
                        level=logging.WARNING,
                    )
                    return None
                data = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            log_event(
                "embedding_connection_error",
                {"error": str(e) or type(e).__name__, "base_url": self.base_url},
                level=logging.WARNING,
            )
            return None

        try:
            vector = data["data"][0]["embedding"]
        except (KeyError, IndexError, TypeError):
            log_event(
                "embedding_response_malformed",
                {"model": self.model},
                level=logging.WARNING,
            )
            return None
        return [float(x) for x in vector]
