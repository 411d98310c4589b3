"""
Shared aiohttp session management for HTTP clients.
"""

import asyncio
from typing import Dict, Optional

import aiohttp


class HTTPSessionMixin:
    """
    Mixin giving a client one pooled ``aiohttp.ClientSession``.

    A session passed in by the caller is used as-is and never closed here;
    otherwise one is created on first use and closed by ``_cleanup_session``.
    """

    def __init__(self, session: Optional[aiohttp.ClientSession] = None):
        self._session: Optional[aiohttp.ClientSession] = session
        self._owns_session = session is None

    def _create_timeout(
        self, total: int, connect: int = 10, sock_read: int = 30
    ) -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(
            total=total,
            connect=min(connect, total),
            sock_read=min(sock_read, total),
        )

    def _initialize_session(
        self,
        timeout_seconds: int,
        max_connections: int = 20,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        """
        Initialize HTTP session with connection pooling.

        Args:
            timeout_seconds: Total request timeout
            max_connections: Maximum total connections
            headers: Optional default headers
        """
        if self._session is not None and not self._session.closed:
            return

        connector = aiohttp.TCPConnector(
            limit=max_connections,
            ttl_dns_cache=300,
            enable_cleanup_closed=True,
        )
        self._session = aiohttp.ClientSession(
            timeout=self._create_timeout(timeout_seconds),
            connector=connector,
            connector_owner=True,
            headers=headers,
        )
        self._owns_session = True

    async def _cleanup_session(self) -> None:
        """Close the session if this client created it."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
            # Give connections time to close gracefully
            await asyncio.sleep(0.25)
            self._session = None

    def _ensure_session(self) -> aiohttp.ClientSession:
        """Return the active session, creating it on first use."""
        if self._session is None or self._session.closed:
            self._open_default_session()
        return self._session

    def _open_default_session(self) -> None:
        raise NotImplementedError
