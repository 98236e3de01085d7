"""
LibreSpeed server-list client.

Fetches the public backend list (a JSON array) and turns it into
``Server`` records.  Used as an async context manager
(``async with ServerListAPI() as api: ...``); pass an existing
``aiohttp.ClientSession`` to share its connection pool instead of opening
a new one.
"""
from __future__ import annotations

import logging
from typing import List, Optional

import aiohttp

from .constants import COMMON_HEADERS, SERVER_LIST_URL
from .errors import TRANSIENT_ERRORS, ServerListError
from .server import Server

logger = logging.getLogger(__name__)


class ServerListAPI:
    """Async context-manager wrapping the LibreSpeed server-list endpoint."""

    def __init__(self, session: Optional[aiohttp.ClientSession] = None) -> None:
        self._session = session
        self._owns_session = session is None
        self.servers: List[Server] = []

    # -- Context manager ----------------------------------------------------

    async def __aenter__(self) -> ServerListAPI:
        if self._session is None:
            self._session = aiohttp.ClientSession(headers=COMMON_HEADERS)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._owns_session and self._session:
            await self._session.close()
            self._session = None

    # -- Internal helpers ---------------------------------------------------

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            raise RuntimeError(
                "ServerListAPI must be used as an async context manager "
                "(async with ServerListAPI() as api: ...)"
            )
        return self._session

    # -- Public methods -----------------------------------------------------

    async def fetch_servers(
        self,
        url: str = SERVER_LIST_URL,
        limit: Optional[int] = None,
    ) -> List[Server]:
        """Return the servers listed at *url*, optionally capped at *limit*."""
        session = self._ensure_session()

        try:
            async with session.get(url) as resp:
                resp.raise_for_status()
                # Some mirrors serve the list as text/plain.
                data = await resp.json(content_type=None)
        except TRANSIENT_ERRORS as exc:
            raise ServerListError(f"Could not fetch server list from {url}: {exc}") from exc
        except ValueError as exc:
            raise ServerListError(f"Server list at {url} is not valid JSON") from exc

        if not isinstance(data, list):
            raise ServerListError(f"Server list at {url} is not a JSON array")

        servers: List[Server] = []
        for entry in data:
            if not isinstance(entry, dict):
                continue
            try:
                servers.append(Server.from_dict(entry))
            except (ValueError, TypeError, AttributeError) as exc:
                logger.debug("Skipping malformed server entry %r: %s", entry, exc)
        if limit is not None:
            servers = servers[:limit]

        logger.info("Fetched %d servers from %s", len(servers), url)
        self.servers = servers
        return servers
