"""
LibreSpeed test client.

``LibreSpeedClient`` owns the single ``aiohttp.ClientSession`` that every
probe and transfer shares, and sequences a full run::

    async with LibreSpeedClient(MeasurementConfig(streams=4)) as client:
        server = await client.get_best_public_server()
        result = await client.run(server)

Phases never overlap, so ping traffic cannot skew the throughput figures.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence

import aiohttp

from .api import ServerListAPI
from .cancel import CancelToken
from .config import MeasurementConfig
from .constants import (
    COMMON_HEADERS,
    CONNECT_TIMEOUT,
    DEFAULT_MAX_SERVERS,
    MAX_CONNECTIONS,
    PING_TIMEOUT,
    SERVER_LIST_URL,
    SOCK_READ_TIMEOUT,
)
from .errors import TRANSIENT_ERRORS
from .latency import PingResult, PingSampler
from .progress import ProgressFeed, fraction_callback
from .result import SpeedTestResult
from .selection import ServerSelector
from .server import Server
from .transfer import DownloadTransfer, ThroughputPool, TransferResult, UploadTransfer

logger = logging.getLogger(__name__)


class LibreSpeedClient:
    """Async context manager running LibreSpeed measurements."""

    def __init__(
        self,
        config: Optional[MeasurementConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.config = config or MeasurementConfig()
        self.progress = ProgressFeed()
        self._session = session
        self._owns_session = session is None

        if self.config.on_download_progress:
            self.progress.subscribe(fraction_callback(self.config.on_download_progress, "download"))
        if self.config.on_upload_progress:
            self.progress.subscribe(fraction_callback(self.config.on_upload_progress, "upload"))

    # -- Context manager ----------------------------------------------------

    async def __aenter__(self) -> LibreSpeedClient:
        if self._session is None:
            connector = aiohttp.TCPConnector(limit=MAX_CONNECTIONS, enable_cleanup_closed=True)
            timeout = aiohttp.ClientTimeout(
                total=None, connect=CONNECT_TIMEOUT, sock_read=SOCK_READ_TIMEOUT
            )
            self._session = aiohttp.ClientSession(
                headers=COMMON_HEADERS,
                connector=connector,
                timeout=timeout,
            )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        self.progress.close()
        if self._owns_session and self._session:
            await self._session.close()
            self._session = None

    # -- Internal helpers ---------------------------------------------------

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            raise RuntimeError(
                "LibreSpeedClient must be used as an async context manager "
                "(async with LibreSpeedClient() as client: ...)"
            )
        return self._session

    def _sampler(self) -> PingSampler:
        return PingSampler(self._ensure_session(), ping_count=self.config.ping_count)

    # -- Phases -------------------------------------------------------------

    async def test_ping(self, server: Server, token: Optional[CancelToken] = None) -> PingResult:
        """Measure latency and jitter to *server* (written back onto it)."""
        return await self._sampler().sample(server, token)

    async def test_download(
        self, server: Server, token: Optional[CancelToken] = None
    ) -> TransferResult:
        transfer = DownloadTransfer(server.download_endpoint, self.config.download_chunk_mb)
        pool = ThroughputPool(
            self._ensure_session(),
            transfer,
            duration=self.config.download_duration,
            streams=self.config.streams,
            feed=self.progress,
        )
        return await pool.run(token)

    async def test_upload(
        self, server: Server, token: Optional[CancelToken] = None
    ) -> TransferResult:
        transfer = UploadTransfer(server.upload_endpoint, self.config.upload_size)
        pool = ThroughputPool(
            self._ensure_session(),
            transfer,
            duration=self.config.upload_duration,
            streams=self.config.streams,
            feed=self.progress,
        )
        return await pool.run(token)

    async def get_client_ip(
        self, server: Server, token: Optional[CancelToken] = None
    ) -> str:
        """Return the public IP address *server* sees for this client."""
        session = self._ensure_session()
        token = token or CancelToken()

        async def _fetch() -> str:
            timeout = aiohttp.ClientTimeout(total=PING_TIMEOUT)
            async with session.get(server.get_ip_endpoint, timeout=timeout) as resp:
                resp.raise_for_status()
                return (await resp.text()).strip()

        return await token.guard(_fetch())

    # -- Full run -----------------------------------------------------------

    async def run(self, server: Server, token: Optional[CancelToken] = None) -> SpeedTestResult:
        """Ping, download, upload, then look up the client IP."""
        token = token or CancelToken()
        started = datetime.now(timezone.utc)

        ping = await self.test_ping(server, token)

        download = await self.test_download(server, token)
        token.raise_if_cancelled()

        upload = await self.test_upload(server, token)
        token.raise_if_cancelled()

        client_ip: Optional[str] = None
        try:
            client_ip = await self.get_client_ip(server, token) or None
        except TRANSIENT_ERRORS + (ValueError,) as exc:
            # Optional step: an undecodable body is as good as no answer.
            logger.warning("Client IP lookup failed: %s", exc)

        return SpeedTestResult(
            server=server,
            latency_ms=ping.latency_ms,
            jitter_ms=ping.jitter_ms,
            download_mbps=download.speed_mbps,
            upload_mbps=upload.speed_mbps,
            bytes_downloaded=download.bytes_total,
            bytes_uploaded=upload.bytes_total,
            client_ip=client_ip,
            timestamp=started,
            ping=ping,
            download=download,
            upload=upload,
        )

    # -- Server selection ---------------------------------------------------

    async def get_best_server(
        self,
        servers: Sequence[Server],
        max_servers: Optional[int] = None,
        token: Optional[CancelToken] = None,
    ) -> Server:
        """Return the lowest-latency server among *servers*."""
        return await ServerSelector(self._sampler()).select(servers, max_servers, token)

    async def fetch_servers(self, url: str = SERVER_LIST_URL) -> List[Server]:
        async with ServerListAPI(self._ensure_session()) as api:
            return await api.fetch_servers(url)

    async def get_best_public_server(
        self,
        max_servers: int = DEFAULT_MAX_SERVERS,
        url: str = SERVER_LIST_URL,
        token: Optional[CancelToken] = None,
    ) -> Server:
        """Fetch the public server list and pick the fastest of the first few."""
        servers = await self.fetch_servers(url)
        return await self.get_best_server(servers, max_servers, token)

    async def run_with_best_server(
        self,
        max_servers: int = DEFAULT_MAX_SERVERS,
        url: str = SERVER_LIST_URL,
        token: Optional[CancelToken] = None,
    ) -> SpeedTestResult:
        server = await self.get_best_public_server(max_servers, url, token)
        return await self.run(server, token)
