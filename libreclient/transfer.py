"""
Time-boxed parallel throughput measurement.

``ThroughputPool`` runs P workers against one endpoint for D seconds.  The
direction is a pluggable ``Transfer``:

* ``DownloadTransfer`` streams ``GET garbage.php?ckSize=N`` and counts bytes
  as each bounded read arrives.
* ``UploadTransfer`` POSTs a fixed random payload and counts it once the
  server answers with a success status.

A deadline timer separate from the workers cancels the phase token once D
seconds have passed.  Workers are then cancelled and joined, and speed is
derived from the measured wall-clock span, which includes wind-down.
"""
from __future__ import annotations

import asyncio
import functools
import logging
import os
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional

import aiohttp

from .cancel import CancelToken
from .constants import (
    DEFAULT_CHUNK_MB,
    DEFAULT_CONNECTIONS,
    DEFAULT_DURATION,
    DEFAULT_UPLOAD_SIZE,
    DOWNLOAD_HEADERS,
    READ_SIZE,
    RETRY_DELAY,
    UPLOAD_HEADERS,
)
from .errors import TRANSIENT_ERRORS
from .progress import ProgressEvent, ProgressFeed
from .stats import StreamStats, calculate_speed_mbps

logger = logging.getLogger(__name__)

# (session, report_bytes, deadline_passed) -> one transfer
TransferOp = Callable[
    [aiohttp.ClientSession, Callable[[int], None], Callable[[], bool]],
    Awaitable[None],
]


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------

@dataclass
class TransferResult:
    """Outcome of one download or upload phase."""

    direction: str
    speed_mbps: float = 0.0
    bytes_total: int = 0
    duration_s: float = 0.0
    streams: List[StreamStats] = field(default_factory=list)
    cancelled: bool = False

    def calculate(self) -> None:
        """Derive speed from total bytes and wall-clock duration."""
        self.speed_mbps = calculate_speed_mbps(self.bytes_total, self.duration_s)

    def to_dict(self) -> dict:
        return {
            "direction": self.direction,
            "speed_mbps": round(self.speed_mbps, 2),
            "bytes_total": self.bytes_total,
            "duration_s": round(self.duration_s, 3),
            "streams": [s.to_dict() for s in self.streams],
            "cancelled": self.cancelled,
        }


# ---------------------------------------------------------------------------
# Shared counter
# ---------------------------------------------------------------------------

class ByteCounter:
    """Running byte total shared by every worker of one phase."""

    def __init__(self) -> None:
        self._value = 0

    @property
    def value(self) -> int:
        return self._value

    def add(self, count: int) -> int:
        # Workers share one event loop, so this read-modify-write never
        # interleaves with another worker's.
        self._value += count
        return self._value


# ---------------------------------------------------------------------------
# Directions
# ---------------------------------------------------------------------------

class Transfer:
    """One direction of traffic.  ``worker_op()`` is called once per worker."""

    direction = ""

    def __init__(self, url: str) -> None:
        self.url = url

    def worker_op(self) -> TransferOp:
        raise NotImplementedError


class DownloadTransfer(Transfer):
    """Streamed GET of server-generated garbage data."""

    direction = "download"

    def __init__(self, url: str, chunk_mb: int = DEFAULT_CHUNK_MB) -> None:
        super().__init__(url)
        self.chunk_mb = chunk_mb

    def worker_op(self) -> TransferOp:
        return self._download_once

    async def _download_once(
        self,
        session: aiohttp.ClientSession,
        report: Callable[[int], None],
        expired: Callable[[], bool],
    ) -> None:
        params = {"ckSize": str(self.chunk_mb)}
        async with session.get(self.url, params=params, headers=DOWNLOAD_HEADERS) as resp:
            resp.raise_for_status()
            async for chunk in resp.content.iter_chunked(READ_SIZE):
                report(len(chunk))
                if expired():
                    break


class UploadTransfer(Transfer):
    """POST of a fixed-size random payload, counted on success."""

    direction = "upload"

    def __init__(self, url: str, size: int = DEFAULT_UPLOAD_SIZE) -> None:
        super().__init__(url)
        self.size = size

    def worker_op(self) -> TransferOp:
        # One payload per worker, reused for every request it makes.
        payload = os.urandom(self.size)
        return functools.partial(self._upload_once, payload)

    async def _upload_once(
        self,
        payload: bytes,
        session: aiohttp.ClientSession,
        report: Callable[[int], None],
        expired: Callable[[], bool],
    ) -> None:
        async with session.post(self.url, data=payload, headers=UPLOAD_HEADERS) as resp:
            resp.raise_for_status()
            await resp.read()
        report(len(payload))


# ---------------------------------------------------------------------------
# Pool
# ---------------------------------------------------------------------------

class ThroughputPool:
    """
    Parallel, deadline-bounded transfer engine.

    Every worker loops over its transfer until the deadline passes or the
    phase token fires.  Transient errors are retried while time remains.
    Progress fractions are ``min(1, elapsed / duration)`` and only grow,
    since all workers publish from the same event loop.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        transfer: Transfer,
        duration: float = DEFAULT_DURATION,
        streams: int = DEFAULT_CONNECTIONS,
        feed: Optional[ProgressFeed] = None,
    ) -> None:
        if streams < 1:
            raise ValueError("Parallel stream count must be at least 1")
        if duration <= 0:
            raise ValueError("Phase duration must be positive")
        self.session = session
        self.transfer = transfer
        self.duration = duration
        self.streams = streams
        self.feed = feed

    async def run(self, token: Optional[CancelToken] = None) -> TransferResult:
        token = token or CancelToken()
        direction = self.transfer.direction
        result = TransferResult(direction=direction)
        counter = ByteCounter()
        stats = [StreamStats(id=i) for i in range(self.streams)]

        start = time.perf_counter()

        def elapsed() -> float:
            return time.perf_counter() - start

        def expired() -> bool:
            return elapsed() >= self.duration

        def report(stream: StreamStats, count: int) -> None:
            stream.bytes_transferred += count
            total = counter.add(count)
            if self.feed is not None:
                now = elapsed()
                self.feed.publish(
                    ProgressEvent(
                        phase=direction,
                        fraction=min(1.0, now / self.duration),
                        bytes_total=total,
                        elapsed=now,
                    )
                )

        # -- Worker ---------------------------------------------------------

        async def _worker(stream: StreamStats, phase: CancelToken) -> None:
            op = self.transfer.worker_op()
            on_bytes = functools.partial(report, stream)
            t0 = time.perf_counter()

            try:
                while not phase.cancelled and not expired():
                    stream.requests += 1
                    try:
                        await op(self.session, on_bytes, expired)
                    except TRANSIENT_ERRORS as exc:
                        stream.errors += 1
                        if expired():
                            break
                        logger.debug("%s stream %d retrying after: %s", direction, stream.id, exc)
                        await phase.sleep(RETRY_DELAY)
            except asyncio.CancelledError:
                pass
            finally:
                stream.duration_s = time.perf_counter() - t0
                stream.calculate()

        # -- Deadline timer -------------------------------------------------

        async def _deadline(phase: CancelToken) -> None:
            # Loop so the phase never ends before the nominal duration,
            # even if the event loop wakes us marginally early.
            while not expired():
                if await phase.sleep(self.duration - elapsed()):
                    return
            phase.cancel()

        # -- Orchestration --------------------------------------------------

        with token.linked() as phase:
            workers = [asyncio.create_task(_worker(s, phase)) for s in stats]
            timer = asyncio.create_task(_deadline(phase))

            def _stop_workers() -> None:
                for w in workers:
                    w.cancel()

            phase.add_callback(_stop_workers)

            try:
                await phase.wait()
            finally:
                phase.cancel()
                timer.cancel()
                outcomes = await asyncio.gather(*workers, timer, return_exceptions=True)

        result.duration_s = elapsed()
        result.bytes_total = counter.value
        result.streams = stats
        result.cancelled = token.cancelled
        result.calculate()

        for outcome in outcomes:
            if isinstance(outcome, Exception):
                raise outcome

        logger.info(
            "%s: %.2f Mbps (%d bytes in %.2f s over %d streams)",
            direction.capitalize(), result.speed_mbps, result.bytes_total,
            result.duration_s, self.streams,
        )
        return result
