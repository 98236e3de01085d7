"""
HTTP latency measurement against a LibreSpeed ping endpoint.

Each probe is a GET whose round-trip time runs from issuing the request to
receiving the response headers.  Probes run strictly one after another so
they never compete with each other for the link.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional

import aiohttp

from .cancel import CancelToken
from .constants import DEFAULT_PING_COUNT, PING_TIMEOUT
from .errors import TRANSIENT_ERRORS, NoSuccessfulProbes
from .server import Server
from .stats import calculate_jitter, calculate_mean

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------

@dataclass
class PingResult:
    """Aggregated latency data for one server."""

    server: Server
    samples: List[float] = field(default_factory=list)
    attempts: int = 0
    latency_ms: float = 0.0     # mean RTT
    jitter_ms: float = 0.0      # RMS deviation from the mean

    def calculate(self) -> None:
        self.latency_ms = calculate_mean(self.samples)
        self.jitter_ms = calculate_jitter(self.samples)

    @property
    def lost(self) -> int:
        return self.attempts - len(self.samples)

    def to_dict(self) -> dict:
        return {
            "server": self.server.name,
            "samples": [round(s, 2) for s in self.samples],
            "attempts": self.attempts,
            "latency_ms": round(self.latency_ms, 2),
            "jitter_ms": round(self.jitter_ms, 3),
        }


# ---------------------------------------------------------------------------
# Sampler
# ---------------------------------------------------------------------------

class PingSampler:
    """Measure mean latency and jitter to a server with sequential probes."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        ping_count: int = DEFAULT_PING_COUNT,
        timeout: float = PING_TIMEOUT,
    ) -> None:
        self.session = session
        self.ping_count = ping_count
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    async def sample(self, server: Server, token: Optional[CancelToken] = None) -> PingResult:
        """
        Probe *server* ``ping_count`` times and record latency on it.

        The first probe must succeed; later failures are dropped from the
        sample set.  Raises ``NoSuccessfulProbes`` when nothing succeeded
        and ``TestCancelled`` when *token* fires.
        """
        token = token or CancelToken()
        url = server.ping_endpoint
        result = PingResult(server=server)

        for attempt in range(self.ping_count):
            token.raise_if_cancelled()
            result.attempts += 1

            try:
                rtt = await token.guard(self._probe(url))
            except TRANSIENT_ERRORS as exc:
                if attempt == 0:
                    raise NoSuccessfulProbes(server.name, result.attempts) from exc
                logger.debug("Dropped probe %d to %s: %s", attempt + 1, url, exc)
                continue

            result.samples.append(rtt)

        if not result.samples:
            raise NoSuccessfulProbes(server.name, result.attempts)

        result.calculate()
        server.latency_ms = result.latency_ms
        server.jitter_ms = result.jitter_ms

        logger.info(
            "Ping %s: %.2f ms (jitter %.2f ms, %d/%d probes)",
            server.name, result.latency_ms, result.jitter_ms,
            len(result.samples), result.attempts,
        )
        return result

    async def _probe(self, url: str) -> float:
        """One GET; returns milliseconds until the response headers arrive."""
        start = time.perf_counter()
        async with self.session.get(url, timeout=self.timeout) as resp:
            elapsed = (time.perf_counter() - start) * 1000
            resp.raise_for_status()
        return elapsed
