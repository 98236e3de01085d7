"""
Best-server selection by concurrent latency probing.
"""
from __future__ import annotations

import asyncio
import logging
import math
from typing import Optional, Sequence

from .cancel import CancelToken
from .errors import NoServerAvailable, SpeedtestError
from .latency import PingSampler
from .server import Server

logger = logging.getLogger(__name__)

# Latency assigned to servers that answered no probe at all.
UNREACHABLE = math.inf


class ServerSelector:
    """Pick the lowest-latency server from a candidate list."""

    def __init__(self, sampler: PingSampler) -> None:
        self.sampler = sampler

    async def select(
        self,
        servers: Sequence[Server],
        max_servers: Optional[int] = None,
        token: Optional[CancelToken] = None,
    ) -> Server:
        """
        Probe every candidate concurrently and return the fastest one.

        Ties go to the server listed first.  Raises ``NoServerAvailable``
        when there are no candidates or none of them answered.
        """
        token = token or CancelToken()
        candidates = list(servers)
        if max_servers is not None:
            candidates = candidates[:max_servers]
        if not candidates:
            raise NoServerAvailable("No servers to choose from")

        outcomes = await asyncio.gather(
            *(self._probe(s, token) for s in candidates), return_exceptions=True
        )
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome

        best = min(candidates, key=lambda s: s.latency_ms)
        if best.latency_ms == UNREACHABLE:
            raise NoServerAvailable(f"None of {len(candidates)} servers responded")

        logger.info("Selected %s (%.2f ms)", best.name, best.latency_ms)
        return best

    async def _probe(self, server: Server, token: CancelToken) -> None:
        try:
            await self.sampler.sample(server, token)
        except SpeedtestError as exc:
            logger.debug("Server %s unreachable: %s", server.name, exc)
            server.latency_ms = UNREACHABLE
            server.jitter_ms = 0.0
