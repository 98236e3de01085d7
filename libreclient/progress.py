"""
Progress reporting for the throughput phases.

Workers publish ``ProgressEvent`` values into a ``ProgressFeed``.  Consumers
either subscribe a callback or iterate ``feed.stream()`` from another task.
Events carry plain values only, never the pool's internal counters.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import AsyncIterator, Callable, List, Optional

ProgressCallback = Callable[["ProgressEvent"], None]


@dataclass(frozen=True)
class ProgressEvent:
    """Snapshot of a running download or upload phase."""

    phase: str
    fraction: float
    bytes_total: int
    elapsed: float

    @property
    def speed_mbps(self) -> float:
        """Average throughput since the phase started."""
        if self.elapsed <= 0:
            return 0.0
        return self.bytes_total * 8 / 1_000_000 / self.elapsed


class ProgressFeed:
    """Fan-out of progress events to callbacks and async streams."""

    def __init__(self) -> None:
        self._subscribers: List[ProgressCallback] = []
        self._queues: List[asyncio.Queue] = []

    def subscribe(self, callback: ProgressCallback) -> Callable[[], None]:
        """Register *callback*; returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def publish(self, event: ProgressEvent) -> None:
        for callback in list(self._subscribers):
            callback(event)
        for queue in self._queues:
            queue.put_nowait(event)

    def close(self) -> None:
        """End every open ``stream()`` iterator."""
        for queue in self._queues:
            queue.put_nowait(None)

    async def stream(self, phase: Optional[str] = None) -> AsyncIterator[ProgressEvent]:
        """Yield events (optionally for one *phase*) until ``close()``."""
        queue: asyncio.Queue = asyncio.Queue()
        self._queues.append(queue)
        try:
            while True:
                event = await queue.get()
                if event is None:
                    return
                if phase is None or event.phase == phase:
                    yield event
        finally:
            self._queues.remove(queue)


def fraction_callback(
    callback: Callable[[float], None],
    phase: Optional[str] = None,
) -> ProgressCallback:
    """Adapt a plain ``f(fraction)`` callback, optionally for one *phase*."""

    def _on_event(event: ProgressEvent) -> None:
        if phase is None or event.phase == phase:
            callback(event.fraction)

    return _on_event
