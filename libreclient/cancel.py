"""
Hierarchical cancellation tokens.

A ``CancelToken`` is a node in a tree.  Cancelling a node cancels every
token derived from it with ``linked()``; a child never signals its parent.
Children used as context managers detach and cancel themselves on exit, so
a phase-level token cannot outlive the phase that created it::

    with caller_token.linked() as phase:
        ...  # phase.cancel() stops this phase only
"""
from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, List, Optional, TypeVar

from .errors import TestCancelled

T = TypeVar("T")


class CancelToken:
    """Cancellation signal shared by a run, a phase, or a single worker."""

    def __init__(self, parent: Optional[CancelToken] = None) -> None:
        self._event = asyncio.Event()
        self._parent = parent
        self._children: List[CancelToken] = []
        self._callbacks: List[Callable[[], None]] = []

        if parent is not None:
            if parent.cancelled:
                self._event.set()
            else:
                parent._children.append(self)

    # -- State --------------------------------------------------------------

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        """Cancel this token and all of its descendants.  Idempotent."""
        if self._event.is_set():
            return
        self._event.set()

        for child in list(self._children):
            child.cancel()
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def add_callback(self, callback: Callable[[], None]) -> None:
        """Run *callback* on cancellation (immediately if already cancelled)."""
        if self.cancelled:
            callback()
        else:
            self._callbacks.append(callback)

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise TestCancelled("Test cancelled")

    # -- Tree ---------------------------------------------------------------

    def linked(self) -> CancelToken:
        """Derive a child token that is cancelled whenever this one is."""
        return CancelToken(parent=self)

    def detach(self) -> None:
        """Stop receiving cancellation from the parent."""
        if self._parent is not None:
            try:
                self._parent._children.remove(self)
            except ValueError:
                pass
            self._parent = None

    def __enter__(self) -> CancelToken:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        self.detach()
        self.cancel()

    # -- Waiting ------------------------------------------------------------

    async def wait(self) -> None:
        await self._event.wait()

    async def sleep(self, seconds: float) -> bool:
        """Sleep up to *seconds*.  Returns True if cancelled before then."""
        if seconds <= 0:
            return self.cancelled
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """
        Await *awaitable*, abandoning it as soon as the token fires.

        Raises ``TestCancelled`` if the token was, or becomes, cancelled
        before the operation completes.
        """
        self.raise_if_cancelled()

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not task.done():
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)

        if task.cancelled():
            raise TestCancelled("Test cancelled")
        return task.result()
