"""Cancellation token and OS-signal shutdown coordination.

CancellationToken  -- One-shot broadcast flag observed by every long-running
                      task. Child tokens fire with their parent but can also
                      be cancelled on their own.
ShutdownCoordinator -- Turns the first SIGINT/SIGTERM into a cancellation of
                       the root token.
"""

from __future__ import annotations

import asyncio
import signal
import weakref
from collections.abc import Awaitable
from typing import TypeVar

from reflowlogs.observability.logging import get_logger

_log = get_logger("shutdown")

T = TypeVar("T")


class OperationCancelled(Exception):
    """Raised by ``CancellationToken.guard`` when the token fires first."""


class CancellationToken:
    """A flag that transitions once from "not signaled" to "signaled".

    The token is never reset. Observers either poll ``cancelled``, wait for
    it, or race an awaitable against it with ``guard``.
    """

    def __init__(self, parent: CancellationToken | None = None) -> None:
        self._event = asyncio.Event()
        self._children: weakref.WeakSet[CancellationToken] = weakref.WeakSet()
        if parent is not None:
            parent._children.add(self)
            if parent.cancelled:
                self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> bool:
        """Signal this token and every descendant.

        Returns True only for the call that performed the transition.
        """
        if self._event.is_set():
            return False
        self._event.set()
        for child in list(self._children):
            child.cancel()
        return True

    def child(self) -> CancellationToken:
        """Derive a token that is cancelled together with this one."""
        return CancellationToken(parent=self)

    async def wait(self) -> None:
        await self._event.wait()

    async def sleep(self, delay: float) -> bool:
        """Sleep for *delay* seconds or until cancelled.

        Returns True when the sleep was cut short by cancellation.
        """
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except TimeoutError:
            return False
        return True

    async def guard(self, aw: Awaitable[T]) -> T:
        """Await *aw* unless the token fires first.

        When cancelled, the pending work is cancelled and drained before
        ``OperationCancelled`` is raised.
        """
        if self.cancelled:
            if asyncio.iscoroutine(aw):
                aw.close()
            raise OperationCancelled
        task = asyncio.ensure_future(aw)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()
        if task.done():
            return task.result()
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        raise OperationCancelled


class ShutdownCoordinator:
    """Owns the process-wide root cancellation token."""

    def __init__(self, token: CancellationToken | None = None) -> None:
        self.token = token or CancellationToken()
        self._installed: list[signal.Signals] = []

    def install(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Register SIGINT and SIGTERM handlers on the running loop."""
        loop = loop or asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self.request_shutdown, sig)
            self._installed.append(sig)

    def uninstall(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        loop = loop or asyncio.get_running_loop()
        for sig in self._installed:
            loop.remove_signal_handler(sig)
        self._installed.clear()

    def request_shutdown(self, sig: signal.Signals | None = None) -> None:
        """Cancel the root token; later calls are no-ops."""
        if self.token.cancel():
            _log.info("shutdown_signal_received", signal=sig.name if sig is not None else None)

    async def wait_for_signal(self) -> None:
        """Block until a termination signal has cancelled the root token."""
        await self.token.wait()
