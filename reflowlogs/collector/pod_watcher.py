"""Pod watcher: drives per-pod log streamers from pod lifecycle events.

ADDED / MODIFIED -- start a streamer if ``try_register`` admits the pod.
DELETED          -- drop the registry entry. The running streamer is left
                    alone unless ``stop_on_delete`` is set, in which case its
                    own token is cancelled.

A closed watch channel is not an error: the watcher waits ``restart_delay``
and subscribes again, keeping the registry and every running streamer.
Only a failure to establish the very first subscription is fatal.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from typing import Protocol

from reflowlogs.models.pods import PodIdentity, WatchEvent, WatchEventType
from reflowlogs.observability.logging import get_logger
from reflowlogs.shutdown import CancellationToken, OperationCancelled
from reflowlogs.streaming.registry import ActiveStreamRegistry
from reflowlogs.streaming.streamer import PodLogStreamer

_log = get_logger("collector.pod_watcher")

WATCH_RESTART_DELAY_SECONDS = 2.0

StreamerFactory = Callable[[PodIdentity, CancellationToken], PodLogStreamer]


class WatchSubscriptionError(Exception):
    """Raised when the initial pod watch subscription cannot be established."""


class WatchSubscription(Protocol):
    def __aiter__(self) -> AsyncIterator[WatchEvent]: ...

    async def close(self) -> None: ...


class WatchSource(Protocol):
    async def subscribe(self, namespace: str, label_selector: str) -> WatchSubscription: ...


class PodWatcher:
    """Watches pods matching a label selector and keeps one streamer per pod."""

    def __init__(
        self,
        source: WatchSource,
        registry: ActiveStreamRegistry,
        streamer_factory: StreamerFactory,
        token: CancellationToken,
        namespace: str,
        label_selector: str,
        restart_delay: float = WATCH_RESTART_DELAY_SECONDS,
        stop_on_delete: bool = False,
    ) -> None:
        self._source = source
        self._registry = registry
        self._streamer_factory = streamer_factory
        self._token = token
        self._namespace = namespace
        self._label_selector = label_selector
        self._restart_delay = restart_delay
        self._stop_on_delete = stop_on_delete
        self._tasks: set[asyncio.Task[None]] = set()
        self._log = _log.bind(namespace=namespace, label_selector=label_selector)

        self.subscriptions = 0

    @property
    def streamer_tasks(self) -> frozenset[asyncio.Task[None]]:
        """Streamer tasks that have not finished yet."""
        return frozenset(self._tasks)

    async def run(self) -> None:
        """Watch until the token is cancelled.

        Raises:
            WatchSubscriptionError: the first subscription attempt failed.
        """
        self._log.info("pod_watcher_starting")
        while not self._token.cancelled:
            try:
                subscription = await self._token.guard(
                    self._source.subscribe(self._namespace, self._label_selector)
                )
            except OperationCancelled:
                break
            except Exception as exc:
                if self.subscriptions == 0:
                    raise WatchSubscriptionError(f"Error setting up pod watcher: {exc}") from exc
                self._log.warning("pod_watch_subscribe_failed", error=str(exc), retry_in=self._restart_delay)
                if await self._token.sleep(self._restart_delay):
                    break
                continue

            self.subscriptions += 1
            self._log.debug("pod_watch_subscribed", subscription=self.subscriptions)
            try:
                await self._token.guard(self._consume(subscription))
            except OperationCancelled:
                break
            except Exception as exc:
                self._log.warning("pod_watch_failed", error=str(exc))
            finally:
                await subscription.close()

            if self._token.cancelled:
                break
            self._log.warning("pod_watch_channel_closed", retry_in=self._restart_delay)
            if await self._token.sleep(self._restart_delay):
                break
        self._log.info("pod_watcher_stopped")

    async def join(self, timeout: float | None = None) -> bool:
        """Wait for every streamer task to finish.

        Returns False if some were still running after *timeout*.
        """
        pending = set(self._tasks)
        if not pending:
            return True
        _, still_running = await asyncio.wait(pending, timeout=timeout)
        return not still_running

    async def _consume(self, subscription: WatchSubscription) -> None:
        async for event in subscription:
            if self._token.cancelled:
                return
            self.handle_event(event)

    def handle_event(self, event: WatchEvent) -> None:
        pod = PodIdentity.from_object(event.object)
        if pod is None:
            self._log.warning("unexpected_watch_object", event_type=event.type)
            return

        self._log.debug("pod_event_received", event_type=event.type, pod=pod.name)

        if event.type in (WatchEventType.ADDED, WatchEventType.MODIFIED):
            self._start_streamer(pod)
        elif event.type == WatchEventType.DELETED:
            entry = self._registry.unregister(pod.name)
            self._log.info("pod_deleted", pod=pod.name, had_stream=entry is not None)
            if self._stop_on_delete and entry is not None and entry.token is not None:
                entry.token.cancel()
        else:
            self._log.warning("unhandled_event_type", event_type=event.type, pod=pod.name)

    def _start_streamer(self, pod: PodIdentity) -> None:
        token = self._token.child()
        if not self._registry.try_register(pod, token):
            return
        self._log.info("log_stream_spawning", pod=pod.name)
        try:
            streamer = self._streamer_factory(pod, token)
        except Exception:
            self._registry.unregister(pod.name, token=token)
            raise
        task = asyncio.create_task(streamer.run(), name=f"log-stream:{pod.name}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
