"""Per-pod log streamer.

State machine::

    CONNECTING --open ok--> STREAMING --end/read error--> (retry delay) --> CONNECTING
        |  ^                    |
        |  +--open failed-------+-- (retry delay)
        +--cancelled--> STOPPED <--cancelled--+

Every suspension point (open, next line, retry delay) is raced against the
streamer's cancellation token, so shutdown is observed within one retry delay.
"""

from __future__ import annotations

import math
import time
from collections.abc import AsyncIterator, Callable
from typing import Protocol

from reflowlogs.models.pods import PodIdentity, StreamFilterConfig, StreamState
from reflowlogs.observability.logging import get_logger
from reflowlogs.shutdown import CancellationToken, OperationCancelled
from reflowlogs.streaming.filter import matches
from reflowlogs.streaming.registry import ActiveStreamRegistry
from reflowlogs.streaming.sink import LineSink

_log = get_logger("streaming.streamer")

LOG_RETRY_DELAY_SECONDS = 5.0


class LogStream(Protocol):
    """An open follow-mode log read yielding lines without trailing newlines."""

    def __aiter__(self) -> AsyncIterator[str]: ...

    async def close(self) -> None: ...


class LogSource(Protocol):
    async def open(self, pod: PodIdentity, since_seconds: int | None = None) -> LogStream: ...


class PodLogStreamer:
    """Follows one pod's log, forwarding lines that pass the stream filter.

    The caller registers the pod in the registry before starting ``run``;
    the streamer removes its own entry when it stops.
    """

    def __init__(
        self,
        pod: PodIdentity,
        source: LogSource,
        registry: ActiveStreamRegistry,
        token: CancellationToken,
        filter_config: StreamFilterConfig,
        sink: LineSink,
        retry_delay: float = LOG_RETRY_DELAY_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.pod = pod
        self._source = source
        self._registry = registry
        self._token = token
        self._filter = filter_config
        self._sink = sink
        self._retry_delay = retry_delay
        self._clock = clock
        self._log = _log.bind(pod=pod.name, namespace=pod.namespace)

        self.state = StreamState.CONNECTING
        self.connect_attempts = 0
        self.lines_forwarded = 0

    @property
    def token(self) -> CancellationToken:
        return self._token

    async def run(self) -> None:
        """Tail the pod's log until the token is cancelled."""
        self._log.info("log_stream_starting", filter_mode=self._filter.mode.value)
        closed_at: float | None = None
        try:
            while not self._token.cancelled:
                self.state = StreamState.CONNECTING
                since_seconds = None
                if closed_at is not None:
                    # Only ask for what was logged since the previous stream ended
                    since_seconds = math.ceil(self._clock() - closed_at) + 1
                self.connect_attempts += 1
                try:
                    stream = await self._token.guard(self._source.open(self.pod, since_seconds=since_seconds))
                except OperationCancelled:
                    break
                except Exception as exc:
                    self._log.error(
                        "log_stream_open_failed",
                        error=str(exc),
                        attempt=self.connect_attempts,
                        retry_in=self._retry_delay,
                    )
                    if await self._token.sleep(self._retry_delay):
                        break
                    continue

                self.state = StreamState.STREAMING
                self._log.info("log_stream_started", since_seconds=since_seconds)
                try:
                    await self._token.guard(self._pump(stream))
                except OperationCancelled:
                    break
                except Exception as exc:
                    self._log.error("log_stream_read_failed", error=str(exc))
                finally:
                    closed_at = self._clock()
                    await stream.close()

                if self._token.cancelled:
                    break
                self._log.warning("log_stream_closed", retry_in=self._retry_delay)
                if await self._token.sleep(self._retry_delay):
                    break
        finally:
            self.state = StreamState.STOPPED
            self._registry.unregister(self.pod.name, token=self._token)
            self._log.info("log_stream_stopped", lines_forwarded=self.lines_forwarded)

    async def _pump(self, stream: LogStream) -> None:
        async for line in stream:
            if self._token.cancelled:
                return
            if matches(line, self._filter):
                self._sink.write(line)
                self.lines_forwarded += 1
