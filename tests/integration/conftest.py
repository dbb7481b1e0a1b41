"""Shared fakes for reflowlogs integration tests.

Provides in-memory log and watch sources so the streaming engine can be
exercised end to end without touching a real Kubernetes cluster.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from typing import Any

import pytest

from reflowlogs.models.pods import PodIdentity, StreamFilterConfig, WatchEvent
from reflowlogs.shutdown import CancellationToken
from reflowlogs.streaming.registry import ActiveStreamRegistry
from reflowlogs.streaming.streamer import PodLogStreamer

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def pod_object(name: str, namespace: str = "ingress-nginx") -> dict[str, Any]:
    """Raw pod dict as it appears in a watch event."""
    return {"kind": "Pod", "metadata": {"name": name, "namespace": namespace}}


def event(event_type: str, name: str, namespace: str = "ingress-nginx") -> WatchEvent:
    return WatchEvent(type=event_type, object=pod_object(name, namespace))


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll *predicate* until it holds, failing the test after *timeout*."""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.005)


# ---------------------------------------------------------------------------
# Log source fakes
# ---------------------------------------------------------------------------


class FakeLogStream:
    """Yields scripted lines, then ends, raises, or stays open."""

    def __init__(
        self,
        lines: list[str] | None = None,
        hold_open: bool = False,
        error: Exception | None = None,
    ) -> None:
        self.lines = lines or []
        self.hold_open = hold_open
        self.error = error
        self.closed = False

    async def __aiter__(self) -> AsyncIterator[str]:
        for line in self.lines:
            await asyncio.sleep(0)
            yield line
        if self.error is not None:
            raise self.error
        if self.hold_open:
            await asyncio.Event().wait()

    async def close(self) -> None:
        self.closed = True


@dataclass
class FakeLogSource:
    """Plays back ``script`` one item per ``open``.

    Exceptions are raised; streams are returned. Once the script is used up
    every further open returns a stream that stays open with no lines.
    """

    script: list[FakeLogStream | Exception] = field(default_factory=list)
    opens: list[tuple[PodIdentity, int | None]] = field(default_factory=list)
    streams: list[FakeLogStream] = field(default_factory=list)

    async def open(self, pod: PodIdentity, since_seconds: int | None = None) -> FakeLogStream:
        self.opens.append((pod, since_seconds))
        item = self.script.pop(0) if self.script else FakeLogStream(hold_open=True)
        if isinstance(item, Exception):
            raise item
        self.streams.append(item)
        return item


# ---------------------------------------------------------------------------
# Watch source fakes
# ---------------------------------------------------------------------------


class FakeWatchSubscription:
    def __init__(self, events: list[WatchEvent] | None = None, hold_open: bool = False) -> None:
        self.events = events or []
        self.hold_open = hold_open
        self.closed = False

    async def __aiter__(self) -> AsyncIterator[WatchEvent]:
        for ev in self.events:
            await asyncio.sleep(0)
            yield ev
        if self.hold_open:
            await asyncio.Event().wait()

    async def close(self) -> None:
        self.closed = True


@dataclass
class FakeWatchSource:
    script: list[FakeWatchSubscription | Exception] = field(default_factory=list)
    subscribe_calls: int = 0

    async def subscribe(self, namespace: str, label_selector: str) -> FakeWatchSubscription:
        self.subscribe_calls += 1
        item = self.script.pop(0) if self.script else FakeWatchSubscription(hold_open=True)
        if isinstance(item, Exception):
            raise item
        return item


# ---------------------------------------------------------------------------
# Sink
# ---------------------------------------------------------------------------


@dataclass
class ListSink:
    lines: list[str] = field(default_factory=list)

    def write(self, line: str) -> None:
        self.lines.append(line)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def registry() -> ActiveStreamRegistry:
    return ActiveStreamRegistry()


@pytest.fixture
def root_token() -> CancellationToken:
    return CancellationToken()


@pytest.fixture
def sink() -> ListSink:
    return ListSink()


@pytest.fixture
def filter_config() -> StreamFilterConfig:
    return StreamFilterConfig(target_namespace="target")


@pytest.fixture
def make_streamer(
    registry: ActiveStreamRegistry,
    sink: ListSink,
    filter_config: StreamFilterConfig,
) -> Callable[..., PodLogStreamer]:
    """Factory for streamers wired to the shared registry and sink."""

    def _make(
        pod: PodIdentity,
        token: CancellationToken,
        source: FakeLogSource,
        retry_delay: float = 0.01,
    ) -> PodLogStreamer:
        return PodLogStreamer(
            pod=pod,
            source=source,
            registry=registry,
            token=token,
            filter_config=filter_config,
            sink=sink,
            retry_delay=retry_delay,
        )

    return _make
