"""Registry of pods that currently have a running log streamer.

``try_register`` is the single serialization point: callers must spawn a
streamer only when it returns True, never after a separate lookup.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime

from reflowlogs.models.pods import PodIdentity
from reflowlogs.shutdown import CancellationToken


@dataclass(frozen=True)
class ActiveStream:
    """Presence marker for one running streamer."""

    pod: PodIdentity
    token: CancellationToken | None = None
    started_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))


class ActiveStreamRegistry:
    """Thread-safe mapping of pod name to its ``ActiveStream`` entry."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: dict[str, ActiveStream] = {}

    def try_register(self, pod: PodIdentity, token: CancellationToken | None = None) -> bool:
        """Register *pod* and return True iff no entry existed for its name."""
        with self._lock:
            if pod.name in self._entries:
                return False
            self._entries[pod.name] = ActiveStream(pod=pod, token=token)
            return True

    def unregister(self, name: str, token: CancellationToken | None = None) -> ActiveStream | None:
        """Remove the entry for *name*; a no-op when absent.

        With *token*, the entry is removed only if it was registered with that
        token, so a finished streamer cannot evict its successor's entry.
        Returns the removed entry.
        """
        with self._lock:
            entry = self._entries.get(name)
            if entry is None:
                return None
            if token is not None and entry.token is not token:
                return None
            del self._entries[name]
            return entry

    def is_registered(self, name: str) -> bool:
        with self._lock:
            return name in self._entries

    def get(self, name: str) -> ActiveStream | None:
        with self._lock:
            return self._entries.get(name)

    def entries(self) -> list[ActiveStream]:
        """Snapshot of all entries, sorted by pod name."""
        with self._lock:
            return sorted(self._entries.values(), key=lambda e: e.pod.name)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
