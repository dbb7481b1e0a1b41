"""Pod, watch-event and filter data structures."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class WatchEventType(StrEnum):
    """Kubernetes watch event kinds the pod watcher acts on."""

    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"


class LogFormat(StrEnum):
    """Selects how the stream filter recognises the target namespace."""

    DEFAULT = "default"
    CUSTOM = "custom"


class StreamState(StrEnum):
    """Lifecycle state of a per-pod log streamer."""

    CONNECTING = "connecting"
    STREAMING = "streaming"
    STOPPED = "stopped"


@dataclass(frozen=True)
class PodIdentity:
    """Name and namespace of a tailed pod. Read-only once built."""

    name: str
    namespace: str

    @classmethod
    def from_object(cls, obj: Any) -> PodIdentity | None:
        """Extract the identity from a watch event payload.

        Accepts a deserialised ``V1Pod`` or a raw pod dict. Returns None
        for anything else (e.g. a ``Status`` object on an ERROR event).
        """
        if isinstance(obj, dict):
            if obj.get("kind", "Pod") != "Pod":
                return None
            metadata = obj.get("metadata") or {}
            name = metadata.get("name")
            namespace = metadata.get("namespace") or ""
        else:
            from kubernetes_asyncio.client import V1Pod  # type: ignore[import-untyped]

            if not isinstance(obj, V1Pod) or obj.metadata is None:
                return None
            name = obj.metadata.name
            namespace = obj.metadata.namespace or ""
        if not name:
            return None
        return cls(name=str(name), namespace=str(namespace))


@dataclass(frozen=True)
class WatchEvent:
    """One lifecycle event from a pod watch subscription."""

    type: str
    object: Any


@dataclass(frozen=True)
class StreamFilterConfig:
    """Immutable filter settings derived from configuration at startup."""

    target_namespace: str
    mode: LogFormat = LogFormat.DEFAULT

    @classmethod
    def from_flag(cls, target_namespace: str, default_log_format: bool) -> StreamFilterConfig:
        mode = LogFormat.DEFAULT if default_log_format else LogFormat.CUSTOM
        return cls(target_namespace=target_namespace, mode=mode)
