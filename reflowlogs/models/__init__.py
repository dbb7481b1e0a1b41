"""Core data structures for reflowlogs."""

from reflowlogs.models.config import APIConfig, LogConfig, ReflowConfig
from reflowlogs.models.pods import (
    LogFormat,
    PodIdentity,
    StreamFilterConfig,
    StreamState,
    WatchEvent,
    WatchEventType,
)

__all__ = [
    "APIConfig",
    "LogConfig",
    "LogFormat",
    "PodIdentity",
    "ReflowConfig",
    "StreamFilterConfig",
    "StreamState",
    "WatchEvent",
    "WatchEventType",
]
