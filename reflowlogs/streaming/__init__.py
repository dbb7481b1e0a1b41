"""Streaming package for reflowlogs.

Submodules
----------
filter   -- matches(): substring predicate selecting target-namespace lines.
registry -- ActiveStreamRegistry: at-most-one streamer per pod name.
sink     -- LineSink implementations (stdout).
streamer -- PodLogStreamer: follow, filter and forward one pod's log.
"""

from reflowlogs.streaming.filter import build_pattern, matches
from reflowlogs.streaming.registry import ActiveStream, ActiveStreamRegistry
from reflowlogs.streaming.sink import LineSink, StdoutSink
from reflowlogs.streaming.streamer import PodLogStreamer

__all__ = [
    "ActiveStream",
    "ActiveStreamRegistry",
    "LineSink",
    "PodLogStreamer",
    "StdoutSink",
    "build_pattern",
    "matches",
]
