"""Collector package for reflowlogs.

Submodules
----------
pod_watcher -- PodWatcher: pod lifecycle watch loop that starts and retires
               per-pod log streamers, resubscribing when the watch ends.
"""

from reflowlogs.collector.pod_watcher import PodWatcher, WatchSubscriptionError

__all__ = ["PodWatcher", "WatchSubscriptionError"]
