"""Line filter selecting log lines that belong to the target namespace.

Default ingress-nginx upstream names look like ``[<namespace>-<service>-<port>]``,
so the default format matches `` [<namespace>-``. Custom formats are expected
to log `` [namespace: <namespace>``.
"""

from __future__ import annotations

from reflowlogs.models.pods import LogFormat, StreamFilterConfig


def build_pattern(config: StreamFilterConfig) -> str:
    if config.mode is LogFormat.DEFAULT:
        return f" [{config.target_namespace}-"
    return f" [namespace: {config.target_namespace}"


def matches(line: str, config: StreamFilterConfig) -> bool:
    """Return True if *line* belongs to ``config.target_namespace``."""
    return build_pattern(config) in line
