"""Output sinks for forwarded log lines."""

from __future__ import annotations

import sys
from typing import Protocol, TextIO


class LineSink(Protocol):
    def write(self, line: str) -> None: ...


class StdoutSink:
    """Writes each line, unmodified, followed by a newline, then flushes."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    def write(self, line: str) -> None:
        stream = self._stream or sys.stdout
        stream.write(line + "\n")
        stream.flush()
