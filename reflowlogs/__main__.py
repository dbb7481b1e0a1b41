"""Entry point for `python -m reflowlogs`.

Usage:
    python -m reflowlogs
    uv run python -m reflowlogs
"""

from __future__ import annotations

from reflowlogs.app import run

run()
