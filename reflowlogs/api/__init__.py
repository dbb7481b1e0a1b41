"""Health/status REST API for reflowlogs.

Exposes:
    create_app -- FastAPI factory (used by the app bootstrap and tests).
"""

from reflowlogs.api.app import create_app

__all__ = ["create_app"]
