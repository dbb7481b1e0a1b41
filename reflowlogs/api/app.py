"""FastAPI application factory for the health/status endpoint.

Usage::

    from reflowlogs.api.app import create_app

    app = create_app(registry=registry, token=shutdown.token, config=config)
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from reflowlogs.shutdown import CancellationToken
from reflowlogs.streaming.registry import ActiveStreamRegistry

_log = structlog.get_logger(component="api.app")

_API_PREFIX = "/api/v1"


class ErrorResponse(BaseModel):
    error: str
    detail: str


class HealthResponse(BaseModel):
    status: str
    active_streams: int


class StreamInfo(BaseModel):
    pod: str
    namespace: str
    started_at: str


class StreamsResponse(BaseModel):
    target_namespace: str
    streams: list[StreamInfo]


router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health(request: Request) -> JSONResponse:
    """503 once shutdown has begun so the pod is taken out of rotation."""
    registry: ActiveStreamRegistry = request.app.state.registry
    token: CancellationToken = request.app.state.token
    if token.cancelled:
        body = HealthResponse(status="shutting_down", active_streams=len(registry))
        return JSONResponse(status_code=503, content=body.model_dump())
    return JSONResponse(content=HealthResponse(status="ok", active_streams=len(registry)).model_dump())


@router.get("/streams", response_model=StreamsResponse)
async def streams(request: Request) -> StreamsResponse:
    registry: ActiveStreamRegistry = request.app.state.registry
    return StreamsResponse(
        target_namespace=request.app.state.target_namespace,
        streams=[
            StreamInfo(
                pod=entry.pod.name,
                namespace=entry.pod.namespace,
                started_at=entry.started_at.isoformat(),
            )
            for entry in registry.entries()
        ],
    )


def create_app(
    registry: ActiveStreamRegistry,
    token: CancellationToken,
    config: Any = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        registry: Active-stream registry shared with the pod watcher.
        token:    Root cancellation token; health turns 503 once it fires.
        config:   ReflowConfig. Used for the target namespace only.
    """
    from reflowlogs import __version__

    app = FastAPI(
        title="reflow-ingress-logs",
        summary="Ingress log shipper status API",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=f"{_API_PREFIX}/openapi.json",
    )

    # Store dependencies in app.state so route handlers can access them
    # without module-level globals.
    app.state.registry = registry
    app.state.token = token
    app.state.target_namespace = getattr(config, "namespace", "") if config is not None else ""

    app.include_router(router, prefix=_API_PREFIX)

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """Catch-all for unhandled exceptions; never expose stack traces."""
        _log.error(
            "unhandled_exception",
            path=str(request.url.path),
            method=request.method,
            error=str(exc),
        )
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error="INTERNAL_ERROR",
                detail="An unexpected error occurred.",
            ).model_dump(),
        )

    return app
