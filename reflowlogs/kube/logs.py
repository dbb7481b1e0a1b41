"""Follow-mode pod log source backed by ``read_namespaced_pod_log``."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

from reflowlogs.models.pods import PodIdentity


class KubernetesLogStream:
    """Wraps the raw aiohttp response of a follow-mode log request."""

    def __init__(self, response: Any) -> None:
        self._response = response

    async def __aiter__(self) -> AsyncIterator[str]:
        async for raw in self._response.content:
            yield raw.decode("utf-8", errors="replace").removesuffix("\n").removesuffix("\r")

    async def close(self) -> None:
        self._response.close()


class KubernetesLogSource:
    def __init__(self, core_v1: Any) -> None:
        self._core_v1 = core_v1

    async def open(self, pod: PodIdentity, since_seconds: int | None = None) -> KubernetesLogStream:
        kwargs: dict[str, Any] = {}
        if since_seconds is not None:
            kwargs["since_seconds"] = since_seconds
        response = await self._core_v1.read_namespaced_pod_log(
            name=pod.name,
            namespace=pod.namespace,
            follow=True,
            _preload_content=False,
            **kwargs,
        )
        return KubernetesLogStream(response)
