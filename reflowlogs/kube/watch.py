"""Pod watch source backed by ``list_namespaced_pod`` + ``watch.Watch``.

Each subscription lists the matching pods first (establishing access and a
resourceVersion), replays them as ADDED events, then follows the watch from
that resourceVersion until the server ends it.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

from kubernetes_asyncio import watch  # type: ignore[import-untyped]

from reflowlogs.models.pods import WatchEvent, WatchEventType
from reflowlogs.observability.logging import get_logger

_log = get_logger("kube.watch")


class KubernetesWatchSubscription:
    def __init__(
        self,
        core_v1: Any,
        namespace: str,
        label_selector: str,
        initial_pods: list[Any],
        resource_version: str | None,
    ) -> None:
        self._core_v1 = core_v1
        self._namespace = namespace
        self._label_selector = label_selector
        self._initial_pods = initial_pods
        self._resource_version = resource_version
        self._events: Any = None

    def __aiter__(self) -> AsyncIterator[WatchEvent]:
        if self._events is None:
            self._events = self._iterate()
        return self._events

    async def _iterate(self) -> AsyncIterator[WatchEvent]:
        for pod in self._initial_pods:
            yield WatchEvent(type=WatchEventType.ADDED, object=pod)

        kwargs: dict[str, Any] = {"label_selector": self._label_selector}
        if self._resource_version:
            kwargs["resource_version"] = self._resource_version
        async with watch.Watch() as w:
            async for event in w.stream(self._core_v1.list_namespaced_pod, self._namespace, **kwargs):
                event_type = str(event.get("type", ""))
                if event_type == "ERROR":
                    # Typically 410 Gone; the watch is unusable past this point
                    _log.warning("pod_watch_error_event", detail=str(event.get("raw_object", "")))
                    return
                yield WatchEvent(type=event_type, object=event.get("object"))

    async def close(self) -> None:
        if self._events is not None:
            await self._events.aclose()


class KubernetesWatchSource:
    def __init__(self, core_v1: Any) -> None:
        self._core_v1 = core_v1

    async def subscribe(self, namespace: str, label_selector: str) -> KubernetesWatchSubscription:
        pods = await self._core_v1.list_namespaced_pod(namespace, label_selector=label_selector)
        resource_version = pods.metadata.resource_version if pods.metadata is not None else None
        _log.debug("pod_list_fetched", namespace=namespace, count=len(pods.items or []))
        return KubernetesWatchSubscription(
            self._core_v1,
            namespace,
            label_selector,
            list(pods.items or []),
            resource_version,
        )
