"""Kubernetes API client bootstrap.

In-cluster service-account credentials are preferred; a kubeconfig file
(explicit path, else ``$KUBECONFIG``, else ``~/.kube/config``) is the fallback.
"""

from __future__ import annotations

import os

from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]
from kubernetes_asyncio import config as k8s_config  # type: ignore[import-untyped]

from reflowlogs.observability.logging import get_logger

_log = get_logger("kube.client")


class ClusterConnectionError(Exception):
    """Raised when no usable cluster credentials could be loaded."""


async def connect(kubeconfig: str = "") -> k8s_client.ApiClient:
    """Return an ``ApiClient`` configured from the first credentials that work."""
    configuration = k8s_client.Configuration()

    _log.debug("k8s_incluster_config_attempt")
    try:
        # load_incluster_config() is synchronous in kubernetes-asyncio
        k8s_config.load_incluster_config(client_configuration=configuration)
        _log.info("k8s client configured from in-cluster service account")
        return k8s_client.ApiClient(configuration=configuration)
    except k8s_config.ConfigException as exc:
        _log.warning("k8s_incluster_config_unavailable", error=str(exc))

    path = kubeconfig or os.environ.get("KUBECONFIG", "") or None
    try:
        await k8s_config.load_kube_config(config_file=path, client_configuration=configuration)
    except Exception as exc:
        _log.error("k8s_kubeconfig_load_failed", kubeconfig=path, error=str(exc))
        raise ClusterConnectionError(f"failed to configure Kubernetes client: {exc}") from exc
    _log.info("k8s client configured from kubeconfig", kubeconfig=path)
    return k8s_client.ApiClient(configuration=configuration)
