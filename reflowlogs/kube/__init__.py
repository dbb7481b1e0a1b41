"""kubernetes-asyncio adapters: client bootstrap, pod watch and pod log sources."""

from reflowlogs.kube.client import ClusterConnectionError, connect
from reflowlogs.kube.logs import KubernetesLogSource
from reflowlogs.kube.watch import KubernetesWatchSource

__all__ = ["ClusterConnectionError", "KubernetesLogSource", "KubernetesWatchSource", "connect"]
