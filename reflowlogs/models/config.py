"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class APIConfig:
    """Health/status HTTP endpoint configuration."""

    enabled: bool = True
    port: int = 8080


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"


@dataclass
class ReflowConfig:
    """Top-level configuration.

    ``namespace`` is the application namespace whose lines are forwarded;
    ``ingress_namespace`` and ``label_selector`` scope the pods being tailed.
    """

    namespace: str = ""
    ingress_namespace: str = "ingress-nginx"
    label_selector: str = "app.kubernetes.io/name=ingress-nginx"
    default_log_format: bool = True
    kubeconfig: str = ""
    debug: bool = False
    stop_stream_on_delete: bool = False
    api: APIConfig = field(default_factory=APIConfig)
    log: LogConfig = field(default_factory=LogConfig)
    load_warnings: list[str] = field(default_factory=list)
