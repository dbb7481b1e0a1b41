"""reflow-ingress-logs: ship one namespace's ingress log lines out of a cluster."""

__version__ = "0.1.0"
