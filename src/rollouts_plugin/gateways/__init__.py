"""Resource gateways available to the plugin."""

from .kube import KubernetesGateway, load_kubernetes_gateway  # noqa: F401
from .memory import InMemoryGateway  # noqa: F401

__all__ = ["InMemoryGateway", "KubernetesGateway", "load_kubernetes_gateway"]
