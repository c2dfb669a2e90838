"""Abstract persistence capability consumed by the plugin."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Union

from .resources import ResourceKind, ServiceResolver, ServiceSplitter

RoutingResource = Union[ServiceResolver, ServiceSplitter]


class ResourceGateway(ABC):
    """Fetch and write back Consul routing resources.

    Implementations raise :class:`~consul_trafficrouter.exceptions.ResourceNotFoundError`
    for missing resources and
    :class:`~consul_trafficrouter.exceptions.PersistenceError` when a write
    fails.
    """

    @abstractmethod
    def fetch(self, kind: ResourceKind, name: str, namespace: str) -> RoutingResource:
        """Return a fresh copy of the named resource."""

    @abstractmethod
    def update(self, resource: RoutingResource) -> None:
        """Persist ``resource`` in place of the stored one."""
