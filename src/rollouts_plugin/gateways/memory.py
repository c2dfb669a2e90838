"""In-memory resource gateway.

Backs the unit tests and dry runs of the agent.  Resources are stored in their
wire form so every fetch hands out an independent object, the same way a
round-trip through the API server would.
"""

from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

import yaml

from consul_trafficrouter.exceptions import PersistenceError, ResourceNotFoundError
from consul_trafficrouter.gateway import ResourceGateway, RoutingResource
from consul_trafficrouter.resources import ResourceKind, load_resource, resource_from_dict

LOG = logging.getLogger(__name__)

_Key = Tuple[ResourceKind, str, str]


class InMemoryGateway(ResourceGateway):
    def __init__(self, resources: Iterable[Union[RoutingResource, Mapping[str, Any]]] = ()) -> None:
        self._store: Dict[_Key, Dict[str, Any]] = {}
        self._update_failures: Dict[ResourceKind, Exception] = {}
        self.fetches: List[_Key] = []
        self.updates: List[RoutingResource] = []
        for resource in resources:
            self.add(resource)

    @classmethod
    def from_yaml(cls, path: Path) -> "InMemoryGateway":
        """Seed a gateway from a multi-document YAML file of manifests."""

        with Path(path).open() as fh:
            documents = [doc for doc in yaml.safe_load_all(fh) if doc]
        for doc in documents:
            if not isinstance(doc, dict):
                raise ValueError(f"resource documents in {path} must be mappings")
        LOG.debug("loaded %d routing resources from %s", len(documents), path)
        return cls(documents)

    def add(self, resource: Union[RoutingResource, Mapping[str, Any]]) -> None:
        """Store ``resource``; manifests are kept exactly as given."""

        if isinstance(resource, Mapping):
            metadata = resource.get("metadata") or {}
            key = (
                ResourceKind.from_kind(str(resource.get("kind", ""))),
                str(metadata.get("namespace", "")),
                str(metadata.get("name", "")),
            )
            self._store[key] = copy.deepcopy(dict(resource))
            return
        self._store[self._key(resource)] = resource.to_dict()

    def get(self, kind: ResourceKind, name: str, namespace: str) -> Optional[RoutingResource]:
        """Return the stored resource without recording a fetch."""

        data = self._store.get((kind, namespace, name))
        if data is None:
            return None
        return resource_from_dict(copy.deepcopy(data))

    def fail_next_update(self, kind: ResourceKind, error: Optional[Exception] = None) -> None:
        self._update_failures[kind] = error or PersistenceError(f"injected {kind.plural} update failure")

    # ------------------------------------------------------------------
    # ResourceGateway
    # ------------------------------------------------------------------
    def fetch(self, kind: ResourceKind, name: str, namespace: str) -> RoutingResource:
        key = (kind, namespace, name)
        self.fetches.append(key)
        data = self._store.get(key)
        if data is None:
            raise ResourceNotFoundError(kind.plural, kind.group, name, namespace)
        return load_resource(kind, name, copy.deepcopy(data))

    def update(self, resource: RoutingResource) -> None:
        key = self._key(resource)
        error = self._update_failures.pop(resource.kind, None)
        if error is not None:
            raise error
        if key not in self._store:
            raise ResourceNotFoundError(resource.kind.plural, resource.kind.group, resource.name, resource.namespace)
        self._store[key] = resource.to_dict()
        self.updates.append(copy.deepcopy(resource))

    @staticmethod
    def _key(resource: RoutingResource) -> _Key:
        return resource.kind, resource.namespace, resource.name
