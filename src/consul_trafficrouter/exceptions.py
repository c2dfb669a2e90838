"""Errors raised while reconciling Consul routing resources."""

from __future__ import annotations


class TrafficRouterError(Exception):
    """Base class for every error reported back to the rollout controller."""


class ConfigurationError(TrafficRouterError, ValueError):
    """The plugin configuration attached to the rollout is unusable."""


class ResourceFetchError(TrafficRouterError):
    """A routing resource could not be read."""


class ResourceNotFoundError(ResourceFetchError):
    """The named routing resource does not exist."""

    def __init__(self, plural: str, group: str, name: str, namespace: str) -> None:
        super().__init__(f'{plural}.{group} "{name}" not found')
        self.plural = plural
        self.name = name
        self.namespace = namespace


class StaleResourceError(TrafficRouterError):
    """A routing resource has not caught up with Consul yet."""


class ResourceShapeError(TrafficRouterError):
    """A routing resource does not look like the plugin expects."""


class SubsetNotFoundError(ResourceShapeError):
    def __init__(self, subset_name: str, resource: object) -> None:
        super().__init__(
            f"spec.subsets.{subset_name}.filter was not found in consul "
            f"service resolver: {resource!r}"
        )
        self.subset_name = subset_name


class SplitterShapeError(ResourceShapeError):
    pass


class PersistenceError(TrafficRouterError):
    """Writing a routing resource back failed."""


class ConflictError(PersistenceError):
    """The resource changed underneath us; the next tick will retry."""
