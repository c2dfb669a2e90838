"""Resource gateway backed by the Kubernetes API server."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from kubernetes import client, config
from kubernetes.client.rest import ApiException

from consul_trafficrouter.exceptions import (
    ConflictError,
    PersistenceError,
    ResourceFetchError,
    ResourceNotFoundError,
)
from consul_trafficrouter.gateway import ResourceGateway, RoutingResource
from consul_trafficrouter.resources import ResourceKind, load_resource

LOG = logging.getLogger(__name__)

HTTP_NOT_FOUND = 404
HTTP_CONFLICT = 409


def _reason(exc: ApiException) -> str:
    return f"({exc.status}) {exc.reason}" if exc.reason else f"({exc.status})"


class KubernetesGateway(ResourceGateway):
    """Read and replace Consul config-entry custom resources."""

    def __init__(self, api: client.CustomObjectsApi) -> None:
        self._api = api

    def fetch(self, kind: ResourceKind, name: str, namespace: str) -> RoutingResource:
        try:
            obj = self._api.get_namespaced_custom_object(
                group=kind.group,
                version=kind.version,
                namespace=namespace,
                plural=kind.plural,
                name=name,
            )
        except ApiException as exc:
            if exc.status == HTTP_NOT_FOUND:
                raise ResourceNotFoundError(kind.plural, kind.group, name, namespace) from exc
            raise ResourceFetchError(
                f'failed to get {kind.plural}.{kind.group} "{name}": {_reason(exc)}'
            ) from exc
        return load_resource(kind, name, obj)

    def update(self, resource: RoutingResource) -> None:
        kind = resource.kind
        LOG.debug("replacing %s %s/%s", kind.plural, resource.namespace, resource.name)
        try:
            self._api.replace_namespaced_custom_object(
                group=kind.group,
                version=kind.version,
                namespace=resource.namespace,
                plural=kind.plural,
                name=resource.name,
                body=resource.to_dict(),
            )
        except ApiException as exc:
            message = f'failed to update {kind.plural}.{kind.group} "{resource.name}": {_reason(exc)}'
            if exc.status == HTTP_NOT_FOUND:
                raise ResourceNotFoundError(kind.plural, kind.group, resource.name, resource.namespace) from exc
            if exc.status == HTTP_CONFLICT:
                raise ConflictError(message) from exc
            raise PersistenceError(message) from exc


def load_kubernetes_gateway(
    kubeconfig: Optional[Path] = None,
    context: Optional[str] = None,
    in_cluster: Optional[bool] = None,
) -> KubernetesGateway:
    """Build a gateway from in-cluster credentials or a kubeconfig.

    With ``in_cluster`` unset the in-cluster service account is tried first
    and the kubeconfig is used as a fallback.
    """

    if in_cluster is None:
        try:
            config.load_incluster_config()
            LOG.info("using in-cluster Kubernetes configuration")
        except config.ConfigException as incluster_error:
            LOG.debug("in-cluster configuration unavailable: %s", incluster_error)
            config.load_kube_config(
                config_file=str(kubeconfig) if kubeconfig else None,
                context=context,
            )
    elif in_cluster:
        config.load_incluster_config()
    else:
        config.load_kube_config(
            config_file=str(kubeconfig) if kubeconfig else None,
            context=context,
        )
    return KubernetesGateway(client.CustomObjectsApi())
