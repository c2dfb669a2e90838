"""Dispatch controller requests to registered traffic-router plugins."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Union

from consul_trafficrouter.exceptions import TrafficRouterError
from consul_trafficrouter.plugin import ConsulTrafficRouterPlugin, Verification

from .requests import (
    RemoveManagedRoutes,
    SetHeaderRoute,
    SetMirrorRoute,
    SetWeight,
    UpdateHash,
    VerifyWeight,
)

LOG = logging.getLogger(__name__)

Request = Union[SetWeight, VerifyWeight, UpdateHash, SetHeaderRoute, SetMirrorRoute, RemoveManagedRoutes]


@dataclass
class RpcResult:
    """What the controller receives back: a single error string, if any."""

    error: str = ""
    verified: Optional[Verification] = None

    @property
    def ok(self) -> bool:
        return not self.error


class PluginRegistry:
    """Route requests to the plugins configured on each rollout."""

    def __init__(self) -> None:
        self._plugins: Dict[str, ConsulTrafficRouterPlugin] = {}

    def register(self, key: str, plugin: ConsulTrafficRouterPlugin) -> None:
        if key in self._plugins:
            raise ValueError(f"plugin '{key}' already registered")
        self._plugins[key] = plugin

    def unregister(self, key: str) -> None:
        self._plugins.pop(key, None)

    def plugins_for(self, request: Request) -> List[ConsulTrafficRouterPlugin]:
        configured = request.rollout.traffic_router_plugins
        return [plugin for key, plugin in self._plugins.items() if key in configured]

    def handle(self, request: Request) -> RpcResult:
        plugins = self.plugins_for(request)
        if not plugins:
            LOG.debug(
                "rollout %s/%s does not use any registered plugin",
                request.rollout.namespace,
                request.rollout.name,
            )
            return RpcResult()

        result = RpcResult()
        for plugin in plugins:
            try:
                verified = self._dispatch(plugin, request)
            except TrafficRouterError as exc:
                LOG.warning(
                    "%s plugin failed %s for rollout %s/%s: %s",
                    plugin.type(),
                    type(request).__name__,
                    request.rollout.namespace,
                    request.rollout.name,
                    exc,
                )
                return RpcResult(error=str(exc))
            if verified is not None:
                result.verified = verified
        return result

    def _dispatch(self, plugin: ConsulTrafficRouterPlugin, request: Request) -> Optional[Verification]:
        if isinstance(request, SetWeight):
            plugin.set_weight(request.rollout, request.desired_weight, request.additional_destinations)
        elif isinstance(request, VerifyWeight):
            return plugin.verify_weight(request.rollout, request.desired_weight, request.additional_destinations)
        elif isinstance(request, UpdateHash):
            plugin.update_hash(
                request.rollout,
                request.canary_hash,
                request.stable_hash,
                request.additional_destinations,
            )
        elif isinstance(request, SetHeaderRoute):
            plugin.set_header_route(request.rollout, request.header_routing)
        elif isinstance(request, SetMirrorRoute):
            plugin.set_mirror_route(request.rollout, request.mirror_routing)
        elif isinstance(request, RemoveManagedRoutes):
            plugin.remove_managed_routes(request.rollout)
        else:
            raise TypeError(f"Unsupported request type: {type(request)!r}")
        return None
