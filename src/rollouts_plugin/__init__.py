"""Host-side glue between the rollout controller and traffic-router plugins.

The rollout controller talks to plugins through a small set of requests
(set weight, verify weight, update hash, header/mirror routes, route cleanup)
and expects a single error string back.  This package provides those request
types, a registry that routes them to the plugins configured on a rollout,
and the gateways the Consul plugin uses to reach its routing resources.
"""

from .registry import PluginRegistry, RpcResult  # noqa: F401
from .requests import (  # noqa: F401
    RemoveManagedRoutes,
    SetHeaderRoute,
    SetMirrorRoute,
    SetWeight,
    UpdateHash,
    VerifyWeight,
)

__all__ = [
    "PluginRegistry",
    "RpcResult",
    "RemoveManagedRoutes",
    "SetHeaderRoute",
    "SetMirrorRoute",
    "SetWeight",
    "UpdateHash",
    "VerifyWeight",
]
