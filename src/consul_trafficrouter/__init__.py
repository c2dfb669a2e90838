"""Consul traffic routing for progressive rollouts.

This package holds the weight-reconciliation engine of the Consul
traffic-router plugin.  Given a rollout and a desired canary weight it:

* classifies the rollout into in-progress, aborted or completed;
* checks that the ServiceResolver and ServiceSplitter are in sync with Consul;
* pins the canary/stable resolver subsets to the right service version; and
* rewrites the splitter so canary and stable weights add up to 100.

Access to the cluster goes through :class:`ResourceGateway`, so the engine is
exercised in tests with an in-memory gateway and in production with the
Kubernetes one from :mod:`rollouts_plugin.gateways`.
"""

from .plugin import ConsulTrafficRouterPlugin, Verification  # noqa: F401
from .version import __version__  # noqa: F401

__all__ = ["ConsulTrafficRouterPlugin", "Verification", "__version__"]
