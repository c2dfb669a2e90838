"""Consul traffic-router plugin.

The rollout controller calls :meth:`ConsulTrafficRouterPlugin.set_weight` on
every tick of a canary rollout.  The plugin pins the canary (and, once the
rollout completes, the stable) resolver subset to the new service version and
rewrites the splitter weights.  Both resources are fetched, checked and
computed before anything is written, and are written resolver first.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from enum import Enum
from typing import Any, Optional, Sequence

from .config import CONFIG_KEY, PLUGIN_TYPE, RoutingConfig, parse_plugin_config
from .freshness import DEFAULT_SYNC_TOLERANCE, FreshnessValidator
from .gateway import ResourceGateway
from .phase import RolloutPhase, classify
from .resources import ResourceKind, ServiceResolver, ServiceSplitter
from .rollout import RolloutState, WeightDestination
from .routing import apply_resolver_policy, apply_splitter_weights, validate_weight

LOG = logging.getLogger(__name__)


class Verification(Enum):
    """Outcome of a weight verification request."""

    NOT_IMPLEMENTED = "NotImplemented"
    VERIFIED = "Verified"
    NOT_VERIFIED = "NotVerified"


class ConsulTrafficRouterPlugin:
    """Shift traffic between canary and stable Consul subsets."""

    def __init__(
        self,
        gateway: ResourceGateway,
        *,
        sync_tolerance: timedelta = DEFAULT_SYNC_TOLERANCE,
        config_key: str = CONFIG_KEY,
    ) -> None:
        self._gateway = gateway
        self._freshness = FreshnessValidator(sync_tolerance)
        self._config_key = config_key

    @property
    def gateway(self) -> ResourceGateway:
        return self._gateway

    @property
    def config_key(self) -> str:
        return self._config_key

    def type(self) -> str:
        return PLUGIN_TYPE

    # ------------------------------------------------------------------
    # Weight reconciliation
    # ------------------------------------------------------------------
    def set_weight(
        self,
        rollout: RolloutState,
        desired_weight: int,
        additional_destinations: Optional[Sequence[WeightDestination]] = None,
    ) -> None:
        """Route ``desired_weight`` percent of traffic to the canary subset.

        Raises a :class:`~consul_trafficrouter.exceptions.TrafficRouterError`
        subclass when the tick cannot complete.  Additional weight
        destinations are not supported by Consul splitters and are ignored.
        """

        config = parse_plugin_config(rollout.plugin_config(self._config_key))
        validate_weight(desired_weight)
        service_meta_version = rollout.annotation(config.annotation_key)

        phase = classify(rollout)
        if phase is RolloutPhase.NO_CANARY_YET:
            LOG.debug(
                "rollout %s/%s has no canary status yet (desiredWeight=%s)",
                rollout.namespace,
                rollout.name,
                desired_weight,
            )
            return

        LOG.debug(
            "reconciling rollout %s/%s phase=%s desiredWeight=%s version=%r",
            rollout.namespace,
            rollout.name,
            phase.value,
            desired_weight,
            service_meta_version,
        )

        resolver = self._load_resolver(config, rollout.namespace)
        resolver = apply_resolver_policy(phase, config, service_meta_version, resolver)

        splitter = self._load_splitter(config, rollout.namespace)
        splitter = apply_splitter_weights(desired_weight, config, splitter)

        # Nothing is written until both resources have been computed.
        self._gateway.update(resolver)
        LOG.debug("updated service resolver %s/%s", resolver.namespace, resolver.name)
        self._gateway.update(splitter)
        LOG.info(
            "rollout %s/%s: %s weights set to %s",
            rollout.namespace,
            rollout.name,
            config.service_name,
            splitter.weights(),
        )

    def _load_resolver(self, config: RoutingConfig, namespace: str) -> ServiceResolver:
        resolver = self._gateway.fetch(ResourceKind.SERVICE_RESOLVER, config.service_name, namespace)
        self._freshness.check(ResourceKind.SERVICE_RESOLVER, resolver.status)
        return resolver

    def _load_splitter(self, config: RoutingConfig, namespace: str) -> ServiceSplitter:
        splitter = self._gateway.fetch(ResourceKind.SERVICE_SPLITTER, config.service_name, namespace)
        self._freshness.check(ResourceKind.SERVICE_SPLITTER, splitter.status)
        return splitter

    def verify_weight(
        self,
        rollout: RolloutState,
        desired_weight: int,
        additional_destinations: Optional[Sequence[WeightDestination]] = None,
    ) -> Verification:
        return Verification.NOT_IMPLEMENTED

    # ------------------------------------------------------------------
    # Unsupported by Consul routing; accepted as no-ops
    # ------------------------------------------------------------------
    def update_hash(
        self,
        rollout: RolloutState,
        canary_hash: str,
        stable_hash: str,
        additional_destinations: Optional[Sequence[WeightDestination]] = None,
    ) -> None:
        return None

    def set_header_route(self, rollout: RolloutState, header_routing: Any) -> None:
        return None

    def set_mirror_route(self, rollout: RolloutState, mirror_routing: Any) -> None:
        return None

    def remove_managed_routes(self, rollout: RolloutState) -> None:
        return None
