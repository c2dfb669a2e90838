import pytest

from consul_trafficrouter.config import CONFIG_KEY
from consul_trafficrouter.plugin import ConsulTrafficRouterPlugin, Verification
from consul_trafficrouter.resources import ResourceKind
from consul_trafficrouter.rollout import RolloutState
from rollouts_plugin import (
    PluginRegistry,
    RemoveManagedRoutes,
    SetHeaderRoute,
    SetWeight,
    UpdateHash,
    VerifyWeight,
)
from rollouts_plugin.gateways import InMemoryGateway


def build_registry(gateway: InMemoryGateway) -> PluginRegistry:
    registry = PluginRegistry()
    registry.register(CONFIG_KEY, ConsulTrafficRouterPlugin(gateway))
    return registry


def test_registry_dispatches_set_weight(gateway, rollout):
    registry = build_registry(gateway)

    result = registry.handle(SetWeight(rollout=rollout(), desired_weight=40))

    assert result.ok
    assert result.error == ""
    splitter = gateway.get(ResourceKind.SERVICE_SPLITTER, "test-service", "default")
    assert splitter.weights() == {"stable": 60, "canary": 40}


def test_registry_translates_errors(rollout, splitter_manifest):
    registry = build_registry(InMemoryGateway([splitter_manifest()]))

    result = registry.handle(SetWeight(rollout=rollout(), desired_weight=40))

    assert not result.ok
    assert result.error == 'serviceresolvers.consul.hashicorp.com "test-service" not found'


def test_registry_translates_config_errors(gateway, rollout):
    registry = build_registry(gateway)

    result = registry.handle(SetWeight(rollout=rollout(raw_config="{}"), desired_weight=40))

    assert result.error.startswith("invalid consul traffic routing configuration.")
    assert gateway.fetches == []


def test_registry_returns_verification(gateway, rollout):
    registry = build_registry(gateway)

    result = registry.handle(VerifyWeight(rollout=rollout(), desired_weight=40))

    assert result.ok
    assert result.verified is Verification.NOT_IMPLEMENTED


def test_registry_noop_requests_touch_nothing(gateway, rollout):
    registry = build_registry(gateway)
    state = rollout()

    for request in (
        UpdateHash(rollout=state, canary_hash="abc", stable_hash="def"),
        SetHeaderRoute(rollout=state),
        RemoveManagedRoutes(rollout=state),
    ):
        assert registry.handle(request).ok

    assert gateway.fetches == []
    assert gateway.updates == []


def test_registry_skips_rollouts_without_plugin(gateway, rollout_manifest):
    manifest = rollout_manifest()
    manifest["spec"]["strategy"]["canary"]["trafficRouting"]["plugins"] = {"argoproj-labs/gatewayAPI": {}}
    registry = build_registry(gateway)

    result = registry.handle(SetWeight(rollout=RolloutState.from_dict(manifest), desired_weight=40))

    assert result.ok
    assert gateway.fetches == []


def test_registry_rejects_duplicate_registration(gateway):
    registry = build_registry(gateway)

    with pytest.raises(ValueError, match="already registered"):
        registry.register(CONFIG_KEY, ConsulTrafficRouterPlugin(gateway))

    registry.unregister(CONFIG_KEY)
    registry.register(CONFIG_KEY, ConsulTrafficRouterPlugin(gateway))


def test_registry_rejects_unknown_requests(gateway, rollout):
    registry = build_registry(gateway)

    class Unknown:
        def __init__(self, rollout):
            self.rollout = rollout

    with pytest.raises(TypeError, match="Unsupported request type"):
        registry.handle(Unknown(rollout()))


def test_registry_reports_malformed_resources(rollout, resolver_manifest, splitter_manifest):
    splits = [
        {"weight": 50, "serviceSubset": "stable"},
        {"weight": "fifty", "serviceSubset": "canary"},
    ]
    gateway = InMemoryGateway([resolver_manifest(), splitter_manifest(splits=splits)])
    registry = build_registry(gateway)

    result = registry.handle(SetWeight(rollout=rollout(), desired_weight=50))

    assert not result.ok
    assert result.error.startswith(
        'servicesplitters.consul.hashicorp.com "test-service" could not be parsed as a consul service splitter'
    )
    assert gateway.updates == []
