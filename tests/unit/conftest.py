import json

import pytest

from consul_trafficrouter.config import CONFIG_KEY
from consul_trafficrouter.plugin import ConsulTrafficRouterPlugin
from consul_trafficrouter.rollout import RolloutState
from rollouts_plugin.gateways import InMemoryGateway

SYNCED_AT = "2024-05-01T10:00:00Z"


def _status(synced: str = "True", transition: str = SYNCED_AT, last_synced: str = SYNCED_AT) -> dict:
    return {
        "conditions": [
            {"type": "Synced", "status": synced, "lastTransitionTime": transition},
        ],
        "lastSyncedTime": last_synced,
    }


@pytest.fixture
def plugin_config():
    def build(suffix=None, **overrides):
        config = {
            "serviceName": "test-service",
            "canarySubsetName": "canary",
            "stableSubsetName": "stable",
        }
        if suffix:
            config["serviceMetaAnnotationSuffix"] = suffix
        config.update(overrides)
        return config

    return build


@pytest.fixture
def rollout_manifest(plugin_config):
    def build(
        *,
        abort=False,
        completed=False,
        generation=10,
        observed_generation="10",
        canary_status=None,
        annotations=None,
        config=None,
        raw_config=None,
    ):
        if canary_status is None:
            canary_status = {
                "weights": {
                    "canary": {"weight": 0},
                    "stable": {"weight": 100},
                }
            }
        if raw_config is None:
            raw_config = json.dumps(config if config is not None else plugin_config())
        return {
            "apiVersion": "argoproj.io/v1alpha1",
            "kind": "Rollout",
            "metadata": {"name": "rollout", "namespace": "default", "generation": generation},
            "spec": {
                "template": {
                    "metadata": {
                        "annotations": annotations
                        if annotations is not None
                        else {"consul.hashicorp.com/service-meta-version": "2"}
                    }
                },
                "strategy": {"canary": {"trafficRouting": {"plugins": {CONFIG_KEY: raw_config}}}},
            },
            "status": {
                "observedGeneration": observed_generation,
                "abort": abort,
                "conditions": [
                    {"type": "Completed", "status": "True" if completed else "False"},
                ],
                "canary": canary_status,
            },
        }

    return build


@pytest.fixture
def rollout(rollout_manifest):
    def build(**kwargs) -> RolloutState:
        return RolloutState.from_dict(rollout_manifest(**kwargs))

    return build


@pytest.fixture
def resolver_manifest():
    def build(subsets=None, **status_kwargs):
        if subsets is None:
            subsets = {
                "stable": {"filter": "Service.Meta.version == 1"},
                "canary": {},
            }
        return {
            "apiVersion": "consul.hashicorp.com/v1alpha1",
            "kind": "ServiceResolver",
            "metadata": {"name": "test-service", "namespace": "default", "resourceVersion": "7"},
            "spec": {"subsets": subsets, "connectTimeout": "5s"},
            "status": _status(**status_kwargs),
        }

    return build


@pytest.fixture
def splitter_manifest():
    def build(splits=None, **status_kwargs):
        if splits is None:
            splits = [
                {"weight": 100, "serviceSubset": "stable"},
                {"weight": 0, "serviceSubset": "canary"},
            ]
        return {
            "apiVersion": "consul.hashicorp.com/v1alpha1",
            "kind": "ServiceSplitter",
            "metadata": {"name": "test-service", "namespace": "default"},
            "spec": {"splits": splits},
            "status": _status(**status_kwargs),
        }

    return build


@pytest.fixture
def gateway(resolver_manifest, splitter_manifest) -> InMemoryGateway:
    return InMemoryGateway([resolver_manifest(), splitter_manifest()])


@pytest.fixture
def plugin(gateway) -> ConsulTrafficRouterPlugin:
    return ConsulTrafficRouterPlugin(gateway)
