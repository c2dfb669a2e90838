"""Plugin configuration carried on the rollout.

The rollout controller hands every traffic-router plugin an opaque JSON blob
stored under ``spec.strategy.canary.trafficRouting.plugins[<key>]``.  This
module decodes the Consul flavour of that blob and derives the annotation key
and filter expression used to pin subsets to a service version.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from .exceptions import ConfigurationError

# Key identifying this plugin in the rollout controller configmap and in the
# rollout's traffic-routing plugin map.
CONFIG_KEY = "hashicorp/consul"
PLUGIN_TYPE = "Consul"

DEFAULT_ANNOTATION_SUFFIX = "version"
SERVICE_META_ANNOTATION = "consul.hashicorp.com/service-meta-{suffix}"
FILTER_TEMPLATE = "Service.Meta.{suffix} == {value}"

INVALID_CONFIG_MESSAGE = (
    "invalid consul traffic routing configuration. stableSubsetName, "
    "canarySubsetName, and serviceName must be set"
)


@dataclass(frozen=True)
class RoutingConfig:
    """Consul routing settings for a single rollout.

    Attributes
    ----------
    service_name:
        Name shared by the ServiceResolver and ServiceSplitter resources.
    canary_subset_name / stable_subset_name:
        Resolver subset keys (and splitter ``serviceSubset`` values) for the
        two versions of the service.
    service_meta_annotation_suffix:
        Optional suffix selecting which ``Service.Meta`` key identifies the
        version.  ``version`` is used when unset.
    """

    service_name: str
    canary_subset_name: str
    stable_subset_name: str
    service_meta_annotation_suffix: Optional[str] = None

    @property
    def suffix(self) -> str:
        return self.service_meta_annotation_suffix or DEFAULT_ANNOTATION_SUFFIX

    @property
    def annotation_key(self) -> str:
        return SERVICE_META_ANNOTATION.format(suffix=self.suffix)

    def build_filter(self, value: str) -> str:
        return build_filter(self.suffix, value)

    def validate(self) -> None:
        if not (self.service_name and self.canary_subset_name and self.stable_subset_name):
            raise ConfigurationError(INVALID_CONFIG_MESSAGE)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RoutingConfig":
        return cls(
            service_name=_string_field(data, "serviceName"),
            canary_subset_name=_string_field(data, "canarySubsetName"),
            stable_subset_name=_string_field(data, "stableSubsetName"),
            service_meta_annotation_suffix=_string_field(data, "serviceMetaAnnotationSuffix") or None,
        )

    def to_dict(self) -> dict:
        data = {
            "serviceName": self.service_name,
            "canarySubsetName": self.canary_subset_name,
            "stableSubsetName": self.stable_subset_name,
        }
        if self.service_meta_annotation_suffix:
            data["serviceMetaAnnotationSuffix"] = self.service_meta_annotation_suffix
        return data


def build_filter(suffix: str, value: str) -> str:
    """Return the resolver filter expression selecting ``value``."""

    return FILTER_TEMPLATE.format(suffix=suffix, value=value)


def _string_field(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ConfigurationError(f"invalid consul traffic routing configuration. {key} must be a string")
    return value


def parse_plugin_config(raw: Any) -> RoutingConfig:
    """Decode and validate the plugin configuration blob.

    ``raw`` is either the JSON document (``str``/``bytes``) or a mapping that
    was already decoded as part of the rollout manifest.
    """

    if raw is None:
        raise ConfigurationError(f"rollout has no '{CONFIG_KEY}' traffic routing plugin configuration")

    if isinstance(raw, (bytes, bytearray, str)):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"invalid consul traffic routing configuration: {exc}") from exc

    if not isinstance(raw, Mapping):
        raise ConfigurationError("invalid consul traffic routing configuration: expected a JSON object")

    config = RoutingConfig.from_dict(raw)
    config.validate()
    return config
