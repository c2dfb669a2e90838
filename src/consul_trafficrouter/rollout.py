"""Read-only view of the rollout fields the router needs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .config import CONFIG_KEY

CONDITION_COMPLETED = "Completed"
CONDITION_TRUE = "True"


@dataclass(frozen=True)
class RolloutCondition:
    type: str
    status: str
    reason: str = ""
    message: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RolloutCondition":
        return cls(
            type=str(data.get("type", "")),
            status=str(data.get("status", "")),
            reason=str(data.get("reason", "")),
            message=str(data.get("message", "")),
        )


@dataclass(frozen=True)
class WeightDestination:
    weight: int
    service_name: str = ""
    pod_template_hash: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "WeightDestination":
        return cls(
            weight=int(data.get("weight", 0)),
            service_name=str(data.get("serviceName", "")),
            pod_template_hash=str(data.get("podTemplateHash", "")),
        )


@dataclass(frozen=True)
class TrafficWeights:
    canary: WeightDestination
    stable: WeightDestination
    additional: Sequence[WeightDestination] = ()
    verified: Optional[bool] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TrafficWeights":
        return cls(
            canary=WeightDestination.from_dict(data.get("canary") or {}),
            stable=WeightDestination.from_dict(data.get("stable") or {}),
            additional=tuple(
                WeightDestination.from_dict(entry) for entry in data.get("additional") or []
            ),
            verified=data.get("verified"),
        )


@dataclass(frozen=True)
class CanaryStatus:
    """Canary section of the rollout status.

    Only the traffic weights are interpreted.  The remaining fields
    (analysis runs, experiment, ping-pong state) are kept so that
    :meth:`is_empty` can tell a fresh rollout from one in flight.
    """

    weights: Optional[TrafficWeights] = None
    other: Mapping[str, Any] = field(default_factory=dict)

    def is_empty(self) -> bool:
        return self.weights is None and not any(self.other.values())

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "CanaryStatus":
        if not data:
            return cls()
        weights = data.get("weights")
        return cls(
            weights=TrafficWeights.from_dict(weights) if weights is not None else None,
            other={k: v for k, v in data.items() if k != "weights"},
        )


@dataclass(frozen=True)
class RolloutState:
    """Snapshot of a rollout handed to the plugin for one reconciliation."""

    name: str
    namespace: str
    generation: int = 0
    observed_generation: str = ""
    abort: bool = False
    conditions: Sequence[RolloutCondition] = ()
    canary: CanaryStatus = field(default_factory=CanaryStatus)
    template_annotations: Mapping[str, str] = field(default_factory=dict)
    traffic_router_plugins: Mapping[str, Any] = field(default_factory=dict)

    def condition(self, condition_type: str) -> Optional[RolloutCondition]:
        return next((c for c in self.conditions if c.type == condition_type), None)

    def plugin_config(self, key: str = CONFIG_KEY) -> Any:
        return self.traffic_router_plugins.get(key)

    def annotation(self, key: str) -> str:
        return self.template_annotations.get(key, "")

    @classmethod
    def from_dict(cls, obj: Mapping[str, Any]) -> "RolloutState":
        """Build a view from a ``Rollout`` manifest (camelCase keys)."""

        metadata = obj.get("metadata") or {}
        spec = obj.get("spec") or {}
        status = obj.get("status") or {}

        template_meta = (spec.get("template") or {}).get("metadata") or {}
        canary_strategy = (spec.get("strategy") or {}).get("canary") or {}
        plugins = (canary_strategy.get("trafficRouting") or {}).get("plugins") or {}

        conditions: List[RolloutCondition] = [
            RolloutCondition.from_dict(entry) for entry in status.get("conditions") or []
        ]
        annotations: Dict[str, str] = {
            str(k): str(v) for k, v in (template_meta.get("annotations") or {}).items()
        }

        return cls(
            name=str(metadata.get("name", "")),
            namespace=str(metadata.get("namespace", "")),
            generation=int(metadata.get("generation", 0)),
            observed_generation=str(status.get("observedGeneration", "")),
            abort=bool(status.get("abort", False)),
            conditions=tuple(conditions),
            canary=CanaryStatus.from_dict(status.get("canary")),
            template_annotations=annotations,
            traffic_router_plugins=dict(plugins),
        )
