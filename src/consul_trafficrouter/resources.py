"""Consul ServiceResolver / ServiceSplitter resources.

Only the fields the router reads or writes are modelled explicitly.  Every
other key found on the wire is preserved so that writing a resource back does
not drop data owned by the Consul controller.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Dict, List, Mapping, Optional

from .exceptions import ResourceShapeError

API_GROUP = "consul.hashicorp.com"
API_VERSION = "v1alpha1"

CONDITION_SYNCED = "Synced"
CONDITION_TRUE = "True"


class ResourceKind(Enum):
    """Routing resource kinds handled by the gateway."""

    SERVICE_RESOLVER = ("ServiceResolver", "serviceresolvers")
    SERVICE_SPLITTER = ("ServiceSplitter", "servicesplitters")

    def __init__(self, kind: str, plural: str) -> None:
        self.kind = kind
        self.plural = plural

    @property
    def group(self) -> str:
        return API_GROUP

    @property
    def version(self) -> str:
        return API_VERSION

    @property
    def label(self) -> str:
        """Human readable name used in error messages."""

        return "service resolver" if self is ResourceKind.SERVICE_RESOLVER else "service splitter"

    @classmethod
    def from_kind(cls, kind: str) -> "ResourceKind":
        for member in cls:
            if member.kind == kind:
                return member
        raise ValueError(f"unsupported routing resource kind '{kind}'")


def parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass
class SyncCondition:
    type: str
    status: str
    last_transition_time: Optional[datetime] = None
    reason: str = ""
    message: str = ""

    @property
    def is_true(self) -> bool:
        return self.status == CONDITION_TRUE

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SyncCondition":
        return cls(
            type=str(data.get("type", "")),
            status=str(data.get("status", "")),
            last_transition_time=parse_timestamp(data.get("lastTransitionTime")),
            reason=str(data.get("reason", "")),
            message=str(data.get("message", "")),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.type, "status": self.status}
        if self.last_transition_time is not None:
            data["lastTransitionTime"] = format_timestamp(self.last_transition_time)
        if self.reason:
            data["reason"] = self.reason
        if self.message:
            data["message"] = self.message
        return data


@dataclass
class SyncStatus:
    """Status block the Consul controller writes on every config entry."""

    conditions: List[SyncCondition] = field(default_factory=list)
    last_synced_time: Optional[datetime] = None

    def synced_conditions(self) -> List[SyncCondition]:
        return [c for c in self.conditions if c.type == CONDITION_SYNCED]

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "SyncStatus":
        data = data or {}
        return cls(
            conditions=[SyncCondition.from_dict(c) for c in data.get("conditions") or []],
            last_synced_time=parse_timestamp(data.get("lastSyncedTime")),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"conditions": [c.to_dict() for c in self.conditions]}
        if self.last_synced_time is not None:
            data["lastSyncedTime"] = format_timestamp(self.last_synced_time)
        return data


@dataclass
class ResolverSubset:
    filter: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "ResolverSubset":
        data = dict(data or {})
        return cls(filter=str(data.pop("filter", "") or ""), extra=data)

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.extra)
        if self.filter:
            data["filter"] = self.filter
        return data


@dataclass
class ServiceSplit:
    service_subset: str
    weight: float = 0.0
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ServiceSplit":
        data = dict(data)
        return cls(
            service_subset=str(data.pop("serviceSubset", "") or ""),
            weight=float(data.pop("weight", 0) or 0),
            extra=data,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.extra)
        data["serviceSubset"] = self.service_subset
        data["weight"] = self.weight
        return data


@dataclass
class _RoutingResource:
    name: str
    namespace: str
    status: SyncStatus = field(default_factory=SyncStatus)
    metadata: Dict[str, Any] = field(default_factory=dict)
    spec_extra: Dict[str, Any] = field(default_factory=dict)

    KIND: ClassVar[ResourceKind]

    @property
    def kind(self) -> ResourceKind:
        return self.KIND

    def _metadata_dict(self) -> Dict[str, Any]:
        metadata = copy.deepcopy(self.metadata)
        metadata["name"] = self.name
        metadata["namespace"] = self.namespace
        return metadata

    def _envelope(self, spec: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "apiVersion": f"{API_GROUP}/{API_VERSION}",
            "kind": self.KIND.kind,
            "metadata": self._metadata_dict(),
            "spec": spec,
            "status": self.status.to_dict(),
        }


@dataclass
class ServiceResolver(_RoutingResource):
    """Maps subset names to the filter selecting their service instances."""

    subsets: Dict[str, ResolverSubset] = field(default_factory=dict)

    KIND: ClassVar[ResourceKind] = ResourceKind.SERVICE_RESOLVER

    @classmethod
    def from_dict(cls, obj: Mapping[str, Any]) -> "ServiceResolver":
        metadata = dict(obj.get("metadata") or {})
        spec = dict(obj.get("spec") or {})
        subsets = {
            str(name): ResolverSubset.from_dict(body)
            for name, body in (spec.pop("subsets", None) or {}).items()
        }
        return cls(
            name=str(metadata.get("name", "")),
            namespace=str(metadata.get("namespace", "")),
            status=SyncStatus.from_dict(obj.get("status")),
            metadata=metadata,
            spec_extra=spec,
            subsets=subsets,
        )

    def to_dict(self) -> Dict[str, Any]:
        spec = copy.deepcopy(self.spec_extra)
        spec["subsets"] = {name: subset.to_dict() for name, subset in self.subsets.items()}
        return self._envelope(spec)


@dataclass
class ServiceSplitter(_RoutingResource):
    """Ordered list of weighted splits across resolver subsets."""

    splits: List[ServiceSplit] = field(default_factory=list)

    KIND: ClassVar[ResourceKind] = ResourceKind.SERVICE_SPLITTER

    def weights(self) -> Dict[str, float]:
        return {split.service_subset: split.weight for split in self.splits}

    @classmethod
    def from_dict(cls, obj: Mapping[str, Any]) -> "ServiceSplitter":
        metadata = dict(obj.get("metadata") or {})
        spec = dict(obj.get("spec") or {})
        splits = [ServiceSplit.from_dict(entry) for entry in spec.pop("splits", None) or []]
        return cls(
            name=str(metadata.get("name", "")),
            namespace=str(metadata.get("namespace", "")),
            status=SyncStatus.from_dict(obj.get("status")),
            metadata=metadata,
            spec_extra=spec,
            splits=splits,
        )

    def to_dict(self) -> Dict[str, Any]:
        spec = copy.deepcopy(self.spec_extra)
        spec["splits"] = [split.to_dict() for split in self.splits]
        return self._envelope(spec)


RESOURCE_TYPES = {
    ResourceKind.SERVICE_RESOLVER: ServiceResolver,
    ResourceKind.SERVICE_SPLITTER: ServiceSplitter,
}


def resource_from_dict(obj: Mapping[str, Any]):
    """Instantiate the resource class matching ``obj['kind']``."""

    kind = ResourceKind.from_kind(str(obj.get("kind", "")))
    return RESOURCE_TYPES[kind].from_dict(obj)


def load_resource(kind: ResourceKind, name: str, obj: Mapping[str, Any]):
    """Build a ``kind`` resource from a fetched object.

    Fields that no longer parse (a string weight, a list of subsets, a bad
    timestamp) are reported as :class:`ResourceShapeError` so the failure
    reaches the controller like any other reconciliation error.
    """

    try:
        return RESOURCE_TYPES[kind].from_dict(obj)
    except (AttributeError, TypeError, ValueError) as exc:
        raise ResourceShapeError(
            f'{kind.plural}.{kind.group} "{name}" could not be parsed as a consul {kind.label}: {exc}'
        ) from exc
