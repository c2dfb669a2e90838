"""Requests the rollout controller sends to traffic-router plugins."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from consul_trafficrouter.rollout import RolloutState, WeightDestination


@dataclass(frozen=True)
class SetWeight:
    """Route ``desired_weight`` percent of traffic to the canary.

    Sent on every controller tick, so plugins must treat repeats of the same
    request as no-ops.
    """

    rollout: RolloutState
    desired_weight: int
    additional_destinations: Sequence[WeightDestination] = field(default_factory=tuple)


@dataclass(frozen=True)
class VerifyWeight:
    rollout: RolloutState
    desired_weight: int
    additional_destinations: Sequence[WeightDestination] = field(default_factory=tuple)


@dataclass(frozen=True)
class UpdateHash:
    rollout: RolloutState
    canary_hash: str
    stable_hash: str
    additional_destinations: Sequence[WeightDestination] = field(default_factory=tuple)


@dataclass(frozen=True)
class SetHeaderRoute:
    rollout: RolloutState
    header_routing: Optional[Any] = None


@dataclass(frozen=True)
class SetMirrorRoute:
    rollout: RolloutState
    mirror_routing: Optional[Any] = None


@dataclass(frozen=True)
class RemoveManagedRoutes:
    rollout: RolloutState
