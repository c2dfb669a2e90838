"""Rollout phase classification."""

from __future__ import annotations

from enum import Enum

from .rollout import CONDITION_COMPLETED, CONDITION_TRUE, RolloutState


class RolloutPhase(Enum):
    """Reconciliation mode derived from the rollout status.

    ``NO_CANARY_YET`` covers the very first reconciliation of a rollout, before
    the controller has recorded any canary status.  Nothing is mutated in that
    phase.
    """

    NO_CANARY_YET = "NoCanaryYet"
    ABORTED = "Aborted"
    COMPLETED = "Completed"
    IN_PROGRESS = "InProgress"


def rollout_aborted(rollout: RolloutState) -> bool:
    return rollout.abort


def rollout_completed(rollout: RolloutState) -> bool:
    """Return ``True`` when the controller observed the current generation
    and flagged it as completed."""

    condition = rollout.condition(CONDITION_COMPLETED)
    if condition is None:
        return False
    return (
        str(rollout.generation) == rollout.observed_generation
        and condition.status == CONDITION_TRUE
    )


def classify(rollout: RolloutState) -> RolloutPhase:
    if rollout.canary.is_empty():
        return RolloutPhase.NO_CANARY_YET
    # Abort wins over a completed condition left from an earlier revision.
    if rollout_aborted(rollout):
        return RolloutPhase.ABORTED
    if rollout_completed(rollout):
        return RolloutPhase.COMPLETED
    return RolloutPhase.IN_PROGRESS
