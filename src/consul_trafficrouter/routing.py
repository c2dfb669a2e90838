"""Compute the resolver filters and splitter weights for a rollout phase."""

from __future__ import annotations

import copy
import logging
from typing import Tuple

from .config import RoutingConfig
from .exceptions import ConfigurationError, SplitterShapeError, SubsetNotFoundError
from .phase import RolloutPhase
from .resources import ServiceResolver, ServiceSplitter

LOG = logging.getLogger(__name__)

EXPECTED_SPLITS = 2
MAX_WEIGHT = 100


def validate_weight(desired_weight: int) -> int:
    if isinstance(desired_weight, bool) or not isinstance(desired_weight, int):
        raise ConfigurationError(f"desired weight must be an integer, got {desired_weight!r}")
    if not 0 <= desired_weight <= MAX_WEIGHT:
        raise ConfigurationError(f"desired weight must be between 0 and {MAX_WEIGHT}, got {desired_weight}")
    return desired_weight


def set_subset_filter(resolver: ServiceResolver, subset_name: str, filter_value: str) -> None:
    """Replace the filter of an existing subset in place."""

    subset = resolver.subsets.get(subset_name)
    if subset is None:
        raise SubsetNotFoundError(subset_name, resolver)
    subset.filter = filter_value


def apply_resolver_policy(
    phase: RolloutPhase,
    config: RoutingConfig,
    service_meta_version: str,
    resolver: ServiceResolver,
) -> ServiceResolver:
    """Return a copy of ``resolver`` with the subset filters for ``phase``.

    ==========  ==================  ==================
    phase       canary filter       stable filter
    ==========  ==================  ==================
    in progress version filter      untouched
    aborted     cleared             untouched
    completed   cleared             version filter
    ==========  ==================  ==================
    """

    updated = copy.deepcopy(resolver)
    version_filter = config.build_filter(service_meta_version)

    if phase is RolloutPhase.IN_PROGRESS:
        set_subset_filter(updated, config.canary_subset_name, version_filter)
    elif phase is RolloutPhase.ABORTED:
        set_subset_filter(updated, config.canary_subset_name, "")
    elif phase is RolloutPhase.COMPLETED:
        set_subset_filter(updated, config.canary_subset_name, "")
        # The former canary version becomes the stable one.
        set_subset_filter(updated, config.stable_subset_name, version_filter)
    else:
        raise ValueError(f"no resolver policy for phase {phase}")

    LOG.debug(
        "resolver %s/%s subsets for phase %s: %s",
        updated.namespace,
        updated.name,
        phase.value,
        {name: subset.filter for name, subset in updated.subsets.items()},
    )
    return updated


def apply_splitter_weights(
    desired_weight: int,
    config: RoutingConfig,
    splitter: ServiceSplitter,
) -> ServiceSplitter:
    """Return a copy of ``splitter`` sending ``desired_weight`` percent to the
    canary subset and the remainder to the stable subset."""

    count = len(splitter.splits)
    if count == 0:
        raise SplitterShapeError("spec.splits was not found in consul service splitter")
    if count != EXPECTED_SPLITS:
        raise SplitterShapeError(
            f"unexpected number of service splits. Expected {EXPECTED_SPLITS}, found {count}"
        )

    updated = copy.deepcopy(splitter)
    for split in updated.splits:
        if split.service_subset == config.canary_subset_name:
            split.weight = float(desired_weight)
        elif split.service_subset == config.stable_subset_name:
            split.weight = float(MAX_WEIGHT - desired_weight)
        else:
            raise SplitterShapeError("unexpected service split")

    LOG.debug("splitter %s/%s weights: %s", updated.namespace, updated.name, updated.weights())
    return updated


def resolve(
    phase: RolloutPhase,
    desired_weight: int,
    config: RoutingConfig,
    annotation_value: str,
    resolver: ServiceResolver,
    splitter: ServiceSplitter,
) -> Tuple[ServiceResolver, ServiceSplitter]:
    """Compute both routing resources for ``phase`` without persisting them."""

    validate_weight(desired_weight)
    updated_resolver = apply_resolver_policy(phase, config, annotation_value, resolver)
    updated_splitter = apply_splitter_weights(desired_weight, config, splitter)
    return updated_resolver, updated_splitter
