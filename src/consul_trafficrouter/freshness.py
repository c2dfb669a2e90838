"""Staleness gate for Consul routing resources.

The Consul controller reports a ``Synced`` condition on every config entry it
manages.  Mutating a resource whose last write has not been pushed to Consul
yet would race the controller, so reconciliation stops until the resource is
synchronised again.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional

from .exceptions import StaleResourceError
from .resources import ResourceKind, SyncStatus

LOG = logging.getLogger(__name__)

# Tunable, not a protocol constant: how far the synced condition's transition
# may drift from the resource's last synced timestamp.
DEFAULT_SYNC_TOLERANCE = timedelta(seconds=2)


def _stale_message(kind: ResourceKind) -> str:
    return (
        f"{kind.label} has not synced with Consul. The {kind.label} needs to be "
        "up to date before rollout can continue"
    )


class FreshnessValidator:
    """Check :class:`SyncStatus` blocks against a fixed tolerance."""

    def __init__(self, tolerance: timedelta = DEFAULT_SYNC_TOLERANCE) -> None:
        if tolerance < timedelta(0):
            raise ValueError("sync tolerance must not be negative")
        self._tolerance = tolerance

    @property
    def tolerance(self) -> timedelta:
        return self._tolerance

    def check(self, kind: ResourceKind, status: SyncStatus) -> None:
        """Raise :class:`StaleResourceError` if ``status`` is not current.

        A status without any ``Synced`` condition is accepted so resources
        written by older controllers are not blocked.
        """

        for condition in status.synced_conditions():
            if not condition.is_true:
                LOG.debug("%s synced condition is %r", kind.label, condition.status)
                raise StaleResourceError(_stale_message(kind))

            transition = condition.last_transition_time
            synced = status.last_synced_time
            # Both unset compare equal; only one set means a partial write.
            if transition is None and synced is None:
                continue
            if transition is None or synced is None:
                LOG.debug("%s is missing sync timestamps", kind.label)
                raise StaleResourceError(_stale_message(kind))

            drift = abs(transition - synced)
            if drift > self._tolerance:
                LOG.debug(
                    "%s sync drift %s exceeds tolerance %s",
                    kind.label,
                    drift,
                    self._tolerance,
                )
                raise StaleResourceError(_stale_message(kind))


def check_fresh(
    status: SyncStatus,
    kind: ResourceKind = ResourceKind.SERVICE_RESOLVER,
    tolerance: Optional[timedelta] = None,
) -> None:
    FreshnessValidator(tolerance if tolerance is not None else DEFAULT_SYNC_TOLERANCE).check(kind, status)
