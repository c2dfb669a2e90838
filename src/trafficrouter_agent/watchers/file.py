"""File-based rollout watcher."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from threading import Event, Thread
from typing import Any, Dict, Tuple

import yaml

from consul_trafficrouter.rollout import RolloutState
from rollouts_plugin import PluginRegistry, RemoveManagedRoutes, SetWeight

LOG = logging.getLogger(__name__)

_Key = Tuple[str, str]


def _fingerprint(entry: Dict[str, Any]) -> str:
    return json.dumps(entry, sort_keys=True, default=str)


def _extract_state(payload: Any) -> Dict[_Key, Tuple[str, SetWeight]]:
    if not isinstance(payload, dict):
        raise ValueError("rollouts file must be a mapping")
    rollouts = payload.get("rollouts")
    if rollouts is None:
        raise ValueError("rollouts file missing 'rollouts' key")

    state: Dict[_Key, Tuple[str, SetWeight]] = {}
    for entry in rollouts:
        manifest = entry.get("rollout")
        weight = entry.get("desiredWeight")
        if manifest is None or weight is None:
            continue
        rollout = RolloutState.from_dict(manifest)
        request = SetWeight(rollout=rollout, desired_weight=weight)
        state[(rollout.namespace, rollout.name)] = (_fingerprint(entry), request)
    return state


class FileRolloutWatcher(Thread):
    """Poll a JSON/YAML rollouts file and drive the plugins.

    A rollout is reconciled whenever its entry changes.  Entries whose last
    reconciliation failed are retried on every poll, and a rollout that drops
    out of the file gets its managed routes removed once.
    """

    def __init__(
        self,
        registry: PluginRegistry,
        path: Path,
        interval: float,
        stop_event: Event,
    ) -> None:
        super().__init__(daemon=True)
        self._registry = registry
        self._path = Path(path)
        self._interval = interval
        self._stop_event = stop_event
        self._state: Dict[_Key, Tuple[str, SetWeight]] = {}
        self._seen: Dict[_Key, RolloutState] = {}

    def start(self) -> None:
        """Poll once in the caller's thread, then keep polling in the background."""

        try:
            self.poll()
        except Exception:  # pragma: no cover - logged below
            LOG.exception("initial poll of %s failed", self._path)
        super().start()

    def run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.poll()
            except Exception:  # pragma: no cover - logged below
                LOG.exception("rollout watcher encountered an error")
            self._stop_event.wait(self._interval)

    def poll(self) -> None:
        if not self._path.exists():
            LOG.debug("rollouts file %s does not exist yet", self._path)
            return

        try:
            payload = yaml.safe_load(self._path.read_text())
        except yaml.YAMLError as exc:
            LOG.warning("failed to parse rollouts file %s: %s", self._path, exc)
            return

        try:
            desired = _extract_state(payload)
        except (ValueError, TypeError, AttributeError) as exc:
            LOG.warning("invalid rollouts file %s: %s", self._path, exc)
            return

        applied: Dict[_Key, Tuple[str, SetWeight]] = {}
        for key, (fingerprint, request) in desired.items():
            previous = self._state.get(key)
            if previous is not None and previous[0] == fingerprint:
                applied[key] = previous
                continue

            LOG.debug("rollout %s/%s desired weight %s", key[0], key[1], request.desired_weight)
            result = self._registry.handle(request)
            if result.ok:
                applied[key] = (fingerprint, request)
            else:
                LOG.warning("rollout %s/%s not reconciled: %s", key[0], key[1], result.error)

        for key in set(self._seen) - set(desired):
            LOG.debug("rollout %s/%s removed", key[0], key[1])
            self._registry.handle(RemoveManagedRoutes(self._seen[key]))

        self._state = applied
        self._seen = {key: request.rollout for key, (_, request) in desired.items()}
