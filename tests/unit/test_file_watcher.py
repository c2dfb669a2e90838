import logging
from pathlib import Path
from threading import Event

import yaml

from consul_trafficrouter.config import CONFIG_KEY
from consul_trafficrouter.plugin import ConsulTrafficRouterPlugin
from consul_trafficrouter.resources import ResourceKind
from rollouts_plugin import PluginRegistry, RemoveManagedRoutes, SetWeight
from rollouts_plugin.gateways import InMemoryGateway
from trafficrouter_agent.watchers.file import FileRolloutWatcher


class RecordingRegistry(PluginRegistry):
    def __init__(self):
        super().__init__()
        self.requests = []

    def handle(self, request):
        self.requests.append(request)
        return super().handle(request)


def write_rollouts(path: Path, *entries) -> None:
    path.write_text(yaml.safe_dump({"rollouts": list(entries)}))


def build_watcher(tmp_path: Path, gateway):
    registry = RecordingRegistry()
    registry.register(CONFIG_KEY, ConsulTrafficRouterPlugin(gateway))
    watcher = FileRolloutWatcher(
        registry=registry,
        path=tmp_path / "rollouts.yaml",
        interval=0.1,
        stop_event=Event(),
    )
    return watcher, registry


def test_file_watcher_reconciles_changes(tmp_path: Path, gateway, rollout_manifest):
    watcher, registry = build_watcher(tmp_path, gateway)
    rollouts_file = tmp_path / "rollouts.yaml"

    write_rollouts(rollouts_file, {"rollout": rollout_manifest(), "desiredWeight": 30})
    watcher.poll()

    assert [type(r) for r in registry.requests] == [SetWeight]
    assert registry.requests[0].desired_weight == 30
    splitter = gateway.get(ResourceKind.SERVICE_SPLITTER, "test-service", "default")
    assert splitter.weights() == {"stable": 70, "canary": 30}

    # Unchanged entries are not dispatched again.
    watcher.poll()
    assert len(registry.requests) == 1

    write_rollouts(rollouts_file, {"rollout": rollout_manifest(), "desiredWeight": 60})
    watcher.poll()

    assert len(registry.requests) == 2
    splitter = gateway.get(ResourceKind.SERVICE_SPLITTER, "test-service", "default")
    assert splitter.weights() == {"stable": 40, "canary": 60}


def test_file_watcher_retries_failed_entries(tmp_path: Path, gateway, rollout_manifest):
    watcher, registry = build_watcher(tmp_path, gateway)
    write_rollouts(tmp_path / "rollouts.yaml", {"rollout": rollout_manifest(), "desiredWeight": 30})
    gateway.fail_next_update(ResourceKind.SERVICE_SPLITTER)

    watcher.poll()
    splitter = gateway.get(ResourceKind.SERVICE_SPLITTER, "test-service", "default")
    assert splitter.weights() == {"stable": 100, "canary": 0}

    watcher.poll()
    assert len(registry.requests) == 2
    splitter = gateway.get(ResourceKind.SERVICE_SPLITTER, "test-service", "default")
    assert splitter.weights() == {"stable": 70, "canary": 30}


def test_file_watcher_reports_removed_rollouts(tmp_path: Path, gateway, rollout_manifest):
    watcher, registry = build_watcher(tmp_path, gateway)
    rollouts_file = tmp_path / "rollouts.yaml"
    write_rollouts(rollouts_file, {"rollout": rollout_manifest(), "desiredWeight": 30})
    watcher.poll()

    write_rollouts(rollouts_file)
    watcher.poll()

    assert isinstance(registry.requests[-1], RemoveManagedRoutes)
    assert registry.requests[-1].rollout.name == "rollout"


def test_file_watcher_skips_incomplete_entries(tmp_path: Path, gateway, rollout_manifest):
    watcher, registry = build_watcher(tmp_path, gateway)
    write_rollouts(tmp_path / "rollouts.yaml", {"rollout": rollout_manifest()}, {"desiredWeight": 10})

    watcher.poll()

    assert registry.requests == []


def test_file_watcher_ignores_invalid_files(tmp_path: Path, gateway, caplog):
    watcher, registry = build_watcher(tmp_path, gateway)

    watcher.poll()
    assert registry.requests == []

    (tmp_path / "rollouts.yaml").write_text("items: []\n")
    with caplog.at_level(logging.WARNING):
        watcher.poll()

    assert registry.requests == []
    assert "missing 'rollouts' key" in caplog.text


def test_file_watcher_removes_rollout_after_failed_change(tmp_path: Path, gateway, rollout_manifest):
    watcher, registry = build_watcher(tmp_path, gateway)
    rollouts_file = tmp_path / "rollouts.yaml"
    write_rollouts(rollouts_file, {"rollout": rollout_manifest(), "desiredWeight": 30})
    watcher.poll()

    gateway.fail_next_update(ResourceKind.SERVICE_RESOLVER)
    write_rollouts(rollouts_file, {"rollout": rollout_manifest(), "desiredWeight": 60})
    watcher.poll()
    assert registry.requests[-1].desired_weight == 60
    splitter = gateway.get(ResourceKind.SERVICE_SPLITTER, "test-service", "default")
    assert splitter.weights() == {"stable": 70, "canary": 30}

    write_rollouts(rollouts_file)
    watcher.poll()

    assert isinstance(registry.requests[-1], RemoveManagedRoutes)
    assert registry.requests[-1].rollout.name == "rollout"


def test_file_watcher_passes_weight_through(tmp_path: Path, gateway, rollout_manifest):
    watcher, registry = build_watcher(tmp_path, gateway)
    write_rollouts(tmp_path / "rollouts.yaml", {"rollout": rollout_manifest(), "desiredWeight": 50.7})

    watcher.poll()

    assert registry.requests[0].desired_weight == 50.7
    assert gateway.updates == []
    splitter = gateway.get(ResourceKind.SERVICE_SPLITTER, "test-service", "default")
    assert splitter.weights() == {"stable": 100, "canary": 0}


def test_file_watcher_reports_malformed_resources(tmp_path: Path, rollout_manifest, resolver_manifest, splitter_manifest):
    other = rollout_manifest()
    other["metadata"]["name"] = "other"
    splits = [
        {"weight": 50, "serviceSubset": "stable"},
        {"weight": "fifty", "serviceSubset": "canary"},
    ]
    gateway = InMemoryGateway([resolver_manifest(), splitter_manifest(splits=splits)])
    watcher, registry = build_watcher(tmp_path, gateway)
    rollouts_file = tmp_path / "rollouts.yaml"
    write_rollouts(
        rollouts_file,
        {"rollout": rollout_manifest(), "desiredWeight": 30},
        {"rollout": other, "desiredWeight": 30},
    )

    watcher.poll()

    # Both entries were attempted even though the splitter does not parse.
    assert len(registry.requests) == 2

    write_rollouts(rollouts_file, {"rollout": rollout_manifest(), "desiredWeight": 30})
    watcher.poll()

    assert isinstance(registry.requests[-1], RemoveManagedRoutes)
    assert registry.requests[-1].rollout.name == "other"


def test_file_watcher_start_polls_before_running(tmp_path: Path, gateway, rollout_manifest):
    watcher, registry = build_watcher(tmp_path, gateway)
    write_rollouts(tmp_path / "rollouts.yaml", {"rollout": rollout_manifest(), "desiredWeight": 30})
    watcher._stop_event.set()

    watcher.start()
    watcher.join(timeout=5)

    assert [type(r) for r in registry.requests] == [SetWeight]
