"""YAML configuration loader for the traffic-router agent."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

import yaml

from consul_trafficrouter.freshness import DEFAULT_SYNC_TOLERANCE

GATEWAY_TYPES = ("kubernetes", "memory")


@dataclass
class PluginSettings:
    sync_tolerance_seconds: float = DEFAULT_SYNC_TOLERANCE.total_seconds()

    @property
    def sync_tolerance(self) -> timedelta:
        return timedelta(seconds=self.sync_tolerance_seconds)


@dataclass
class GatewayConfig:
    type: str = "kubernetes"
    kubeconfig: Optional[Path] = None
    context: Optional[str] = None
    in_cluster: Optional[bool] = None
    resources: Optional[Path] = None


@dataclass
class WatcherConfig:
    type: str
    path: Path
    interval: float = 5.0
    options: dict = field(default_factory=dict)


@dataclass
class AgentConfig:
    plugin: PluginSettings = field(default_factory=PluginSettings)
    gateway: GatewayConfig = field(default_factory=GatewayConfig)
    watchers: Sequence[WatcherConfig] = field(default_factory=list)


def _optional_path(value) -> Optional[Path]:
    return Path(value).expanduser() if value else None


def _parse_plugin(section: dict) -> PluginSettings:
    tolerance = float(section.get("sync_tolerance_seconds", DEFAULT_SYNC_TOLERANCE.total_seconds()))
    if tolerance < 0:
        raise ValueError("'plugin.sync_tolerance_seconds' must not be negative")
    return PluginSettings(sync_tolerance_seconds=tolerance)


def _parse_gateway(section: dict) -> GatewayConfig:
    gateway_type = str(section.get("type", "kubernetes"))
    if gateway_type not in GATEWAY_TYPES:
        raise ValueError(f"unsupported gateway type '{gateway_type}'")

    in_cluster = section.get("in_cluster")
    resources = _optional_path(section.get("resources"))
    if gateway_type == "memory" and resources is None:
        raise ValueError("memory gateway requires a 'resources' file")

    return GatewayConfig(
        type=gateway_type,
        kubeconfig=_optional_path(section.get("kubeconfig")),
        context=section.get("context"),
        in_cluster=None if in_cluster is None else bool(in_cluster),
        resources=resources,
    )


def _parse_watchers(entries: Iterable[dict]) -> List[WatcherConfig]:
    watchers: List[WatcherConfig] = []
    for entry in entries:
        options = entry.get("options", {})
        if not isinstance(options, dict):
            raise ValueError("watcher 'options' must be a mapping if provided")
        watchers.append(
            WatcherConfig(
                type=str(entry["type"]),
                path=Path(entry.get("path", ".")),
                interval=float(entry.get("interval", entry.get("poll_interval", 5.0))),
                options=options,
            )
        )
    return watchers


def _section(data: dict, name: str) -> dict:
    section = data.get(name)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ValueError(f"'{name}' section must be a mapping")
    return section


def load_config(path: Path) -> AgentConfig:
    data = yaml.safe_load(path.read_text())
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError("Agent configuration must be a mapping")

    watchers_section = data.get("watchers")
    if watchers_section is None:
        watchers_section = []
    if not isinstance(watchers_section, list):
        raise ValueError("'watchers' section must be a list")

    return AgentConfig(
        plugin=_parse_plugin(_section(data, "plugin")),
        gateway=_parse_gateway(_section(data, "gateway")),
        watchers=_parse_watchers(watchers_section),
    )
