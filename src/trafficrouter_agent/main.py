"""Entry point for the standalone traffic-router agent."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from pathlib import Path
from threading import Event
from typing import List

from consul_trafficrouter import ConsulTrafficRouterPlugin
from consul_trafficrouter.config import CONFIG_KEY
from consul_trafficrouter.gateway import ResourceGateway
from consul_trafficrouter.version import get_human_version
from rollouts_plugin import PluginRegistry
from rollouts_plugin.gateways import InMemoryGateway, load_kubernetes_gateway

from .config import AgentConfig, GatewayConfig, load_config
from .watchers import FileRolloutWatcher

LOG = logging.getLogger(__name__)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )


def build_gateway(config: GatewayConfig) -> ResourceGateway:
    if config.type == "memory":
        LOG.info("using in-memory routing resources from %s", config.resources)
        return InMemoryGateway.from_yaml(config.resources)
    return load_kubernetes_gateway(
        kubeconfig=config.kubeconfig,
        context=config.context,
        in_cluster=config.in_cluster,
    )


def build_registry(config: AgentConfig, gateway: ResourceGateway) -> PluginRegistry:
    registry = PluginRegistry()
    registry.register(
        CONFIG_KEY,
        ConsulTrafficRouterPlugin(gateway, sync_tolerance=config.plugin.sync_tolerance),
    )
    return registry


def build_watchers(config: AgentConfig, registry: PluginRegistry, stop_event: Event) -> List[FileRolloutWatcher]:
    """Create the configured watchers; nothing is started until all are valid."""

    watchers = []
    for watcher_cfg in config.watchers:
        if watcher_cfg.type != "file":
            raise ValueError(f"unsupported watcher type '{watcher_cfg.type}'")
        watchers.append(
            FileRolloutWatcher(
                registry=registry,
                path=watcher_cfg.path,
                interval=watcher_cfg.interval,
                stop_event=stop_event,
            )
        )
    return watchers


def _wait_for_shutdown(stop_event: Event) -> None:  # pragma: no cover - needs signals
    def _request_stop(signum, frame):
        LOG.info("received signal %s, stopping rollout watchers", signum)
        stop_event.set()

    for signum in (signal.SIGINT, signal.SIGTERM):
        signal.signal(signum, _request_stop)
    try:
        while not stop_event.wait(1.0):
            pass
    except KeyboardInterrupt:
        stop_event.set()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run the Consul traffic-router agent")
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("/etc/consul-trafficrouter/agent.yaml"),
        help="Path to the agent configuration file",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Print the version of the plugin",
    )

    args = parser.parse_args(argv)
    if args.version:
        print(get_human_version())
        return 0

    _setup_logging(args.verbose)

    config = load_config(args.config)
    registry = build_registry(config, build_gateway(config.gateway))

    stop_event = Event()
    watchers = build_watchers(config, registry, stop_event)
    if not watchers:
        LOG.warning("no rollout watchers configured; agent will idle")
    for watcher in watchers:
        watcher.start()

    _wait_for_shutdown(stop_event)
    for watcher in watchers:
        watcher.join()

    LOG.info("traffic-router agent stopped")
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
