#!/usr/bin/env python3
"""Run a single set-weight reconciliation against Consul routing resources."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import yaml

REPO_ROOT = Path(__file__).resolve().parents[2]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from consul_trafficrouter import ConsulTrafficRouterPlugin  # noqa: E402
from consul_trafficrouter.exceptions import TrafficRouterError  # noqa: E402
from consul_trafficrouter.rollout import RolloutState  # noqa: E402
from rollouts_plugin.gateways import InMemoryGateway, load_kubernetes_gateway  # noqa: E402


LOG = logging.getLogger(__name__)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--rollout",
        type=Path,
        required=True,
        help="Path to the Rollout manifest (YAML or JSON)",
    )
    parser.add_argument(
        "--weight",
        type=int,
        required=True,
        help="Desired canary weight (0-100)",
    )
    parser.add_argument(
        "--resources",
        type=Path,
        help="Dry run against routing resources read from this YAML file "
        "instead of the cluster; updated resources are printed",
    )
    parser.add_argument("--kubeconfig", type=Path, help="Path to a kubeconfig file")
    parser.add_argument("--context", help="Kubeconfig context to use")
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    rollout = RolloutState.from_dict(yaml.safe_load(args.rollout.read_text()))

    if args.resources:
        gateway = InMemoryGateway.from_yaml(args.resources)
    else:
        gateway = load_kubernetes_gateway(kubeconfig=args.kubeconfig, context=args.context)

    plugin = ConsulTrafficRouterPlugin(gateway)
    try:
        plugin.set_weight(rollout, args.weight)
    except TrafficRouterError as exc:
        LOG.error("set weight failed: %s", exc)
        return 1

    if isinstance(gateway, InMemoryGateway):
        if not gateway.updates:
            LOG.info("No routing resources were changed")
        yaml.safe_dump_all(
            [resource.to_dict() for resource in gateway.updates],
            sys.stdout,
            sort_keys=False,
        )
    return 0


if __name__ == "__main__":
    sys.exit(main())
