#!/usr/bin/env python3
"""
rancher_ha/cli/deploy.py

Provision the HA infrastructure and bootstrap RKE2 + Rancher on every instance.

    python -m rancher_ha.cli.deploy --config tool-config.yml

Exits 0 when every instance is up, 1 otherwise.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from rancher_ha.deployment.provision import deploy
from rancher_ha.models.config import load_tool_config
from rancher_ha.models.ha import HAInstanceResult
from rancher_ha.utils.errors import FleetSetupError, HASetupError, describe_chain
from rancher_ha.utils.async_command_runner import CommandError


def _print_results(results: List[HAInstanceResult]) -> None:
    for r in results:
        print(f"HA {r.instance_num}:")
        print(f"  workspace:  {r.workspace}")
        print(f"  kubeconfig: {r.kubeconfig_path or '(not saved)'}")
        print(f"  LB:         {r.load_balancer_dns}")
        print(f"  Rancher:    {r.rancher_url}")


async def _run_deploy(args: argparse.Namespace) -> None:
    config = load_tool_config(args.config)
    results = await deploy(config, skip_provision=args.skip_provision)
    _print_results(results)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rancher_ha.cli.deploy",
        description="Provision and bootstrap HA RKE2 clusters running Rancher.",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to tool-config.yml (default: ./tool-config.yml, then ../tool-config.yml).",
    )
    parser.add_argument(
        "--skip-provision",
        action="store_true",
        default=False,
        help="Skip terraform init/apply and use the outputs of the existing state.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO).",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        asyncio.run(_run_deploy(args))
    except FleetSetupError as exc:
        failed = ", ".join(str(n) for n in exc.failed_instances)
        print(f"HA setup failed for instance(s) {failed}", file=sys.stderr)
        print(describe_chain(exc), file=sys.stderr)
        sys.exit(1)
    except (HASetupError, CommandError) as exc:
        print(f"Deploy error: {describe_chain(exc)}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
