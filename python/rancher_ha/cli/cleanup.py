#!/usr/bin/env python3
"""
rancher_ha/cli/cleanup.py

Destroy the HA infrastructure and remove local workspaces and terraform state.

    python -m rancher_ha.cli.cleanup --config tool-config.yml [--skip-destroy]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from rancher_ha.deployment.teardown import teardown
from rancher_ha.models.config import load_tool_config
from rancher_ha.utils.async_command_runner import CommandError
from rancher_ha.utils.errors import HASetupError, describe_chain


async def _run_cleanup(args: argparse.Namespace) -> None:
    config = load_tool_config(args.config)
    await teardown(config, skip_destroy=args.skip_destroy)
    print("Cleanup complete.")


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(
        prog="rancher_ha.cli.cleanup",
        description="Tear down HA infrastructure and local artifacts.",
    )
    parser.add_argument("--config", default=None, help="Path to tool-config.yml.")
    parser.add_argument(
        "--skip-destroy",
        action="store_true",
        default=False,
        help="Only remove local files; leave the infrastructure alone.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level))

    try:
        asyncio.run(_run_cleanup(args))
    except (HASetupError, CommandError) as exc:
        print(f"Cleanup error: {describe_chain(exc)}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
